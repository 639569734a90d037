from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from attest.core.errors import ExecutionFailure
from attest.core.models import (
    BatchRemediationOptions,
    BatchRemediationResult,
    BatchSummary,
    Clock,
    ExecutionStatus,
    Finding,
    RemediationExecution,
    Scope,
    Severity,
    new_id,
    utc_now,
)
from attest.core.taxonomy import families_for, risk_reduction
from attest.ports.remediation_provider import RemediationProvider


logger = logging.getLogger(__name__)


class BatchRemediationExecutor:
    """Run remediations for a set of findings through a bounded worker pool."""
    def __init__(self, provider: RemediationProvider, clock: Clock = utc_now) -> None:
        self._provider = provider
        self._clock = clock

    def execute(
        self,
        scope: Scope,
        findings: Sequence[Finding],
        options: BatchRemediationOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchRemediationResult:
        """Remediate ``findings`` and aggregate the outcome.

        Args:
            scope (Scope): Scope the findings belong to.
            findings (Sequence[Finding]): Candidates, already filtered and ordered.
            options (BatchRemediationOptions | None): Batch behavior; defaults to a dry run.
            cancel_event (threading.Event | None): Shared cancellation flag. The
                executor sets it itself when a failure should stop the batch.

        Returns:
            BatchRemediationResult: One execution per finding, in input order.

        Notes:
            Cancellation is checked when an item starts. Items already running
            when the batch is cancelled run to completion.
        """
        options = options or BatchRemediationOptions()
        cancel = cancel_event or threading.Event()
        batch_id = new_id("batch")
        started_at = self._clock()
        workers = max(1, int(options.max_concurrent))
        logger.info(
            "Starting batch %s: %d finding(s), max_concurrent=%d, dry_run=%s",
            batch_id,
            len(findings),
            workers,
            options.dry_run,
        )

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="remediate") as pool:
            futures = [pool.submit(self._run_item, scope, finding, options, cancel) for finding in findings]
            executions = tuple(future.result() for future in futures)

        completed_at = self._clock()
        result = _aggregate(batch_id, scope, findings, executions, options.dry_run, started_at, completed_at)
        logger.info(
            "Batch %s finished: %d succeeded, %d failed, %d skipped",
            batch_id,
            result.successful,
            result.failed,
            result.skipped,
        )
        return result

    def rollback(self, scope: Scope, finding: Finding, execution: RemediationExecution) -> RemediationExecution:
        """Restore a resource changed by a successful live remediation.

        Raises:
            ExecutionFailure: If the execution is not a Succeeded live run with a
                backup, or if the provider fails to restore.
        """
        if execution.status is not ExecutionStatus.SUCCEEDED:
            raise ExecutionFailure(
                f"Cannot roll back a remediation in state {execution.status.value}",
                finding_id=execution.finding_id,
                next_steps=["Only successful live remediations can be rolled back"],
            )
        if execution.dry_run or not execution.backup_id:
            raise ExecutionFailure(
                "No backup is available for this remediation",
                finding_id=execution.finding_id,
                next_steps=["Restore the resource manually from its last known configuration"],
            )

        execution.rollback_attempted = True
        try:
            self._provider.restore(scope, finding, execution.backup_id)
        except Exception as exc:
            logger.error("Rollback of %s failed: %s", execution.id, exc)
            execution.rollback_succeeded = False
            execution.manual_intervention_required = True
            raise ExecutionFailure(
                f"Rollback failed: {exc}",
                finding_id=execution.finding_id,
                rollback_succeeded=False,
                next_steps=[f"Restore {execution.resource_id} manually from backup {execution.backup_id}"],
            ) from exc

        execution.transition(ExecutionStatus.ROLLED_BACK)
        execution.rollback_succeeded = True
        execution.message = f"Rolled back from backup {execution.backup_id}"
        execution.completed_at = self._clock()
        return execution

    def _run_item(
        self,
        scope: Scope,
        finding: Finding,
        options: BatchRemediationOptions,
        cancel: threading.Event,
    ) -> RemediationExecution:
        execution = RemediationExecution(
            id=new_id("exec"),
            finding_id=finding.id,
            resource_id=finding.resource_id,
            dry_run=options.dry_run,
            started_at=self._clock(),
        )

        if cancel.is_set():
            return self._skip(execution, "Skipped: batch cancelled after an earlier failure")
        if not finding.auto_remediable:
            return self._skip(execution, "Skipped: manual remediation required")
        if options.require_approval:
            return self._skip(execution, "Skipped: awaiting approval")

        execution.transition(ExecutionStatus.RUNNING)
        try:
            if options.dry_run:
                execution.changes_applied = list(self._provider.preview(scope, finding))
                execution.message = f"Dry run: {len(execution.changes_applied)} change(s) would be applied"
            else:
                self._apply_live(scope, finding, options, execution)
        except ExecutionFailure as exc:
            self._fail(execution, exc.message)
        except Exception as exc:
            logger.warning("Remediation of %s failed: %s", finding.id, exc)
            self._fail(execution, str(exc) or exc.__class__.__name__)
        else:
            execution.transition(ExecutionStatus.SUCCEEDED)

        execution.completed_at = self._clock()
        if execution.status is ExecutionStatus.FAILED and options.stops_on_failure:
            cancel.set()
        return execution

    def _apply_live(
        self,
        scope: Scope,
        finding: Finding,
        options: BatchRemediationOptions,
        execution: RemediationExecution,
    ) -> None:
        if options.auto_rollback_on_failure:
            try:
                execution.backup_id = self._provider.backup(scope, finding)
            except Exception as exc:
                raise ExecutionFailure(f"Backup failed, no changes made: {exc}", finding_id=finding.id) from exc

        try:
            execution.changes_applied = list(
                self._provider.apply(scope, finding, timeout_seconds=options.item_timeout_seconds)
            )
        except Exception as exc:
            if execution.backup_id and options.auto_rollback_on_failure:
                self._restore_after_failure(scope, finding, execution)
            raise ExecutionFailure(f"Remediation failed: {exc}", finding_id=finding.id) from exc
        execution.message = f"Applied {len(execution.changes_applied)} change(s)"

    def _restore_after_failure(self, scope: Scope, finding: Finding, execution: RemediationExecution) -> None:
        execution.rollback_attempted = True
        try:
            self._provider.restore(scope, finding, execution.backup_id)
        except Exception as exc:
            logger.error("Automatic rollback of %s failed: %s", finding.id, exc)
            execution.rollback_succeeded = False
            execution.manual_intervention_required = True
            return
        execution.rollback_succeeded = True

    def _skip(self, execution: RemediationExecution, message: str) -> RemediationExecution:
        execution.transition(ExecutionStatus.SKIPPED)
        execution.message = message
        execution.completed_at = self._clock()
        return execution

    def _fail(self, execution: RemediationExecution, error: str) -> None:
        execution.transition(ExecutionStatus.FAILED)
        execution.error = error
        if execution.rollback_succeeded:
            execution.message = "Failed; resource restored from backup"
        elif execution.manual_intervention_required:
            execution.message = "Failed; rollback failed, manual intervention required"
        else:
            execution.message = "Failed"


def _aggregate(
    batch_id: str,
    scope: Scope,
    findings: Sequence[Finding],
    executions: tuple[RemediationExecution, ...],
    dry_run: bool,
    started_at,
    completed_at,
) -> BatchRemediationResult:
    by_id = {finding.id: finding for finding in findings}
    succeeded = [by_id[item.finding_id] for item in executions if item.status is ExecutionStatus.SUCCEEDED]
    successful = len(succeeded)
    failed = sum(1 for item in executions if item.status is ExecutionStatus.FAILED)
    skipped = sum(1 for item in executions if item.status is ExecutionStatus.SKIPPED)
    attempted = successful + failed + skipped

    summary = BatchSummary(
        success_rate=successful / attempted if attempted else 0.0,
        risk_reduction=risk_reduction(succeeded, findings),
        critical_remediated=sum(1 for item in succeeded if item.severity is Severity.CRITICAL),
        high_remediated=sum(1 for item in succeeded if item.severity is Severity.HIGH),
        control_families=tuple(families_for(succeeded)),
    )
    return BatchRemediationResult(
        batch_id=batch_id,
        scope=scope,
        executions=executions,
        successful=successful,
        failed=failed,
        skipped=skipped,
        summary=summary,
        dry_run=dry_run,
        started_at=started_at,
        completed_at=completed_at,
    )
