import threading

import pytest

from attest.adapters.simulated_remediation import SimulatedRemediationProvider
from attest.core.errors import ExecutionFailure
from attest.core.executor import BatchRemediationExecutor
from attest.core.models import (
    BatchRemediationOptions,
    ExecutionStatus,
    Finding,
    Scope,
    Severity,
)


SCOPE = Scope("sub-1")


def _finding(finding_id: str, severity: Severity = Severity.HIGH, auto: bool = True, control: str = "SC-8") -> Finding:
    return Finding(
        id=finding_id,
        title=f"Finding {finding_id}",
        severity=severity,
        control_ids=(control,),
        resource_id=f"/subscriptions/sub-1/resourceGroups/rg/providers/x/{finding_id}",
        auto_remediable=auto,
    )


class BlockingProvider(SimulatedRemediationProvider):
    """Holds the apply of one finding until the batch has been cancelled."""
    def __init__(self, hold_id: str, cancel: threading.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self.hold_id = hold_id
        self.cancel = cancel

    def apply(self, scope, finding, timeout_seconds=None):
        if finding.id == self.hold_id:
            assert self.cancel.wait(timeout=5)
        return super().apply(scope, finding, timeout_seconds)


def test_all_items_succeed_with_bounded_concurrency() -> None:
    provider = SimulatedRemediationProvider()
    executor = BatchRemediationExecutor(provider)
    findings = [_finding(f"f{index}") for index in range(4)]

    result = executor.execute(SCOPE, findings, BatchRemediationOptions(max_concurrent=2, dry_run=False))

    assert (result.successful, result.failed, result.skipped) == (4, 0, 0)
    assert result.attempted == 4
    assert result.summary.success_rate == 1.0
    assert result.summary.risk_reduction == 1.0
    assert result.summary.high_remediated == 4
    assert result.summary.control_families == ("SC",)
    assert [item.finding_id for item in result.executions] == ["f0", "f1", "f2", "f3"]
    assert all(item.backup_id for item in result.executions)


def test_dry_run_previews_without_mutation() -> None:
    provider = SimulatedRemediationProvider()
    executor = BatchRemediationExecutor(provider)
    findings = [_finding("f1"), _finding("f2", Severity.CRITICAL)]

    result = executor.execute(SCOPE, findings, BatchRemediationOptions(dry_run=True))

    assert result.dry_run is True
    assert result.successful == 2
    assert all(item.changes_applied and item.changes_applied[0].startswith("Would") for item in result.executions)
    assert provider.actions("apply") == []
    assert provider.actions("backup") == []
    assert provider.remediated == {}


def test_dry_run_reports_vanished_resource_as_failed() -> None:
    findings = [_finding("f1"), _finding("gone")]
    provider = SimulatedRemediationProvider(missing_resources={findings[1].resource_id})

    result = BatchRemediationExecutor(provider).execute(SCOPE, findings, BatchRemediationOptions(dry_run=True))

    assert result.executions[1].status is ExecutionStatus.FAILED
    assert "Resource not found" in result.executions[1].error
    assert (result.successful, result.failed, result.skipped) == (1, 1, 0)


def test_non_auto_remediable_and_approval_items_are_skipped() -> None:
    provider = SimulatedRemediationProvider()
    executor = BatchRemediationExecutor(provider)

    manual = executor.execute(SCOPE, [_finding("m", auto=False)], BatchRemediationOptions(dry_run=False))
    approval = executor.execute(
        SCOPE, [_finding("a")], BatchRemediationOptions(dry_run=False, require_approval=True)
    )

    assert manual.executions[0].status is ExecutionStatus.SKIPPED
    assert "manual remediation required" in manual.executions[0].message
    assert approval.executions[0].status is ExecutionStatus.SKIPPED
    assert "awaiting approval" in approval.executions[0].message
    assert provider.actions("apply") == []


def test_failed_apply_is_rolled_back_from_backup() -> None:
    findings = [_finding("ok"), _finding("bad", Severity.CRITICAL)]
    provider = SimulatedRemediationProvider(failing_resources={findings[1].resource_id})

    result = BatchRemediationExecutor(provider).execute(SCOPE, findings, BatchRemediationOptions(dry_run=False))

    failed = result.executions[1]
    assert failed.status is ExecutionStatus.FAILED
    assert failed.rollback_attempted is True
    assert failed.rollback_succeeded is True
    assert failed.manual_intervention_required is False
    assert provider.actions("restore") == ["bad"]
    assert result.summary.risk_reduction == pytest.approx(3 / 7)
    assert result.summary.critical_remediated == 0
    assert result.partial_failure is True


def test_failed_rollback_requires_manual_intervention() -> None:
    finding = _finding("bad")
    provider = SimulatedRemediationProvider(
        failing_resources={finding.resource_id},
        failing_restores={finding.resource_id},
    )

    result = BatchRemediationExecutor(provider).execute(SCOPE, [finding], BatchRemediationOptions(dry_run=False))

    execution = result.executions[0]
    assert execution.status is ExecutionStatus.FAILED
    assert execution.rollback_succeeded is False
    assert execution.manual_intervention_required is True


def test_backup_failure_prevents_mutation() -> None:
    finding = _finding("nobackup")
    provider = SimulatedRemediationProvider(failing_backups={finding.resource_id})

    result = BatchRemediationExecutor(provider).execute(SCOPE, [finding], BatchRemediationOptions(dry_run=False))

    assert result.executions[0].status is ExecutionStatus.FAILED
    assert "Backup failed" in result.executions[0].error
    assert provider.actions("apply") == []


def test_without_auto_rollback_no_backup_is_taken() -> None:
    finding = _finding("bad")
    provider = SimulatedRemediationProvider(failing_resources={finding.resource_id})

    result = BatchRemediationExecutor(provider).execute(
        SCOPE, [finding], BatchRemediationOptions(dry_run=False, auto_rollback_on_failure=False)
    )

    assert result.executions[0].status is ExecutionStatus.FAILED
    assert result.executions[0].rollback_attempted is False
    assert provider.actions("backup") == []


def test_fail_fast_skips_items_not_yet_started() -> None:
    findings = [_finding("f0"), _finding("bad"), _finding("f2"), _finding("f3")]
    provider = SimulatedRemediationProvider(failing_resources={findings[1].resource_id})

    result = BatchRemediationExecutor(provider).execute(
        SCOPE, findings, BatchRemediationOptions(max_concurrent=1, dry_run=False, fail_fast=True)
    )

    statuses = [item.status for item in result.executions]
    assert statuses == [
        ExecutionStatus.SUCCEEDED,
        ExecutionStatus.FAILED,
        ExecutionStatus.SKIPPED,
        ExecutionStatus.SKIPPED,
    ]
    assert provider.actions("apply") == ["f0", "bad"]
    assert result.attempted == result.successful + result.failed + result.skipped


def test_fail_fast_lets_running_items_finish() -> None:
    cancel = threading.Event()
    findings = [_finding("slow"), _finding("bad"), _finding("f2"), _finding("f3")]
    provider = BlockingProvider("slow", cancel, failing_resources={findings[1].resource_id})

    result = BatchRemediationExecutor(provider).execute(
        SCOPE,
        findings,
        BatchRemediationOptions(max_concurrent=2, dry_run=False, fail_fast=True),
        cancel_event=cancel,
    )

    statuses = [item.status for item in result.executions]
    assert statuses == [
        ExecutionStatus.SUCCEEDED,
        ExecutionStatus.FAILED,
        ExecutionStatus.SKIPPED,
        ExecutionStatus.SKIPPED,
    ]
    assert "f2" not in provider.actions("apply")


def test_continue_on_error_false_stops_like_fail_fast() -> None:
    findings = [_finding("bad"), _finding("f1")]
    provider = SimulatedRemediationProvider(failing_resources={findings[0].resource_id})

    result = BatchRemediationExecutor(provider).execute(
        SCOPE, findings, BatchRemediationOptions(max_concurrent=1, dry_run=False, continue_on_error=False)
    )

    assert [item.status for item in result.executions] == [ExecutionStatus.FAILED, ExecutionStatus.SKIPPED]


def test_default_options_attempt_every_item() -> None:
    findings = [_finding("bad"), _finding("f1"), _finding("f2")]
    provider = SimulatedRemediationProvider(failing_resources={findings[0].resource_id})

    result = BatchRemediationExecutor(provider).execute(
        SCOPE, findings, BatchRemediationOptions(max_concurrent=1, dry_run=False)
    )

    assert (result.successful, result.failed, result.skipped) == (2, 1, 0)


def test_empty_batch_has_zero_success_rate() -> None:
    result = BatchRemediationExecutor(SimulatedRemediationProvider()).execute(SCOPE, [], BatchRemediationOptions())

    assert result.attempted == 0
    assert result.summary.success_rate == 0.0
    assert result.summary.risk_reduction == 0.0


def test_explicit_rollback_moves_success_to_rolled_back() -> None:
    provider = SimulatedRemediationProvider()
    executor = BatchRemediationExecutor(provider)
    finding = _finding("f1")
    execution = executor.execute(SCOPE, [finding], BatchRemediationOptions(dry_run=False)).executions[0]

    executor.rollback(SCOPE, finding, execution)

    assert execution.status is ExecutionStatus.ROLLED_BACK
    assert execution.rollback_succeeded is True
    assert provider.remediated == {}
    with pytest.raises(ExecutionFailure):
        executor.rollback(SCOPE, finding, execution)


def test_rollback_rejects_dry_run_and_failed_executions() -> None:
    executor = BatchRemediationExecutor(SimulatedRemediationProvider())
    finding = _finding("f1")
    dry = executor.execute(SCOPE, [finding], BatchRemediationOptions(dry_run=True)).executions[0]

    with pytest.raises(ExecutionFailure, match="No backup"):
        executor.rollback(SCOPE, finding, dry)
    assert dry.status is ExecutionStatus.SUCCEEDED
