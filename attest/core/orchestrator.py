from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Sequence

from attest.core import audit as audit_log
from attest.core import trend as trend_analysis
from attest.core.assessment_cache import AssessmentCache
from attest.core.config import Settings
from attest.core.errors import (
    AttestError,
    ExecutionFailure,
    FeatureDisabledError,
    InvalidRequestError,
    NotFoundError,
    ProviderError,
)
from attest.core.executor import BatchRemediationExecutor
from attest.core.filtering import FindingCriteria, filter_findings
from attest.core.models import (
    Assessment,
    AssessmentSummary,
    BatchRemediationOptions,
    BatchRemediationResult,
    Clock,
    ControlFamilyDetails,
    ControlFamilyFinding,
    EvidencePackage,
    EvidenceReference,
    ExecutionStatus,
    Finding,
    RemediationExecution,
    RemediationGuidance,
    RemediationPlan,
    RemediationRecord,
    Scope,
    TrendResult,
    new_id,
    utc_now,
)
from attest.core.planner import RemediationPlanGenerator
from attest.core.report import (
    render_audit_markdown,
    render_batch_markdown,
    render_family_markdown,
    render_history_markdown,
    render_plan_markdown,
)
from attest.core.requests import (
    AssessmentRequest,
    AuditLogRequest,
    ControlFamilyRequest,
    EvidenceRequest,
    HistoryRequest,
    PlanRequest,
    RemediationRequest,
    ValidationRequest,
)
from attest.core.results import OperationResult
from attest.core.state import ConversationStateStore, RollbackCandidate
from attest.core.taxonomy import CONTROL_FAMILIES, family_name
from attest.ports.assessment_provider import AssessmentProvider
from attest.ports.evidence_collector import EvidenceCollector
from attest.ports.evidence_store import EvidenceStore
from attest.ports.remediation_provider import RemediationProvider


logger = logging.getLogger(__name__)

SETTING_AUTOMATED_REMEDIATION = "remediation.enable_automated_remediation"
SETTING_EVIDENCE_COLLECTION = "evidence.enable_evidence_collection"

_RUN_ASSESSMENT_FIRST = "Run a compliance assessment for this scope first"
MAX_AUDIT_DATA_ENTRIES = 20


@dataclass(frozen=True)
class OperationContext:
    """Per-call context supplied by the calling layer."""
    conversation_id: str
    default_scope: Scope | None = None


class ComplianceOrchestrator:
    """Compose cache, filter, executor, planner, trend and state into tool operations.

    Every tool-level operation returns an ``OperationResult``; errors are
    classified and carry next-step guidance instead of escaping as exceptions.
    """
    def __init__(
        self,
        assessment_provider: AssessmentProvider,
        remediation_provider: RemediationProvider,
        evidence_collectors: Sequence[EvidenceCollector] | None = None,
        evidence_store: EvidenceStore | None = None,
        settings: Settings | None = None,
        cache: AssessmentCache | None = None,
        state: ConversationStateStore | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings or Settings()
        self.assessment_provider = assessment_provider
        self.remediation_provider = remediation_provider
        self.evidence_collectors = list(evidence_collectors or [])
        self.evidence_store = evidence_store
        self.cache = cache or AssessmentCache(clock=clock)
        self.state = state or ConversationStateStore(
            clock=clock,
            assessment_ttl_hours=self.settings.state_assessment_ttl_hours,
            evidence_ttl_hours=self.settings.state_evidence_ttl_hours,
            idle_ttl_hours=self.settings.state_idle_ttl_hours,
            max_conversations=self.settings.state_max_conversations,
        )
        self.executor = BatchRemediationExecutor(remediation_provider, clock=clock)
        self.planner = RemediationPlanGenerator(guidance_source=remediation_provider, clock=clock)
        self._clock = clock

    # Core operations

    def filter_findings(
        self,
        findings: Sequence[Finding],
        severity_filter: str,
        family: str | None = None,
        resource_group: str | None = None,
        auto_only: bool = False,
        cap: int | None = None,
    ) -> list[Finding]:
        criteria = FindingCriteria(
            severity_filter=severity_filter,
            control_family=family,
            resource_group=resource_group,
            auto_remediable_only=auto_only,
            cap=cap,
        )
        return filter_findings(list(findings), criteria)

    def execute_batch(
        self,
        scope: Scope,
        findings: Sequence[Finding],
        options: BatchRemediationOptions | None = None,
    ) -> BatchRemediationResult:
        return self.executor.execute(scope, findings, options)

    def generate_plan(self, scope: Scope, findings: Sequence[Finding]) -> RemediationPlan:
        return self.planner.generate(scope, findings)

    def analyze_trend(self, score_series: Sequence[float]) -> TrendResult:
        return trend_analysis.analyze_trend(score_series)

    def get_current_scope(
        self,
        conversation_id: str,
        fallback: Callable[[], Scope | None] | None = None,
    ) -> Scope | None:
        return self.state.get_current_scope(conversation_id, fallback)

    def set_current_scope(self, conversation_id: str, scope: Scope) -> None:
        self.state.set_current_scope(conversation_id, scope)

    def get_cached_assessment(
        self,
        conversation_id: str,
        assessment_id: str | None,
        scope: Scope | None = None,
    ) -> AssessmentSummary | None:
        return self.state.get_cached_assessment(
            conversation_id,
            assessment_id,
            provider=self.assessment_provider,
            scope=scope,
        )

    def cache_evidence(self, conversation_id: str, control_family: str, reference: EvidenceReference) -> None:
        self.state.cache_evidence(conversation_id, control_family, reference)

    def track_operation(
        self,
        conversation_id: str,
        operation_type: str,
        success: bool,
        item_count: int,
        duration_seconds: float,
        scope: Scope | None = None,
    ) -> None:
        self.state.track_operation(conversation_id, operation_type, success, item_count, duration_seconds, scope)

    # Tool operations

    def run_assessment(self, context: OperationContext, request: AssessmentRequest | None = None) -> OperationResult:
        return self._guard("assessment", context, lambda: self._run_assessment(context, request or AssessmentRequest()))

    def remediate(self, context: OperationContext, request: RemediationRequest | None = None) -> OperationResult:
        return self._guard("remediation", context, lambda: self._remediate(context, request or RemediationRequest()))

    def plan(self, context: OperationContext, request: PlanRequest | None = None) -> OperationResult:
        return self._guard("plan", context, lambda: self._plan(context, request or PlanRequest()))

    def compliance_history(self, context: OperationContext, request: HistoryRequest | None = None) -> OperationResult:
        return self._guard("history", context, lambda: self._history(context, request or HistoryRequest()))

    def collect_evidence(self, context: OperationContext, request: EvidenceRequest) -> OperationResult:
        return self._guard("evidence", context, lambda: self._collect_evidence(context, request))

    def validate_remediation(self, context: OperationContext, request: ValidationRequest) -> OperationResult:
        return self._guard("validation", context, lambda: self._validate(context, request))

    def rollback(self, context: OperationContext, execution_id: str) -> OperationResult:
        return self._guard("rollback", context, lambda: self._rollback(context, execution_id))

    def assessment_audit_log(self, context: OperationContext, request: AuditLogRequest | None = None) -> OperationResult:
        return self._guard("audit_log", context, lambda: self._audit_log(context, request or AuditLogRequest()))

    def control_family_details(self, context: OperationContext, request: ControlFamilyRequest) -> OperationResult:
        return self._guard("control_family", context, lambda: self._family_details(context, request))

    def _guard(self, operation: str, context: OperationContext, func: Callable[[], OperationResult]) -> OperationResult:
        started = time.monotonic()
        try:
            result = func()
        except AttestError as exc:
            logger.warning("%s failed (%s): %s", operation, exc.kind.value, exc.message)
            result = OperationResult.failure(exc)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", operation)
            result = OperationResult.failure(
                ProviderError(
                    "internal",
                    f"The {operation} operation failed: {exc}",
                    next_steps=["Retry the operation", "Check the service logs for details"],
                )
            )
        self.state.track_operation(
            context.conversation_id,
            operation,
            result.success,
            int(result.data.get("item_count", 0) or 0),
            time.monotonic() - started,
            scope=self.state.get_current_scope(context.conversation_id),
        )
        return result

    def _resolve_scope(self, context: OperationContext, requested: Scope | None) -> Scope:
        if requested is not None:
            self.state.set_current_scope(context.conversation_id, requested)
            return requested
        scope = self.state.get_current_scope(context.conversation_id, fallback=lambda: context.default_scope)
        if scope is None:
            raise InvalidRequestError("No subscription selected for this conversation", field="subscription_id")
        return scope

    def _call_provider(self, name: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except AttestError:
            raise
        except Exception as exc:
            raise ProviderError(
                name,
                f"The {name} provider failed: {exc}",
                next_steps=["Check connectivity and credentials for the provider", "Retry the operation"],
            ) from exc

    def _latest_assessment(self, scope: Scope) -> Assessment:
        assessment = self.cache.latest(scope.key())
        if assessment is not None:
            return assessment
        assessment = self._call_provider("assessment", self.assessment_provider.latest_assessment, scope)
        if assessment is None:
            raise NotFoundError(
                f"No assessment found for {scope.describe()}",
                next_steps=[_RUN_ASSESSMENT_FIRST],
            )
        self.cache.put(assessment)
        return assessment

    def _run_assessment(self, context: OperationContext, request: AssessmentRequest) -> OperationResult:
        scope = self._resolve_scope(context, request.scope)
        assessment = None
        if not request.skip_cache:
            assessment = self.cache.get_if_fresh(scope.key(), self.settings.assessment_cache_hours)
        from_cache = assessment is not None
        if assessment is None:
            logger.info("Running assessment for %s", scope.key())
            assessment = self._call_provider("assessment", self.assessment_provider.run_assessment, scope)
            self.cache.put(assessment)

        summary = AssessmentSummary.from_assessment(assessment)
        self.state.cache_assessment(context.conversation_id, summary)
        findings = assessment.findings()
        source = "cached" if from_cache else "new"
        return OperationResult.ok(
            f"Loaded {source} assessment for {scope.describe()}: score {assessment.score:.1f}, {len(findings)} finding(s)",
            data={
                "assessment_id": assessment.id,
                "scope": scope,
                "score": assessment.score,
                "severity_counts": summary.severity_counts,
                "top_families": list(summary.top_families),
                "from_cache": from_cache,
                "age_hours": round(assessment.age_hours(self._clock()), 2),
                "item_count": len(findings),
            },
            next_steps=[
                "Generate a remediation plan for the findings",
                "Run automated remediation for auto-remediable findings",
            ],
        )

    def _remediate(self, context: OperationContext, request: RemediationRequest) -> OperationResult:
        if not self.settings.enable_automated_remediation:
            raise FeatureDisabledError(SETTING_AUTOMATED_REMEDIATION, self.settings.enable_automated_remediation)
        scope = self._resolve_scope(context, request.scope)
        assessment = self._latest_assessment(scope)

        findings = self.filter_findings(
            assessment.findings(),
            request.severity_filter,
            family=request.control_family,
            resource_group=scope.resource_group,
            auto_only=True,
            cap=request.max_findings or self.settings.max_remediations_per_batch,
        )
        if not findings:
            return OperationResult.ok(
                "No auto-remediable findings match the requested filters",
                data={"assessment_id": assessment.id, "item_count": 0},
                next_steps=["Widen the severity filter or generate a plan for manual findings"],
            )

        options = BatchRemediationOptions(
            max_concurrent=request.max_concurrent or self.settings.max_concurrent,
            fail_fast=request.fail_fast,
            continue_on_error=request.continue_on_error,
            dry_run=self.settings.dry_run_by_default if request.dry_run is None else request.dry_run,
            require_approval=request.require_approval,
            auto_rollback_on_failure=(
                self.settings.enable_rollback
                if request.auto_rollback_on_failure is None
                else request.auto_rollback_on_failure
            ),
            item_timeout_seconds=self.settings.remediation_timeout_seconds,
        )
        result = self.executor.execute(scope, findings, options)

        by_id = {finding.id: finding for finding in findings}
        for execution in result.executions:
            self.state.add_remediation_record(context.conversation_id, _record_for(execution))
            if execution.success and not execution.dry_run and execution.backup_id:
                self.state.remember_rollback(
                    context.conversation_id,
                    RollbackCandidate(scope=scope, finding=by_id[execution.finding_id], execution=execution),
                )
        if not result.dry_run and result.successful:
            self.cache.invalidate(scope)

        data = {
            "batch": result,
            "partial_failure": result.partial_failure,
            "display": render_batch_markdown(result),
            "item_count": result.attempted,
        }
        mode = "Dry run" if result.dry_run else "Remediation"
        message = (
            f"{mode} finished: {result.successful} succeeded, {result.failed} failed, "
            f"{result.skipped} skipped"
        )
        if result.successful == 0 and result.failed > 0:
            return OperationResult.failure(
                ExecutionFailure(message, next_steps=_batch_next_steps(result)),
                data=data,
            )
        return OperationResult.ok(message, data=data, next_steps=_batch_next_steps(result))

    def _plan(self, context: OperationContext, request: PlanRequest) -> OperationResult:
        scope = self._resolve_scope(context, request.scope)
        assessment = self._latest_assessment(scope)
        findings = self.filter_findings(
            assessment.findings(),
            request.severity_filter or "all",
            family=request.control_family,
            resource_group=scope.resource_group,
        )
        plan = self.planner.generate(scope, findings)
        return OperationResult.ok(
            f"Remediation plan for {len(plan.items)} finding(s), estimated effort {plan.effort}",
            data={
                "plan": plan,
                "assessment_id": assessment.id,
                "display": render_plan_markdown(plan),
                "item_count": len(plan.items),
            },
            next_steps=[
                "Run automated remediation as a dry run to preview changes",
                "Assign manual items to resource owners",
            ],
        )

    def _history(self, context: OperationContext, request: HistoryRequest) -> OperationResult:
        scope = self._resolve_scope(context, request.scope)
        days = request.clamped_days
        end = self._clock()
        start = end - timedelta(days=days)
        points = self._call_provider("assessment", self.assessment_provider.assessment_history, scope, start, end)
        history = trend_analysis.summarize_history(points or [])
        if history is None:
            raise NotFoundError(
                f"No assessments recorded for {scope.describe()} in the last {days} day(s)",
                next_steps=[_RUN_ASSESSMENT_FIRST, "Increase the number of days"],
            )
        return OperationResult.ok(
            f"Compliance is {history.trend.direction} over {days} day(s); current grade {history.grade}",
            data={
                "history": history,
                "days": days,
                "display": render_history_markdown(history, days),
                "item_count": len(history.points),
            },
            next_steps=list(history.insights),
        )

    def _collect_evidence(self, context: OperationContext, request: EvidenceRequest) -> OperationResult:
        if not self.settings.enable_evidence_collection:
            raise FeatureDisabledError(SETTING_EVIDENCE_COLLECTION, self.settings.enable_evidence_collection)
        family = request.control_family.strip().upper()
        if family not in CONTROL_FAMILIES:
            raise InvalidRequestError(
                f"Unknown control family '{request.control_family}'; expected one of {', '.join(sorted(CONTROL_FAMILIES))}",
                field="control_family",
            )
        scope = self._resolve_scope(context, request.scope)

        if not request.refresh:
            cached = self.state.get_cached_evidence(context.conversation_id, family)
            if cached is not None:
                return OperationResult.ok(
                    f"Using evidence collected at {cached.collected_at.isoformat()} for {family_name(family)}",
                    data={"reference": cached, "from_cache": True, "item_count": cached.item_count},
                )
        if not self.evidence_collectors:
            raise ProviderError("evidence", "No evidence collectors are configured")

        package = EvidencePackage(
            package_id=new_id("evidence"),
            scope=scope,
            control_family=family,
            evidence_types=tuple(request.evidence_types),
            items=[],
            collected_at=self._clock(),
        )
        attempts = 0
        for collector in self.evidence_collectors:
            for evidence_type in request.evidence_types:
                attempts += 1
                try:
                    package.items.extend(collector.collect(scope, family, evidence_type))
                except ProviderError as exc:
                    if exc.fatal:
                        raise
                    package.errors.append(f"{collector.name}/{evidence_type}: {exc.message}")
                except Exception as exc:
                    logger.warning("Evidence collector %s failed for %s: %s", collector.name, evidence_type, exc)
                    package.errors.append(f"{collector.name}/{evidence_type}: {exc}")
        if attempts and len(package.errors) == attempts:
            raise ProviderError(
                "evidence",
                f"All evidence collectors failed for {family}",
                next_steps=["Check provider connectivity and retry evidence collection"],
            )

        if self.evidence_store is not None:
            try:
                package.storage_uri = self.evidence_store.store(package)
            except Exception as exc:
                logger.warning("Evidence storage failed for %s: %s", package.package_id, exc)
                package.errors.append(f"storage: {exc}")

        reference = EvidenceReference(
            package_id=package.package_id,
            control_family=family,
            collected_at=package.collected_at,
            item_count=len(package.items),
            storage_uri=package.storage_uri,
        )
        self.state.cache_evidence(context.conversation_id, family, reference)
        degraded = bool(package.errors)
        next_steps = ["Retry collection to fill the gaps listed in errors"] if degraded else []
        return OperationResult.ok(
            f"Collected {len(package.items)} evidence item(s) for {family_name(family)}"
            + (" with errors" if degraded else ""),
            data={
                "package": package,
                "reference": reference,
                "degraded": degraded,
                "completeness": package.completeness,
                "from_cache": False,
                "item_count": len(package.items),
            },
            next_steps=next_steps,
        )

    def _validate(self, context: OperationContext, request: ValidationRequest) -> OperationResult:
        if not request.finding_id and not request.execution_id:
            raise InvalidRequestError("Provide a finding_id or an execution_id to validate", field="finding_id")
        scope = self._resolve_scope(context, request.scope)
        finding_id = request.finding_id
        data: dict[str, Any] = {"finding_id": finding_id, "item_count": 1}

        if request.execution_id:
            record = self.state.find_remediation(context.conversation_id, request.execution_id)
            if record is None:
                raise NotFoundError(
                    f"No remediation found with id {request.execution_id} in this conversation",
                    next_steps=["Validate by finding id instead, or check the remediation history"],
                )
            if finding_id and finding_id != record.finding_id:
                raise InvalidRequestError(
                    f"Remediation {record.execution_id} was for finding {record.finding_id}, not {finding_id}",
                    field="finding_id",
                )
            finding_id = record.finding_id
            data.update(
                finding_id=finding_id,
                execution_id=record.execution_id,
                execution_status=record.status.value,
                dry_run=record.dry_run,
            )
            if record.dry_run or record.status is not ExecutionStatus.SUCCEEDED:
                mode = "dry run" if record.dry_run else record.status.value
                return OperationResult(
                    success=False,
                    message=f"Remediation {record.execution_id} of {finding_id} did not change the resource ({mode})",
                    next_steps=["Run a live remediation for this finding before validating it"],
                    data={**data, "validated": False},
                )

        findings = self._call_provider("assessment", self.assessment_provider.unresolved_findings, scope)
        match = next((item for item in findings or [] if item.id == finding_id), None)
        if match is None:
            return OperationResult.ok(
                f"Finding {finding_id} is no longer reported; it is likely resolved",
                data={**data, "validated": True},
                next_steps=["Run a new assessment to confirm the score change"],
            )
        return OperationResult(
            success=False,
            message=f"Finding {finding_id} is still reported on {match.resource_id}",
            next_steps=[
                "Wait a few minutes for policy evaluation, then re-run the assessment",
                "Review the remediation execution for errors",
            ],
            data={**data, "validated": False},
        )

    def _rollback(self, context: OperationContext, execution_id: str) -> OperationResult:
        candidate = self.state.rollback_candidate(context.conversation_id, execution_id)
        if candidate is None:
            raise NotFoundError(
                f"No rollback-capable remediation found with id {execution_id}",
                next_steps=["Only live remediations with a backup from this conversation can be rolled back"],
            )
        execution = self.executor.rollback(candidate.scope, candidate.finding, candidate.execution)
        self.state.forget_rollback(context.conversation_id, execution_id)
        self.state.add_remediation_record(context.conversation_id, _record_for(execution))
        self.cache.invalidate(candidate.scope)
        return OperationResult.ok(
            f"Rolled back remediation of {candidate.finding.id} on {candidate.finding.resource_id}",
            data={"execution": execution, "item_count": 1},
            next_steps=["Re-run the assessment to confirm the resource state"],
        )

    def _audit_log(self, context: OperationContext, request: AuditLogRequest) -> OperationResult:
        scope = self._resolve_scope(context, request.scope)
        days = request.clamped_days
        end = self._clock()
        start = end - timedelta(days=days)
        entries = self._call_provider("assessment", self.assessment_provider.assessment_audit_log, scope, start, end)
        summary = audit_log.summarize_audit_log(entries or [])
        if summary is None:
            return OperationResult.ok(
                f"No assessments found in the last {days} day(s) for {scope.describe()}",
                data={"days": days, "item_count": 0},
                next_steps=[_RUN_ASSESSMENT_FIRST],
            )
        return OperationResult.ok(
            f"{summary.total} assessment(s) in the last {days} day(s): "
            f"{summary.completed} completed, {summary.failed} failed",
            data={
                "audit": summary,
                "recent": list(summary.entries[:MAX_AUDIT_DATA_ENTRIES]),
                "days": days,
                "display": render_audit_markdown(summary, days),
                "item_count": summary.total,
            },
            next_steps=list(summary.insights),
        )

    def _family_details(self, context: OperationContext, request: ControlFamilyRequest) -> OperationResult:
        family = request.control_family.strip().upper()
        if family not in CONTROL_FAMILIES:
            raise InvalidRequestError(
                f"Unknown control family '{request.control_family}'; expected one of {', '.join(sorted(CONTROL_FAMILIES))}",
                field="control_family",
            )
        scope = self._resolve_scope(context, request.scope)
        assessment = self._latest_assessment(scope)
        unresolved = [item for item in assessment.findings() if item.compliance_status.lower() != "compliant"]
        findings = self.filter_findings(unresolved, "all", family=family, resource_group=scope.resource_group)
        if request.control_id:
            wanted = request.control_id.strip().upper()
            findings = [item for item in findings if any(control.upper() == wanted for control in item.control_ids)]
        if request.severity is not None:
            findings = [item for item in findings if item.severity is request.severity]

        items = tuple(ControlFamilyFinding(finding=item, guidance=self._guidance(item)) for item in findings)
        by_severity: dict[str, int] = {}
        for item in findings:
            by_severity[item.severity.value] = by_severity.get(item.severity.value, 0) + 1
        auto = sum(1 for item in findings if item.auto_remediable)
        details = ControlFamilyDetails(
            family=family,
            family_name=family_name(family),
            scope=scope,
            findings=items,
            by_severity=by_severity,
            auto_remediable_count=auto,
            manual_count=len(findings) - auto,
            affected_resources=len({item.resource_id for item in findings}),
            unique_controls=tuple(sorted({control for item in findings for control in item.control_ids})),
        )
        next_steps = []
        if auto:
            next_steps.append(f"Run automated remediation for {family} as a dry run")
        if details.manual_count:
            next_steps.append(f"Generate a remediation plan for the manual {family} findings")
        return OperationResult.ok(
            f"{len(findings)} unresolved finding(s) in {family_name(family)} for {scope.describe()}",
            data={
                "details": details,
                "assessment_id": assessment.id,
                "display": render_family_markdown(details),
                "item_count": len(findings),
            },
            next_steps=next_steps,
        )

    def _guidance(self, finding: Finding) -> RemediationGuidance | None:
        try:
            return self.remediation_provider.remediation_guidance(finding)
        except Exception:
            logger.warning("Guidance lookup failed for %s", finding.id, exc_info=True)
            return None


def _record_for(execution: RemediationExecution) -> RemediationRecord:
    return RemediationRecord(
        execution_id=execution.id,
        finding_id=execution.finding_id,
        resource_id=execution.resource_id,
        status=execution.status,
        dry_run=execution.dry_run,
        executed_at=execution.completed_at or execution.started_at or utc_now(),
        error=execution.error,
    )


def _batch_next_steps(result: BatchRemediationResult) -> list[str]:
    steps: list[str] = []
    if result.dry_run and result.successful:
        steps.append("Re-run with dry_run=false to apply the previewed changes")
    if result.failed:
        steps.append("Review failed executions; resources marked for manual intervention need attention")
    if any(item.status is ExecutionStatus.SKIPPED for item in result.executions):
        steps.append("Skipped items were not changed; re-run them once the blocking condition is cleared")
    if not result.dry_run and result.successful:
        steps.append("Validate the remediated findings or run a new assessment")
    return steps
