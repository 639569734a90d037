from datetime import datetime, timedelta, timezone

from attest.core.models import (
    Assessment,
    AssessmentSummary,
    EvidenceReference,
    ExecutionStatus,
    Finding,
    RemediationExecution,
    RemediationRecord,
    Scope,
    Severity,
)
from attest.core.state import ConversationStateStore, RollbackCandidate


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeAssessmentProvider:
    def __init__(self, assessment: Assessment | None = None, error: Exception | None = None) -> None:
        self.assessment = assessment
        self.error = error
        self.calls = 0

    def latest_assessment(self, scope: Scope) -> Assessment | None:
        self.calls += 1
        if self.error:
            raise self.error
        return self.assessment


NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _summary(assessment_id: str) -> AssessmentSummary:
    return AssessmentSummary(
        assessment_id=assessment_id,
        scope_key="sub-1",
        completed_at=NOW,
        score=75.0,
        severity_counts={"Critical": 1},
    )


def test_scope_fallback_is_consulted_once_and_stored() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))
    calls = []

    def fallback():
        calls.append(1)
        return Scope("sub-default")

    assert store.get_current_scope("conv-1") is None
    assert store.get_current_scope("conv-1", fallback).subscription_id == "sub-default"
    assert store.get_current_scope("conv-1", fallback).subscription_id == "sub-default"
    assert len(calls) == 1

    store.set_current_scope("conv-1", Scope("sub-2"))
    assert store.get_current_scope("conv-1").subscription_id == "sub-2"
    assert store.get_current_scope("conv-2") is None


def test_scope_fallback_error_is_a_miss() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))

    def broken():
        raise RuntimeError("settings unavailable")

    assert store.get_current_scope("conv-1", broken) is None


def test_cached_assessment_expires_and_falls_back_to_provider() -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock, assessment_ttl_hours=4)
    store.cache_assessment("conv-1", _summary("a1"))

    assert store.get_cached_assessment("conv-1", "a1").assessment_id == "a1"

    clock.now = NOW + timedelta(hours=5)
    assert store.get_cached_assessment("conv-1", "a1") is None

    assessment = Assessment(id="a2", scope=Scope("sub-1"), started_at=NOW, completed_at=NOW, score=88.0)
    provider = FakeAssessmentProvider(assessment)
    summary = store.get_cached_assessment("conv-1", "a1", provider=provider, scope=Scope("sub-1"))

    assert summary.assessment_id == "a2"
    assert store.get_cached_assessment("conv-1", "a2").score == 88.0
    assert provider.calls == 1


def test_cached_assessment_provider_error_is_a_miss() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))
    provider = FakeAssessmentProvider(error=ConnectionError("down"))

    assert store.get_cached_assessment("conv-1", None, provider=provider, scope=Scope("sub-1")) is None


def test_evidence_cache_is_keyed_by_uppercase_family_and_expires() -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock, evidence_ttl_hours=8)
    reference = EvidenceReference(package_id="pkg-1", control_family="AC", collected_at=NOW, item_count=3)
    store.cache_evidence("conv-1", "ac", reference)

    assert store.get_cached_evidence("conv-1", "AC") == reference
    clock.now = NOW + timedelta(hours=8, minutes=1)
    assert store.get_cached_evidence("conv-1", "ac") is None


def test_remediation_history_is_newest_first_and_capped() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))
    for index in range(55):
        store.add_remediation_record(
            "conv-1",
            RemediationRecord(
                execution_id=f"exec-{index}",
                finding_id=f"f-{index}",
                resource_id="/r",
                status=ExecutionStatus.SUCCEEDED,
                dry_run=True,
                executed_at=NOW,
            ),
        )

    history = store.remediation_history("conv-1")

    assert len(history) == 50
    assert history[0].execution_id == "exec-54"
    assert history[-1].execution_id == "exec-5"


def test_track_operation_records_last_and_count() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))

    store.track_operation("conv-1", "remediation", True, 4, 1.5, scope=Scope("Sub-1"))
    store.track_operation("conv-1", "remediation", False, 2, 0.5)

    last = store.last_operation("conv-1", "remediation")
    assert last.success is False
    assert last.item_count == 2
    assert store.operation_count("conv-1", "remediation") == 2
    assert store.operation_count("conv-1", "plan") == 0
    assert store.last_operation("conv-2", "remediation") is None


def _record(execution_id: str, status: ExecutionStatus = ExecutionStatus.SUCCEEDED) -> RemediationRecord:
    return RemediationRecord(
        execution_id=execution_id,
        finding_id="f-1",
        resource_id="/r",
        status=status,
        dry_run=False,
        executed_at=NOW,
    )


def _candidate(execution_id: str) -> RollbackCandidate:
    finding = Finding(id="f-1", title="t", severity=Severity.HIGH, control_ids=("SC-8",), resource_id="/r")
    execution = RemediationExecution(
        id=execution_id,
        finding_id="f-1",
        resource_id="/r",
        status=ExecutionStatus.SUCCEEDED,
        backup_id=f"backup-{execution_id}",
    )
    return RollbackCandidate(scope=Scope("sub-1"), finding=finding, execution=execution)


def test_reads_do_not_create_conversations() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))

    for index in range(1000):
        conversation = f"conv-{index}"
        store.get_current_scope(conversation)
        store.get_cached_assessment(conversation, "a1")
        store.get_cached_evidence(conversation, "AC")
        store.remediation_history(conversation)
        store.rollback_candidate(conversation, "exec-1")
        store.last_operation(conversation, "plan")
        store.operation_count(conversation, "plan")

    assert store.conversation_count == 0


def test_idle_conversations_are_evicted_when_a_new_one_starts() -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock, idle_ttl_hours=24)
    store.set_current_scope("conv-old", Scope("sub-old"))
    clock.now = NOW + timedelta(hours=20)
    store.set_current_scope("conv-recent", Scope("sub-recent"))

    clock.now = NOW + timedelta(hours=25)
    store.set_current_scope("conv-new", Scope("sub-new"))

    assert store.conversation_count == 2
    assert store.get_current_scope("conv-old") is None
    assert store.get_current_scope("conv-recent").subscription_id == "sub-recent"


def test_conversation_count_is_capped_least_recent_first() -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock, max_conversations=3)
    for index in range(3):
        clock.now = NOW + timedelta(minutes=index)
        store.set_current_scope(f"conv-{index}", Scope(f"sub-{index}"))
    clock.now = NOW + timedelta(minutes=10)
    store.track_operation("conv-0", "plan", True, 1, 0.1)

    clock.now = NOW + timedelta(minutes=11)
    store.set_current_scope("conv-3", Scope("sub-3"))

    assert store.conversation_count == 3
    assert store.get_current_scope("conv-1") is None
    assert store.get_current_scope("conv-0").subscription_id == "sub-0"


def test_expired_entries_are_pruned_on_write() -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock, assessment_ttl_hours=4, evidence_ttl_hours=8)
    for index in range(10):
        store.cache_assessment("conv-1", _summary(f"a{index}"))
    reference = EvidenceReference(package_id="pkg-1", control_family="AC", collected_at=NOW, item_count=1)
    store.cache_evidence("conv-1", "AC", reference)

    clock.now = NOW + timedelta(hours=9)
    store.cache_assessment("conv-1", _summary("fresh"))
    store.cache_evidence("conv-1", "SC", reference)

    state = store._conversations["conv-1"]
    assert list(state.assessments) == ["fresh"]
    assert list(state.evidence) == ["SC"]


def test_rollback_candidates_are_capped_and_per_conversation() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))
    for index in range(51):
        store.remember_rollback("conv-1", _candidate(f"exec-{index}"))

    assert store.rollback_candidate("conv-1", "exec-0") is None
    assert store.rollback_candidate("conv-1", "exec-1").execution.backup_id == "backup-exec-1"
    assert store.rollback_candidate("conv-1", "exec-50") is not None
    assert store.rollback_candidate("conv-2", "exec-50") is None

    store.forget_rollback("conv-1", "exec-50")
    assert store.rollback_candidate("conv-1", "exec-50") is None


def test_find_remediation_returns_newest_record() -> None:
    store = ConversationStateStore(clock=FakeClock(NOW))
    store.add_remediation_record("conv-1", _record("exec-1"))
    store.add_remediation_record("conv-1", _record("exec-2"))
    store.add_remediation_record("conv-1", _record("exec-1", ExecutionStatus.ROLLED_BACK))

    assert store.find_remediation("conv-1", "exec-1").status is ExecutionStatus.ROLLED_BACK
    assert store.find_remediation("conv-1", "exec-9") is None
    assert store.find_remediation("conv-2", "exec-1") is None


def test_accessor_errors_are_logged_and_treated_as_misses(caplog) -> None:
    clock = FakeClock(NOW)
    store = ConversationStateStore(clock=clock)
    store.set_current_scope("conv-1", Scope("sub-1"))
    store.cache_assessment("conv-1", _summary("a1"))

    def broken_clock():
        raise RuntimeError("clock unavailable")

    store._clock = broken_clock

    assert store.get_cached_assessment("conv-1", "a1") is None
    assert store.set_current_scope("conv-2", Scope("sub-2")) is None
    assert store.track_operation("conv-1", "plan", True, 1, 0.1) is None
    assert store.remediation_history("conv-1") == []
    assert store.operation_count("conv-1", "plan") == 0
    assert store.get_current_scope("conv-1").subscription_id == "sub-1"
    assert "get_cached_assessment" in caplog.text
