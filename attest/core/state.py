from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from attest.core.models import (
    AssessmentSummary,
    Clock,
    EvidenceReference,
    Finding,
    OperationRecord,
    RemediationExecution,
    RemediationRecord,
    Scope,
    utc_now,
)
from attest.ports.assessment_provider import AssessmentProvider


logger = logging.getLogger(__name__)

MAX_REMEDIATION_HISTORY = 50
MAX_ROLLBACK_CANDIDATES = 50
MAX_CONVERSATIONS = 1000
DEFAULT_IDLE_TTL_HOURS = 24


@dataclass(frozen=True)
class RollbackCandidate:
    """A live execution with a backup, kept so the conversation can undo it."""
    scope: Scope
    finding: Finding
    execution: RemediationExecution


@dataclass
class ConversationState:
    scope: Scope | None = None
    assessments: dict[str, tuple[AssessmentSummary, datetime]] = field(default_factory=dict)
    evidence: dict[str, tuple[EvidenceReference, datetime]] = field(default_factory=dict)
    remediations: list[RemediationRecord] = field(default_factory=list)
    rollback_candidates: dict[str, RollbackCandidate] = field(default_factory=dict)
    last_operations: dict[str, OperationRecord] = field(default_factory=dict)
    operation_counts: dict[str, int] = field(default_factory=dict)
    last_seen: datetime | None = None


def _best_effort(default: Any = None):
    """Log and swallow accessor errors, returning ``default`` (called when callable)."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, conversation_id, *args, **kwargs):
            try:
                return func(self, conversation_id, *args, **kwargs)
            except Exception:
                logger.warning("State accessor %s failed for conversation %s", func.__name__, conversation_id, exc_info=True)
                return default() if callable(default) else default

        return wrapper

    return decorator


class ConversationStateStore:
    """Best-effort, in-memory context shared across turns of a conversation.

    Nothing here is durable and every read may miss. Misses fall back to the
    caller-supplied source of truth when one is given and otherwise return
    None; accessors never raise. Writes are last-write-wins per conversation.

    Reads never create a conversation. Conversations idle for longer than
    ``idle_ttl_hours`` are evicted when a new one starts, and at most
    ``max_conversations`` are kept, least recently written first out.
    """
    def __init__(
        self,
        clock: Clock = utc_now,
        assessment_ttl_hours: float = 4,
        evidence_ttl_hours: float = 8,
        idle_ttl_hours: float = DEFAULT_IDLE_TTL_HOURS,
        max_conversations: int = MAX_CONVERSATIONS,
    ) -> None:
        self._clock = clock
        self._assessment_ttl = timedelta(hours=assessment_ttl_hours)
        self._evidence_ttl = timedelta(hours=evidence_ttl_hours)
        self._idle_ttl = timedelta(hours=idle_ttl_hours)
        self._max_conversations = max(1, int(max_conversations))
        self._conversations: dict[str, ConversationState] = {}

    @property
    def conversation_count(self) -> int:
        return len(self._conversations)

    def _peek(self, conversation_id: str) -> ConversationState | None:
        return self._conversations.get(conversation_id)

    def _state(self, conversation_id: str) -> ConversationState:
        now = self._clock()
        state = self._conversations.get(conversation_id)
        if state is None:
            self._evict(now)
            state = self._conversations.setdefault(conversation_id, ConversationState())
        state.last_seen = now
        return state

    def _evict(self, now: datetime) -> None:
        idle_before = now - self._idle_ttl
        for key in [key for key, state in self._conversations.items() if state.last_seen and state.last_seen < idle_before]:
            self._conversations.pop(key, None)
            logger.debug("Evicted idle conversation %s", key)

        overflow = len(self._conversations) - self._max_conversations + 1
        if overflow > 0:
            oldest = sorted(self._conversations, key=lambda key: self._conversations[key].last_seen or now)
            for key in oldest[:overflow]:
                self._conversations.pop(key, None)
                logger.debug("Evicted conversation %s to stay under %d", key, self._max_conversations)

    @_best_effort()
    def get_current_scope(
        self,
        conversation_id: str,
        fallback: Callable[[], Scope | None] | None = None,
    ) -> Scope | None:
        """Return the active scope, consulting ``fallback`` on a miss.

        Notes:
            The fallback typically reads a persisted default; its answer is
            stored so later turns skip the lookup.
        """
        state = self._peek(conversation_id)
        if state is not None and state.scope is not None:
            return state.scope
        if fallback is None:
            return None
        try:
            scope = fallback()
        except Exception:
            logger.warning("Scope fallback failed for conversation %s", conversation_id, exc_info=True)
            return None
        if scope is not None:
            self._state(conversation_id).scope = scope
        return scope

    @_best_effort()
    def set_current_scope(self, conversation_id: str, scope: Scope) -> None:
        self._state(conversation_id).scope = scope
        logger.debug("Set scope for %s: %s", conversation_id, scope.key())

    @_best_effort()
    def cache_assessment(self, conversation_id: str, summary: AssessmentSummary) -> None:
        state = self._state(conversation_id)
        now = self._clock()
        _prune_expired(state.assessments, now)
        state.assessments[summary.assessment_id] = (summary, now + self._assessment_ttl)

    @_best_effort()
    def get_cached_assessment(
        self,
        conversation_id: str,
        assessment_id: str | None,
        provider: AssessmentProvider | None = None,
        scope: Scope | None = None,
    ) -> AssessmentSummary | None:
        """Return a cached assessment summary, falling back to the provider.

        Args:
            conversation_id (str): Conversation key.
            assessment_id (str | None): Summary to look up; None skips the cache.
            provider (AssessmentProvider | None): Authoritative source on a miss.
            scope (Scope | None): Scope used for the provider lookup.

        Returns:
            AssessmentSummary | None: Cached or freshly fetched summary.
        """
        state = self._peek(conversation_id)
        if assessment_id and state is not None:
            entry = state.assessments.get(assessment_id)
            if entry is not None:
                summary, expires = entry
                if self._clock() <= expires:
                    return summary
                state.assessments.pop(assessment_id, None)

        if provider is None or scope is None:
            return None
        try:
            assessment = provider.latest_assessment(scope)
        except Exception:
            logger.warning("Assessment provider lookup failed for %s", scope.key(), exc_info=True)
            return None
        if assessment is None:
            return None
        summary = AssessmentSummary.from_assessment(assessment)
        self.cache_assessment(conversation_id, summary)
        return summary

    @_best_effort()
    def cache_evidence(self, conversation_id: str, control_family: str, reference: EvidenceReference) -> None:
        state = self._state(conversation_id)
        now = self._clock()
        _prune_expired(state.evidence, now)
        state.evidence[control_family.upper()] = (reference, now + self._evidence_ttl)

    @_best_effort()
    def get_cached_evidence(self, conversation_id: str, control_family: str) -> EvidenceReference | None:
        state = self._peek(conversation_id)
        if state is None:
            return None
        entry = state.evidence.get(control_family.upper())
        if entry is None:
            return None
        reference, expires = entry
        if self._clock() > expires:
            state.evidence.pop(control_family.upper(), None)
            return None
        return reference

    @_best_effort()
    def add_remediation_record(self, conversation_id: str, record: RemediationRecord) -> None:
        state = self._state(conversation_id)
        state.remediations.insert(0, record)
        del state.remediations[MAX_REMEDIATION_HISTORY:]

    @_best_effort(list)
    def remediation_history(self, conversation_id: str) -> list[RemediationRecord]:
        state = self._peek(conversation_id)
        return list(state.remediations) if state is not None else []

    @_best_effort()
    def find_remediation(self, conversation_id: str, execution_id: str) -> RemediationRecord | None:
        """Return the newest record for ``execution_id`` (a rollback supersedes the run)."""
        state = self._peek(conversation_id)
        if state is None:
            return None
        return next((record for record in state.remediations if record.execution_id == execution_id), None)

    @_best_effort()
    def remember_rollback(self, conversation_id: str, candidate: RollbackCandidate) -> None:
        candidates = self._state(conversation_id).rollback_candidates
        candidates[candidate.execution.id] = candidate
        while len(candidates) > MAX_ROLLBACK_CANDIDATES:
            candidates.pop(next(iter(candidates)))

    @_best_effort()
    def rollback_candidate(self, conversation_id: str, execution_id: str) -> RollbackCandidate | None:
        state = self._peek(conversation_id)
        return state.rollback_candidates.get(execution_id) if state is not None else None

    @_best_effort()
    def forget_rollback(self, conversation_id: str, execution_id: str) -> None:
        state = self._peek(conversation_id)
        if state is not None:
            state.rollback_candidates.pop(execution_id, None)

    @_best_effort()
    def track_operation(
        self,
        conversation_id: str,
        operation_type: str,
        success: bool,
        item_count: int,
        duration_seconds: float,
        scope: Scope | None = None,
    ) -> OperationRecord:
        record = OperationRecord(
            operation_type=operation_type,
            success=success,
            item_count=item_count,
            duration_seconds=duration_seconds,
            recorded_at=self._clock(),
            scope_key=scope.key() if scope else None,
        )
        state = self._state(conversation_id)
        state.last_operations[operation_type] = record
        state.operation_counts[operation_type] = state.operation_counts.get(operation_type, 0) + 1
        return record

    @_best_effort()
    def last_operation(self, conversation_id: str, operation_type: str) -> OperationRecord | None:
        state = self._peek(conversation_id)
        return state.last_operations.get(operation_type) if state is not None else None

    @_best_effort(0)
    def operation_count(self, conversation_id: str, operation_type: str) -> int:
        state = self._peek(conversation_id)
        return state.operation_counts.get(operation_type, 0) if state is not None else 0


def _prune_expired(entries: dict[str, tuple[Any, datetime]], now: datetime) -> None:
    for key in [key for key, (_, expires) in entries.items() if now > expires]:
        entries.pop(key, None)
