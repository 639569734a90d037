from __future__ import annotations

import logging

from attest.core.models import Assessment, Clock, Scope, utc_now


logger = logging.getLogger(__name__)


class AssessmentCache:
    """Most recent assessment per scope key.

    ``get_if_fresh`` is TTL-gated and backs the assessment operation.
    ``latest`` has no staleness bound and backs remediation and planning,
    which never start a scan.
    """
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._entries: dict[str, Assessment] = {}

    def put(self, assessment: Assessment) -> None:
        key = assessment.scope.key()
        current = self._entries.get(key)
        if current is not None and current.completed_at > assessment.completed_at:
            logger.debug("Ignoring older assessment %s for %s", assessment.id, key)
            return
        self._entries[key] = assessment

    def get_if_fresh(self, scope_key: str, max_age_hours: float) -> Assessment | None:
        """Return the cached assessment only when it is young enough.

        Args:
            scope_key (str): Key produced by ``Scope.key``.
            max_age_hours (float): Maximum accepted age; <= 0 disables the cache.

        Returns:
            Assessment | None: The assessment, or None on a miss or stale entry.
        """
        if max_age_hours <= 0:
            return None
        assessment = self._entries.get(scope_key)
        if assessment is None:
            return None
        age = assessment.age_hours(self._clock())
        if age > max_age_hours:
            logger.info("Cached assessment %s is stale (%.1fh > %.1fh)", assessment.id, age, max_age_hours)
            return None
        return assessment

    def latest(self, scope_key: str) -> Assessment | None:
        return self._entries.get(scope_key)

    def invalidate(self, scope: Scope) -> None:
        self._entries.pop(scope.key(), None)
