from __future__ import annotations

from typing import Sequence

from attest.core.models import ComplianceHistory, HistoryPoint, TrendResult


IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"

SLOPE_THRESHOLD = 0.5
TARGET_SCORE = 90.0

_GRADES = [
    (95.0, "A+"),
    (90.0, "A"),
    (85.0, "B+"),
    (80.0, "B"),
    (75.0, "C+"),
    (70.0, "C"),
    (65.0, "D+"),
    (60.0, "D"),
]


def analyze_trend(scores: Sequence[float]) -> TrendResult:
    """Classify score movement with an ordinary least-squares slope.

    Args:
        scores (Sequence[float]): Scores in chronological ascending order.

    Returns:
        TrendResult: improving (slope > 0.5), declining (slope < -0.5) or
        stable; fewer than two points is stable with slope 0.
    """
    n = len(scores)
    if n < 2:
        return TrendResult(direction=STABLE, slope=0.0)

    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for index, score in enumerate(scores):
        value = float(score)
        sum_x += index
        sum_y += value
        sum_xy += index * value
        sum_x2 += index * index

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    if slope > SLOPE_THRESHOLD:
        direction = IMPROVING
    elif slope < -SLOPE_THRESHOLD:
        direction = DECLINING
    else:
        direction = STABLE
    return TrendResult(direction=direction, slope=slope)


def compliance_grade(score: float) -> str:
    for floor, grade in _GRADES:
        if score >= floor:
            return grade
    return "F"


def summarize_history(points: Sequence[HistoryPoint]) -> ComplianceHistory | None:
    """Summarize an assessment score history.

    Points are sorted by timestamp before the trend is computed, so callers
    may pass provider order.

    Returns:
        ComplianceHistory | None: None when there are no points.
    """
    if not points:
        return None
    ordered = tuple(sorted(points, key=lambda point: point.timestamp))
    scores = [point.score for point in ordered]
    trend = analyze_trend(scores)
    latest = scores[-1]
    oldest = scores[0]

    insights: list[str] = []
    if len(ordered) < 3:
        insights.append("Run more assessments to build a better trend analysis (3+ recommended).")
    if trend.direction == IMPROVING and latest < TARGET_SCORE:
        insights.append(
            f"On track: {round(TARGET_SCORE - latest, 1)} points away from a score of {TARGET_SCORE:.0f}."
        )
    if trend.direction == DECLINING:
        insights.append("Review recent infrastructure changes that may have introduced compliance issues.")
    if latest >= TARGET_SCORE:
        insights.append("Score is at or above target; keep monitoring on a regular schedule.")

    return ComplianceHistory(
        points=ordered,
        trend=trend,
        latest_score=latest,
        oldest_score=oldest,
        score_change=latest - oldest,
        best_score=max(scores),
        worst_score=min(scores),
        average_score=sum(scores) / len(scores),
        grade=compliance_grade(latest),
        insights=tuple(insights),
    )
