"""Scoring engine: turns phase findings and red flags into one 0-10 score."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from uxaudit.core.models import PhaseId

logger = logging.getLogger(__name__)

# The remaining 0.10 of weight is reserved for the red flag penalty.
PHASE_WEIGHTS: dict[PhaseId, float] = {
    PhaseId.FIRST_IMPRESSIONS: 0.15,
    PhaseId.INSTALLATION: 0.25,
    PhaseId.FUNCTIONALITY: 0.35,
    PhaseId.VERIFICATION: 0.15,
}

PENALTY_PER_FLAG = 0.1
MAX_PENALTY = 2.0
MAX_SCORE = 10.0

GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (9.0, "A+"),
    (8.0, "A"),
    (7.0, "B"),
    (6.0, "C"),
    (4.0, "D"),
)


def round_score(value: float) -> float:
    """Round half-up to one decimal place."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _phase_score(findings: Any) -> float | None:
    if getattr(findings, "skipped", False):
        return None
    score = getattr(findings, "score", None)
    if isinstance(score, bool) or not isinstance(score, int | float):
        return None
    return float(score)


def base_score(phase_findings: Mapping[PhaseId, Any]) -> float:
    """Weighted mean of the scorable phases that produced a score.

    Weights are re-normalized over the phases actually present, so a failed
    phase neither drags the score down nor inflates it.

    Returns:
        The unrounded base score, or 0.0 when no scorable phase completed.
    """
    weighted_sum = 0.0
    weight_used = 0.0
    for phase_id, weight in PHASE_WEIGHTS.items():
        findings = phase_findings.get(phase_id)
        if findings is None:
            continue
        score = _phase_score(findings)
        if score is None:
            continue
        weighted_sum += score * weight
        weight_used += weight

    if weight_used == 0:
        return 0.0
    return weighted_sum / weight_used


def red_flag_penalty(red_flag_count: int) -> float:
    """Flat, severity-blind penalty capped at MAX_PENALTY."""
    return min(max(red_flag_count, 0) * PENALTY_PER_FLAG, MAX_PENALTY)


def calculate_score(phase_findings: Mapping[PhaseId, Any], red_flag_count: int) -> float:
    """Compute the pre-validation audit score.

    Args:
        phase_findings: Findings keyed by phase, only for phases that succeeded
        red_flag_count: Total number of red flags merged into the session

    Returns:
        Score in [0, 10] rounded to one decimal
    """
    base = base_score(phase_findings)
    penalty = red_flag_penalty(red_flag_count)
    final = round_score(min(max(0.0, base - penalty), MAX_SCORE))
    logger.debug(f"Score: base={base:.3f} penalty={penalty:.1f} final={final}")
    return final


def grade(score: float) -> str:
    """Letter grade for a final score."""
    for threshold, letter in GRADE_THRESHOLDS:
        if score >= threshold:
            return letter
    return "F"
