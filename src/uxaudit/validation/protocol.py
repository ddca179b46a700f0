"""Three-cycle validation: critic, meta-critic, then an authoritative arbiter."""

from __future__ import annotations

import asyncio
import inspect
import logging
import statistics
import time
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from uxaudit.core.models import (
    CYCLE_ORDER,
    CycleName,
    CycleResult,
    PhaseId,
    RedFlag,
    ValidationResult,
    ValidationStatus,
)
from uxaudit.runners.threads import run_detached
from uxaudit.validation.base import ReviewOutcome, Reviewer, ReviewRequest

if TYPE_CHECKING:
    from uxaudit.config import Config
    from uxaudit.core.models import PhaseFindings

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 5.0
PASSING_SCORE = 6.0
REVIEW_PASSING_SCORE = 5.0  # critic and meta-critic
CONFIDENCE_THRESHOLD = 0.7


def confidence(cycles: list[CycleResult]) -> float:
    """0-1 confidence from completion, score consistency and pass rate."""
    if not cycles:
        return 0.0
    completion = sum(1 for c in cycles if not c.degraded) / len(CYCLE_ORDER)
    variance = statistics.pvariance([c.score for c in cycles]) if len(cycles) > 1 else 0.0
    consistency = max(0.0, 1 - variance / 10)
    pass_rate = sum(1 for c in cycles if c.passed) / len(cycles)
    return round(completion * 0.3 + consistency * 0.3 + pass_rate * 0.4, 3)


class ValidationProtocol:
    """Runs critic, meta-critic and arbiter once each, in that order.

    A cycle that raises or exceeds its timeout contributes the neutral score
    and a feedback line describing the failure; later cycles still run. The
    arbiter's score is the validation score. Flags returned by the arbiter
    are ignored.
    """

    def __init__(
        self,
        critic: Reviewer,
        meta_critic: Reviewer,
        arbiter: Reviewer,
        cycle_timeout: float = 120,
        passing_score: float = PASSING_SCORE,
    ) -> None:
        self.reviewers: dict[CycleName, Reviewer] = {
            CycleName.CRITIC: critic,
            CycleName.META_CRITIC: meta_critic,
            CycleName.ARBITER: arbiter,
        }
        self.cycle_timeout = cycle_timeout
        self.passing_score = passing_score

    @classmethod
    def from_config(cls, config: Config) -> ValidationProtocol:
        """Build the protocol with the reviewers named in configuration."""
        settings = config.validation
        match settings.reviewer:
            case "claude":
                from uxaudit.validation.claude import ClaudeReviewer

                critic: Reviewer = ClaudeReviewer("claude-critic", settings.model, settings.cycle_timeout)
                meta: Reviewer = ClaudeReviewer("claude-meta-critic", settings.model, settings.cycle_timeout)
                arbiter: Reviewer = ClaudeReviewer("claude-arbiter", settings.model, settings.cycle_timeout)
            case _:
                from uxaudit.validation.reviewers import EvidenceArbiter, HeuristicCritic, HeuristicMetaCritic

                critic, meta, arbiter = HeuristicCritic(), HeuristicMetaCritic(), EvidenceArbiter()
        return cls(critic, meta, arbiter, cycle_timeout=settings.cycle_timeout, passing_score=settings.passing_score)

    async def run(
        self,
        target_path: Path,
        phase_findings: Mapping[PhaseId, PhaseFindings],
        red_flags: list[RedFlag],
        pre_validation_score: float,
        context: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ValidationResult:
        """Run the protocol.

        Args:
            target_path: Audited project
            phase_findings: Findings of the phases that succeeded
            red_flags: Red flags merged from all phases
            pre_validation_score: Score from the scoring engine
            context: Optional domain context from the caller
            cancel_event: When set, no further cycle starts

        Returns:
            ValidationResult; if cancelled before the arbiter ran, ``score``
            is the pre-validation score and ``cancelled`` is True
        """
        cycles: list[CycleResult] = []
        accumulated = list(red_flags)
        additional: list[RedFlag] = []

        for cycle in CYCLE_ORDER:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Validation cancelled before {cycle.value}")
                break

            request = ReviewRequest(
                cycle=cycle,
                target_path=target_path,
                phase_findings=phase_findings,
                red_flags=tuple(accumulated),
                pre_validation_score=pre_validation_score,
                context=context,
                prior_cycles=tuple(cycles),
            )
            result = await self._run_cycle(cycle, request)
            cycles.append(result)
            if cycle != CycleName.ARBITER:
                accumulated.extend(result.red_flags)
                additional.extend(result.red_flags)

        arbiter = next((c for c in cycles if c.cycle == CycleName.ARBITER), None)
        cancelled = arbiter is None
        score = pre_validation_score if cancelled else arbiter.score
        passed = score >= self.passing_score
        conf = confidence(cycles)

        if passed and not cancelled:
            status = ValidationStatus.VALIDATED if conf >= CONFIDENCE_THRESHOLD else ValidationStatus.UNVERIFIED
        else:
            status = ValidationStatus.FAILED

        return ValidationResult(
            passed=passed,
            score=score,
            feedback=[line for c in cycles for line in c.feedback],
            additional_flags=additional,
            cycles=cycles,
            status=status,
            confidence=conf,
            cancelled=cancelled,
        )

    async def _run_cycle(self, cycle: CycleName, request: ReviewRequest) -> CycleResult:
        reviewer = self.reviewers[cycle]
        name = getattr(reviewer, "name", type(reviewer).__name__)
        threshold = self.passing_score if cycle == CycleName.ARBITER else REVIEW_PASSING_SCORE
        start = time.monotonic()
        logger.info(f"Validation cycle {cycle.value} ({name})")

        try:
            outcome = await asyncio.wait_for(self._invoke(reviewer, request), timeout=self.cycle_timeout)
            if not isinstance(outcome, ReviewOutcome):
                raise TypeError(f"{name} returned {type(outcome).__name__}, expected ReviewOutcome")
            score = max(0.0, min(10.0, float(outcome.score)))
            return CycleResult(
                cycle=cycle,
                score=score,
                feedback=list(outcome.feedback),
                red_flags=[] if cycle == CycleName.ARBITER else list(outcome.red_flags),
                duration_ms=int((time.monotonic() - start) * 1000),
                reviewer=name,
                passed=score >= threshold,
            )
        except TimeoutError:
            error = f"{cycle.value} timed out after {self.cycle_timeout}s"
        except Exception as e:
            error = f"{cycle.value} failed: {e}"

        logger.warning(f"Validation {error}; using neutral score {NEUTRAL_SCORE}")
        return CycleResult(
            cycle=cycle,
            score=NEUTRAL_SCORE,
            feedback=[f"[{cycle.value} unavailable] {error}"],
            duration_ms=int((time.monotonic() - start) * 1000),
            reviewer=name,
            passed=NEUTRAL_SCORE >= threshold,
            error=error,
        )

    async def _invoke(self, reviewer: Reviewer, request: ReviewRequest) -> ReviewOutcome:
        if inspect.iscoroutinefunction(reviewer.review):
            return await reviewer.review(request)
        result = await run_detached(reviewer.review, request, name=f"review-{request.cycle.value}")
        if inspect.isawaitable(result):
            return await result
        return result
