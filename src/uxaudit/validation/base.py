"""Reviewer contract for the validation protocol."""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from uxaudit.core.models import CycleName, CycleResult, PhaseId, RedFlag

if TYPE_CHECKING:
    from uxaudit.core.models import PhaseFindings


@dataclass(frozen=True)
class ReviewRequest:
    """Everything a reviewer sees for one cycle.

    ``red_flags`` holds the session's flags plus any added by earlier
    cycles; ``prior_cycles`` holds the results of those cycles in order.
    """

    cycle: CycleName
    target_path: Path
    phase_findings: Mapping[PhaseId, PhaseFindings]
    red_flags: tuple[RedFlag, ...]
    pre_validation_score: float
    context: str | None = None
    prior_cycles: tuple[CycleResult, ...] = ()

    def cycle_result(self, cycle: CycleName) -> CycleResult | None:
        return next((c for c in self.prior_cycles if c.cycle == cycle), None)


@dataclass
class ReviewOutcome:
    """What a reviewer returns."""

    score: float
    feedback: list[str] = field(default_factory=list)
    red_flags: list[RedFlag] = field(default_factory=list)


class Reviewer(Protocol):
    """A critic, meta-critic or arbiter.

    ``review`` may be a plain function (run in a worker thread) or a
    coroutine function.
    """

    name: str

    def review(self, request: ReviewRequest) -> ReviewOutcome | Awaitable[ReviewOutcome]:
        """Review the audit and return a 0-10 score with feedback."""
        ...
