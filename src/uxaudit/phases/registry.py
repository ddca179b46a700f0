"""Phase registry: maps the fixed phase ids to analyzers."""

from __future__ import annotations

from collections.abc import Mapping

from uxaudit.core.models import PHASE_ORDER, PhaseId
from uxaudit.phases.base import Analyzer
from uxaudit.phases.error_handling import ErrorHandlingAnalyzer
from uxaudit.phases.first_impressions import FirstImpressionsAnalyzer
from uxaudit.phases.functionality import FunctionalityAnalyzer
from uxaudit.phases.installation import InstallationAnalyzer
from uxaudit.phases.red_flags import RedFlagAnalyzer
from uxaudit.phases.verification import VerificationAnalyzer


def default_analyzer(phase_id: PhaseId | str) -> Analyzer:
    """Build the reference analyzer for a phase.

    Raises:
        UnknownPhase: If phase_id is not one of the six phases
    """
    match PhaseId.parse(phase_id):
        case PhaseId.FIRST_IMPRESSIONS:
            return FirstImpressionsAnalyzer()
        case PhaseId.INSTALLATION:
            return InstallationAnalyzer()
        case PhaseId.FUNCTIONALITY:
            return FunctionalityAnalyzer()
        case PhaseId.VERIFICATION:
            return VerificationAnalyzer()
        case PhaseId.ERROR_HANDLING:
            return ErrorHandlingAnalyzer()
        case PhaseId.RED_FLAGS:
            return RedFlagAnalyzer()


class PhaseRegistry:
    """Resolves phase ids to analyzers, optionally with overrides."""

    def __init__(self, overrides: Mapping[PhaseId, Analyzer] | None = None) -> None:
        self._analyzers: dict[PhaseId, Analyzer] = {}
        for phase_id, analyzer in (overrides or {}).items():
            self._analyzers[PhaseId.parse(phase_id)] = analyzer

    @classmethod
    def with_overrides(cls, **analyzers: Analyzer) -> PhaseRegistry:
        """Registry with some phases replaced, keyed by phase id with '_' for '-'.

        Example: ``PhaseRegistry.with_overrides(red_flags=MyAnalyzer())``
        """
        return cls({PhaseId.parse(name.replace("_", "-")): a for name, a in analyzers.items()})

    @property
    def order(self) -> tuple[PhaseId, ...]:
        return PHASE_ORDER

    def get(self, phase_id: PhaseId | str) -> Analyzer:
        """Analyzer for a phase, creating the reference one on first use.

        Raises:
            UnknownPhase: If phase_id is not one of the six phases
        """
        resolved = PhaseId.parse(phase_id)
        if resolved not in self._analyzers:
            self._analyzers[resolved] = default_analyzer(resolved)
        return self._analyzers[resolved]
