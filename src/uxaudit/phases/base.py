"""Phase contract shared by every analyzer."""

from __future__ import annotations

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

from uxaudit.core.models import AuditOptions, PhaseId

if TYPE_CHECKING:
    from uxaudit.config import Config
    from uxaudit.core.models import PhaseFindings

F = TypeVar("F")


@dataclass(frozen=True)
class PhaseContext:
    """Inputs handed to an analyzer.

    ``prior_findings`` is a read-only view of the findings of every phase that
    ran earlier in the session and succeeded.
    """

    target_path: Path
    options: AuditOptions
    timeout: float
    prior_findings: Mapping[PhaseId, PhaseFindings] = field(default_factory=lambda: MappingProxyType({}))
    config: Config | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.prior_findings, MappingProxyType):
            object.__setattr__(self, "prior_findings", MappingProxyType(dict(self.prior_findings)))

    def findings_of(self, phase_id: PhaseId, kind: type[F]) -> F | None:
        """Findings of an earlier phase if present and of the expected type."""
        findings = self.prior_findings.get(phase_id)
        return findings if isinstance(findings, kind) else None

    @property
    def command_timeout(self) -> float:
        return float(self.config.command_timeout) if self.config else 30.0


@runtime_checkable
class Analyzer(Protocol):
    """Anything that can analyze a target for one phase.

    ``analyze`` may be a plain function (run in a worker thread) or a
    coroutine function.
    """

    phase_id: PhaseId

    def analyze(self, context: PhaseContext) -> PhaseFindings | Awaitable[PhaseFindings]:
        """Inspect the target and return this phase's findings."""
        ...
