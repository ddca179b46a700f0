"""Exceptions raised by the audit engine."""

from __future__ import annotations

from pathlib import Path


class UxAuditError(Exception):
    """Base class for all uxaudit errors."""


class TargetNotFound(UxAuditError):
    """The audit target does not exist or cannot be read."""

    def __init__(self, target_path: Path | str, reason: str = "does not exist") -> None:
        self.target_path = Path(target_path)
        self.reason = reason
        super().__init__(f"Audit target {self.target_path} {reason}")


class UnknownPhase(UxAuditError):
    """A phase id outside the fixed six-phase set was requested."""

    def __init__(self, phase_id: str) -> None:
        self.phase_id = phase_id
        super().__init__(f"Unknown phase: {phase_id!r}")


class SessionAlreadyCompleted(UxAuditError):
    """Raised when a completed session is completed again."""


class QuotaExceeded(UxAuditError):
    """The quota collaborator refused to start another audit."""

    def __init__(self, tier: str) -> None:
        self.tier = tier
        super().__init__(f"Audit quota exhausted for tier '{tier}'")
