"""Core data models for uxaudit."""

from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from uxaudit.core.errors import SessionAlreadyCompleted, UnknownPhase


class Severity(str, Enum):
    """Severity of a red flag, from most to least serious."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Numeric rank; higher is more severe."""
        return _SEVERITY_RANK[self]

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}


class PhaseId(str, Enum):
    """The six audit phases, declared in execution order."""

    FIRST_IMPRESSIONS = "first-impressions"
    INSTALLATION = "installation"
    FUNCTIONALITY = "functionality"
    VERIFICATION = "verification"
    ERROR_HANDLING = "error-handling"
    RED_FLAGS = "red-flags"

    @classmethod
    def parse(cls, raw: str | PhaseId) -> PhaseId:
        """Resolve a phase id string, raising UnknownPhase for anything else."""
        if isinstance(raw, PhaseId):
            return raw
        try:
            return cls(raw)
        except ValueError:
            raise UnknownPhase(str(raw)) from None


PHASE_ORDER: tuple[PhaseId, ...] = tuple(PhaseId)


class Tier(str, Enum):
    """Subscription tier passed to the quota collaborator."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class CycleName(str, Enum):
    """Validation cycles, declared in execution order."""

    CRITIC = "critic"
    META_CRITIC = "meta-critic"
    ARBITER = "arbiter"


CYCLE_ORDER: tuple[CycleName, ...] = tuple(CycleName)


class ValidationStatus(str, Enum):
    """Outcome classification of the validation protocol."""

    VALIDATED = "validated"
    UNVERIFIED = "unverified"
    FAILED = "failed"


# =============================================================================
# Red Flags
# =============================================================================


class RedFlag(BaseModel):
    """A normalized defect found during an audit."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    category: str
    title: str
    description: str = ""
    evidence: list[str] = Field(default_factory=list)
    fix: str
    location: str | None = None

    @field_validator("title", "fix")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must be a non-empty string")
        return value

    @property
    def key(self) -> str:
        """Identity used for de-duplication."""
        return f"{self.category}:{self.title}"


# =============================================================================
# Phase Findings
# =============================================================================


class FirstImpressionsFindings(BaseModel):
    """What a new user sees before installing anything."""

    kind: Literal["first-impressions"] = "first-impressions"
    has_readme: bool = False
    readme_score: float = 0.0
    has_install_instructions: bool = False
    has_examples: bool = False
    description_clarity: float = 0.0
    score: float = 0.0
    notes: list[str] = Field(default_factory=list)


class InstallationFindings(BaseModel):
    """Result of attempting to install the target."""

    kind: Literal["installation"] = "installation"
    attempted: bool = False
    succeeded: bool = False
    duration_ms: int = 0
    method: str = "unknown"
    skipped: bool = False
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    score: float = 0.0
    notes: list[str] = Field(default_factory=list)


class CommandTest(BaseModel):
    """One CLI invocation made while probing functionality."""

    command: str
    success: bool
    output: str = ""
    error: str | None = None
    duration_ms: int = 0


class FunctionalityFindings(BaseModel):
    """Observed behaviour of the target's commands."""

    kind: Literal["functionality"] = "functionality"
    commands_tested: list[CommandTest] = Field(default_factory=list)
    successful_executions: int = 0
    failed_executions: int = 0
    missing_features: list[str] = Field(default_factory=list)
    score: float = 0.0
    notes: list[str] = Field(default_factory=list)


class VerifiedClaim(BaseModel):
    """A documentation claim checked against the project."""

    claim: str
    verified: bool
    evidence: str = ""
    confidence: float = 0.0


class VerificationFindings(BaseModel):
    """How well the documentation matches reality."""

    kind: Literal["verification"] = "verification"
    verified_claims: list[VerifiedClaim] = Field(default_factory=list)
    unverifiable_claims: list[str] = Field(default_factory=list)
    accuracy_issues: list[str] = Field(default_factory=list)
    score: float = 0.0
    notes: list[str] = Field(default_factory=list)


class FlagFindings(BaseModel):
    """Findings of phases that only report red flags (no score)."""

    kind: Literal["flags"] = "flags"
    red_flags: list[RedFlag] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


PhaseFindings = Annotated[
    FirstImpressionsFindings | InstallationFindings | FunctionalityFindings | VerificationFindings | FlagFindings,
    Field(discriminator="kind"),
]


class PhaseResult(BaseModel):
    """Outcome of running one phase. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    phase_id: PhaseId
    success: bool
    duration_ms: int = Field(default=0, ge=0)
    findings: PhaseFindings | None = None
    errors: list[str] = Field(default_factory=list)


# =============================================================================
# Validation Models
# =============================================================================


class CycleResult(BaseModel):
    """Output of a single validation cycle."""

    cycle: CycleName
    score: float = Field(ge=0.0, le=10.0)
    feedback: list[str] = Field(default_factory=list)
    red_flags: list[RedFlag] = Field(default_factory=list)
    duration_ms: int = 0
    reviewer: str = ""
    passed: bool = False
    error: str | None = None

    @property
    def degraded(self) -> bool:
        """True when the cycle failed and fell back to the neutral score."""
        return self.error is not None


class ValidationResult(BaseModel):
    """Outcome of the critic / meta-critic / arbiter protocol."""

    passed: bool
    score: float = Field(ge=0.0, le=10.0)
    feedback: list[str] = Field(default_factory=list)
    additional_flags: list[RedFlag] = Field(default_factory=list)
    cycles: list[CycleResult] = Field(default_factory=list)
    status: ValidationStatus = ValidationStatus.FAILED
    confidence: float = 0.0
    validated_at: datetime = Field(default_factory=datetime.now)
    cancelled: bool = False


# =============================================================================
# Session Models
# =============================================================================


class AuditOptions(BaseModel):
    """Caller-supplied options for one audit."""

    context: str | None = None
    validation_enabled: bool = True
    tier: Tier = Tier.FREE
    verbose: bool = False


def _session_id() -> str:
    return str(uuid.uuid4())[:8]


class AuditSession(BaseModel):
    """Root aggregate for one audit run."""

    id: str = Field(default_factory=_session_id)
    target_path: Path
    options: AuditOptions = Field(default_factory=AuditOptions)
    phase_results: list[PhaseResult] = Field(default_factory=list)
    phase_findings: dict[PhaseId, PhaseFindings] = Field(default_factory=dict)
    red_flags: list[RedFlag] = Field(default_factory=list)
    pre_validation_score: float | None = None
    score: float | None = None
    validation: ValidationResult | None = None
    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None
    cancelled: bool = False

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    @property
    def grade(self) -> str | None:
        """Letter grade for the final score, None before scoring."""
        if self.score is None:
            return None
        from uxaudit.core.scoring import grade

        return grade(self.score)

    @property
    def failed_phases(self) -> list[PhaseId]:
        return [r.phase_id for r in self.phase_results if not r.success]

    @property
    def severity_counts(self) -> dict[Severity, int]:
        """Number of red flags at each severity, most severe first."""
        counts = Counter(flag.severity for flag in self.red_flags)
        return {severity: counts.get(severity, 0) for severity in Severity}

    def mark_completed(self, when: datetime | None = None) -> None:
        """Set completed_at. May only happen once per session."""
        if self.completed_at is not None:
            raise SessionAlreadyCompleted(f"Session {self.id} already completed at {self.completed_at.isoformat()}")
        self.completed_at = when or datetime.now()
