"""Unit tests for core models and red flag helpers."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from uxaudit.core.errors import SessionAlreadyCompleted, UnknownPhase
from uxaudit.core.flags import count_by_severity, deduplicate, merge_flags, sort_by_severity
from uxaudit.core.models import (
    PHASE_ORDER,
    AuditSession,
    CycleName,
    CycleResult,
    PhaseId,
    PhaseResult,
    RedFlag,
    Severity,
)


def make_flag(title: str = "Missing LICENSE", severity: Severity = Severity.MEDIUM, **kwargs) -> RedFlag:
    """Helper to create a RedFlag with required fields."""
    kwargs.setdefault("category", "legal")
    kwargs.setdefault("fix", "Add a LICENSE file")
    return RedFlag(severity=severity, title=title, **kwargs)


class TestSeverity:
    """Tests for Severity ordering."""

    def test_ordering_by_rank(self) -> None:
        assert Severity.CRITICAL > Severity.HIGH > Severity.MEDIUM > Severity.LOW
        assert Severity.HIGH >= Severity.HIGH
        assert Severity.LOW < Severity.MEDIUM

    def test_string_value(self) -> None:
        assert Severity("critical") is Severity.CRITICAL


class TestPhaseId:
    """Tests for the closed phase set."""

    def test_order(self) -> None:
        assert [p.value for p in PHASE_ORDER] == [
            "first-impressions",
            "installation",
            "functionality",
            "verification",
            "error-handling",
            "red-flags",
        ]

    def test_parse_known(self) -> None:
        assert PhaseId.parse("verification") is PhaseId.VERIFICATION
        assert PhaseId.parse(PhaseId.RED_FLAGS) is PhaseId.RED_FLAGS

    def test_parse_unknown_raises(self) -> None:
        with pytest.raises(UnknownPhase, match="performance"):
            PhaseId.parse("performance")


class TestRedFlag:
    """Tests for RedFlag validation."""

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_flag(title="   ")

    def test_blank_fix_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_flag(fix="")

    def test_frozen(self) -> None:
        flag = make_flag()
        with pytest.raises(ValidationError):
            flag.title = "Other"  # type: ignore[misc]

    def test_key(self) -> None:
        assert make_flag().key == "legal:Missing LICENSE"


class TestPhaseResult:
    """Tests for PhaseResult."""

    def test_negative_duration_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PhaseResult(phase_id=PhaseId.INSTALLATION, success=False, duration_ms=-1)

    def test_immutable(self) -> None:
        result = PhaseResult(phase_id=PhaseId.INSTALLATION, success=True)
        with pytest.raises(ValidationError):
            result.success = False  # type: ignore[misc]


class TestCycleResult:
    """Tests for CycleResult."""

    def test_score_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CycleResult(cycle=CycleName.ARBITER, score=11.0)

    def test_degraded(self) -> None:
        assert CycleResult(cycle=CycleName.CRITIC, score=5.0, error="boom").degraded
        assert not CycleResult(cycle=CycleName.CRITIC, score=5.0).degraded


class TestAuditSession:
    """Tests for the AuditSession aggregate."""

    def test_defaults(self) -> None:
        session = AuditSession(target_path=Path("/tmp/x"))
        assert len(session.id) == 8
        assert session.completed_at is None
        assert session.score is None
        assert session.grade is None
        assert not session.is_complete

    def test_mark_completed_once(self) -> None:
        session = AuditSession(target_path=Path("/tmp/x"))
        when = datetime(2026, 1, 2, 3, 4, 5)
        session.mark_completed(when)
        assert session.completed_at == when
        with pytest.raises(SessionAlreadyCompleted):
            session.mark_completed()
        assert session.completed_at == when

    def test_severity_counts_covers_every_level(self) -> None:
        session = AuditSession(
            target_path=Path("/tmp/x"),
            red_flags=[make_flag("a", Severity.HIGH), make_flag("b", Severity.HIGH), make_flag("c", Severity.LOW)],
        )
        assert session.severity_counts == {
            Severity.CRITICAL: 0,
            Severity.HIGH: 2,
            Severity.MEDIUM: 0,
            Severity.LOW: 1,
        }

    def test_failed_phases(self) -> None:
        session = AuditSession(
            target_path=Path("/tmp/x"),
            phase_results=[
                PhaseResult(phase_id=PhaseId.FIRST_IMPRESSIONS, success=True),
                PhaseResult(phase_id=PhaseId.INSTALLATION, success=False, errors=["boom"]),
            ],
        )
        assert session.failed_phases == [PhaseId.INSTALLATION]

    def test_grade_follows_score(self) -> None:
        session = AuditSession(target_path=Path("/tmp/x"), score=8.2)
        assert session.grade == "A"


class TestFlagHelpers:
    """Tests for de-duplication, merging and ordering."""

    def test_deduplicate_merges_evidence(self) -> None:
        first = make_flag(evidence=["LICENSE not found"])
        second = make_flag(evidence=["LICENSE not found", "no license in package.json"])
        other = make_flag("Missing README", Severity.CRITICAL)

        result = deduplicate([first, other, second])

        assert [f.title for f in result] == ["Missing LICENSE", "Missing README"]
        assert result[0].evidence == ["LICENSE not found", "no license in package.json"]

    def test_merge_skips_known_keys(self) -> None:
        existing = [make_flag()]
        incoming = [make_flag(evidence=["x"]), make_flag("New issue")]

        result = merge_flags(existing, incoming)

        assert [f.title for f in result] == ["Missing LICENSE", "New issue"]
        assert result[0].evidence == []

    def test_merge_does_not_mutate_input(self) -> None:
        existing = [make_flag()]
        merge_flags(existing, [make_flag("New issue")])
        assert len(existing) == 1

    def test_sort_by_severity_is_stable(self) -> None:
        flags = [
            make_flag("low", Severity.LOW),
            make_flag("crit", Severity.CRITICAL),
            make_flag("med-1", Severity.MEDIUM),
            make_flag("med-2", Severity.MEDIUM),
        ]
        assert [f.title for f in sort_by_severity(flags)] == ["crit", "med-1", "med-2", "low"]

    def test_count_by_severity(self) -> None:
        counts = count_by_severity([make_flag("a", Severity.CRITICAL), make_flag("b", Severity.CRITICAL)])
        assert counts[Severity.CRITICAL] == 2
        assert counts[Severity.LOW] == 0
