"""Unit tests for session serialization and the session store."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from uxaudit.core.models import (
    AuditOptions,
    AuditSession,
    CommandTest,
    CycleName,
    CycleResult,
    FirstImpressionsFindings,
    FlagFindings,
    FunctionalityFindings,
    PhaseId,
    PhaseResult,
    RedFlag,
    Severity,
    Tier,
    ValidationResult,
    ValidationStatus,
)
from uxaudit.core.serialization import deserialize_session, serialize_session
from uxaudit.core.store import SessionStore


@pytest.fixture
def session() -> AuditSession:
    """A completed session exercising every findings variant that carries data."""
    flag = RedFlag(
        severity=Severity.CRITICAL,
        category="security",
        title="Hardcoded AWS access key detected",
        description="Found AWS access key in source code",
        evidence=["File: src/cfg.js"],
        fix="Remove AWS access key from source code and use environment variables",
        location="src/cfg.js",
    )
    fi = FirstImpressionsFindings(has_readme=True, readme_score=6.5, score=7.0, notes=["README has project badges"])
    func = FunctionalityFindings(
        commands_tested=[CommandTest(command="--help", success=True, output="Usage: tool", duration_ms=12)],
        successful_executions=1,
        score=9.0,
    )
    flags = FlagFindings(red_flags=[flag], notes=["Found 1 red flags"])
    s = AuditSession(
        id="abc12345",
        target_path=Path("/tmp/project"),
        options=AuditOptions(context="kubernetes tooling", tier=Tier.PRO),
        phase_results=[
            PhaseResult(phase_id=PhaseId.FIRST_IMPRESSIONS, success=True, duration_ms=5, findings=fi),
            PhaseResult(phase_id=PhaseId.INSTALLATION, success=False, duration_ms=9, errors=["TimeoutError: slow"]),
            PhaseResult(phase_id=PhaseId.FUNCTIONALITY, success=True, duration_ms=40, findings=func),
            PhaseResult(phase_id=PhaseId.RED_FLAGS, success=True, duration_ms=3, findings=flags),
        ],
        phase_findings={PhaseId.FIRST_IMPRESSIONS: fi, PhaseId.FUNCTIONALITY: func, PhaseId.RED_FLAGS: flags},
        red_flags=[flag],
        pre_validation_score=7.7,
        score=7.5,
        validation=ValidationResult(
            passed=True,
            score=7.5,
            feedback=["fine"],
            cycles=[CycleResult(cycle=CycleName.ARBITER, score=7.5, passed=True)],
            status=ValidationStatus.UNVERIFIED,
            confidence=0.55,
            validated_at=datetime(2026, 3, 1, 12, 0, 1),
        ),
        started_at=datetime(2026, 3, 1, 12, 0, 0),
    )
    s.mark_completed(datetime(2026, 3, 1, 12, 0, 2))
    return s


class TestSerialization:
    """Tests for the persisted JSON format."""

    def test_round_trip_is_byte_stable(self, session: AuditSession) -> None:
        text = serialize_session(session)
        assert serialize_session(deserialize_session(text)) == text

    def test_round_trip_preserves_flags(self, session: AuditSession) -> None:
        restored = deserialize_session(serialize_session(session))
        assert [(f.severity, f.title, f.fix) for f in restored.red_flags] == [
            (f.severity, f.title, f.fix) for f in session.red_flags
        ]

    def test_round_trip_restores_findings_types(self, session: AuditSession) -> None:
        restored = deserialize_session(serialize_session(session))
        assert isinstance(restored.phase_findings[PhaseId.FUNCTIONALITY], FunctionalityFindings)
        assert isinstance(restored.phase_findings[PhaseId.RED_FLAGS], FlagFindings)
        assert restored.phase_results[1].findings is None
        assert restored.phase_results[1].errors == ["TimeoutError: slow"]

    def test_phase_findings_keep_execution_order(self, session: AuditSession) -> None:
        data = json.loads(serialize_session(session))
        assert list(data["phase_findings"]) == ["first-impressions", "functionality", "red-flags"]

    def test_enum_values_in_json(self, session: AuditSession) -> None:
        data = json.loads(serialize_session(session))
        assert data["red_flags"][0]["severity"] == "critical"
        assert data["options"]["tier"] == "pro"
        assert data["validation"]["status"] == "unverified"


class TestSessionStore:
    """Tests for SQLite session history."""

    def test_save_and_get(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        assert store.save(session) == "abc12345"

        loaded = store.get("abc12345")
        assert loaded is not None
        assert serialize_session(loaded) == serialize_session(session)

    def test_get_by_prefix(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        store.save(session)
        loaded = store.get("abc1")
        assert loaded is not None
        assert loaded.id == "abc12345"

    def test_get_missing(self, temp_db: Path) -> None:
        assert SessionStore(temp_db).get("nope") is None

    def test_ambiguous_prefix_returns_none(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        store.save(session)
        store.save(session.model_copy(update={"id": "abc99999"}))
        assert store.get("abc") is None

    def test_list_history(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        store.save(session)
        later = session.model_copy(update={"id": "def00000", "started_at": datetime(2026, 4, 1), "score": 3.0})
        store.save(later)

        rows = store.list_history()

        assert [r.id for r in rows] == ["def00000", "abc12345"]
        assert rows[1].grade == "B"
        assert rows[1].red_flag_count == 1
        assert rows[0].grade == "F"

    def test_list_history_filters_target(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        store.save(session)
        store.save(session.model_copy(update={"id": "other000", "target_path": Path("/tmp/other")}))

        rows = store.list_history(target_path=Path("/tmp/other"))

        assert [r.id for r in rows] == ["other000"]

    def test_delete(self, temp_db: Path, session: AuditSession) -> None:
        store = SessionStore(temp_db)
        store.save(session)
        assert store.delete("abc12345")
        assert not store.delete("abc12345")
        assert store.get("abc12345") is None
