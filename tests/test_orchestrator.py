"""Tests for the audit session orchestrator."""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from uxaudit.config import Config
from uxaudit.core.errors import TargetNotFound
from uxaudit.core.models import (
    PHASE_ORDER,
    AuditOptions,
    FirstImpressionsFindings,
    FlagFindings,
    FunctionalityFindings,
    InstallationFindings,
    PhaseId,
    RedFlag,
    Severity,
    VerificationFindings,
)
from uxaudit.core.orchestrator import AuditOrchestrator, resolve_target, run_audit
from uxaudit.notifications import ConsoleNotifier, Notifier, NullNotifier
from uxaudit.notifications.base import NotificationLevel
from uxaudit.phases.base import PhaseContext
from uxaudit.phases.registry import PhaseRegistry
from uxaudit.validation import ReviewOutcome, ReviewRequest, ValidationProtocol


def make_flag(title: str, severity: Severity = Severity.MEDIUM) -> RedFlag:
    return RedFlag(severity=severity, category="testing", title=title, evidence=["seen"], fix="Fix it")


class FixedAnalyzer:
    """Returns the same findings every time and records what it saw."""

    def __init__(self, phase_id: PhaseId, findings: object) -> None:
        self.phase_id = phase_id
        self.findings = findings
        self.contexts: list[PhaseContext] = []

    def analyze(self, context: PhaseContext) -> object:
        self.contexts.append(context)
        return self.findings


class BrokenAnalyzer:
    def __init__(self, phase_id: PhaseId) -> None:
        self.phase_id = phase_id
        self.calls = 0

    def analyze(self, context: PhaseContext) -> object:
        self.calls += 1
        raise RuntimeError(f"{self.phase_id.value} exploded")


class FixedReviewer:
    def __init__(self, name: str, score: float, flags: list[RedFlag] | None = None) -> None:
        self.name = name
        self.score = score
        self.flags = flags or []

    def review(self, request: ReviewRequest) -> ReviewOutcome:
        return ReviewOutcome(score=self.score, feedback=[self.name], red_flags=self.flags)


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification it receives."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def notify(self, title: str, message: str, level: NotificationLevel = "info") -> None:
        self.sent.append((title, message, level))

    def levels(self) -> list[str]:
        return [level for _, _, level in self.sent]


class BlockingAnalyzer:
    """Sync analyzer that blocks until released, like a slow tree walk."""

    def __init__(self, phase_id: PhaseId, release: threading.Event) -> None:
        self.phase_id = phase_id
        self.release = release

    def analyze(self, context: PhaseContext) -> FlagFindings:
        self.release.wait(10)
        return FlagFindings()


def scored_analyzers(fi: float, install: float, func: float, verify: float, flags: list[RedFlag]) -> dict:
    return {
        PhaseId.FIRST_IMPRESSIONS: FixedAnalyzer(PhaseId.FIRST_IMPRESSIONS, FirstImpressionsFindings(score=fi)),
        PhaseId.INSTALLATION: FixedAnalyzer(PhaseId.INSTALLATION, InstallationFindings(attempted=True, score=install)),
        PhaseId.FUNCTIONALITY: FixedAnalyzer(PhaseId.FUNCTIONALITY, FunctionalityFindings(score=func)),
        PhaseId.VERIFICATION: FixedAnalyzer(PhaseId.VERIFICATION, VerificationFindings(score=verify)),
        PhaseId.ERROR_HANDLING: FixedAnalyzer(PhaseId.ERROR_HANDLING, FlagFindings()),
        PhaseId.RED_FLAGS: FixedAnalyzer(PhaseId.RED_FLAGS, FlagFindings(red_flags=flags)),
    }


def make_orchestrator(config: Config, analyzers: dict, validator: ValidationProtocol | None = None, notifier=None):
    return AuditOrchestrator(
        config=config,
        registry=PhaseRegistry(analyzers),
        validator=validator,
        notifier=notifier or NullNotifier(),
    )


NO_VALIDATION = AuditOptions(validation_enabled=False)


class TestAuditScenarios:
    """End-to-end behaviour of a single audit with stand-in analyzers."""

    async def test_all_phases_scored_with_three_flags(self, temp_dir: Path, config: Config) -> None:
        flags = [make_flag("one"), make_flag("two"), make_flag("three")]
        orchestrator = make_orchestrator(config, scored_analyzers(8, 6, 9, 7, flags))

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        assert [r.phase_id for r in session.phase_results] == list(PHASE_ORDER)
        assert all(r.success for r in session.phase_results)
        assert session.red_flags == flags
        assert session.pre_validation_score == 7.4
        assert session.score == 7.4
        assert session.validation is None
        assert session.completed_at is not None

    async def test_every_phase_fails(self, temp_dir: Path, config: Config) -> None:
        analyzers = {phase_id: BrokenAnalyzer(phase_id) for phase_id in PHASE_ORDER}
        orchestrator = make_orchestrator(config, analyzers)

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        assert session.score == 0.0
        assert session.completed_at is not None
        assert len(session.phase_results) == 6
        assert session.failed_phases == list(PHASE_ORDER)
        assert session.phase_findings == {}
        assert session.phase_results[2].errors == ["RuntimeError: functionality exploded"]

    async def test_arbiter_overrides_pre_validation_score(self, temp_dir: Path, config: Config) -> None:
        critic_flag = make_flag("Raised by critic", Severity.HIGH)
        validator = ValidationProtocol(
            FixedReviewer("critic", 3.0, [critic_flag]),
            FixedReviewer("meta", 5.0),
            FixedReviewer("arbiter", 7.5),
        )
        orchestrator = make_orchestrator(config, scored_analyzers(4, 4, 4, 4, []), validator=validator)

        session = await orchestrator.run(temp_dir, AuditOptions(validation_enabled=True))

        assert session.pre_validation_score == 4.0
        assert session.score == 7.5
        assert session.validation is not None
        assert session.validation.passed
        assert session.red_flags == [critic_flag]

    async def test_missing_target_raises_before_any_phase(self, tmp_path: Path, config: Config) -> None:
        analyzers = {phase_id: BrokenAnalyzer(phase_id) for phase_id in PHASE_ORDER}
        orchestrator = make_orchestrator(config, analyzers)

        with pytest.raises(TargetNotFound) as exc_info:
            await orchestrator.run(tmp_path / "does-not-exist")

        assert exc_info.value.target_path == tmp_path / "does-not-exist"
        assert all(a.calls == 0 for a in analyzers.values())


class TestAuditBehaviour:
    """Isolation, prior findings, cancellation and notifications."""

    async def test_failed_phase_excluded_from_score(self, temp_dir: Path, config: Config) -> None:
        analyzers = scored_analyzers(8, 6, 9, 7, [])
        analyzers[PhaseId.INSTALLATION] = BrokenAnalyzer(PhaseId.INSTALLATION)
        orchestrator = make_orchestrator(config, analyzers)

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        assert session.failed_phases == [PhaseId.INSTALLATION]
        assert PhaseId.INSTALLATION not in session.phase_findings
        # (8*.15 + 9*.35 + 7*.15) / .65
        assert session.score == 8.3

    async def test_later_phases_see_earlier_findings(self, temp_dir: Path, config: Config) -> None:
        analyzers = scored_analyzers(8, 6, 9, 7, [])
        analyzers[PhaseId.INSTALLATION] = BrokenAnalyzer(PhaseId.INSTALLATION)
        orchestrator = make_orchestrator(config, analyzers)

        await orchestrator.run(temp_dir, NO_VALIDATION)

        first_context = analyzers[PhaseId.FIRST_IMPRESSIONS].contexts[0]
        verify_context = analyzers[PhaseId.VERIFICATION].contexts[0]
        assert dict(first_context.prior_findings) == {}
        assert set(verify_context.prior_findings) == {PhaseId.FIRST_IMPRESSIONS, PhaseId.FUNCTIONALITY}
        assert verify_context.target_path == temp_dir.resolve()

    async def test_error_handling_flags_merge_with_red_flags(self, temp_dir: Path, config: Config) -> None:
        shared = make_flag("Missing LICENSE")
        analyzers = scored_analyzers(8, 6, 9, 7, [shared, make_flag("No tests")])
        analyzers[PhaseId.ERROR_HANDLING] = FixedAnalyzer(
            PhaseId.ERROR_HANDLING, FlagFindings(red_flags=[make_flag("No --help support", Severity.CRITICAL), shared])
        )
        orchestrator = make_orchestrator(config, analyzers)

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        assert [f.title for f in session.red_flags] == ["No --help support", "Missing LICENSE", "No tests"]

    async def test_cancel_returns_partial_session(self, temp_dir: Path, config: Config) -> None:
        cancel = asyncio.Event()
        analyzers = scored_analyzers(8, 6, 9, 7, [])

        class CancellingAnalyzer(FixedAnalyzer):
            def analyze(self, context: PhaseContext) -> object:
                cancel.set()
                return super().analyze(context)

        analyzers[PhaseId.INSTALLATION] = CancellingAnalyzer(PhaseId.INSTALLATION, InstallationFindings(score=8.0))
        orchestrator = make_orchestrator(config, analyzers)

        session = await orchestrator.run(temp_dir, AuditOptions(), cancel_event=cancel)

        assert session.cancelled
        assert [r.phase_id for r in session.phase_results] == [PhaseId.FIRST_IMPRESSIONS, PhaseId.INSTALLATION]
        assert analyzers[PhaseId.FUNCTIONALITY].contexts == []
        assert session.validation is None
        assert session.completed_at is not None
        # (8*.15 + 8*.25) / .40
        assert session.score == 8.0

    async def test_validation_skipped_when_disabled(self, temp_dir: Path, config: Config) -> None:
        validator = MagicMock(spec=ValidationProtocol)
        orchestrator = make_orchestrator(config, scored_analyzers(8, 6, 9, 7, []), validator=validator)

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        validator.run.assert_not_called()
        assert session.validation is None

    async def test_concurrent_audits_are_independent(self, tmp_path: Path, config: Config) -> None:
        first, second = tmp_path / "a", tmp_path / "b"
        first.mkdir()
        second.mkdir()
        orchestrator = make_orchestrator(config, scored_analyzers(8, 6, 9, 7, [make_flag("x")]))

        a, b = await asyncio.gather(orchestrator.run(first, NO_VALIDATION), orchestrator.run(second, NO_VALIDATION))

        assert a.id != b.id
        assert a.target_path == first.resolve()
        assert b.target_path == second.resolve()
        assert len(a.red_flags) == len(b.red_flags) == 1

    async def test_critical_flags_raise_alert(self, temp_dir: Path, config: Config) -> None:
        notifier = RecordingNotifier()
        analyzers = scored_analyzers(8, 6, 9, 7, [make_flag("Hardcoded key", Severity.CRITICAL)])
        orchestrator = make_orchestrator(config, analyzers, notifier=notifier)

        await orchestrator.run(temp_dir, NO_VALIDATION)

        title, message, level = notifier.sent[-1]
        assert level == "alert"
        assert title == f"Critical issues in {temp_dir.name}"
        assert message.endswith("1 critical")
        assert "success" not in notifier.levels()

    async def test_failed_phase_warns(self, temp_dir: Path, config: Config) -> None:
        notifier = RecordingNotifier()
        analyzers = scored_analyzers(8, 6, 9, 7, [])
        analyzers[PhaseId.VERIFICATION] = BrokenAnalyzer(PhaseId.VERIFICATION)
        orchestrator = make_orchestrator(config, analyzers, notifier=notifier)

        await orchestrator.run(temp_dir, NO_VALIDATION)

        assert ("Phase verification failed", "RuntimeError: verification exploded", "warning") in notifier.sent
        assert notifier.levels()[-1] == "success"

    async def test_finished_audit_is_handed_to_notifier(self, temp_dir: Path, config: Config) -> None:
        notifier = MagicMock(spec=Notifier)
        orchestrator = make_orchestrator(config, scored_analyzers(8, 6, 9, 7, []), notifier=notifier)

        session = await orchestrator.run(temp_dir, NO_VALIDATION)

        notifier.audit_finished.assert_called_once_with(session)


class TestReferenceAudit:
    """Full audit with the reference analyzers on a project without a CLI binary."""

    async def test_sample_project(self, sample_project: Path, config: Config) -> None:
        orchestrator = AuditOrchestrator(config=config, notifier=NullNotifier())

        session = await orchestrator.run(sample_project, AuditOptions(validation_enabled=True))

        assert len(session.phase_results) == 6
        assert all(r.success for r in session.phase_results)
        assert session.phase_findings[PhaseId.INSTALLATION].skipped
        assert "Cannot test error handling" in [f.title for f in session.red_flags]
        assert session.validation is not None
        assert [c.cycle.value for c in session.validation.cycles] == ["critic", "meta-critic", "arbiter"]
        assert 0.0 <= session.score <= 10.0

    def test_run_audit_wrapper(self, sample_project: Path, config: Config) -> None:
        session = run_audit(sample_project, NO_VALIDATION, config=config)

        assert session.completed_at is not None
        assert [r.phase_id for r in session.phase_results] == list(PHASE_ORDER)
        assert session.validation is None
        assert session.score == session.pre_validation_score

    def test_from_config_builds_configured_notifier(self, config: Config) -> None:
        assert isinstance(AuditOrchestrator.from_config(config).notifier, NullNotifier)

        notifications = config.notifications.model_copy(update={"enabled": True})
        console_config = config.model_copy(update={"notifications": notifications})
        assert isinstance(AuditOrchestrator.from_config(console_config).notifier, ConsoleNotifier)


class TestAuditTimeBound:
    """A phase that overruns its cap must not hold the caller past the cap."""

    def test_blocked_sync_phase_does_not_delay_return(self, temp_dir: Path, config: Config) -> None:
        release = threading.Event()
        analyzers = scored_analyzers(8, 6, 9, 7, [])
        analyzers[PhaseId.RED_FLAGS] = BlockingAnalyzer(PhaseId.RED_FLAGS, release)
        orchestrator = make_orchestrator(config.model_copy(update={"phase_timeout": 1}), analyzers)

        start = time.monotonic()
        try:
            session = asyncio.run(orchestrator.run(temp_dir, NO_VALIDATION))
            elapsed = time.monotonic() - start
        finally:
            release.set()

        assert elapsed < 5
        result = session.phase_results[-1]
        assert not result.success
        assert result.errors == ["Phase red-flags timed out after 1s"]
        assert session.completed_at is not None


class TestResolveTarget:
    """Tests for target resolution."""

    def test_existing(self, temp_dir: Path) -> None:
        assert resolve_target(str(temp_dir)) == temp_dir.resolve()

    def test_missing(self, tmp_path: Path) -> None:
        with pytest.raises(TargetNotFound, match="does not exist"):
            resolve_target(tmp_path / "nope")
