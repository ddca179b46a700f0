"""Audit orchestration: runs the six phases, scores, and validates."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from types import MappingProxyType

from uxaudit.config import Config
from uxaudit.core.errors import TargetNotFound
from uxaudit.core.flags import merge_flags
from uxaudit.core.models import (
    PHASE_ORDER,
    AuditOptions,
    AuditSession,
    FlagFindings,
    PhaseResult,
)
from uxaudit.core.scoring import calculate_score
from uxaudit.notifications import Notifier, NullNotifier, create_notifier
from uxaudit.phases.base import PhaseContext
from uxaudit.phases.registry import PhaseRegistry
from uxaudit.runners.phase_runner import PhaseRunner
from uxaudit.validation.protocol import ValidationProtocol

logger = logging.getLogger(__name__)


def resolve_target(target_path: Path | str) -> Path:
    """Absolute path of an existing, readable audit target.

    Raises:
        TargetNotFound: If the path is missing or cannot be read
    """
    path = Path(target_path).expanduser()
    if not path.exists():
        raise TargetNotFound(path)
    if not os.access(path, os.R_OK):
        raise TargetNotFound(path, "is not readable")
    return path.resolve()


class AuditOrchestrator:
    """Coordinates one or more audits.

    Holds no per-audit state: every call to ``run`` builds its own session,
    so audits of different targets may run concurrently.
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: PhaseRegistry | None = None,
        validator: ValidationProtocol | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.config = config or Config.load()
        self.registry = registry or PhaseRegistry()
        self.runner = PhaseRunner(self.registry, timeout=self.config.phase_timeout)
        self.validator = validator or ValidationProtocol.from_config(self.config)
        self.notifier = notifier or NullNotifier()

    @classmethod
    def from_config(cls, config: Config) -> AuditOrchestrator:
        """Orchestrator with the notifier configured in ``config``."""
        return cls(config=config, notifier=create_notifier(config.notifications))

    async def run(
        self,
        target_path: Path | str,
        options: AuditOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AuditSession:
        """Audit a target.

        Args:
            target_path: Project directory to audit
            options: Caller options (context, validation, tier, verbosity)
            cancel_event: When set, no new phase or validation cycle starts and
                the partial session is returned with ``cancelled=True``

        Returns:
            The completed AuditSession

        Raises:
            TargetNotFound: If the target does not exist; raised before any phase runs
        """
        path = resolve_target(target_path)
        options = options or AuditOptions()
        session = AuditSession(target_path=path, options=options)
        logger.info(f"Audit {session.id} started for {path}")
        self.notifier.info(f"Auditing {path.name}", str(path))

        for index, phase_id in enumerate(PHASE_ORDER, start=1):
            if self._cancelled(cancel_event):
                logger.info(f"Audit {session.id} cancelled before {phase_id.value}")
                session.cancelled = True
                break

            self.notifier.info(f"Phase {index}/{len(PHASE_ORDER)}: {phase_id.value}", "")
            context = PhaseContext(
                target_path=path,
                options=options,
                timeout=self.runner.timeout,
                prior_findings=MappingProxyType(dict(session.phase_findings)),
                config=self.config,
            )
            result = await self.runner.run(phase_id, context)
            self._record(session, result)

        session.pre_validation_score = calculate_score(session.phase_findings, len(session.red_flags))
        session.score = session.pre_validation_score

        if options.validation_enabled and not session.cancelled:
            await self._validate(session, cancel_event)

        session.mark_completed()
        self._announce(session)
        return session

    def _record(self, session: AuditSession, result: PhaseResult) -> None:
        """Fold one phase result into the session."""
        session.phase_results.append(result)
        if not result.success or result.findings is None:
            logger.warning(f"Phase {result.phase_id.value} failed: {'; '.join(result.errors)}")
            self.notifier.warning(f"Phase {result.phase_id.value} failed", "; ".join(result.errors))
            return

        session.phase_findings[result.phase_id] = result.findings
        if isinstance(result.findings, FlagFindings):
            before = len(session.red_flags)
            session.red_flags = merge_flags(session.red_flags, result.findings.red_flags)
            logger.debug(f"Phase {result.phase_id.value} added {len(session.red_flags) - before} red flags")

    async def _validate(self, session: AuditSession, cancel_event: asyncio.Event | None) -> None:
        validation = await self.validator.run(
            target_path=session.target_path,
            phase_findings=MappingProxyType(dict(session.phase_findings)),
            red_flags=list(session.red_flags),
            pre_validation_score=session.pre_validation_score or 0.0,
            context=session.options.context,
            cancel_event=cancel_event,
        )
        session.validation = validation
        session.red_flags = [*session.red_flags, *validation.additional_flags]
        if validation.cancelled:
            session.cancelled = True
            logger.info(f"Validation for {session.id} cancelled; keeping pre-validation score")
            return
        session.score = validation.score
        logger.info(
            f"Validation {validation.status.value}: {validation.score} "
            f"(pre-validation {session.pre_validation_score}, confidence {validation.confidence:.2f})"
        )

    def _announce(self, session: AuditSession) -> None:
        self.notifier.audit_finished(session)
        logger.info(
            f"Audit {session.id} completed: score {session.score} ({session.grade}), "
            f"{len(session.red_flags)} red flags"
        )

    @staticmethod
    def _cancelled(cancel_event: asyncio.Event | None) -> bool:
        return cancel_event is not None and cancel_event.is_set()


def run_audit(
    target_path: Path | str,
    options: AuditOptions | None = None,
    config: Config | None = None,
    notifier: Notifier | None = None,
) -> AuditSession:
    """Convenience function to run an audit synchronously.

    Args:
        target_path: Project directory to audit
        options: Audit options
        config: Optional configuration
        notifier: Optional notifier (defaults to the configured one)

    Returns:
        The completed AuditSession
    """
    config = config or Config.load()
    if notifier is None:
        orchestrator = AuditOrchestrator.from_config(config)
    else:
        orchestrator = AuditOrchestrator(config=config, notifier=notifier)
    return asyncio.run(orchestrator.run(target_path, options))


