"""Runs one phase with a time bound and converts failures into results."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from uxaudit.core.models import InstallationFindings, PhaseId, PhaseResult
from uxaudit.runners.threads import run_detached

if TYPE_CHECKING:
    from uxaudit.phases.base import Analyzer, PhaseContext
    from uxaudit.phases.registry import PhaseRegistry

logger = logging.getLogger(__name__)


class PhaseRunner:
    """Executes analyzers so that a phase can fail without failing the audit."""

    def __init__(self, registry: PhaseRegistry, timeout: float = 300) -> None:
        self.registry = registry
        self.timeout = timeout  # Per-phase timeout

    async def run(self, phase_id: PhaseId | str, context: PhaseContext) -> PhaseResult:
        """Run a single phase.

        Analyzer exceptions, timeouts and malformed findings all come back as a
        PhaseResult with success=False.

        Args:
            phase_id: Phase to run
            context: Target, options and prior findings

        Returns:
            PhaseResult for the phase

        Raises:
            UnknownPhase: If phase_id is not one of the six phases (nothing runs)
        """
        resolved = PhaseId.parse(phase_id)
        analyzer = self.registry.get(resolved)
        start = time.monotonic()

        try:
            findings = await asyncio.wait_for(self._invoke(analyzer, context), timeout=self.timeout)
            errors = list(findings.errors) if isinstance(findings, InstallationFindings) else []
            return PhaseResult(
                phase_id=resolved,
                success=True,
                duration_ms=self._elapsed(start),
                findings=findings,
                errors=errors,
            )
        except TimeoutError:
            message = f"Phase {resolved.value} timed out after {self.timeout}s"
            logger.warning(message)
            return PhaseResult(phase_id=resolved, success=False, duration_ms=self._elapsed(start), errors=[message])
        except ValidationError as e:
            logger.warning(f"Phase {resolved.value} returned malformed findings: {e}")
            return PhaseResult(
                phase_id=resolved,
                success=False,
                duration_ms=self._elapsed(start),
                errors=[f"Malformed findings from {type(analyzer).__name__}"],
            )
        except Exception as e:
            logger.warning(f"Phase {resolved.value} failed: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
            return PhaseResult(
                phase_id=resolved,
                success=False,
                duration_ms=self._elapsed(start),
                errors=[f"{type(e).__name__}: {e}"],
            )

    async def _invoke(self, analyzer: Analyzer, context: PhaseContext) -> Any:
        if inspect.iscoroutinefunction(analyzer.analyze):
            return await analyzer.analyze(context)
        result = await run_detached(analyzer.analyze, context, name=f"phase-{type(analyzer).__name__}")
        if inspect.isawaitable(result):
            return await result
        return result

    @staticmethod
    def _elapsed(start: float) -> int:
        return max(0, int((time.monotonic() - start) * 1000))
