"""Execution runners: bounded subprocesses and the phase runner."""

from uxaudit.runners.phase_runner import PhaseRunner
from uxaudit.runners.process import CommandResult, run_command

__all__ = ["CommandResult", "PhaseRunner", "run_command"]
