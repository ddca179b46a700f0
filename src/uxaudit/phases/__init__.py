"""Audit phases: contract, registry and reference analyzers."""

from uxaudit.phases.base import Analyzer, PhaseContext
from uxaudit.phases.registry import PhaseRegistry

__all__ = ["Analyzer", "PhaseContext", "PhaseRegistry"]
