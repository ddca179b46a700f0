"""Audit quota collaborator and its local reference implementation."""

from uxaudit.licensing.quota import (
    TIER_LIMITS,
    QuotaGate,
    UnlimitedQuota,
    UsageData,
    UsageTracker,
    validation_allowed,
)

__all__ = ["TIER_LIMITS", "QuotaGate", "UnlimitedQuota", "UsageData", "UsageTracker", "validation_allowed"]
