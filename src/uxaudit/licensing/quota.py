"""Audit quota: the gate the caller consults before and after each audit."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from uxaudit.core.models import Tier

logger = logging.getLogger(__name__)


class TierLimits(BaseModel):
    """What a tier is allowed to do."""

    tier: Tier
    max_audits_per_month: int | None  # None = unlimited
    validation_enabled: bool


TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(tier=Tier.FREE, max_audits_per_month=5, validation_enabled=False),
    Tier.PRO: TierLimits(tier=Tier.PRO, max_audits_per_month=100, validation_enabled=True),
    Tier.ENTERPRISE: TierLimits(tier=Tier.ENTERPRISE, max_audits_per_month=None, validation_enabled=True),
}


class QuotaGate(Protocol):
    """Collaborator deciding whether another audit may run."""

    def may_run_audit(self, tier: Tier) -> bool:
        """True if an audit may start for this tier."""
        ...

    def record_audit(self, target_path: Path) -> None:
        """Record that an audit of target_path completed."""
        ...


class UnlimitedQuota:
    """Gate that always allows and records nothing."""

    def may_run_audit(self, tier: Tier) -> bool:
        return True

    def record_audit(self, target_path: Path) -> None:
        pass


class UsageData(BaseModel):
    """Contents of the usage file."""

    current_month: str
    audits_this_month: int = 0
    total_audits: int = 0
    tools_audited: dict[str, int] = Field(default_factory=dict)
    last_audit: datetime | None = None


def current_month(now: datetime | None = None) -> str:
    """YYYY-MM for now."""
    return (now or datetime.now()).strftime("%Y-%m")


class UsageTracker:
    """File-backed monthly audit counter.

    Read-modify-write of the usage file happens under a lock so concurrent
    audits in one process never lose a count.
    """

    def __init__(self, usage_file: Path, clock=datetime.now) -> None:
        self.usage_file = usage_file
        self._clock = clock
        self._lock = threading.Lock()

    def load(self) -> UsageData:
        """Current usage, reset to zero when the month has rolled over."""
        month = current_month(self._clock())
        if not self.usage_file.exists():
            return UsageData(current_month=month)

        try:
            data = UsageData.model_validate(json.loads(self.usage_file.read_text(encoding="utf-8")))
        except ValueError as e:
            logger.warning(f"Usage file {self.usage_file} is unreadable, starting fresh: {e}")
            return UsageData(current_month=month)

        if data.current_month != month:
            data.current_month = month
            data.audits_this_month = 0
        return data

    def _save(self, data: UsageData) -> None:
        self.usage_file.parent.mkdir(parents=True, exist_ok=True)
        self.usage_file.write_text(json.dumps(data.model_dump(mode="json"), indent=2), encoding="utf-8")

    def remaining(self, tier: Tier) -> int | None:
        """Audits left this month, None if unlimited."""
        limit = TIER_LIMITS[tier].max_audits_per_month
        if limit is None:
            return None
        return max(0, limit - self.load().audits_this_month)

    def may_run_audit(self, tier: Tier) -> bool:
        remaining = self.remaining(tier)
        return remaining is None or remaining > 0

    def record_audit(self, target_path: Path) -> None:
        with self._lock:
            data = self.load()
            key = str(target_path)
            data.audits_this_month += 1
            data.total_audits += 1
            data.tools_audited[key] = data.tools_audited.get(key, 0) + 1
            data.last_audit = self._clock()
            self._save(data)
        logger.debug(f"Recorded audit of {target_path} ({data.audits_this_month} this month)")


def validation_allowed(tier: Tier) -> bool:
    return TIER_LIMITS[tier].validation_enabled
