"""Red flag helpers: de-duplication, merging and ordering."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from uxaudit.core.models import RedFlag, Severity

logger = logging.getLogger(__name__)


def deduplicate(flags: Iterable[RedFlag]) -> list[RedFlag]:
    """Collapse flags sharing category and title, merging their evidence.

    The first occurrence keeps its position; later duplicates only contribute
    evidence lines not already present.
    """
    merged: dict[str, RedFlag] = {}
    for flag in flags:
        existing = merged.get(flag.key)
        if existing is None:
            merged[flag.key] = flag
            continue
        evidence = list(existing.evidence)
        evidence.extend(e for e in flag.evidence if e not in evidence)
        merged[flag.key] = existing.model_copy(update={"evidence": evidence})
    return list(merged.values())


def merge_flags(existing: list[RedFlag], incoming: Iterable[RedFlag]) -> list[RedFlag]:
    """Append incoming flags whose key is not already reported."""
    seen = {flag.key for flag in existing}
    result = list(existing)
    for flag in incoming:
        if flag.key in seen:
            continue
        if flag.severity >= Severity.HIGH and not flag.evidence:
            logger.warning(f"Red flag '{flag.title}' is {flag.severity.value} but has no evidence")
        seen.add(flag.key)
        result.append(flag)
    return result


def sort_by_severity(flags: Iterable[RedFlag]) -> list[RedFlag]:
    """Most severe first; stable within a severity."""
    return sorted(flags, key=lambda f: -f.severity.rank)


def count_by_severity(flags: Iterable[RedFlag]) -> dict[Severity, int]:
    counts = {severity: 0 for severity in Severity}
    for flag in flags:
        counts[flag.severity] += 1
    return counts
