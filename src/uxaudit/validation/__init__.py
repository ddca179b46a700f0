"""Consensus validation of audit results."""

from uxaudit.validation.base import ReviewOutcome, Reviewer, ReviewRequest
from uxaudit.validation.protocol import ValidationProtocol
from uxaudit.validation.reviewers import EvidenceArbiter, HeuristicCritic, HeuristicMetaCritic

__all__ = [
    "EvidenceArbiter",
    "HeuristicCritic",
    "HeuristicMetaCritic",
    "ReviewOutcome",
    "ReviewRequest",
    "Reviewer",
    "ValidationProtocol",
]
