"""Deterministic reference reviewers for the validation protocol."""

from __future__ import annotations

import logging

from uxaudit.core.models import (
    CycleName,
    FunctionalityFindings,
    InstallationFindings,
    PhaseId,
    RedFlag,
    Severity,
    VerificationFindings,
)
from uxaudit.core.scoring import base_score, round_score
from uxaudit.validation.base import ReviewOutcome, ReviewRequest

logger = logging.getLogger(__name__)

# Arbiter penalty per flag by severity, capped at ARBITER_MAX_PENALTY.
SEVERITY_PENALTY: dict[Severity, float] = {
    Severity.CRITICAL: 0.5,
    Severity.HIGH: 0.3,
    Severity.MEDIUM: 0.2,
    Severity.LOW: 0.1,
}
ARBITER_MAX_PENALTY = 3.0


def _clamp(score: float) -> float:
    return round_score(max(0.0, min(10.0, score)))


class HeuristicCritic:
    """Looks for contradictions between phases and unsupported flags."""

    name = "heuristic-critic"

    def review(self, request: ReviewRequest) -> ReviewOutcome:
        findings = request.phase_findings
        feedback: list[str] = []
        flags: list[RedFlag] = []
        score = 10.0

        install = findings.get(PhaseId.INSTALLATION)
        func = findings.get(PhaseId.FUNCTIONALITY)
        first = findings.get(PhaseId.FIRST_IMPRESSIONS)

        if isinstance(install, InstallationFindings) and isinstance(func, FunctionalityFindings):
            if install.succeeded and not func.commands_tested:
                flags.append(
                    RedFlag(
                        severity=Severity.MEDIUM,
                        category="consistency",
                        title="Installed package exposes no runnable CLI",
                        description="Installation succeeded but no command-line entry point could be exercised",
                        evidence=[f"Installation method: {install.method}", *func.notes[:1]],
                        fix="Declare the CLI entry point (bin, console script) so it is available after install",
                    )
                )
                feedback.append("Installation succeeded yet no commands could be tested")
                score -= 1.5

        if isinstance(install, InstallationFindings) and install.attempted and not install.succeeded:
            if getattr(first, "has_install_instructions", False):
                flags.append(
                    RedFlag(
                        severity=Severity.HIGH,
                        category="documentation",
                        title="Documented installation does not work",
                        description="The project documents how to install it but the documented route failed",
                        evidence=install.errors[:3] or [f"{install.method} failed"],
                        fix="Fix the install process or update the installation instructions",
                    )
                )
                feedback.append("Install instructions exist but installation failed")
                score -= 1.5

        unsupported = [f for f in request.red_flags if f.severity >= Severity.HIGH and not f.evidence]
        for flag in unsupported:
            feedback.append(f"'{flag.title}' is {flag.severity.value} but carries no evidence")
        score -= 0.5 * len(unsupported)

        critical = [f for f in request.red_flags if f.severity == Severity.CRITICAL]
        high_scores = [
            pid.value for pid, f in findings.items() if isinstance(getattr(f, "score", None), float) and f.score >= 8
        ]
        if critical and high_scores:
            feedback.append(
                f"{len(critical)} critical flags sit alongside high phase scores ({', '.join(high_scores)})"
            )
            score -= 1.0

        if not feedback:
            feedback.append("No obvious errors found in the audit findings")
        return ReviewOutcome(score=_clamp(score), feedback=feedback, red_flags=flags)


class HeuristicMetaCritic:
    """Checks the critic for harshness and for blind spots it left."""

    name = "heuristic-meta-critic"

    def review(self, request: ReviewRequest) -> ReviewOutcome:
        critic = request.cycle_result(CycleName.CRITIC)
        feedback: list[str] = []
        flags: list[RedFlag] = []

        if critic is None or critic.degraded:
            feedback.append("Critic output unavailable; reviewing the audit directly")
            reference = request.pre_validation_score
        else:
            reference = critic.score
            gap = abs(critic.score - request.pre_validation_score)
            if critic.score < 5 and request.pre_validation_score >= 7:
                feedback.append("Critic may be overly harsh relative to the phase results")
            elif critic.score >= 9 and request.pre_validation_score < 4:
                feedback.append("Critic may be overly lenient relative to the phase results")
            if gap > 4:
                feedback.append(f"Critic and audit disagree by {gap:.1f} points")
            thin = [f.title for f in critic.red_flags if not f.evidence]
            if thin:
                feedback.append(f"Critic raised flags without evidence: {', '.join(thin)}")

        verify = request.phase_findings.get(PhaseId.VERIFICATION)
        if isinstance(verify, VerificationFindings) and verify.accuracy_issues:
            has_doc_flag = any(f.category == "documentation" for f in request.red_flags)
            if not has_doc_flag:
                flags.append(
                    RedFlag(
                        severity=Severity.MEDIUM,
                        category="documentation",
                        title="Documentation claims do not match behaviour",
                        description="Claims in the README were checked and found to be wrong",
                        evidence=verify.accuracy_issues[:3],
                        fix="Update the documentation to match what the tool actually does",
                    )
                )
                feedback.append("Verification found inaccurate claims that no flag covered")

        if request.context and not isinstance(verify, VerificationFindings):
            feedback.append(f"Domain context '{request.context}' could not be checked: verification did not run")

        score = _clamp(10.0 - abs(reference - request.pre_validation_score) - 0.5 * len(flags))
        if not feedback:
            feedback.append("Critic review appears reasonably unbiased")
        return ReviewOutcome(score=score, feedback=feedback, red_flags=flags)


class EvidenceArbiter:
    """Scores the audit from the phase results and the strength of its evidence.

    Flags without evidence cost half as much as evidenced ones; the total
    severity-weighted penalty is capped at ARBITER_MAX_PENALTY.
    """

    name = "evidence-arbiter"

    def review(self, request: ReviewRequest) -> ReviewOutcome:
        base = base_score(request.phase_findings)
        penalty = 0.0
        evidenced = 0
        for flag in request.red_flags:
            weight = SEVERITY_PENALTY[flag.severity]
            if flag.evidence:
                evidenced += 1
            else:
                weight /= 2
            penalty += weight
        penalty = min(penalty, ARBITER_MAX_PENALTY)

        total = len(request.red_flags)
        feedback = [f"Base score from phases: {base:.1f}", f"Severity-weighted penalty: {penalty:.1f}"]
        if total:
            ratio = evidenced / total
            feedback.append(f"{evidenced}/{total} red flags carry evidence ({ratio:.0%})")
            if ratio < 0.5:
                feedback.append("Many flags lack evidence")

        score = _clamp(base - penalty)
        logger.debug(f"Arbiter score for {request.target_path}: {score}")
        return ReviewOutcome(score=score, feedback=feedback)
