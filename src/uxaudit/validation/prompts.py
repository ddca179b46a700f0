"""Prompts for Claude-backed validation reviewers."""

from __future__ import annotations

from uxaudit.core.models import (
    CycleName,
    FirstImpressionsFindings,
    FunctionalityFindings,
    InstallationFindings,
    PhaseId,
    VerificationFindings,
)
from uxaudit.validation.base import ReviewRequest

MAX_SUMMARY_FLAGS = 10
MAX_ARBITER_FLAGS = 15

# =============================================================================
# System Prompt
# =============================================================================

SYSTEM_PROMPT = (
    "You are validating a user experience audit of a command-line tool. "
    "Respond with a single JSON object and nothing else."
)

RESPONSE_FORMAT = """Respond with JSON ONLY (no markdown):
{
  "score": 0-10,
  "feedback": ["string"],
  "redFlags": [{
    "severity": "critical|high|medium|low",
    "category": "string",
    "title": "string",
    "description": "string",
    "evidence": ["string"],
    "fix": "string"
  }]
}"""

# =============================================================================
# Cycle Prompts
# =============================================================================

CRITIC_PROMPT = """You are a ruthless critic reviewing a UX audit.

{summary}

Your role: critic
- Check for obvious errors in the audit findings
- Identify missing red flags (things that should have been flagged)
- Verify evidence quality (are claims backed by actual evidence?)
- Check for false positives (are some red flags unjustified?)

Be thorough but fair.

{response_format}
"""

META_CRITIC_PROMPT = """You are a meta-critic reviewing the critic's work.

Original audit:
{summary}

Critic's review:
- Score: {critic_score}/10
- Feedback: {critic_feedback}
- Red flags added: {critic_flag_count}

Your role: meta-critic
- Check the critic for bias (too harsh? too lenient?)
- Identify blind spots (what did the critic miss?)
- Flag false positives (unjustified criticism)
- Provide a balanced assessment

{response_format}
"""

ARBITER_PROMPT = """You are the arbiter. Score the evidence quality of this UX audit.

Evidence should be specific, independently verifiable, measurable, proven and observable.

Tool: {target}
Pre-validation score: {pre_score}/10

Red flags to validate ({flag_count} total):
{flags}

Scoring criteria:
- 9-10: All flags have strong evidence
- 7-8: Most flags have good evidence
- 5-6: Some flags lack evidence
- 3-4: Many flags lack evidence
- 0-2: Evidence is missing or weak

Your score is the final audit score. Do not add red flags.

{response_format}
"""


def _phase_line(title: str, findings: object | None, extra: str = "") -> list[str]:
    lines = [f"### {title}"]
    if findings is None:
        lines.append("- Not completed")
        return lines
    lines.append(f"- Score: {getattr(findings, 'score', 'n/a')}/10")
    if extra:
        lines.append(extra)
    notes = getattr(findings, "notes", None)
    if notes:
        lines.append(f"- Notes: {'; '.join(notes)}")
    return lines


def build_summary(request: ReviewRequest) -> str:
    """Markdown digest of the audit shared by every cycle prompt."""
    findings = request.phase_findings
    first = findings.get(PhaseId.FIRST_IMPRESSIONS)
    install = findings.get(PhaseId.INSTALLATION)
    func = findings.get(PhaseId.FUNCTIONALITY)
    verify = findings.get(PhaseId.VERIFICATION)

    lines = [
        "# User Experience Audit - Validation Request",
        "",
        f"Tool: {request.target_path}",
        f"Red flags found: {len(request.red_flags)}",
        f"Pre-validation score: {request.pre_validation_score}/10",
    ]
    if request.context:
        lines.append(f"Domain context: {request.context}")
    lines.append("")
    lines.append("## Phase Results")
    lines.extend(_phase_line("First Impressions", first if isinstance(first, FirstImpressionsFindings) else None))
    lines.extend(
        _phase_line(
            "Installation",
            install if isinstance(install, InstallationFindings) else None,
            f"- Success: {'Yes' if install.succeeded else 'No'}" if isinstance(install, InstallationFindings) else "",
        )
    )
    lines.extend(
        _phase_line(
            "Functionality",
            func if isinstance(func, FunctionalityFindings) else None,
            f"- Commands tested: {len(func.commands_tested)}" if isinstance(func, FunctionalityFindings) else "",
        )
    )
    lines.extend(_phase_line("Verification", verify if isinstance(verify, VerificationFindings) else None))

    lines.append("")
    lines.append("## Red Flags")
    for flag in request.red_flags[:MAX_SUMMARY_FLAGS]:
        lines.append(f"- **{flag.severity.value}**: {flag.title}\n  {flag.description}")
    if len(request.red_flags) > MAX_SUMMARY_FLAGS:
        lines.append(f"_... and {len(request.red_flags) - MAX_SUMMARY_FLAGS} more flags_")
    return "\n".join(lines)


def build_prompt(request: ReviewRequest) -> str:
    """Full prompt for the request's cycle."""
    summary = build_summary(request)
    match request.cycle:
        case CycleName.CRITIC:
            return CRITIC_PROMPT.format(summary=summary, response_format=RESPONSE_FORMAT)
        case CycleName.META_CRITIC:
            critic = request.cycle_result(CycleName.CRITIC)
            return META_CRITIC_PROMPT.format(
                summary=summary,
                critic_score=critic.score if critic else "n/a",
                critic_feedback="; ".join(critic.feedback) if critic else "none",
                critic_flag_count=len(critic.red_flags) if critic else 0,
                response_format=RESPONSE_FORMAT,
            )
        case CycleName.ARBITER:
            flags = "\n".join(
                f"{i}. **{flag.severity.value}**: {flag.title}\n   Evidence: "
                f"{', '.join(flag.evidence[:3]) or 'None provided'}"
                for i, flag in enumerate(request.red_flags[:MAX_ARBITER_FLAGS], start=1)
            )
            return ARBITER_PROMPT.format(
                target=request.target_path,
                pre_score=request.pre_validation_score,
                flag_count=len(request.red_flags),
                flags=flags or "(none)",
                response_format=RESPONSE_FORMAT,
            )
