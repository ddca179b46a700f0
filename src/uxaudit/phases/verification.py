"""Phase 4: verification - spot-check documentation claims."""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass
from pathlib import Path

from uxaudit.core.models import FunctionalityFindings, PhaseId, VerificationFindings, VerifiedClaim
from uxaudit.core.scoring import round_score
from uxaudit.phases.base import PhaseContext
from uxaudit.phases.functionality import discover_binary
from uxaudit.runners.process import run_command

logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"version\s*:?\s*v?(\d+\.\d+(?:\.\d+)?)", re.IGNORECASE)
FEATURE_RES = (
    re.compile(r"supports?\s+([a-z0-9_-]+)", re.IGNORECASE),
    re.compile(r"\bcan\s+([a-z]+)", re.IGNORECASE),
    re.compile(r"enables?\s+([a-z]+)", re.IGNORECASE),
)
SHELL_BLOCK_RE = re.compile(r"```(?:bash|shell|sh|console)?[ \t]*\n([\s\S]*?)```")
CONFIG_RES = (
    re.compile(r"config(?:uration)?\s+file\s*:?\s*`?([\w./-]+\.\w+)`?", re.IGNORECASE),
    re.compile(r"uses?\s+`?([\w./-]+\.\w+)`?\s+config", re.IGNORECASE),
)
COMMANDS_PER_BLOCK = 3


@dataclass
class Claim:
    """A statement from the docs that might be checkable."""

    text: str
    kind: str
    expected: str | None = None
    argv: list[str] | None = None


def extract_claims(readme: str) -> list[Claim]:
    """Pull version, feature, command and config-file claims out of a README."""
    claims: list[Claim] = []

    version = VERSION_RE.search(readme)
    if version:
        claims.append(Claim(f"Tool version is {version.group(1)}", "version", expected=version.group(1)))

    seen_features: set[str] = set()
    for pattern in FEATURE_RES:
        for match in pattern.finditer(readme):
            feature = match.group(1).lower()
            if feature in seen_features:
                continue
            seen_features.add(feature)
            claims.append(Claim(f"Supports {feature}", "feature", expected=feature))

    for block in SHELL_BLOCK_RE.findall(readme):
        lines = [line.strip().removeprefix("$ ") for line in block.splitlines()]
        commands = [line for line in lines if line and not line.startswith("#")][:COMMANDS_PER_BLOCK]
        for command in commands:
            try:
                argv = shlex.split(command)
            except ValueError:
                continue
            if argv:
                claims.append(Claim(f"Command example: {command}", "command", argv=argv))

    for pattern in CONFIG_RES:
        for match in pattern.finditer(readme):
            claims.append(Claim(f"Uses config file: {match.group(1)}", "config", expected=match.group(1)))

    return claims


def verification_score(total: int, verified: int, accuracy_issues: int) -> float:
    if total == 0:
        return 5.0
    rate = verified / total
    score = rate * 8
    if rate >= 1.0:
        score += 2
    elif rate >= 0.9:
        score += 1
    score -= accuracy_issues * 1.5
    return max(0.0, min(10.0, round_score(score)))


def _read_readme(root: Path) -> str:
    for name in ("README.md", "readme.md", "README.markdown"):
        path = root / name
        if path.is_file():
            return path.read_text(encoding="utf-8", errors="replace")
    return ""


class VerificationAnalyzer:
    """Checks what the README says against what the tool does.

    Command examples are only executed when they invoke the target's own
    CLI; anything else in the docs is recorded as unverifiable.
    """

    phase_id = PhaseId.VERIFICATION

    async def analyze(self, context: PhaseContext) -> VerificationFindings:
        root = context.target_path
        notes: list[str] = []
        if context.options.context:
            notes.append(f"Audited in context: {context.options.context}")

        readme = _read_readme(root)
        claims = extract_claims(readme) if readme else []
        binary = discover_binary(root)
        functionality = context.findings_of(PhaseId.FUNCTIONALITY, FunctionalityFindings)
        help_text = ""
        if functionality:
            help_text = next((t.output for t in functionality.commands_tested if t.command == "--help"), "").lower()

        results: list[VerifiedClaim] = []
        unverifiable: list[str] = []
        issues: list[str] = []

        for claim in claims:
            outcome = await self._verify(claim, root, binary, help_text, context)
            if outcome is None:
                unverifiable.append(claim.text)
                continue
            results.append(outcome)
            if not outcome.verified:
                issues.append(f'Claim "{claim.text}" does not match: {outcome.evidence}')

        verified = sum(1 for r in results if r.verified)
        total = len(results)
        if total:
            rate = verified / total * 100
            notes.append(f"Verified {verified}/{total} claims ({rate:.0f}%)")
            if rate >= 90:
                notes.append("Excellent documentation accuracy")
            elif rate >= 70:
                notes.append("Good documentation accuracy with some inconsistencies")
            elif rate >= 50:
                notes.append("Poor documentation accuracy - many claims don't match behavior")
            else:
                notes.append("CRITICAL: Documentation does not match actual tool behavior")
        else:
            notes.append("No verifiable claims found in documentation")
        if issues:
            notes.append(f"Found {len(issues)} documentation inaccuracies")
        if unverifiable:
            notes.append(f"{len(unverifiable)} claims could not be automatically verified")

        return VerificationFindings(
            verified_claims=results,
            unverifiable_claims=unverifiable,
            accuracy_issues=issues,
            score=verification_score(total, verified, len(issues)),
            notes=notes,
        )

    async def _verify(
        self,
        claim: Claim,
        root: Path,
        binary: list[str] | None,
        help_text: str,
        context: PhaseContext,
    ) -> VerifiedClaim | None:
        """Check one claim. None means it could not be checked at all."""
        match claim.kind:
            case "version":
                if binary is None:
                    return None
                result = await run_command([*binary, "--version"], cwd=root, timeout=context.command_timeout)
                actual = (result.stdout.strip() or result.stderr.strip())[:200]
                if not actual:
                    return None
                ok = bool(claim.expected) and claim.expected in actual
                return VerifiedClaim(
                    claim=claim.text,
                    verified=ok,
                    evidence=f"expected {claim.expected}, --version printed {actual!r}",
                    confidence=0.9,
                )
            case "command":
                if binary is None or not claim.argv or Path(claim.argv[0]).name != Path(binary[-1]).stem:
                    return None
                result = await run_command([*binary, *claim.argv[1:]], cwd=root, timeout=context.command_timeout)
                return VerifiedClaim(
                    claim=claim.text,
                    verified=result.ok,
                    evidence=f"exit code {result.exit_code}" if result.error is None else result.error,
                    confidence=0.8,
                )
            case "config":
                exists = (root / claim.expected).exists() if claim.expected else False
                return VerifiedClaim(
                    claim=claim.text,
                    verified=exists,
                    evidence="file exists" if exists else "file not found",
                    confidence=0.6,
                )
            case "feature":
                if help_text and claim.expected and claim.expected in help_text:
                    return VerifiedClaim(
                        claim=claim.text,
                        verified=True,
                        evidence="mentioned in --help output",
                        confidence=0.5,
                    )
                return None
            case _:
                return None
