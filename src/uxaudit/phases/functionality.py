"""Phase 3: functionality - run the target's CLI and see what works."""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tomllib
from pathlib import Path

from uxaudit.core.models import CommandTest, FunctionalityFindings, PhaseId
from uxaudit.core.scoring import round_score
from uxaudit.phases.base import PhaseContext
from uxaudit.runners.process import run_command

logger = logging.getLogger(__name__)

NODE_ENTRY_POINTS = ("dist/cli.js", "dist/index.js", "build/cli.js", "lib/cli.js", "bin/cli.js")

PROBES: tuple[tuple[str, ...], ...] = (
    ("--help",),
    ("--version",),
    (),
    ("init",),
    ("build",),
    ("test",),
    ("run",),
    ("status",),
    ("list",),
    ("info",),
    ("--verbose",),
    ("--dry-run",),
)

FEATURES_SECTION_RE = re.compile(r"^##?\s*Features\s*\n([\s\S]+?)(?=\n##?\s|\Z)", re.IGNORECASE | re.MULTILINE)
WORD_RE = re.compile(r"[a-z][a-z0-9_-]{3,}")
STOPWORDS = {"with", "from", "that", "this", "your", "into", "support", "supports", "easy", "fast", "simple"}
MAX_OUTPUT = 500


def discover_binary(root: Path) -> list[str] | None:
    """Work out how to invoke the target's CLI.

    Returns:
        The argv prefix to run the CLI, or None if no entry point was found
    """
    package_json = root / "package.json"
    if package_json.is_file():
        try:
            pkg = json.loads(package_json.read_text(encoding="utf-8"))
        except ValueError:
            pkg = {}
        bin_field = pkg.get("bin")
        entry: str | None = None
        if isinstance(bin_field, str):
            entry = bin_field
        elif isinstance(bin_field, dict) and bin_field:
            entry = next(iter(bin_field.values()))
        candidates = [entry] if entry else list(NODE_ENTRY_POINTS)
        for rel in candidates:
            path = root / rel
            if path.is_file():
                return ["node", str(path)] if path.suffix in {".js", ".cjs", ".mjs"} else [str(path)]

    cargo = root / "Cargo.toml"
    if cargo.is_file():
        found = re.search(r'name\s*=\s*"([^"]+)"', cargo.read_text(encoding="utf-8", errors="replace"))
        if found:
            for build in ("release", "debug"):
                path = root / "target" / build / found.group(1)
                if path.is_file():
                    return [str(path)]

    if (root / "go.mod").is_file():
        path = root / root.name
        if path.is_file():
            return [str(path)]

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError:
            data = {}
        for script in data.get("project", {}).get("scripts", {}):
            located = shutil.which(script)
            if located:
                return [located]

    bin_dir = root / "bin"
    if bin_dir.is_dir():
        for path in sorted(bin_dir.iterdir()):
            if path.is_file() and os.access(path, os.X_OK):
                return [str(path)]

    return None


def documented_features(root: Path) -> list[str]:
    """Bullet points under the README's Features heading."""
    for name in ("README.md", "readme.md", "README.markdown"):
        path = root / name
        if not path.is_file():
            continue
        match = FEATURES_SECTION_RE.search(path.read_text(encoding="utf-8", errors="replace"))
        if not match:
            return []
        features = []
        for line in match.group(1).splitlines():
            stripped = line.strip()
            if stripped.startswith(("-", "*")):
                feature = stripped.lstrip("-* ").strip()
                if feature:
                    features.append(feature)
        return features
    return []


def functionality_score(total: int, successful: int, missing_features: int) -> float:
    if total == 0:
        return 0.0
    rate = successful / total
    score = rate * 7
    if rate >= 0.9:
        score += 2
    elif rate >= 0.7:
        score += 1
    score -= missing_features * 0.5
    return max(0.0, min(10.0, round_score(score)))


def _keywords(feature: str) -> set[str]:
    return {w for w in WORD_RE.findall(feature.lower()) if w not in STOPWORDS}


class FunctionalityAnalyzer:
    """Probes the CLI with a fixed battery of invocations."""

    phase_id = PhaseId.FUNCTIONALITY

    async def analyze(self, context: PhaseContext) -> FunctionalityFindings:
        root = context.target_path
        binary = discover_binary(root)
        if binary is None:
            return FunctionalityFindings(
                missing_features=["Could not discover CLI binary"],
                notes=["CRITICAL: Could not find executable binary to test"],
            )
        logger.debug(f"Testing binary {binary} for {root}")

        tests: list[CommandTest] = []
        for probe in PROBES:
            result = await run_command([*binary, *probe], cwd=root, timeout=context.command_timeout)
            tests.append(
                CommandTest(
                    command=" ".join(probe) if probe else "(no args)",
                    success=result.ok,
                    output=result.stdout[:MAX_OUTPUT],
                    error=None if result.ok else (result.stderr[:MAX_OUTPUT] or result.error),
                    duration_ms=result.duration_ms,
                )
            )
            if context.options.verbose:
                logger.info(f"  {tests[-1].command}: {'ok' if result.ok else 'failed'}")

        help_text = next((t.output for t in tests if t.command == "--help" and t.success), "").lower()
        missing = []
        if help_text:
            for feature in documented_features(root):
                words = _keywords(feature)
                if words and not any(w in help_text for w in words):
                    missing.append(feature)

        successful = sum(1 for t in tests if t.success)
        failed = len(tests) - successful
        rate = successful / len(tests) * 100
        notes = [f"Success rate: {rate:.0f}% ({successful}/{len(tests)})"]
        if rate >= 90:
            notes.append("Excellent success rate - tool is reliable")
        elif rate >= 70:
            notes.append("Good success rate - some commands may need attention")
        elif rate >= 50:
            notes.append("Poor success rate - many commands failing")
        else:
            notes.append("CRITICAL: Most commands failing - tool is unreliable")
        if missing:
            notes.append(f"{len(missing)} documented features do not appear in --help output")

        return FunctionalityFindings(
            commands_tested=tests,
            successful_executions=successful,
            failed_executions=failed,
            missing_features=missing,
            score=functionality_score(len(tests), successful, len(missing)),
            notes=notes,
        )
