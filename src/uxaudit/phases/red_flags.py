"""Phase 6: red flag detection - static checks over the project tree."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

from uxaudit.core.flags import count_by_severity, deduplicate
from uxaudit.core.models import FlagFindings, PhaseId, RedFlag, Severity
from uxaudit.phases.base import PhaseContext

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = {".js", ".ts", ".jsx", ".tsx", ".py", ".go", ".rs"}
SKIP_DIRS = {"node_modules", ".git", "dist", "build", "target", ".venv", "venv", "__pycache__"}
TEST_MARKERS = (".test.", ".spec.")
MAX_FILE_BYTES = 1_000_000

SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"AIza[0-9A-Za-z\-_]{35}"), "Google API key"),
    (re.compile(r"AKIA[0-9A-Z]{16}"), "AWS access key"),
    (re.compile(r"sk-[a-zA-Z0-9]{48}"), "OpenAI API key"),
    (re.compile(r"xox[bap]-[0-9]{12}-[0-9]{12}-[0-9A-Za-z]{24}"), "Slack token"),
    (re.compile(r"ghp_[a-zA-Z0-9]{36}"), "GitHub personal access token"),
    (re.compile(r"password\s*=\s*[\"'][^\"']+[\"']"), "password"),
)
VULNERABLE_NPM = ("lodash", "axios", "minimist")
EVAL_RE = re.compile(r"\beval\s*\(")
EXEC_RE = re.compile(r"\b(?:exec|spawn)\s*\(")
SANITIZE_HINTS = ("sanitize", "escape", "validate")

ESSENTIAL_FILES = (
    ("README.md", Severity.CRITICAL, "README"),
    ("LICENSE", Severity.HIGH, "license file"),
    (".gitignore", Severity.MEDIUM, ".gitignore"),
)

CheckResult = tuple[list[RedFlag], list[str]]


def iter_files(root: Path, accept: Callable[[Path], bool]) -> Iterator[Path]:
    """Walk the tree below root, skipping vendored and build directories."""
    stack = [root]
    while stack:
        directory = stack.pop()
        try:
            entries = sorted(directory.iterdir())
        except OSError:
            continue
        for entry in entries:
            if entry.is_dir():
                if entry.name not in SKIP_DIRS and not entry.is_symlink():
                    stack.append(entry)
            elif entry.is_file() and accept(entry):
                yield entry


def _is_test_file(path: Path) -> bool:
    name = path.name
    return any(marker in name for marker in TEST_MARKERS) or (name.startswith("test_") and name.endswith(".py"))


class RedFlagAnalyzer:
    """Static checks for security, hygiene and maintenance problems."""

    phase_id = PhaseId.RED_FLAGS

    def analyze(self, context: PhaseContext) -> FlagFindings:
        return _Scan(context.target_path).run()


class _Scan:
    """One pass of red flag checks over a project tree.

    Each ``_check_*`` method returns its flags and notes; a check that blows
    up is logged and skipped so the remaining checks still run.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._sources = self._read_sources(root)
        self._package_json = self._load_package_json(root)

    def run(self) -> FlagFindings:
        root = self.root
        checks = (
            self._check_hardcoded_secrets,
            self._check_vulnerable_dependencies,
            self._check_missing_files,
            self._check_project_structure,
            self._check_minimal_tests,
            self._check_outdated_dependencies,
            self._check_code_execution,
            self._check_licensing,
            self._check_accessibility,
        )

        flags: list[RedFlag] = []
        notes: list[str] = []
        for check in checks:
            try:
                check_flags, check_notes = check(root)
            except (OSError, ValueError) as e:
                logger.warning(f"Red flag check {check.__name__} failed: {e}")
                continue
            flags.extend(check_flags)
            notes.extend(check_notes)

        unique = deduplicate(flags)
        if unique:
            counts = count_by_severity(unique)
            notes.append(
                f"Found {len(unique)} red flags: "
                + ", ".join(f"{severity.value} {counts[severity]}" for severity in Severity)
            )
        else:
            notes.append("No critical red flags detected")

        return FlagFindings(red_flags=unique, notes=notes)

    def _read_sources(self, root: Path) -> list[tuple[Path, str]]:
        sources = []
        for path in iter_files(root, lambda p: p.suffix in SOURCE_SUFFIXES):
            if path.stat().st_size > MAX_FILE_BYTES:
                continue
            sources.append((path, path.read_text(encoding="utf-8", errors="replace")))
        return sources

    def _load_package_json(self, root: Path) -> dict[str, Any] | None:
        path = root / "package.json"
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.warning(f"Unreadable package.json in {root}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _npm_dependencies(self) -> dict[str, str]:
        if not self._package_json:
            return {}
        deps: dict[str, str] = {}
        for key in ("dependencies", "devDependencies"):
            section = self._package_json.get(key) or {}
            deps.update({name: str(version) for name, version in section.items()})
        return deps

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_hardcoded_secrets(self, root: Path) -> CheckResult:
        flags = []
        for path, content in self._sources:
            rel = path.relative_to(root).as_posix()
            for pattern, name in SECRET_PATTERNS:
                if pattern.search(content):
                    flags.append(
                        RedFlag(
                            severity=Severity.CRITICAL,
                            category="security",
                            title=f"Hardcoded {name} detected",
                            description=f"Found {name} in source code which is a critical security vulnerability",
                            evidence=[f"File: {rel}"],
                            fix=f"Remove {name} from source code and use environment variables",
                            location=rel,
                        )
                    )
        notes = [] if flags else [f"No hardcoded secrets found in {len(self._sources)} source files"]
        return flags, notes

    def _check_vulnerable_dependencies(self, root: Path) -> CheckResult:
        deps = self._npm_dependencies()
        if not deps:
            return [], []
        flags = [
            RedFlag(
                severity=Severity.HIGH,
                category="security",
                title="Known vulnerable dependency",
                description=f"Package {name} has versions with known security vulnerabilities",
                evidence=[f"Dependency: {name}@{deps[name]}"],
                fix=f"Update {name} to latest version",
            )
            for name in VULNERABLE_NPM
            if name in deps
        ]
        return flags, [] if flags else ["No known vulnerable dependencies found"]

    def _check_missing_files(self, root: Path) -> CheckResult:
        flags = []
        for filename, severity, name in ESSENTIAL_FILES:
            if not (root / filename).exists():
                flags.append(
                    RedFlag(
                        severity=severity,
                        category="project-structure",
                        title=f"Missing {name}",
                        description=f"Project is missing {name}",
                        evidence=[f"{filename} not found"],
                        fix=f"Add {name} to the project",
                    )
                )

        if (root / ".env").exists() and not (root / ".env.example").exists():
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category="security",
                    title="Missing .env.example",
                    description="Project uses .env but doesn't provide .env.example template",
                    evidence=[".env found but .env.example missing"],
                    fix="Create .env.example with placeholder values",
                )
            )
        return flags, [] if flags else ["All essential files present"]

    def _check_project_structure(self, root: Path) -> CheckResult:
        flags = []
        notes = []
        names = {p.name for p in root.iterdir()}

        loose = [
            n for n in names
            if Path(n).suffix in {".js", ".ts", ".py"} and n not in {"index.js", "index.ts", "setup.py", "__init__.py"}
        ]
        if len(loose) > 5:
            flags.append(
                RedFlag(
                    severity=Severity.LOW,
                    category="project-structure",
                    title="Poor project organization",
                    description="Many source files at root level - should be organized in directories",
                    evidence=[f"Found {len(loose)} source files at root"],
                    fix="Organize source files into src/, lib/, or similar directories",
                )
            )

        has_test_dir = bool(names & {"test", "tests", "__tests__"})
        has_test_files = any(_is_test_file(Path(n)) for n in names)
        if not has_test_dir and not has_test_files:
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category="testing",
                    title="No tests found",
                    description="Project lacks test files or test directory",
                    evidence=["No test/ or tests/ directory found", "No test files found at root"],
                    fix="Add tests to ensure code quality and prevent regressions",
                )
            )
        else:
            notes.append("Test directory or files present")

        if not names & {"docs", "documentation"}:
            notes.append("No docs/ directory found")
        return flags, notes

    def _check_minimal_tests(self, root: Path) -> CheckResult:
        test_files = list(iter_files(root, _is_test_file))
        if not test_files:
            return [], []

        minimal = 0
        for path in test_files:
            lines = [
                line
                for line in path.read_text(encoding="utf-8", errors="replace").splitlines()
                if line.strip() and not line.strip().startswith(("//", "#"))
            ]
            if len(lines) < 10:
                minimal += 1

        if minimal > len(test_files) * 0.5:
            return [
                RedFlag(
                    severity=Severity.LOW,
                    category="testing",
                    title="Many tests appear to be empty or minimal",
                    description=f"{minimal} of {len(test_files)} test files have very little content",
                    evidence=[f"Found {minimal} minimal test files"],
                    fix="Add proper test cases to ensure code quality",
                )
            ], []
        return [], []

    def _check_outdated_dependencies(self, root: Path) -> CheckResult:
        outdated = [f"{n}@{v}" for n, v in self._npm_dependencies().items() if v.startswith(("^0.", "~0."))]
        if len(outdated) > 3:
            return [
                RedFlag(
                    severity=Severity.LOW,
                    category="maintenance",
                    title="Many outdated dependencies",
                    description="Project has many dependencies using version 0.x",
                    evidence=outdated[:5],
                    fix="Update dependencies to latest stable versions",
                )
            ], []
        return [], []

    def _check_code_execution(self, root: Path) -> CheckResult:
        flags = []
        for path, content in self._sources:
            rel = path.relative_to(root).as_posix()
            if EVAL_RE.search(content):
                flags.append(
                    RedFlag(
                        severity=Severity.HIGH,
                        category="security",
                        title="Use of eval() detected",
                        description="eval() can lead to code injection vulnerabilities",
                        evidence=[f"File: {rel}"],
                        fix="Remove eval() and use safer alternatives",
                        location=rel,
                    )
                )
            if EXEC_RE.search(content) and not any(hint in content for hint in SANITIZE_HINTS):
                flags.append(
                    RedFlag(
                        severity=Severity.MEDIUM,
                        category="security",
                        title="Potential command injection",
                        description="exec() or spawn() found without input sanitization",
                        evidence=[f"File: {rel}"],
                        fix="Add input sanitization before shell command execution",
                        location=rel,
                    )
                )
        return flags, [] if flags else ["No obvious security issues detected"]

    def _check_licensing(self, root: Path) -> CheckResult:
        flags = []
        notes = []
        if self._package_json is not None:
            license_name = self._package_json.get("license")
            if license_name:
                notes.append(f"License: {license_name}")
            else:
                flags.append(
                    RedFlag(
                        severity=Severity.MEDIUM,
                        category="legal",
                        title="No license specified",
                        description="package.json does not specify a license",
                        evidence=['package.json missing "license" field'],
                        fix='Add license field to package.json (e.g., "MIT", "Apache-2.0")',
                    )
                )

        if (root / "LICENSE").exists():
            notes.append("LICENSE file present")
        else:
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category="legal",
                    title="Missing LICENSE file",
                    description="Project does not have a LICENSE file",
                    evidence=["LICENSE file not found"],
                    fix="Add LICENSE file with full license text",
                )
            )
        return flags, notes

    def _check_accessibility(self, root: Path) -> CheckResult:
        readme = root / "README.md"
        if not readme.is_file():
            return [], []
        content = readme.read_text(encoding="utf-8", errors="replace").lower()
        notes = []
        if any(term in content for term in ("accessibility", "a11y", "screen reader")):
            notes.append("Accessibility considerations documented")
        else:
            notes.append("Accessibility not mentioned in documentation")
        if re.search(r"\b(red|green)\b", content):
            notes.append("May use color-only indicators (consider accessibility)")
        return [], notes
