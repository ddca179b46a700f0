"""Phase 2: installation - actually install the target and time it."""

from __future__ import annotations

import json
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from uxaudit.core.models import InstallationFindings, PhaseId
from uxaudit.core.scoring import round_score
from uxaudit.phases.base import PhaseContext
from uxaudit.runners.process import run_command

logger = logging.getLogger(__name__)

# Checked in order; the first manifest present decides the package type.
PACKAGE_MARKERS: tuple[tuple[str, str, bool], ...] = (
    ("package.json", "nodejs", True),
    ("Cargo.toml", "rust", True),
    ("go.mod", "go", True),
    ("setup.py", "python", True),
    ("pyproject.toml", "python", True),
    ("requirements.txt", "python", True),
    ("Gemfile", "ruby", True),
    ("Makefile", "make", False),
    ("CMakeLists.txt", "cmake", False),
    ("Dockerfile", "docker", True),
)


@dataclass(frozen=True)
class InstallPlan:
    """How to install one package type."""

    args: tuple[str, ...]
    method: str
    prerequisite: tuple[str, ...]


INSTALL_PLANS: dict[str, InstallPlan] = {
    "nodejs": InstallPlan(("npm", "install", "--quiet"), "npm install", ("npm", "--version")),
    "rust": InstallPlan(("cargo", "build", "--quiet"), "cargo build", ("cargo", "--version")),
    "go": InstallPlan(
        ("go", "build", "-o", str(Path(tempfile.gettempdir()) / "uxaudit-go-build")),
        "go build",
        ("go", "version"),
    ),
    "python": InstallPlan(("pip", "install", "-e", ".", "--quiet"), "pip install", ("pip", "--version")),
    "ruby": InstallPlan(("bundle", "install"), "bundle install", ("bundle", "--version")),
    "docker": InstallPlan(("docker", "build", "-t", "uxaudit-build", "."), "docker build", ("docker", "--version")),
}

FAST_INSTALL_MS = 10_000
OK_INSTALL_MS = 30_000
SLOW_INSTALL_MS = 60_000


def detect_package_type(root: Path) -> tuple[str, bool]:
    """Return (package type, whether it can be installed automatically)."""
    for marker, package_type, can_install in PACKAGE_MARKERS:
        if (root / marker).is_file():
            return package_type, can_install
    return "unknown", False


def installation_score(*, attempted: bool, succeeded: bool, duration_ms: int, has_warnings: bool) -> float:
    """7 for a successful install, adjusted for speed and warnings."""
    if not attempted or not succeeded:
        return 0.0

    score = 7.0
    if duration_ms < FAST_INSTALL_MS:
        score += 2
    elif duration_ms < OK_INSTALL_MS:
        score += 1
    if duration_ms > SLOW_INSTALL_MS:
        score -= 1
    if has_warnings:
        score -= 0.5
    return max(0.0, min(10.0, round_score(score)))


def expected_binary(package_type: str, root: Path) -> str | None:
    """Name of the executable the package should put on PATH, if knowable."""
    match package_type:
        case "nodejs":
            try:
                pkg = json.loads((root / "package.json").read_text(encoding="utf-8"))
            except (OSError, ValueError):
                return None
            bin_field = pkg.get("bin")
            if isinstance(bin_field, dict) and bin_field:
                return next(iter(bin_field))
            if isinstance(pkg.get("name"), str):
                return re.sub(r"^@[^/]+/", "", pkg["name"])
            return None
        case "rust":
            try:
                content = (root / "Cargo.toml").read_text(encoding="utf-8")
            except OSError:
                return None
            found = re.search(r'name\s*=\s*"([^"]+)"', content)
            return found.group(1) if found else None
        case "go":
            return root.name
        case _:
            return None


class InstallationAnalyzer:
    """Runs the target's native install command."""

    phase_id = PhaseId.INSTALLATION

    async def analyze(self, context: PhaseContext) -> InstallationFindings:
        root = context.target_path
        config = context.config
        notes: list[str] = []
        errors: list[str] = []
        warnings: list[str] = []

        package_type, can_install = detect_package_type(root)
        logger.debug(f"Detected package type for {root}: {package_type}")

        if not can_install:
            return InstallationFindings(
                attempted=False,
                errors=[f"Unsupported package type: {package_type}"],
                notes=[f"Package type '{package_type}' cannot be auto-tested", "Manual installation testing required"],
            )

        plan = INSTALL_PLANS[package_type]
        notes.append(f"Installation method: {plan.method}")

        if config is not None and not config.install.enabled:
            notes.append("Installation disabled in configuration")
            return InstallationFindings(attempted=False, skipped=True, method=plan.method, notes=notes)

        prerequisite = await run_command(list(plan.prerequisite), timeout=context.command_timeout)
        if not prerequisite.ok:
            missing = f"{plan.prerequisite[0]} is not installed or not in PATH"
            return InstallationFindings(
                attempted=False,
                method=plan.method,
                errors=[missing],
                notes=["Missing prerequisites for installation", missing],
            )

        timeout = config.install.timeout if config is not None else 120
        result = await run_command(list(plan.args), cwd=root, timeout=timeout)

        if result.ok:
            notes.append("Installation completed successfully")
            if result.duration_ms < 5000:
                notes.append(f"Fast installation ({result.duration_ms}ms)")
            elif result.duration_ms > OK_INSTALL_MS:
                warnings.append(f"Slow installation ({result.duration_ms / 1000:.1f}s)")

            binary = expected_binary(package_type, root)
            if binary and shutil.which(binary):
                notes.append(f"Binary installed: {binary}")
            elif binary:
                warnings.append("Binary not found in PATH after installation")
        else:
            reason = result.error or f"Command exited with code {result.exit_code}"
            errors.append(f"Installation failed: {reason}")
            if result.stderr:
                errors.append(f"Error output: {result.stderr[:200]}")

        return InstallationFindings(
            attempted=True,
            succeeded=result.ok,
            duration_ms=result.duration_ms,
            method=plan.method,
            errors=errors,
            warnings=warnings,
            score=installation_score(
                attempted=True,
                succeeded=result.ok,
                duration_ms=result.duration_ms,
                has_warnings=bool(warnings),
            ),
            notes=notes,
        )
