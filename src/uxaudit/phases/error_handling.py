"""Phase 5: error handling - feed the CLI bad input and judge the response."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from uxaudit.core.models import FlagFindings, PhaseId, RedFlag, Severity
from uxaudit.phases.base import PhaseContext
from uxaudit.phases.functionality import discover_binary
from uxaudit.runners.process import CommandResult, run_command

logger = logging.getLogger(__name__)

CATEGORY = "error-handling"
MISSING_FILE = "uxaudit-nonexistent-input-12345.txt"


def _evidence(result: CommandResult) -> list[str]:
    return [
        f"Command: {result.command}",
        f"Exit code: {result.exit_code}",
        f"Stderr: {result.stderr.strip()[:200] or '(empty)'}",
    ]


class ErrorHandlingAnalyzer:
    """Probes invalid commands, flags and inputs, then inspects help output."""

    phase_id = PhaseId.ERROR_HANDLING

    async def analyze(self, context: PhaseContext) -> FlagFindings:
        root = context.target_path
        binary = discover_binary(root)
        if binary is None:
            return FlagFindings(
                red_flags=[
                    RedFlag(
                        severity=Severity.HIGH,
                        category=CATEGORY,
                        title="Cannot test error handling",
                        description="Could not discover CLI binary to test error handling",
                        evidence=["Binary discovery failed"],
                        fix="Ensure CLI tool is properly built and executable",
                    )
                ],
                notes=["Cannot test error handling without binary"],
            )

        timeout = context.command_timeout
        flags: list[RedFlag] = []
        notes: list[str] = []

        async def probe(*args: str) -> CommandResult:
            return await run_command([*binary, *args], cwd=root, timeout=timeout)

        invalid_cmd = await probe("invalid-command-xyz")
        if invalid_cmd.exit_code == 0 or not invalid_cmd.stderr.strip():
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category=CATEGORY,
                    title="Poor error handling for invalid commands",
                    description="Tool does not provide clear error message for invalid commands",
                    evidence=_evidence(invalid_cmd),
                    fix="Add error handling for unknown commands with helpful error message",
                )
            )
        else:
            notes.append("Invalid commands are handled properly")

        invalid_flag = await probe("--invalid-flag-xyz")
        if invalid_flag.exit_code == 0 or not invalid_flag.stderr.strip():
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category=CATEGORY,
                    title="Poor error handling for invalid flags",
                    description="Tool does not warn about invalid flags",
                    evidence=_evidence(invalid_flag),
                    fix="Add flag validation and error messages for unrecognized flags",
                )
            )
        else:
            notes.append("Invalid flags are handled properly")

        missing_arg = await probe("--required-arg")
        if missing_arg.timed_out or (missing_arg.exit_code is not None and missing_arg.exit_code < 0):
            flags.append(
                RedFlag(
                    severity=Severity.HIGH,
                    category=CATEGORY,
                    title="Tool crashes on missing arguments",
                    description="Tool crashes or hangs when required arguments are missing",
                    evidence=[f"Command: {missing_arg.command}", missing_arg.error or "Process terminated abnormally"],
                    fix="Add validation for required arguments with clear error messages",
                )
            )
        else:
            notes.append("Missing arguments are handled without crashes")

        missing_file = str(Path(tempfile.gettempdir()) / MISSING_FILE)
        file_result = await probe("--file", missing_file)
        if file_result.exit_code == 0:
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category=CATEGORY,
                    title="No error for missing input files",
                    description="Tool does not report error when input file does not exist",
                    evidence=[f"Command: {file_result.command}", "Exit code: 0 (should be non-zero)"],
                    fix="Check if input files exist before processing",
                )
            )
        elif any(marker in file_result.stderr.lower() for marker in ("enoent", "no such file", "not found")):
            notes.append("Missing files are properly detected")

        notes.extend(await self._check_permissions(probe))
        flags.extend(await self._check_help(probe))

        version = await probe("--version")
        if version.exit_code not in (0, None):
            flags.append(
                RedFlag(
                    severity=Severity.MEDIUM,
                    category=CATEGORY,
                    title="No --version support",
                    description="Tool does not provide --version flag",
                    evidence=[f"Command: {version.command}", f"Exit code: {version.exit_code}"],
                    fix="Add --version flag to display version information",
                )
            )
        elif version.stdout.strip():
            notes.append(f"Version: {version.stdout.strip()[:80]}")

        message = invalid_cmd.stderr.strip().lower()
        if message:
            has_suggestion = any(hint in message for hint in ("did you mean", "try", "available"))
            if not has_suggestion and len(message) < 20:
                flags.append(
                    RedFlag(
                        severity=Severity.LOW,
                        category=CATEGORY,
                        title="Unhelpful error messages",
                        description="Error messages are too brief and don't guide users",
                        evidence=[f"Error message: {invalid_cmd.stderr.strip()}"],
                        fix="Provide helpful error messages with suggestions",
                    )
                )

        notes.append("SIGINT handling not tested (requires manual testing)")
        if flags:
            notes.append(f"Found {len(flags)} error handling issues")
        else:
            notes.append("Excellent error handling - all tests passed")

        return FlagFindings(red_flags=flags, notes=notes)

    async def _check_permissions(self, probe) -> list[str]:
        with tempfile.TemporaryDirectory(prefix="uxaudit-ro-") as tmp:
            locked = Path(tmp) / "locked"
            locked.mkdir()
            os.chmod(locked, 0o500)
            try:
                result = await probe("--output", str(locked / "out.txt"))
            finally:
                os.chmod(locked, 0o700)

        if result.exit_code == 0:
            return ["Permission test inconclusive (tool accepted the output path)"]
        stderr = result.stderr.lower()
        if "permission" in stderr or "eacces" in stderr:
            return ["Permission errors are properly reported"]
        return []

    async def _check_help(self, probe) -> list[RedFlag]:
        result = await probe("--help")
        if result.exit_code != 0 or not result.stdout.strip():
            return [
                RedFlag(
                    severity=Severity.CRITICAL,
                    category=CATEGORY,
                    title="No --help support",
                    description="Tool does not provide --help flag or help text is broken",
                    evidence=[*_evidence(result), f"Output: {result.stdout.strip()[:200] or '(empty)'}"],
                    fix="Implement --help flag with comprehensive usage information",
                )
            ]

        text = result.stdout.lower()
        flags = []
        checks = (
            ("usage" in text, "Help text missing usage section", "--help output does not include usage information",
             "Add usage section to help text"),
            ("options" in text or "flags" in text, "Help text missing options section",
             "--help output does not list available options/flags", "Add options section to help text"),
            ("example" in text, "Help text missing examples", "--help output does not include usage examples",
             "Add examples to help text"),
        )
        for present, title, description, fix in checks:
            if not present:
                flags.append(
                    RedFlag(
                        severity=Severity.LOW,
                        category="documentation",
                        title=title,
                        description=description,
                        evidence=[f"Command: {result.command}"],
                        fix=fix,
                    )
                )
        return flags
