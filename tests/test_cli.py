"""Tests for the uxaudit command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from rich.console import Console
from typer.testing import CliRunner

from uxaudit import __version__
from uxaudit.cli import app
from uxaudit.core.models import AuditSession

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each CLI test from its own directory so .uxaudit/ lands in tmp."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    # Wide console so table cells and long paths are not wrapped
    monkeypatch.setattr("uxaudit.cli.console", Console(width=300))
    return work


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "phase_timeout": 10,
                "command_timeout": 2,
                "install": {"enabled": False},
                "notifications": {"provider": "none"},
                "usage_file": str(tmp_path / "usage.json"),
            }
        )
    )
    return path


def audit_args(target: Path, config_file: Path, *extra: str) -> list[str]:
    return ["audit", str(target), "--config", str(config_file), *extra]


class TestAuditCommand:
    """Tests for 'uxaudit audit'."""

    def test_json_output(self, workdir: Path, sample_project: Path, config_file: Path) -> None:
        result = runner.invoke(app, audit_args(sample_project, config_file, "--format", "json"))

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["target_path"] == str(sample_project.resolve())
        assert [r["phase_id"] for r in data["phase_results"]] == [
            "first-impressions",
            "installation",
            "functionality",
            "verification",
            "error-handling",
            "red-flags",
        ]
        assert data["completed_at"] is not None
        assert data["validation"] is None  # free tier

    def test_text_output(self, workdir: Path, sample_project: Path, config_file: Path) -> None:
        result = runner.invoke(app, audit_args(sample_project, config_file, "--verbose"))

        assert result.exit_code == 0, result.output
        assert "Score:" in result.stdout
        assert "Cannot test error handling" in result.stdout
        assert "Validation is not available on the free tier" in result.stdout

    def test_missing_target(self, workdir: Path, tmp_path: Path, config_file: Path) -> None:
        result = runner.invoke(app, audit_args(tmp_path / "nope", config_file))
        assert result.exit_code == 2
        assert "does not exist" in result.stdout

    def test_below_min_score(self, workdir: Path, sample_project: Path, config_file: Path) -> None:
        result = runner.invoke(app, audit_args(sample_project, config_file, "--min-score", "9.9", "-f", "json"))
        assert result.exit_code == 1

    def test_quota_exhausted(self, workdir: Path, sample_project: Path, config_file: Path, tmp_path: Path) -> None:
        from uxaudit.licensing.quota import current_month

        (tmp_path / "usage.json").write_text(
            json.dumps({"current_month": current_month(), "audits_this_month": 5, "total_audits": 5})
        )

        result = runner.invoke(app, audit_args(sample_project, config_file))

        assert result.exit_code == 2
        assert "quota exhausted" in result.stdout

    def test_records_usage(self, workdir: Path, sample_project: Path, config_file: Path, tmp_path: Path) -> None:
        runner.invoke(app, audit_args(sample_project, config_file, "-f", "json"))
        usage = json.loads((tmp_path / "usage.json").read_text())
        assert usage["audits_this_month"] == 1
        assert str(sample_project.resolve()) in usage["tools_audited"]

    def test_pro_tier_validates(self, workdir: Path, sample_project: Path, config_file: Path) -> None:
        result = runner.invoke(app, audit_args(sample_project, config_file, "--tier", "pro", "-f", "json"))

        assert result.exit_code == 0, result.output
        validation = json.loads(result.stdout)["validation"]
        assert [c["cycle"] for c in validation["cycles"]] == ["critic", "meta-critic", "arbiter"]


class TestHistoryCommands:
    """Tests for saving and re-reading sessions."""

    def test_save_history_show(self, workdir: Path, sample_project: Path, config_file: Path) -> None:
        audit = runner.invoke(app, audit_args(sample_project, config_file, "--save", "-f", "json"))
        assert audit.exit_code == 0, audit.output
        session = AuditSession.model_validate_json(audit.stdout)

        history = runner.invoke(app, ["history"])
        assert history.exit_code == 0
        assert session.id in history.stdout

        show = runner.invoke(app, ["show", session.id, "--format", "json"])
        assert show.exit_code == 0
        assert show.stdout == audit.stdout

        summary = runner.invoke(app, ["show", session.id[:4], "--format", "summary"])
        assert json.loads(summary.stdout)["id"] == session.id

    def test_history_empty(self, workdir: Path) -> None:
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No saved audits yet" in result.stdout

    def test_show_unknown(self, workdir: Path) -> None:
        result = runner.invoke(app, ["show", "deadbeef"])
        assert result.exit_code == 1
        assert "Session not found" in result.stdout


class TestMiscCommands:
    """Tests for usage and version."""

    def test_usage(self, workdir: Path, config_file: Path) -> None:
        result = runner.invoke(app, ["usage", "--config", str(config_file), "--tier", "pro"])
        assert result.exit_code == 0
        assert "Audits this month: 0" in result.stdout
        assert "Remaining (pro): 100" in result.stdout

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "audit" in result.output
