"""Shared fixtures for uxaudit tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from types import MappingProxyType

import pytest

from uxaudit.config import Config
from uxaudit.core.models import AuditOptions, PhaseId
from uxaudit.phases.base import PhaseContext

README = """# widget-cli

widget-cli is a command line tool for managing widgets. It helps you keep
widget inventories tidy and supports json output.

## Installation

```bash
pip install widget-cli
```

## Usage

```bash
widget list
widget add --name gear
```

## Features

- List widgets
- Export inventory as json

## Contributing

Pull requests welcome at https://github.com/example/widget-cli

## License

MIT
"""


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Empty directory standing in for an audit target."""
    target = tmp_path / "target"
    target.mkdir()
    return target


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    return tmp_path / "sessions.db"


@pytest.fixture
def sample_project(temp_dir: Path) -> Path:
    """A small, tidy Python CLI project."""
    (temp_dir / "README.md").write_text(README)
    (temp_dir / "LICENSE").write_text("MIT License\n")
    (temp_dir / ".gitignore").write_text("__pycache__/\n")
    (temp_dir / "pyproject.toml").write_text(
        '[project]\nname = "widget-cli"\nversion = "1.0.0"\n\n[project.scripts]\nwidget-xyz-missing = "w:main"\n'
    )
    src = temp_dir / "src"
    src.mkdir()
    (src / "widget.py").write_text("def main():\n    print('widgets')\n")
    tests = temp_dir / "tests"
    tests.mkdir()
    (tests / "test_widget.py").write_text(
        "\n".join(f"def test_case_{i}():\n    assert {i} == {i}" for i in range(6)) + "\n"
    )
    return temp_dir


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config that never touches the network or the user's home directory."""
    return Config.model_validate(
        {
            "phase_timeout": 5,
            "command_timeout": 2,
            "install": {"enabled": False},
            "notifications": {"enabled": False},
            "usage_file": str(tmp_path / "usage.json"),
        }
    )


@pytest.fixture
def make_context(config: Config) -> Callable[..., PhaseContext]:
    """Factory for PhaseContext objects."""

    def _make(
        target: Path,
        prior: dict[PhaseId, object] | None = None,
        context: str | None = None,
        verbose: bool = False,
    ) -> PhaseContext:
        return PhaseContext(
            target_path=target,
            options=AuditOptions(context=context, verbose=verbose),
            timeout=config.phase_timeout,
            prior_findings=MappingProxyType(dict(prior or {})),
            config=config,
        )

    return _make
