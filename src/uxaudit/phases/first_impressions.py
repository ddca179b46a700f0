"""Phase 1: first impressions - README, install docs, examples, description."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from uxaudit.core.models import FirstImpressionsFindings, PhaseId
from uxaudit.core.scoring import round_score
from uxaudit.phases.base import PhaseContext

logger = logging.getLogger(__name__)

README_NAMES = ("README.md", "README.markdown", "README.rst", "README.txt", "readme.md", "Readme.md")
README_SECTIONS = ("installation", "usage", "features", "contributing", "license")
INSTALL_KEYWORDS = (
    "install",
    "npm install",
    "cargo install",
    "go install",
    "pip install",
    "brew install",
    "setup",
    "getting started",
)
INSTALL_DOCS = (
    "INSTALL.md",
    "INSTALLATION.md",
    "INSTALL.txt",
    "install.md",
    "docs/install.md",
    "docs/installation.md",
)
MANIFESTS = {
    "package.json": "npm install",
    "Cargo.toml": "cargo install",
    "go.mod": "go install",
    "pyproject.toml": "pip install",
    "setup.py": "pip install",
}
EXAMPLE_DIRS = ("examples", "example", "samples", "demo")
EXAMPLE_SUFFIXES = {".js", ".ts", ".py", ".rs", ".go", ".sh", ".bash", ".zsh"}
USAGE_DOCS = ("USAGE.md", "usage.md", "docs/usage.md", "examples.md")

DESCRIPTION_PHRASES = ("is a", "allows you to", "helps you", "enables", "provides", "tool for", "cli tool", "command line")
BENEFIT_PHRASES = ("why", "benefit", "advantage", "use case", "when to use", "features")
QUICK_START_PHRASES = ("quick start", "quickstart", "getting started", "in 5 minutes", "try it now")

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
HEADING_RE = re.compile(r"^#+\s", re.MULTILINE)

# Score weights
README_EXISTS = 1.5
README_QUALITY = 0.35
INSTALL_INSTRUCTIONS = 2.0
EXAMPLES = 2.0
DESCRIPTION_CLARITY = 0.35


@dataclass
class _Readme:
    path: Path | None = None
    content: str = ""
    observations: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.path is not None


class FirstImpressionsAnalyzer:
    """Judges the project the way a first-time visitor would."""

    phase_id = PhaseId.FIRST_IMPRESSIONS

    def analyze(self, context: PhaseContext) -> FirstImpressionsFindings:
        root = context.target_path
        notes: list[str] = []

        readme = self._find_readme(root)
        readme_score = 0.0
        clarity = 0.0
        if readme.found:
            readme_score = self.readme_quality(readme.content)
            notes.extend(readme.observations)
            if readme_score < 5:
                notes.append("README quality is below average - needs improvement")
            clarity = self.description_clarity(readme.content)
            if clarity < 5:
                notes.append("Project description is unclear or incomplete")
        else:
            notes.append("CRITICAL: No README file found - users have no starting point")

        has_install, install_notes = self._check_install_instructions(root, readme.content)
        notes.extend(install_notes)

        example_count, example_notes = self._check_examples(root, readme.content)
        notes.extend(example_notes)

        score = self.score(
            has_readme=readme.found,
            readme_score=readme_score,
            has_install_instructions=has_install,
            has_examples=example_count > 0,
            description_clarity=clarity,
        )
        logger.debug(f"First impressions for {root}: {score}")

        return FirstImpressionsFindings(
            has_readme=readme.found,
            readme_score=readme_score,
            has_install_instructions=has_install,
            has_examples=example_count > 0,
            description_clarity=clarity,
            score=score,
            notes=notes,
        )

    def _find_readme(self, root: Path) -> _Readme:
        for name in README_NAMES:
            path = root / name
            if not path.is_file():
                continue
            content = path.read_text(encoding="utf-8", errors="replace")
            readme = _Readme(path=path, content=content)

            lines = content.count("\n") + 1
            if lines < 20:
                readme.observations.append(f"README is too short ({lines} lines) - lacks detail")
            if "[" in content and "img.shields.io" in content:
                readme.observations.append("README has project badges")
            if not content.lstrip().startswith("#"):
                readme.observations.append("README lacks a clear title/heading")
            if "http" not in content and "github" not in content:
                readme.observations.append("README lacks links to repository/issues")
            return readme

        return _Readme(observations=["No README file found in any common format"])

    @staticmethod
    def readme_quality(content: str) -> float:
        """0-10 rubric: length, sections, code, links, structure."""
        score = 0.0
        lower = content.lower()

        lines = content.count("\n") + 1
        if lines >= 50:
            score += 2
        elif lines >= 30:
            score += 1
        elif lines >= 20:
            score += 0.5

        found = sum(1 for section in README_SECTIONS if section in lower)
        score += found / len(README_SECTIONS) * 3

        if "```" in content:
            score += 2
        if "http" in content or "github" in content:
            score += 1
        if "![" in content or "<img" in content:
            score += 0.5
        if len(HEADING_RE.findall(content)) >= 5:
            score += 1.5

        return min(round_score(score), 10.0)

    @staticmethod
    def description_clarity(content: str) -> float:
        """0-10 rubric for how clearly the README says what the tool is."""
        score = 0.0
        lower = content.lower()

        if content.lstrip().startswith("#"):
            score += 1
        if any(p in lower for p in DESCRIPTION_PHRASES):
            score += 3
        if any(p in lower for p in BENEFIT_PHRASES):
            score += 2
        if any(p in lower for p in QUICK_START_PHRASES):
            score += 2
        if "[" in content and "img.shields.io" in content:
            score += 1
        if "beta" in lower or "stable" in lower or "version" in lower:
            score += 1

        return min(round_score(score), 10.0)

    def _check_install_instructions(self, root: Path, readme: str) -> tuple[bool, list[str]]:
        notes: list[str] = []
        found = False

        lower = readme.lower()
        if lower and any(kw in lower for kw in INSTALL_KEYWORDS):
            found = True
            notes.append("Installation instructions found in README")

        for doc in INSTALL_DOCS:
            if (root / doc).is_file():
                found = True
                notes.append(f"Found separate installation document: {doc}")
                break

        for manifest, command in MANIFESTS.items():
            if (root / manifest).is_file():
                found = True
                notes.append(f"{manifest} found - standard {command} available")

        if not found:
            notes.append("CRITICAL: No installation instructions found")
        return found, notes

    def _check_examples(self, root: Path, readme: str) -> tuple[int, list[str]]:
        notes: list[str] = []
        count = 0

        blocks = CODE_BLOCK_RE.findall(readme)
        if blocks:
            count += len(blocks)
            notes.append(f"Found {len(blocks)} code blocks in README")

        for name in EXAMPLE_DIRS:
            directory = root / name
            if not directory.is_dir():
                continue
            files = [p for p in directory.iterdir() if p.suffix in EXAMPLE_SUFFIXES]
            if files:
                count += len(files)
                notes.append(f"Found {len(files)} example files in {name}/")

        for doc in USAGE_DOCS:
            if (root / doc).is_file():
                count += 1
                notes.append(f"Found usage documentation: {doc}")

        if count == 0:
            return 0, ["No code examples found - hard for users to get started"]
        return count, notes

    @staticmethod
    def score(
        *,
        has_readme: bool,
        readme_score: float,
        has_install_instructions: bool,
        has_examples: bool,
        description_clarity: float,
    ) -> float:
        total = 0.0
        if has_readme:
            total += README_EXISTS + readme_score * README_QUALITY
        if has_install_instructions:
            total += INSTALL_INSTRUCTIONS
        if has_examples:
            total += EXAMPLES
        total += description_clarity * DESCRIPTION_CLARITY
        return min(round_score(total), 10.0)
