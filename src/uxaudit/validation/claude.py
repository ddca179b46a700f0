"""Reviewer that delegates a validation cycle to the Claude CLI."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from uxaudit.core.models import RedFlag
from uxaudit.runners.process import run_command
from uxaudit.validation.base import ReviewOutcome, ReviewRequest
from uxaudit.validation.prompts import SYSTEM_PROMPT, build_prompt

logger = logging.getLogger(__name__)

FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n([\s\S]*?)```")
BARE_JSON_RE = re.compile(r"\{[\s\S]*\}")
SCORE_RE = re.compile(r'"?score"?\s*[:=]\s*(\d+(?:\.\d+)?)', re.IGNORECASE)
DEFAULT_SCORE = 5.0


class ReviewerError(RuntimeError):
    """The reviewer backend did not produce a usable answer."""


def parse_response(text: str) -> ReviewOutcome:
    """Parse a reviewer reply: fenced JSON, bare JSON, or a bare score.

    Red flags that fail validation are dropped with a warning.
    """
    data: dict[str, Any] | None = None
    for candidate in (*FENCED_JSON_RE.findall(text), *BARE_JSON_RE.findall(text)):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            data = parsed
            break

    if data is None:
        match = SCORE_RE.search(text)
        score = float(match.group(1)) if match else DEFAULT_SCORE
        return ReviewOutcome(score=max(0.0, min(10.0, score)), feedback=[text.strip()[:500]] if text.strip() else [])

    try:
        score = float(data.get("score", DEFAULT_SCORE))
    except (TypeError, ValueError):
        score = DEFAULT_SCORE

    feedback = data.get("feedback") or []
    if isinstance(feedback, str):
        feedback = [feedback]

    flags: list[RedFlag] = []
    for raw in data.get("redFlags") or data.get("red_flags") or []:
        try:
            flags.append(RedFlag.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Dropping malformed red flag from reviewer: {e.error_count()} errors")

    return ReviewOutcome(score=max(0.0, min(10.0, score)), feedback=[str(f) for f in feedback], red_flags=flags)


class ClaudeReviewer:
    """Runs one cycle through ``claude --print``, passing the prompt on stdin."""

    def __init__(self, name: str, model: str = "sonnet", timeout: float = 120) -> None:
        self.name = name
        self.model = model
        self.timeout = timeout

    async def review(self, request: ReviewRequest) -> ReviewOutcome:
        prompt = build_prompt(request)
        result = await run_command(
            [
                "claude",
                "--print",
                "-p",
                "-",
                "--model",
                self.model,
                "--system-prompt",
                SYSTEM_PROMPT,
                "--no-session-persistence",
            ],
            timeout=self.timeout,
            input_text=prompt,
        )
        if not result.ok:
            raise ReviewerError(result.error or f"claude exited with code {result.exit_code}: {result.stderr[:200]}")
        return parse_response(result.stdout)
