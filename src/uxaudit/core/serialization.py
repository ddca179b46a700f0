"""Persisted session format.

Sessions are written as JSON with fields in model declaration order and a
two-space indent. Parsing the output and serializing again yields identical
bytes, which lets stored sessions be diffed and re-rendered later.
"""

from __future__ import annotations

import json

from uxaudit.core.models import AuditSession


def serialize_session(session: AuditSession) -> str:
    """Render a session as canonical JSON."""
    return json.dumps(session.model_dump(mode="json"), indent=2, ensure_ascii=False)


def deserialize_session(text: str) -> AuditSession:
    """Parse a session previously produced by serialize_session."""
    return AuditSession.model_validate_json(text)
