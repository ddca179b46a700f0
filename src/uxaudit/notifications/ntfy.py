"""ntfy.sh notification provider."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from uxaudit.core.models import Severity
from uxaudit.notifications.base import NotificationLevel, Notifier, completion_summary

if TYPE_CHECKING:
    from uxaudit.core.models import AuditSession

logger = logging.getLogger(__name__)

# ntfy priority levels (1=min, 5=max)
PRIORITY_MAP: dict[NotificationLevel, int] = {
    "info": 2,
    "success": 3,
    "warning": 4,
    "error": 5,
    "alert": 5,
}

TAGS_MAP: dict[NotificationLevel, list[str]] = {
    "info": ["mag"],
    "success": ["white_check_mark"],
    "warning": ["warning"],
    "error": ["x"],
    "alert": ["triangular_flag_on_post"],
}

# Completed audits scoring below this are pushed at warning priority
LOW_SCORE = 6.0


class NtfyNotifier(Notifier):
    """Publish audit notifications to an ntfy topic.

    Useful for long audits (installation phases can take minutes): the result
    lands on a phone or desktop subscribed to the topic.
    """

    def __init__(
        self,
        server: str = "https://ntfy.sh",
        topic: str = "uxaudit",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize ntfy notifier.

        Args:
            server: ntfy server URL
            topic: Topic to publish to
            timeout: HTTP request timeout in seconds
            client: Pre-built HTTP client (tests inject a mock transport here)
        """
        self.server = server.rstrip("/")
        self.topic = topic
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = "info",
    ) -> None:
        self._publish(title, message, PRIORITY_MAP.get(level, 3), TAGS_MAP.get(level, []))

    def audit_finished(self, session: AuditSession) -> None:
        """Publish the result with grade, score and critical count as ntfy tags.

        Subscribers can filter on tags such as ``grade-F`` without parsing
        the message body.
        """
        title, message, level = completion_summary(session)
        tags = [*TAGS_MAP[level], f"grade-{session.grade}", f"score-{session.score}"]
        critical = session.severity_counts[Severity.CRITICAL]
        if critical:
            tags.append(f"critical-{critical}")

        priority = PRIORITY_MAP[level]
        if level == "success" and (session.score or 0.0) < LOW_SCORE:
            priority = PRIORITY_MAP["warning"]
        self._publish(title, message, priority, tags)

    def _publish(self, title: str, message: str, priority: int, tags: list[str]) -> None:
        url = f"{self.server}/{self.topic}"
        headers = {
            "Title": title,
            "Priority": str(priority),
            "Tags": ",".join(tags),
        }

        try:
            response = self.client.post(url, content=message.encode("utf-8"), headers=headers)
            response.raise_for_status()
            logger.debug(f"ntfy notification sent: {title}")
        except httpx.HTTPStatusError as e:
            logger.warning(f"ntfy notification failed (HTTP {e.response.status_code}): {e}")
        except httpx.RequestError as e:
            logger.warning(f"ntfy notification failed (network error): {e}")

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None
