"""Base notification interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Literal

from rich.console import Console
from rich.markup import escape

from uxaudit.core.models import Severity

if TYPE_CHECKING:
    from uxaudit.core.models import AuditSession

NotificationLevel = Literal["info", "success", "warning", "error", "alert"]

logger = logging.getLogger(__name__)

STYLES: dict[NotificationLevel, str] = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "alert": "bold red",
}
ICONS: dict[NotificationLevel, str] = {
    "info": "i",
    "success": "+",
    "warning": "!",
    "error": "x",
    "alert": "!!!",
}


def completion_summary(session: AuditSession) -> tuple[str, str, NotificationLevel]:
    """Title, message and level announcing a finished audit.

    Cancelled audits warn, audits with critical red flags alert, everything
    else is a success.
    """
    name = session.target_path.name
    summary = f"Score {session.score}/10 ({session.grade}), {len(session.red_flags)} red flags"
    critical = session.severity_counts[Severity.CRITICAL]
    if session.cancelled:
        return f"Audit cancelled: {name}", summary, "warning"
    if critical:
        return f"Critical issues in {name}", f"{summary}, {critical} critical", "alert"
    return f"Audit complete: {name}", summary, "success"


class Notifier(ABC):
    """Abstract base class for audit progress notifications."""

    @abstractmethod
    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = "info",
    ) -> None:
        """Send a notification.

        Args:
            title: Notification title
            message: Notification body
            level: Severity level
        """

    def info(self, title: str, message: str) -> None:
        self.notify(title, message, "info")

    def success(self, title: str, message: str) -> None:
        self.notify(title, message, "success")

    def warning(self, title: str, message: str) -> None:
        self.notify(title, message, "warning")

    def error(self, title: str, message: str) -> None:
        self.notify(title, message, "error")

    def alert(self, title: str, message: str) -> None:
        """Highest priority, used for critical red flags."""
        self.notify(title, message, "alert")

    def audit_finished(self, session: AuditSession) -> None:
        """Announce a finished audit; providers may attach the score and grade."""
        self.notify(*completion_summary(session))


class ConsoleNotifier(Notifier):
    """Prints notifications with Rich styling."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = "info",
    ) -> None:
        style = STYLES.get(level, "blue")
        icon = ICONS.get(level, "i")
        self.console.print(f"[{style}]\\[{icon}] {escape(title)}[/{style}]")
        if message:
            self.console.print(f"    {message}", markup=False)


class NullNotifier(Notifier):
    """No-op notifier for tests, JSON output, or when notifications are disabled."""

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = "info",
    ) -> None:
        """Do nothing."""


class CompositeNotifier(Notifier):
    """Fans a notification out to several providers.

    A failing provider is logged and does not stop the others.
    """

    def __init__(self, notifiers: list[Notifier]) -> None:
        self.notifiers = notifiers

    def notify(
        self,
        title: str,
        message: str,
        level: NotificationLevel = "info",
    ) -> None:
        for notifier in self.notifiers:
            try:
                notifier.notify(title, message, level)
            except Exception as e:
                logger.warning(f"Notifier {type(notifier).__name__} failed: {e}")

    def audit_finished(self, session: AuditSession) -> None:
        for notifier in self.notifiers:
            try:
                notifier.audit_finished(session)
            except Exception as e:
                logger.warning(f"Notifier {type(notifier).__name__} failed: {e}")
