"""Notification providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uxaudit.notifications.base import CompositeNotifier, ConsoleNotifier, Notifier, NullNotifier
from uxaudit.notifications.ntfy import NtfyNotifier

if TYPE_CHECKING:
    from uxaudit.config import NotificationConfig

__all__ = [
    "CompositeNotifier",
    "ConsoleNotifier",
    "Notifier",
    "NtfyNotifier",
    "NullNotifier",
    "create_notifier",
]


def create_notifier(settings: NotificationConfig) -> Notifier:
    """Create notifier based on configuration."""
    if not settings.enabled:
        return NullNotifier()

    match settings.provider:
        case "none":
            return NullNotifier()
        case "ntfy":
            return CompositeNotifier(
                [
                    NtfyNotifier(server=settings.ntfy_server, topic=settings.ntfy_topic),
                    ConsoleNotifier(),
                ]
            )
        case _:
            return ConsoleNotifier()
