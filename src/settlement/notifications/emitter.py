"""Notification emitter.

Notifications are observational: they are emitted only after the owning
transaction has committed, and a failure to record one is logged and never
propagated to the caller.
"""

from __future__ import annotations

from typing import Protocol

import structlog

from settlement.store.store import SettlementStore

logger = structlog.get_logger()


class NotificationSink(Protocol):
    """Destination for user-facing notifications."""

    def notify(self, user_id: str, title: str, message: str, link: str | None = None) -> None: ...


class StoreNotificationSink:
    """Write notifications to the ``notifications`` table.

    Args:
        store: The settlement store sharing the engine's database.
    """

    def __init__(self, store: SettlementStore) -> None:
        self._store = store

    def notify(self, user_id: str, title: str, message: str, link: str | None = None) -> None:
        self._store.add_notification(user_id, title, message, link)


def emit_notification(
    sink: NotificationSink | None,
    user_id: str,
    title: str,
    message: str,
    link: str | None = None,
) -> bool:
    """Deliver one notification, logging instead of raising on failure.

    Returns:
        True if the sink accepted the notification.
    """
    if sink is None:
        return False
    try:
        sink.notify(user_id, title, message, link)
    except Exception:
        logger.exception("notification_failed", user_id=user_id, title=title)
        return False
    return True
