"""Post-commit user notifications."""

from settlement.notifications.emitter import (
    NotificationSink,
    StoreNotificationSink,
    emit_notification,
)

__all__ = ["NotificationSink", "StoreNotificationSink", "emit_notification"]
