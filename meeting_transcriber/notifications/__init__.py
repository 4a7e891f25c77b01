"""Progress notification sinks."""

from meeting_transcriber.notifications.sink import (
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
    notify_safely,
)

__all__ = [
    "LoggingNotificationSink",
    "NotificationSink",
    "WebhookNotificationSink",
    "notify_safely",
]
