"""
Services package for collaborators outside the assessment core.
"""

from .notification_service import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    SessionEvent,
    get_dispatcher,
    notify_session_finished,
    set_dispatcher,
)

__all__ = [
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "SessionEvent",
    "get_dispatcher",
    "notify_session_finished",
    "set_dispatcher",
]
