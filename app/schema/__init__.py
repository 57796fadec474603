"""Schema package exports."""

from .error_logs import ErrorLog
from .notification_logs import NotificationLog
from .push_tokens import PushToken

__all__ = ["ErrorLog", "NotificationLog", "PushToken"]
