from . import logs, notifications

__all__ = ["logs", "notifications"]
