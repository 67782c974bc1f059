"""
User-visible notifications emitted by the state managers.

A notifier is any callable taking (level, message). The views pass a
NotificationCollector so the notifications end up in the JSON response.
"""
import logging

logger = logging.getLogger(__name__)

SUCCESS = 'success'
ERROR = 'error'
INFO = 'info'

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    ERROR: logging.WARNING,
}


def log_notification(level, message):
    """Default notifier: write the notification to the log"""
    logger.log(_LOG_LEVELS.get(level, logging.INFO), f"[{level}] {message}")


class NotificationCollector:
    """Collects notifications in order, and logs them as they arrive"""

    def __init__(self):
        self.items = []

    def __call__(self, level, message):
        log_notification(level, message)
        self.items.append({'level': level, 'message': message})

    def errors(self):
        return [item for item in self.items if item['level'] == ERROR]

    def as_list(self):
        return list(self.items)
