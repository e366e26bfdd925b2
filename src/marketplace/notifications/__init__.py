"""Notification adapter registry — where review notifications are sent.

Provides singleton access to the configured adapter. Uses the in-memory
fake by default; deployments install a real adapter with ``set_notifier``.
"""

from marketplace.notifications.port import ReviewNotificationPort

_notifier: ReviewNotificationPort | None = None


def get_notifier() -> ReviewNotificationPort:
    """Return the configured notification adapter (singleton)."""
    global _notifier
    if _notifier is None:
        from marketplace.notifications.fake import FakeNotificationAdapter

        _notifier = FakeNotificationAdapter()
    return _notifier


def set_notifier(notifier: ReviewNotificationPort):
    global _notifier
    _notifier = notifier


def reset_notifier():
    """Drop the singleton (useful for testing)."""
    global _notifier
    _notifier = None
