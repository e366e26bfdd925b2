"""Review notification port — abstract interface for notification delivery."""

from abc import ABC, abstractmethod


class ReviewNotificationPort(ABC):
    """Abstract interface for review notification adapters."""

    @abstractmethod
    def publish(self, payload: dict) -> dict:
        """Deliver one notification.

        Args:
            payload: ``{"review_id": ..., "product_id": ..., "event": ...}``

        Returns:
            dict with keys: notification_id, status ("sent" or "failed"), error (optional)
        """
        ...
