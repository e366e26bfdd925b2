"""Fake notification adapter — records published notifications for testing."""

from uuid import uuid4

from marketplace.notifications.port import ReviewNotificationPort


class NotificationDeliveryError(Exception):
    """Raised by the fake adapter when configured to blow up."""


class FakeNotificationAdapter(ReviewNotificationPort):
    """Adapter that keeps notifications in memory for test assertions."""

    def __init__(self):
        self.published: list[dict] = []
        self.should_succeed = True
        self.raise_on_publish = False
        self.failure_reason = "Notification delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        raise_on_publish: bool = False,
        failure_reason: str = "Notification delivery failed",
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.raise_on_publish = raise_on_publish
        self.failure_reason = failure_reason

    def publish(self, payload: dict) -> dict:
        if self.raise_on_publish:
            raise NotificationDeliveryError(self.failure_reason)
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"notification-{uuid4().hex[:12]}"
        self.published.append({"notification_id": notification_id, **payload})
        return {"notification_id": notification_id, "status": "sent"}

    def events_for(self, review_id) -> list[str]:
        return [record["event"] for record in self.published if record["review_id"] == str(review_id)]

    def reset(self):
        """Clear published notifications (useful between tests)."""
        self.published.clear()
        self.should_succeed = True
        self.raise_on_publish = False
        self.failure_reason = "Notification delivery failed"
