"""Review notifications — forwards lifecycle events to the notification adapter.

Runs after the unit of work commits, so delivery problems are logged and
never undo a review write.
"""

import structlog
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.notifications import get_notifier
from marketplace.review.events import (
    ReviewApproved,
    ReviewCreated,
    ReviewDeleted,
    ReviewFlagged,
    ReviewRejected,
    ReviewRestored,
)
from marketplace.review.review import Review

logger = structlog.get_logger(__name__)


def _notify(event, kind: str) -> None:
    payload = {
        "review_id": str(event.review_id),
        "product_id": str(event.product_id),
        "event": kind,
    }
    # "event" is the positional message argument of structlog loggers
    context = {"review_id": payload["review_id"], "product_id": payload["product_id"], "notification_event": kind}
    try:
        result = get_notifier().publish(payload)
    except Exception:
        logger.exception("review_notification_failed", **context)
        return

    if result.get("status") != "sent":
        logger.warning("review_notification_not_sent", error=result.get("error"), **context)
    else:
        logger.info("review_notification_sent", notification_id=result.get("notification_id"), **context)


@marketplace.event_handler(part_of=Review)
class ReviewNotificationsHandler:
    """Publishes created/approved/rejected/flagged/deleted/restored notifications."""

    @handle(ReviewCreated)
    def on_review_created(self, event: ReviewCreated) -> None:
        _notify(event, "created")

    @handle(ReviewApproved)
    def on_review_approved(self, event: ReviewApproved) -> None:
        _notify(event, "approved")

    @handle(ReviewRejected)
    def on_review_rejected(self, event: ReviewRejected) -> None:
        _notify(event, "rejected")

    @handle(ReviewFlagged)
    def on_review_flagged(self, event: ReviewFlagged) -> None:
        _notify(event, "flagged")

    @handle(ReviewDeleted)
    def on_review_deleted(self, event: ReviewDeleted) -> None:
        _notify(event, "deleted")

    @handle(ReviewRestored)
    def on_review_restored(self, event: ReviewRestored) -> None:
        _notify(event, "restored")
