"""Domain events for the Review aggregate.

All events are versioned, immutable facts raised after a review changes.
Events are used for:
- Notification dispatch (created, approved, rejected, flagged, deleted, restored)
- Cross-context consumers via the Protean Engine in production
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from marketplace.domain import marketplace


@marketplace.event(part_of="Review")
class ReviewCreated:
    """A reviewer submitted a new product review."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    overall_rating = Integer(required=True)
    status = String(required=True)
    submitted_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewEdited:
    """Review content or ratings changed."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    changed_fields = Text(required=True)  # JSON array of field names
    edited_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewApproved:
    """Moderation approved the review and it became visible."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    overall_rating = Integer(required=True)
    published_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewRejected:
    """Moderation rejected the review."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    note = Text()
    rejected_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewFlagged:
    """Moderation flagged the review for follow-up."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    note = Text()
    flagged_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewMarkedPending:
    """The review went back to the moderation queue."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    marked_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewDeleted:
    """The review was soft-deleted by its reviewer or a moderator."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    deleted_by = Identifier(required=True)
    deleted_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class ReviewRestored:
    """A soft-deleted review became active again."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    restored_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class HelpfulVoteRecorded:
    """A user marked the review as helpful."""

    __version__ = 1

    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)
    helpful_count = Integer(required=True)
    voted_at = DateTime(required=True)


@marketplace.event(part_of="Review")
class HelpfulVoteWithdrawn:
    """A user took back their helpful vote."""

    __version__ = 1

    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)
    helpful_count = Integer(required=True)
    withdrawn_at = DateTime(required=True)
