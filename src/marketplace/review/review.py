"""Review aggregate (CQRS) — the core of the Marketplace reviews context.

The Review aggregate holds a reviewer's rating and text for one product,
together with moderation status, soft-delete flags, derived keywords and
mentions, helpful votes, reply count and opaque attachments.

CQRS (not event sourced): reviews are write-mostly with simple state
changes and no temporal query needs.

Status is one of pending / approved / rejected / flagged and moderation may
move between any two of them. Soft-delete is orthogonal to status. A review
is *counted* towards its product's rating snapshot only while it is
approved, published and not deleted.
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from marketplace.domain import marketplace
from marketplace.review.errors import VoteError
from marketplace.review.events import (
    HelpfulVoteRecorded,
    HelpfulVoteWithdrawn,
    ReviewApproved,
    ReviewCreated,
    ReviewDeleted,
    ReviewEdited,
    ReviewFlagged,
    ReviewMarkedPending,
    ReviewRejected,
    ReviewRestored,
)

# Sentinel for distinguishing "not provided" from None in partial updates
_UNSET = object()

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 5000
MIN_OVERALL_RATING = 1
MAX_OVERALL_RATING = 5
MIN_SUB_RATING = 0  # 0 means "not applicable"
MAX_SUB_RATING = 7

# Categories always reported in a product's sub-rating averages
SUB_RATING_CATEGORIES = (
    "ease_of_use",
    "customer_support",
    "features",
    "pricing",
    "technical_support",
)

_CATEGORY_NAME_RE = re.compile(r"^[a-z][a-z0-9_]{0,49}$")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReviewStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class VerificationMethod(Enum):
    NONE = "none"
    COMPANY_EMAIL = "company_email"
    LINKEDIN = "linkedin"
    VENDOR_INVITE = "vendor_invite"
    SCREENSHOT = "screenshot"


# Payload fields each verification method requires / allows
_VERIFICATION_REQUIRED = {
    VerificationMethod.NONE: (),
    VerificationMethod.COMPANY_EMAIL: ("email",),
    VerificationMethod.LINKEDIN: ("profile_url",),
    VerificationMethod.VENDOR_INVITE: ("invite_code",),
    VerificationMethod.SCREENSHOT: ("screenshot_url",),
}
_VERIFICATION_OPTIONAL = {
    VerificationMethod.VENDOR_INVITE: ("vendor_id",),
}
_VERIFICATION_PAYLOAD_FIELDS = ("email", "profile_url", "invite_code", "vendor_id", "screenshot_url")


# ---------------------------------------------------------------------------
# Rating validation
# ---------------------------------------------------------------------------
def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def rating_errors(overall_rating=_UNSET, sub_ratings=_UNSET) -> dict:
    """Collect rating bound violations as a Protean messages dict."""
    errors = {}
    if overall_rating is not _UNSET:
        if not _is_int(overall_rating) or not MIN_OVERALL_RATING <= overall_rating <= MAX_OVERALL_RATING:
            errors["overall_rating"] = [
                f"Overall rating must be an integer between {MIN_OVERALL_RATING} and {MAX_OVERALL_RATING}"
            ]
    if sub_ratings is not _UNSET and sub_ratings is not None:
        if not isinstance(sub_ratings, dict):
            errors["sub_ratings"] = ["Sub-ratings must map category names to scores"]
            return errors
        problems = []
        for category, score in sub_ratings.items():
            if not isinstance(category, str) or not _CATEGORY_NAME_RE.match(category):
                problems.append(f"Invalid sub-rating category {category!r}")
            elif not _is_int(score) or not MIN_SUB_RATING <= score <= MAX_SUB_RATING:
                problems.append(
                    f"Sub-rating {category!r} must be an integer between {MIN_SUB_RATING} and {MAX_SUB_RATING}"
                )
        if problems:
            errors["sub_ratings"] = problems
    return errors


def validate_ratings(overall_rating=_UNSET, sub_ratings=_UNSET) -> None:
    errors = rating_errors(overall_rating, sub_ratings)
    if errors:
        raise ValidationError(errors)


def parse_status(status) -> ReviewStatus:
    try:
        return ReviewStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in ReviewStatus)
        raise ValidationError({"status": [f"Unknown review status {status!r}; expected one of {allowed}"]})


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@marketplace.value_object(part_of="Review")
class Verification:
    """How the reviewer proved they use the product.

    Tagged by ``method``; only the payload fields belonging to that method
    may be set.
    """

    method = String(choices=VerificationMethod, default=VerificationMethod.NONE.value)
    email = String(max_length=255)
    profile_url = String(max_length=500)
    invite_code = String(max_length=100)
    vendor_id = Identifier()
    screenshot_url = String(max_length=500)
    verified_at = DateTime()

    @invariant.post
    def payload_must_match_method(self):
        try:
            method = VerificationMethod(self.method or VerificationMethod.NONE.value)
        except ValueError:
            return  # reported by the field itself
        required = _VERIFICATION_REQUIRED[method]
        allowed = required + _VERIFICATION_OPTIONAL.get(method, ())

        errors = [f"{name} is required for {method.value} verification" for name in required if not getattr(self, name)]
        errors += [
            f"{name} does not belong to {method.value} verification"
            for name in _VERIFICATION_PAYLOAD_FIELDS
            if name not in allowed and getattr(self, name)
        ]
        if method == VerificationMethod.NONE and self.verified_at is not None:
            errors.append("verified_at requires a verification method")
        if errors:
            raise ValidationError({"verification": errors})

    @property
    def is_verified(self) -> bool:
        return self.method != VerificationMethod.NONE.value and self.verified_at is not None

    @classmethod
    def from_dict(cls, data: dict | None) -> "Verification":
        if not data:
            return cls(method=VerificationMethod.NONE.value)
        kwargs = dict(data)
        verified_at = kwargs.get("verified_at")
        if isinstance(verified_at, str):
            kwargs["verified_at"] = datetime.fromisoformat(verified_at)
        unknown = set(kwargs) - {"method", "verified_at", *_VERIFICATION_PAYLOAD_FIELDS}
        if unknown:
            raise ValidationError({"verification": [f"Unknown verification fields: {', '.join(sorted(unknown))}"]})
        return cls(**kwargs)

    def to_dict(self) -> dict:
        data = {"method": self.method}
        for name in _VERIFICATION_PAYLOAD_FIELDS:
            value = getattr(self, name)
            if value:
                data[name] = str(value)
        data["verified_at"] = self.verified_at.isoformat() if self.verified_at else None
        return data


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@marketplace.entity(part_of="Review")
class HelpfulVote:
    """A user's "this review was helpful" vote."""

    voter_id = Identifier(required=True)
    voted_at = DateTime(required=True)


@marketplace.entity(part_of="Review")
class ReviewAttachment:
    """A pre-uploaded file attached to a review. Opaque to this context."""

    file_name = String(required=True, max_length=255)
    file_url = String(required=True, max_length=500)
    file_type = String(max_length=50)
    file_size = Integer(default=0)
    uploaded_at = DateTime()

    @invariant.post
    def file_size_cannot_be_negative(self):
        if self.file_size is not None and self.file_size < 0:
            raise ValidationError({"file_size": ["File size cannot be negative"]})


def _build_attachment(data: dict, now: datetime) -> ReviewAttachment:
    return ReviewAttachment(
        file_name=data["file_name"],
        file_url=data["file_url"],
        file_type=data.get("file_type"),
        file_size=data.get("file_size", 0),
        uploaded_at=now,
    )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Review:
    """A reviewer's review of a product.

    The Review aggregate manages submission, editing, moderation status,
    soft-delete/restore, helpful votes and reply counting.
    """

    # Core identifiers
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)

    # Content
    title = String(required=True, max_length=MAX_TITLE_LENGTH)
    content = Text(required=True)
    overall_rating = Integer(required=True)
    sub_ratings = Text()  # JSON: {"ease_of_use": 5, "pricing": 0, ...}

    # Verification
    verification = ValueObject(Verification)

    # Moderation
    status = String(choices=ReviewStatus, default=ReviewStatus.PENDING.value)
    moderation_note = Text()

    # Soft delete
    is_deleted = Boolean(default=False)
    deleted_at = DateTime()
    deleted_by = Identifier()

    # Derived search metadata
    keywords = Text()  # JSON array, extraction order
    mentions = Text()  # JSON array, extraction order

    # Engagement
    helpful_votes = HasMany(HelpfulVote)
    helpful_count = Integer(default=0)
    total_replies = Integer(default=0)

    # Metadata
    attachments = HasMany(ReviewAttachment)
    review_source = String(max_length=100)
    review_version = String(max_length=20, default="1.0")

    # Timestamps
    submitted_at = DateTime()
    published_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def ratings_must_be_in_range(self):
        errors = rating_errors(self.overall_rating, self.sub_rating_map)
        if errors:
            raise ValidationError(errors)

    @invariant.post
    def title_must_not_be_empty(self):
        if self.title is not None and len(self.title.strip()) == 0:
            raise ValidationError({"title": ["Review title cannot be empty"]})

    @invariant.post
    def content_length_must_be_valid(self):
        if self.content is None:
            return
        if len(self.content.strip()) == 0:
            raise ValidationError({"content": ["Review content cannot be empty"]})
        if len(self.content) > MAX_CONTENT_LENGTH:
            raise ValidationError({"content": [f"Review content cannot exceed {MAX_CONTENT_LENGTH} characters"]})

    @invariant.post
    def deletion_fields_must_be_consistent(self):
        if self.is_deleted and self.deleted_at is None:
            raise ValidationError({"deleted_at": ["Deleted reviews must record when they were deleted"]})
        if not self.is_deleted and (self.deleted_at is not None or self.deleted_by is not None):
            raise ValidationError({"is_deleted": ["Active reviews cannot carry deletion details"]})

    @invariant.post
    def only_approved_reviews_are_published(self):
        if self.published_at is not None and self.status != ReviewStatus.APPROVED.value:
            raise ValidationError({"published_at": ["Only approved reviews can be published"]})

    @invariant.post
    def helpful_count_matches_votes(self):
        if self.helpful_count is not None and self.helpful_count != len(self.helpful_votes):
            raise ValidationError({"helpful_count": ["Helpful count must equal the number of votes"]})

    @invariant.post
    def reply_count_cannot_be_negative(self):
        if self.total_replies is not None and self.total_replies < 0:
            raise ValidationError({"total_replies": ["Reply count cannot be negative"]})

    # -------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------
    @property
    def sub_rating_map(self) -> dict[str, int]:
        return json.loads(self.sub_ratings) if self.sub_ratings else {}

    @property
    def keyword_list(self) -> list[str]:
        return json.loads(self.keywords) if self.keywords else []

    @property
    def mention_list(self) -> list[str]:
        return json.loads(self.mentions) if self.mentions else []

    @property
    def is_counted(self) -> bool:
        """True while the review contributes to its product's rating snapshot."""
        return self.status == ReviewStatus.APPROVED.value and self.published_at is not None and not self.is_deleted

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def submit(
        cls,
        product_id,
        reviewer_id,
        overall_rating,
        title,
        content,
        sub_ratings=None,
        keywords=None,
        mentions=None,
        verification=None,
        attachments=None,
        review_source=None,
        status=ReviewStatus.PENDING.value,
    ):
        """Submit a new review with the status chosen by moderation policy."""
        initial_status = parse_status(status)
        now = datetime.now(UTC)

        review = cls(
            product_id=product_id,
            reviewer_id=reviewer_id,
            overall_rating=overall_rating,
            title=title,
            content=content,
            sub_ratings=json.dumps(sub_ratings or {}, sort_keys=True),
            keywords=json.dumps(keywords or []),
            mentions=json.dumps(mentions or []),
            verification=verification or Verification(method=VerificationMethod.NONE.value),
            status=initial_status.value,
            is_deleted=False,
            helpful_count=0,
            total_replies=0,
            review_source=review_source,
            submitted_at=now,
            published_at=now if initial_status == ReviewStatus.APPROVED else None,
            updated_at=now,
        )

        for data in attachments or []:
            review.add_attachments(_build_attachment(data, now))

        review.raise_(
            ReviewCreated(
                review_id=str(review.id),
                product_id=str(product_id),
                reviewer_id=str(reviewer_id),
                overall_rating=overall_rating,
                status=initial_status.value,
                submitted_at=now,
            )
        )

        return review

    def _assert_active(self):
        if self.is_deleted:
            raise ValidationError({"review": ["Deleted reviews cannot be changed"]})

    # -------------------------------------------------------------------
    # Edit
    # -------------------------------------------------------------------
    def revise(
        self,
        title=_UNSET,
        content=_UNSET,
        overall_rating=_UNSET,
        sub_ratings=_UNSET,
        keywords=_UNSET,
        mentions=_UNSET,
        verification=_UNSET,
        attachments=_UNSET,
    ) -> list[str]:
        """Apply content changes and return the names of fields that changed."""
        self._assert_active()
        now = datetime.now(UTC)

        candidates = {
            "title": title,
            "content": content,
            "overall_rating": overall_rating,
            "sub_ratings": sub_ratings if sub_ratings is _UNSET else json.dumps(sub_ratings or {}, sort_keys=True),
            "keywords": keywords if keywords is _UNSET else json.dumps(keywords),
            "mentions": mentions if mentions is _UNSET else json.dumps(mentions),
        }
        changed = [name for name, value in candidates.items() if value is not _UNSET and value != getattr(self, name)]
        if verification is not _UNSET and verification != self.verification:
            changed.append("verification")
        if attachments is not _UNSET:
            changed.append("attachments")

        if not changed:
            return []

        with atomic_change(self):
            for name in changed:
                if name in candidates:
                    setattr(self, name, candidates[name])
            if "verification" in changed:
                self.verification = verification
            self.updated_at = now

        if attachments is not _UNSET:
            for existing in list(self.attachments):
                self.remove_attachments(existing)
            for data in attachments or []:
                self.add_attachments(_build_attachment(data, now))

        self.raise_(
            ReviewEdited(
                review_id=str(self.id),
                product_id=str(self.product_id),
                changed_fields=json.dumps(changed),
                edited_at=now,
            )
        )
        return changed

    # -------------------------------------------------------------------
    # Moderation
    # -------------------------------------------------------------------
    def set_status(self, status, note=None) -> bool:
        """Apply a moderation decision. Returns False when the status is unchanged."""
        self._assert_active()
        target = parse_status(status)
        current = ReviewStatus(self.status)

        if target == current:
            if note is not None:
                self.moderation_note = note
            return False

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = target.value
            if note is not None:
                self.moderation_note = note
            if target == ReviewStatus.APPROVED:
                self.published_at = self.published_at or now
            else:
                self.published_at = None
            self.updated_at = now

        common = {
            "review_id": str(self.id),
            "product_id": str(self.product_id),
            "reviewer_id": str(self.reviewer_id),
        }
        if target == ReviewStatus.APPROVED:
            self.raise_(ReviewApproved(**common, overall_rating=self.overall_rating, published_at=self.published_at))
        elif target == ReviewStatus.REJECTED:
            self.raise_(ReviewRejected(**common, note=self.moderation_note, rejected_at=now))
        elif target == ReviewStatus.FLAGGED:
            self.raise_(ReviewFlagged(**common, note=self.moderation_note, flagged_at=now))
        else:
            self.raise_(ReviewMarkedPending(**common, marked_at=now))
        return True

    # -------------------------------------------------------------------
    # Soft delete
    # -------------------------------------------------------------------
    def soft_delete(self, deleted_by):
        """Hide the review and free the reviewer's slot. Status is untouched."""
        self._assert_active()
        now = datetime.now(UTC)

        with atomic_change(self):
            self.is_deleted = True
            self.deleted_at = now
            self.deleted_by = deleted_by
            self.updated_at = now

        self.raise_(
            ReviewDeleted(
                review_id=str(self.id),
                product_id=str(self.product_id),
                reviewer_id=str(self.reviewer_id),
                deleted_by=str(deleted_by),
                deleted_at=now,
            )
        )

    def restore(self):
        if not self.is_deleted:
            raise ValidationError({"review": ["Only deleted reviews can be restored"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_deleted = False
            self.deleted_at = None
            self.deleted_by = None
            self.updated_at = now

        self.raise_(
            ReviewRestored(
                review_id=str(self.id),
                product_id=str(self.product_id),
                reviewer_id=str(self.reviewer_id),
                restored_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Helpful votes
    # -------------------------------------------------------------------
    def vote_helpful(self, voter_id):
        """Record a helpful vote. Cannot vote on own review. Cannot vote twice."""
        self._assert_active()
        if str(voter_id) == str(self.reviewer_id):
            raise VoteError({"vote": ["Cannot vote on your own review"]})

        if any(str(v.voter_id) == str(voter_id) for v in self.helpful_votes):
            raise VoteError({"vote": ["You have already voted this review as helpful"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.add_helpful_votes(HelpfulVote(voter_id=voter_id, voted_at=now))
            self.helpful_count = len(self.helpful_votes)
            self.updated_at = now

        self.raise_(
            HelpfulVoteRecorded(
                review_id=str(self.id),
                voter_id=str(voter_id),
                helpful_count=self.helpful_count,
                voted_at=now,
            )
        )

    def withdraw_helpful_vote(self, voter_id):
        self._assert_active()
        vote = next((v for v in self.helpful_votes if str(v.voter_id) == str(voter_id)), None)
        if vote is None:
            raise VoteError({"vote": ["You have not voted this review as helpful"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.remove_helpful_votes(vote)
            self.helpful_count = len(self.helpful_votes)
            self.updated_at = now

        self.raise_(
            HelpfulVoteWithdrawn(
                review_id=str(self.id),
                voter_id=str(voter_id),
                helpful_count=self.helpful_count,
                withdrawn_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Replies
    # -------------------------------------------------------------------
    def record_reply(self):
        self.total_replies = self.total_replies + 1
        self.updated_at = datetime.now(UTC)

    def remove_reply(self):
        if self.total_replies == 0:
            raise ValidationError({"total_replies": ["Review has no replies to remove"]})
        self.total_replies = self.total_replies - 1
        self.updated_at = datetime.now(UTC)
