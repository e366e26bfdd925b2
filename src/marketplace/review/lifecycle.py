"""ReviewLifecycleManager — orchestrates review writes and rating recomputes.

Each operation processes one command synchronously. When the command's unit
of work has committed, the manager inspects the returned ``ReviewTransition``
and recomputes the product's rating snapshot if the review crossed the
counted boundary, or changed ratings while staying counted.

A failed recompute never fails the operation: the review write is already
durable, so the failure is logged and the product is flagged stale for the
reconciliation job.
"""

import json
from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from sqlalchemy.exc import IntegrityError

from marketplace.ratings.recompute import AggregateRecomputer, flag_stale
from marketplace.review.editing import UpdateReview
from marketplace.review.errors import DuplicateReviewError, RecomputeError, RestoreConflictError
from marketplace.review.keywords import KeywordExtractor
from marketplace.review.removal import DeleteReview, PurgeReview, RestoreReview
from marketplace.review.replies import RecordReply, RemoveReply
from marketplace.review.review import Review, ReviewStatus, Verification, parse_status, validate_ratings
from marketplace.review.store import ReviewTransition, slot_locks
from marketplace.review.submission import SubmitReview
from marketplace.review.voting import VoteHelpful, WithdrawHelpfulVote

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "content",
        "overall_rating",
        "sub_ratings",
        "status",
        "moderation_note",
        "verification",
        "attachments",
    }
)
# Fields that may be cleared by passing None
_CLEARABLE_FIELDS = frozenset({"sub_ratings", "moderation_note", "verification", "attachments"})


@dataclass(frozen=True)
class ReviewPage:
    items: list[Review]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


def _verification_json(verification) -> str | None:
    if verification is None:
        return None
    if isinstance(verification, Verification):
        return json.dumps(verification.to_dict())
    data = dict(verification)
    if isinstance(data.get("verified_at"), datetime):
        data["verified_at"] = data["verified_at"].isoformat()
    return json.dumps(data)


def _paginate(items: list, page: int, limit: int) -> ReviewPage:
    if page < 1 or limit < 1:
        raise ValidationError({"page": ["Page and limit must be positive"]})
    start = (page - 1) * limit
    return ReviewPage(items=items[start : start + limit], total=len(items), page=page, limit=limit)


class ReviewLifecycleManager:
    """Entry point for every review state change."""

    def __init__(
        self,
        recomputer: AggregateRecomputer | None = None,
        extractor: KeywordExtractor | None = None,
        initial_status: str | None = None,
    ):
        self.recomputer = recomputer or AggregateRecomputer()
        self.extractor = extractor or KeywordExtractor()
        self._initial_status = parse_status(initial_status).value if initial_status else None

    @property
    def initial_status(self) -> str:
        if self._initial_status:
            return self._initial_status
        custom = current_domain.config.get("custom", {}) or {}
        return parse_status(custom.get("initial_review_status", ReviewStatus.PENDING.value)).value

    @property
    def store(self):
        return current_domain.repository_for(Review)

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _process(self, command, conflict_error=None):
        try:
            return current_domain.process(command, asynchronous=False)
        except IntegrityError as exc:
            if conflict_error is None:
                raise
            raise conflict_error({"review": ["Another active review by this reviewer exists for this product"]}) from exc

    def _after_write(self, transition: ReviewTransition) -> None:
        if not transition.requires_recompute:
            return

        try:
            self.recomputer.recompute(transition.product_id)
        except RecomputeError as exc:
            logger.error(
                "rating_recompute_failed",
                product_id=transition.product_id,
                review_id=transition.review_id,
                error=str(exc),
            )
            flag_stale(transition.product_id, reason=str(exc))

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def create_review(
        self,
        reviewer_id,
        product_id,
        overall_rating,
        title,
        content,
        sub_ratings=None,
        verification=None,
        attachments=None,
        review_source=None,
    ) -> Review:
        validate_ratings(overall_rating, sub_ratings)
        keywords, mentions = self.extractor.extract(title, content)

        command = SubmitReview(
            product_id=product_id,
            reviewer_id=reviewer_id,
            overall_rating=overall_rating,
            title=title,
            content=content,
            sub_ratings=json.dumps(sub_ratings) if sub_ratings else None,
            keywords=json.dumps(keywords),
            mentions=json.dumps(mentions),
            verification=_verification_json(verification),
            attachments=json.dumps(attachments) if attachments else None,
            review_source=review_source,
            status=self.initial_status,
        )
        with slot_locks.hold(reviewer_id, product_id):
            transition = self._process(command, DuplicateReviewError)

        logger.info(
            "review_created",
            review_id=transition.review_id,
            product_id=transition.product_id,
            counted=transition.is_counted,
        )
        self._after_write(transition)
        return self.store.get(transition.review_id)

    def update_review(self, review_id, patch: dict) -> Review:
        """Apply a partial update. Product and reviewer can never change."""
        if not patch:
            raise ValidationError({"patch": ["Nothing to update"]})
        unknown = sorted(set(patch) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError({name: ["Field cannot be updated"] for name in unknown})
        missing = sorted(name for name, value in patch.items() if value is None and name not in _CLEARABLE_FIELDS)
        if missing:
            raise ValidationError({name: ["Field cannot be null"] for name in missing})

        validate_ratings(**{name: patch[name] for name in ("overall_rating", "sub_ratings") if name in patch})
        if "status" in patch:
            parse_status(patch["status"])

        current = self.store.find_by_id_active(review_id)

        fields = {
            name: patch[name] for name in ("title", "content", "overall_rating", "status") if name in patch
        }
        if "moderation_note" in patch:
            fields["moderation_note"] = patch["moderation_note"] or ""
        if "sub_ratings" in patch:
            fields["sub_ratings"] = json.dumps(patch["sub_ratings"] or {})
        if "verification" in patch:
            fields["verification"] = _verification_json(patch["verification"]) or json.dumps({})
        if "attachments" in patch:
            fields["attachments"] = json.dumps(patch["attachments"] or [])

        if "title" in patch or "content" in patch:
            keywords, mentions = self.extractor.extract(
                patch.get("title", current.title),
                patch.get("content", current.content),
            )
            fields["keywords"] = json.dumps(keywords)
            fields["mentions"] = json.dumps(mentions)

        transition = self._process(UpdateReview(review_id=review_id, **fields))

        logger.info(
            "review_updated",
            review_id=transition.review_id,
            product_id=transition.product_id,
            fields=sorted(patch),
            was_counted=transition.was_counted,
            counted=transition.is_counted,
        )
        self._after_write(transition)
        return self.store.get(transition.review_id)

    def set_status(self, review_id, status, note=None) -> Review:
        """Apply a moderation decision."""
        patch = {"status": status}
        if note is not None:
            patch["moderation_note"] = note
        return self.update_review(review_id, patch)

    def soft_delete(self, review_id, deleted_by) -> Review:
        transition = self._process(DeleteReview(review_id=review_id, deleted_by=deleted_by))

        logger.info(
            "review_deleted",
            review_id=transition.review_id,
            product_id=transition.product_id,
            deleted_by=str(deleted_by),
        )
        self._after_write(transition)
        return self.store.get(transition.review_id)

    def restore(self, review_id) -> Review:
        deleted = self.store.find_by_id_deleted(review_id)

        with slot_locks.hold(deleted.reviewer_id, deleted.product_id):
            transition = self._process(RestoreReview(review_id=review_id), RestoreConflictError)

        logger.info("review_restored", review_id=transition.review_id, product_id=transition.product_id)
        self._after_write(transition)
        return self.store.get(transition.review_id)

    def purge(self, review_id) -> None:
        """Hard-delete a review. Moderation use only."""
        transition = self._process(PurgeReview(review_id=review_id))

        logger.warning("review_purged", review_id=transition.review_id, product_id=transition.product_id)
        self._after_write(transition)

    def vote_helpful(self, review_id, voter_id) -> int:
        return self._process(VoteHelpful(review_id=review_id, voter_id=voter_id))

    def withdraw_helpful_vote(self, review_id, voter_id) -> int:
        return self._process(WithdrawHelpfulVote(review_id=review_id, voter_id=voter_id))

    def record_reply(self, review_id) -> int:
        return self._process(RecordReply(review_id=review_id))

    def remove_reply(self, review_id) -> int:
        return self._process(RemoveReply(review_id=review_id))

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_review(self, review_id) -> Review:
        return self.store.find_by_id_active(review_id)

    def get_reviewer_review(self, reviewer_id, product_id) -> Review | None:
        return self.store.find_active_for(reviewer_id, product_id)

    def list_product_reviews(self, product_id, mention=None, keyword=None, page: int = 1, limit: int = 10) -> ReviewPage:
        """Counted reviews of a product, most recently published first."""
        reviews = [
            review
            for review in self.store.find_active(product_id=str(product_id), status=ReviewStatus.APPROVED.value)
            if review.is_counted
        ]
        if mention:
            reviews = [r for r in reviews if mention.lower() in r.mention_list]
        if keyword:
            reviews = [r for r in reviews if keyword.lower() in r.keyword_list]
        reviews.sort(key=lambda r: r.published_at, reverse=True)
        return _paginate(reviews, page, limit)

    def list_deleted_reviews(self, page: int = 1, limit: int = 10, **filters) -> ReviewPage:
        return _paginate(self.store.find_deleted(**filters), page, limit)
