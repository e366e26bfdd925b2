"""ReviewStore — custom repository for the Review aggregate.

Every lookup that serves the review lifecycle hides soft-deleted reviews.
Writes report a ``ReviewTransition`` so callers can decide whether the
product's rating snapshot has to be recomputed.
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError

from marketplace.domain import marketplace
from marketplace.review.errors import DuplicateReviewError, RestoreConflictError
from marketplace.review.review import Review, ReviewStatus

PAGE_SIZE = 500

RATING_FIELDS = ("overall_rating", "sub_ratings")


@dataclass(frozen=True)
class ReviewTransition:
    """How a single write moved a review relative to its product's snapshot."""

    review_id: str
    product_id: str
    was_counted: bool
    is_counted: bool
    ratings_changed: bool = False

    @property
    def requires_recompute(self) -> bool:
        if self.was_counted != self.is_counted:
            return True
        return self.is_counted and self.ratings_changed


class ReviewSlotLocks:
    """Per (reviewer, product) locks spanning a whole create or restore.

    Holding the lock across the check and the commit keeps two writers in
    this process from both seeing a free slot.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}

    @contextmanager
    def hold(self, reviewer_id, product_id):
        key = (str(reviewer_id), str(product_id))
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


slot_locks = ReviewSlotLocks()


def _not_found(review_id) -> ObjectNotFoundError:
    return ObjectNotFoundError({"_entity": [f"Review with id `{review_id}` does not exist"]})


@marketplace.repository(part_of=Review)
class ReviewStore:
    """Repository for Review with active/deleted views and one-active-review-per-reviewer checks."""

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def _scan(self, **filters) -> list[Review]:
        """Read every matching review, page by page, oldest first."""
        reviews: list[Review] = []
        offset = 0
        while True:
            page = self._dao.query.filter(**filters).order_by("submitted_at").offset(offset).limit(PAGE_SIZE).all()
            reviews.extend(page.items)
            if len(page.items) < PAGE_SIZE:
                return reviews
            offset += PAGE_SIZE

    def find_active(self, **filters) -> list[Review]:
        """Active reviews matching ``filters``, newest first."""
        reviews = self._scan(is_deleted=False, **filters)
        reviews.reverse()
        return reviews

    def count_active(self, **filters) -> int:
        return self._dao.query.filter(is_deleted=False, **filters).all().total

    def find_by_id_active(self, review_id) -> Review:
        review = self._dao.query.filter(id=str(review_id), is_deleted=False).all().first
        if review is None:
            raise _not_found(review_id)
        return review

    def find_by_id_deleted(self, review_id) -> Review:
        review = self._dao.query.filter(id=str(review_id), is_deleted=True).all().first
        if review is None:
            raise _not_found(review_id)
        return review

    def find_deleted(self, **filters) -> list[Review]:
        """Soft-deleted reviews, most recently deleted first."""
        reviews = self._scan(is_deleted=True, **filters)
        return sorted(reviews, key=lambda r: r.deleted_at, reverse=True)

    def find_active_for(self, reviewer_id, product_id) -> Review | None:
        return (
            self._dao.query.filter(
                reviewer_id=str(reviewer_id),
                product_id=str(product_id),
                is_deleted=False,
            )
            .all()
            .first
        )

    def find_counted(self, product_id) -> list[Review]:
        """All reviews that currently contribute to the product's snapshot."""
        candidates = self._scan(
            product_id=str(product_id),
            status=ReviewStatus.APPROVED.value,
            is_deleted=False,
        )
        return [review for review in candidates if review.is_counted]

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def create(self, review: Review) -> ReviewTransition:
        """Insert a new review unless the reviewer already has an active one."""
        if self.find_active_for(review.reviewer_id, review.product_id) is not None:
            raise DuplicateReviewError({"review": ["You have already reviewed this product"]})

        self.add(review)
        return ReviewTransition(
            review_id=str(review.id),
            product_id=str(review.product_id),
            was_counted=False,
            is_counted=review.is_counted,
            ratings_changed=True,
        )

    def update(self, review_id, patch: dict) -> ReviewTransition:
        """Apply a content and/or moderation patch to an active review.

        ``patch`` may carry any ``Review.revise`` argument plus ``status``
        and ``moderation_note``.
        """
        review = self.find_by_id_active(review_id)
        was_counted = review.is_counted

        changes = dict(patch)
        status = changes.pop("status", None)
        note = changes.pop("moderation_note", None)

        changed = review.revise(**changes) if changes else []
        if status is not None:
            review.set_status(status, note=note)
        elif note is not None:
            review.moderation_note = note

        self.add(review)
        return ReviewTransition(
            review_id=str(review.id),
            product_id=str(review.product_id),
            was_counted=was_counted,
            is_counted=review.is_counted,
            ratings_changed=any(name in changed for name in RATING_FIELDS),
        )

    def soft_delete(self, review_id, deleted_by) -> ReviewTransition:
        review = self.find_by_id_active(review_id)
        was_counted = review.is_counted

        review.soft_delete(deleted_by)
        self.add(review)
        return ReviewTransition(
            review_id=str(review.id),
            product_id=str(review.product_id),
            was_counted=was_counted,
            is_counted=False,
        )

    def restore(self, review_id) -> ReviewTransition:
        review = self.find_by_id_deleted(review_id)

        if self.find_active_for(review.reviewer_id, review.product_id) is not None:
            raise RestoreConflictError(
                {"review": ["Another active review by this reviewer exists for this product"]}
            )

        review.restore()
        self.add(review)
        return ReviewTransition(
            review_id=str(review.id),
            product_id=str(review.product_id),
            was_counted=False,
            is_counted=review.is_counted,
        )

    def purge(self, review_id) -> ReviewTransition:
        """Hard-delete a review, active or soft-deleted."""
        review = self.get(review_id)
        was_counted = review.is_counted

        self._dao.delete(review)
        return ReviewTransition(
            review_id=str(review.id),
            product_id=str(review.product_id),
            was_counted=was_counted,
            is_counted=False,
        )
