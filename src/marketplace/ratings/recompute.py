"""AggregateRecomputer — rebuilds a product's rating snapshot from scratch.

Always a full recompute from the counted reviews, never a delta, so running
it twice in a row produces the same snapshot. Products whose recompute
failed after a committed review write are tracked in ``StaleProductRating``
until a later recompute or the reconciliation job repairs them.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, Text
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.product.product import Product
from marketplace.ratings.snapshot import DEFAULT_MENTION_CAP, RatingSnapshot, compute_rating_snapshot
from marketplace.review.errors import RecomputeError
from marketplace.review.review import Review

logger = structlog.get_logger(__name__)


@marketplace.projection
class StaleProductRating:
    product_id = Identifier(identifier=True, required=True)
    reason = Text()
    failures = Integer(default=0)
    flagged_at = DateTime()


def flag_stale(product_id, reason: str) -> None:
    repo = current_domain.repository_for(StaleProductRating)
    try:
        flag = repo.get(str(product_id))
    except ObjectNotFoundError:
        flag = StaleProductRating(product_id=str(product_id), failures=0)

    flag.reason = reason
    flag.failures = flag.failures + 1
    flag.flagged_at = datetime.now(UTC)
    repo.add(flag)


def clear_stale(product_id) -> bool:
    repo = current_domain.repository_for(StaleProductRating)
    try:
        flag = repo.get(str(product_id))
    except ObjectNotFoundError:
        return False

    repo._dao.delete(flag)
    return True


def stale_product_ids() -> list[str]:
    flags = current_domain.repository_for(StaleProductRating)._dao.query.all().items
    return [str(flag.product_id) for flag in flags]


def configured_mention_cap() -> int:
    custom = current_domain.config.get("custom", {}) or {}
    return int(custom.get("popular_mentions_cap", DEFAULT_MENTION_CAP))


class AggregateRecomputer:
    """Writes the rating snapshot of one product."""

    def __init__(self, mention_cap: int | None = None):
        self.mention_cap = mention_cap

    def compute(self, product_id) -> RatingSnapshot:
        """Compute the snapshot without writing it."""
        counted = current_domain.repository_for(Review).find_counted(product_id)
        return compute_rating_snapshot(counted, mention_cap=self.mention_cap or configured_mention_cap())

    def recompute(self, product_id) -> RatingSnapshot:
        try:
            products = current_domain.repository_for(Product)
            product = products.get(str(product_id))

            snapshot = self.compute(product_id)
            product.apply_rating_snapshot(snapshot)
            products.add(product)

            clear_stale(product_id)
        except Exception as exc:
            raise RecomputeError({"product_id": [f"Rating recompute failed for product `{product_id}`: {exc}"]}) from exc

        logger.info(
            "product_rating_recomputed",
            product_id=str(product_id),
            avg_rating=snapshot.avg_rating,
            total_reviews=snapshot.total_reviews,
        )
        return snapshot
