"""Product aggregate — owns the denormalized rating snapshot.

The snapshot fields are written only by the AggregateRecomputer, always
together, from a full scan of the product's counted reviews.
"""

import json
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.review.review import SUB_RATING_CATEGORIES


def empty_distribution() -> dict[str, int]:
    return {str(star): 0 for star in range(1, 6)}


@marketplace.aggregate
class Product:
    name = String(required=True, max_length=255)
    vendor_id = Identifier()
    registered_at = DateTime()

    # Rating snapshot
    avg_rating = Float(default=0.0)
    total_reviews = Integer(default=0)
    rating_distribution = Text()  # JSON: {"1": 0, ..., "5": 0}
    avg_sub_ratings = Text()  # JSON: {"ease_of_use": 4.5, "pricing": null, ...}
    popular_mentions = Text()  # JSON: [{"mention": ..., "count": ..., "avg_rating": ...}]
    ratings_updated_at = DateTime()

    @invariant.post
    def snapshot_totals_must_agree(self):
        distribution = self.distribution
        if sum(distribution.values()) != (self.total_reviews or 0):
            raise ValidationError({"rating_distribution": ["Distribution must sum to the total review count"]})
        if not self.total_reviews and self.avg_rating:
            raise ValidationError({"avg_rating": ["Products without counted reviews have no average rating"]})

    @property
    def distribution(self) -> dict[str, int]:
        return json.loads(self.rating_distribution) if self.rating_distribution else empty_distribution()

    @property
    def sub_rating_averages(self) -> dict[str, float | None]:
        return json.loads(self.avg_sub_ratings) if self.avg_sub_ratings else {}

    @property
    def mention_stats(self) -> list[dict]:
        return json.loads(self.popular_mentions) if self.popular_mentions else []

    @classmethod
    def register(cls, name, vendor_id=None, product_id=None):
        kwargs = {"id": product_id} if product_id else {}
        return cls(
            **kwargs,
            name=name,
            vendor_id=vendor_id,
            registered_at=datetime.now(UTC),
            avg_rating=0.0,
            total_reviews=0,
            rating_distribution=json.dumps(empty_distribution()),
            avg_sub_ratings=json.dumps(dict.fromkeys(SUB_RATING_CATEGORIES), sort_keys=True),
            popular_mentions=json.dumps([]),
        )

    def apply_rating_snapshot(self, snapshot):
        """Overwrite every snapshot field from a ``RatingSnapshot``."""
        with atomic_change(self):
            self.avg_rating = snapshot.avg_rating
            self.total_reviews = snapshot.total_reviews
            self.rating_distribution = json.dumps(snapshot.rating_distribution)
            self.avg_sub_ratings = json.dumps(snapshot.avg_sub_ratings, sort_keys=True)
            self.popular_mentions = json.dumps(snapshot.popular_mentions)
            self.ratings_updated_at = datetime.now(UTC)

    def rating_snapshot(self) -> dict:
        """The stored snapshot in the shape ``compute_rating_snapshot`` produces."""
        return {
            "avg_rating": self.avg_rating,
            "total_reviews": self.total_reviews,
            "rating_distribution": self.distribution,
            "avg_sub_ratings": self.sub_rating_averages,
            "popular_mentions": self.mention_stats,
        }
