"""Pure computation of a product's rating snapshot from its counted reviews."""

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from marketplace.review.review import SUB_RATING_CATEGORIES

DEFAULT_MENTION_CAP = 20
MIN_MENTION_COUNT = 2


def round_rating(value: float) -> float:
    """Round half-up to one decimal place (4.25 -> 4.3, not banker's 4.2)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class RatingSnapshot:
    avg_rating: float = 0.0
    total_reviews: int = 0
    rating_distribution: dict[str, int] = field(default_factory=lambda: {str(s): 0 for s in range(1, 6)})
    avg_sub_ratings: dict[str, float | None] = field(default_factory=dict)
    popular_mentions: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "avg_rating": self.avg_rating,
            "total_reviews": self.total_reviews,
            "rating_distribution": dict(self.rating_distribution),
            "avg_sub_ratings": dict(self.avg_sub_ratings),
            "popular_mentions": [dict(entry) for entry in self.popular_mentions],
        }


def _average_sub_ratings(reviews) -> dict[str, float | None]:
    scores: dict[str, list[int]] = {category: [] for category in SUB_RATING_CATEGORIES}
    for review in reviews:
        for category, score in review.sub_rating_map.items():
            values = scores.setdefault(category, [])
            if score > 0:
                values.append(score)
    return {
        category: round_rating(sum(values) / len(values)) if values else None
        for category, values in sorted(scores.items())
    }


def _popular_mentions(reviews, cap: int) -> list[dict]:
    ratings: dict[str, list[int]] = defaultdict(list)
    for review in reviews:
        for mention in set(review.mention_list):
            ratings[mention].append(review.overall_rating)

    stats = [
        {
            "mention": mention,
            "count": len(values),
            "avg_rating": round_rating(sum(values) / len(values)),
        }
        for mention, values in ratings.items()
        if len(values) >= MIN_MENTION_COUNT
    ]
    stats.sort(key=lambda entry: (-entry["count"], -entry["avg_rating"], entry["mention"]))
    return stats[:cap]


def compute_rating_snapshot(reviews, mention_cap: int = DEFAULT_MENTION_CAP) -> RatingSnapshot:
    """Build the full snapshot for ``reviews``, which must all be counted.

    Reviews need ``overall_rating``, ``sub_rating_map`` and ``mention_list``.
    """
    reviews = list(reviews)
    distribution = {str(star): 0 for star in range(1, 6)}
    for review in reviews:
        distribution[str(review.overall_rating)] += 1

    total = len(reviews)
    average = round_rating(sum(r.overall_rating for r in reviews) / total) if total else 0.0

    return RatingSnapshot(
        avg_rating=average,
        total_reviews=total,
        rating_distribution=distribution,
        avg_sub_ratings=_average_sub_ratings(reviews),
        popular_mentions=_popular_mentions(reviews, mention_cap),
    )
