"""Read-side queries served from the stored rating snapshot."""

from protean.utils.globals import current_domain

from marketplace.product.product import Product

DEFAULT_STATS_MENTIONS = 8


def get_popular_mentions(product_id, limit: int = 10) -> list[dict]:
    """Most frequent mentions across the product's counted reviews.

    Raises ``ObjectNotFoundError`` for unknown products.
    """
    product = current_domain.repository_for(Product).get(str(product_id))
    return product.mention_stats[:limit]


def get_review_stats(product_id) -> dict:
    product = current_domain.repository_for(Product).get(str(product_id))
    return {
        "product_id": str(product.id),
        "avg_rating": product.avg_rating,
        "total_reviews": product.total_reviews,
        "rating_distribution": product.distribution,
        "avg_sub_ratings": product.sub_rating_averages,
        "popular_mentions": product.mention_stats[:DEFAULT_STATS_MENTIONS],
        "ratings_updated_at": product.ratings_updated_at,
    }
