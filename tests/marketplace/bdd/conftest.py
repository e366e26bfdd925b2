"""Shared BDD fixtures and step definitions for the marketplace domain."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from marketplace.ratings.queries import get_review_stats
from marketplace.review.review import Review


@pytest.fixture()
def scenario_state():
    """Reviews and captured errors shared between steps."""
    return {"reviews": {}, "review": None, "error": None}


@pytest.fixture()
def submit_review(manager):
    def _submit(product_id, reviewer_id, rating):
        return manager.create_review(
            reviewer_id=reviewer_id,
            product_id=product_id,
            overall_rating=rating,
            title=f"{rating} star experience",
            content="We have used this product for a full year across two teams.",
        )

    return _submit


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{product_id}"'))
def a_product(register_product, product_id):
    register_product(product_id=product_id)


@given(parsers.cfparse('a pending review rated {rating:d} for product "{product_id}"'))
def a_pending_review(submit_review, scenario_state, rating, product_id):
    scenario_state["review"] = submit_review(product_id, "reviewer-bdd", rating)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('product "{product_id}" has an average rating of {average:f} from {total:d} review'))
@then(parsers.cfparse('product "{product_id}" has an average rating of {average:f} from {total:d} reviews'))
def product_average(product_id, average, total):
    stats = get_review_stats(product_id)
    assert stats["avg_rating"] == average
    assert stats["total_reviews"] == total


@then(parsers.cfparse('product "{product_id}" has {count:d} review rated {rating:d}'))
@then(parsers.cfparse('product "{product_id}" has {count:d} reviews rated {rating:d}'))
def product_distribution(product_id, count, rating):
    assert get_review_stats(product_id)["rating_distribution"][str(rating)] == count


@then(parsers.cfparse('reviewer "{reviewer_id}" has {count:d} active review for product "{product_id}"'))
def reviewer_active_reviews(reviewer_id, count, product_id):
    store = current_domain.repository_for(Review)
    assert store.count_active(reviewer_id=reviewer_id, product_id=product_id) == count
