"""A failed recompute never fails the review write; the product is flagged."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

from marketplace.product.product import Product
from marketplace.ratings.queries import get_review_stats
from marketplace.ratings.recompute import AggregateRecomputer, StaleProductRating, stale_product_ids
from marketplace.review.errors import RecomputeError
from marketplace.review.lifecycle import ReviewLifecycleManager


class BrokenRecomputer(AggregateRecomputer):
    def recompute(self, product_id):
        raise RecomputeError({"product_id": ["storage unavailable"]})


@pytest.fixture()
def product_id(register_product):
    return register_product(product_id="prod-fail")


def _create(manager, product_id, reviewer_id="user-fail", rating=5):
    return manager.create_review(
        reviewer_id=reviewer_id,
        product_id=product_id,
        overall_rating=rating,
        title="Robust platform",
        content="Robust platform with very little maintenance needed.",
    )


class TestRecomputeFailure:
    def test_write_succeeds_and_product_is_flagged(self, product_id):
        manager = ReviewLifecycleManager(recomputer=BrokenRecomputer(), initial_status="approved")

        review = _create(manager, product_id)

        assert manager.get_review(review.id).is_counted is True
        assert get_review_stats(product_id)["total_reviews"] == 0  # stale snapshot
        flag = current_domain.repository_for(StaleProductRating).get(product_id)
        assert flag.failures == 1
        assert "storage unavailable" in flag.reason

    def test_repeated_failures_are_counted(self, product_id):
        manager = ReviewLifecycleManager(recomputer=BrokenRecomputer(), initial_status="approved")
        review = _create(manager, product_id)
        manager.update_review(review.id, {"overall_rating": 3})

        assert current_domain.repository_for(StaleProductRating).get(product_id).failures == 2

    def test_successful_recompute_clears_flag(self, product_id):
        broken = ReviewLifecycleManager(recomputer=BrokenRecomputer(), initial_status="approved")
        _create(broken, product_id)
        assert stale_product_ids() == [product_id]

        AggregateRecomputer().recompute(product_id)

        assert stale_product_ids() == []
        assert get_review_stats(product_id)["total_reviews"] == 1

    def test_uncounted_writes_do_not_touch_the_recomputer(self, product_id):
        manager = ReviewLifecycleManager(recomputer=BrokenRecomputer(), initial_status="pending")
        _create(manager, product_id)
        assert stale_product_ids() == []


class TestAggregateRecomputer:
    def test_unknown_product_raises_recompute_error(self):
        with pytest.raises(RecomputeError) as exc:
            AggregateRecomputer().recompute("prod-nowhere")
        assert isinstance(exc.value.__cause__, ObjectNotFoundError)

    def test_failure_while_writing_leaves_snapshot_untouched(self, product_id, monkeypatch):
        manager = ReviewLifecycleManager(recomputer=BrokenRecomputer(), initial_status="approved")
        _create(manager, product_id)

        def explode(self, snapshot):
            raise RuntimeError("disk full")

        monkeypatch.setattr(Product, "apply_rating_snapshot", explode)
        with pytest.raises(RecomputeError):
            AggregateRecomputer().recompute(product_id)

        assert current_domain.repository_for(Product).get(product_id).total_reviews == 0

    def test_recompute_is_idempotent(self, product_id, manager):
        review = _create(manager, product_id)
        manager.set_status(review.id, "approved")

        recomputer = AggregateRecomputer()
        first = recomputer.recompute(product_id)
        second = recomputer.recompute(product_id)
        assert first == second
        assert get_review_stats(product_id)["avg_rating"] == 5.0

    def test_mention_cap_comes_from_configuration(self):
        from marketplace.ratings.recompute import configured_mention_cap

        assert configured_mention_cap() == 20
