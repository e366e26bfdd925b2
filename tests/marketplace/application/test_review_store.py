"""Application tests for ReviewStore and the one-active-review rule."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

from marketplace.review.errors import DuplicateReviewError, RestoreConflictError
from marketplace.review.review import Review


@pytest.fixture()
def product_id(register_product):
    return register_product(product_id="prod-store")


@pytest.fixture()
def store():
    return current_domain.repository_for(Review)


def _create(manager, product_id, reviewer_id="user-store", rating=4):
    return manager.create_review(
        reviewer_id=reviewer_id,
        product_id=product_id,
        overall_rating=rating,
        title="Reliable workflow tool",
        content="The workflow builder is reliable and the support team is quick.",
    )


class TestOneActiveReviewPerReviewer:
    def test_second_review_for_same_product_is_rejected(self, manager, store, product_id):
        _create(manager, product_id)
        with pytest.raises(DuplicateReviewError):
            _create(manager, product_id, rating=2)
        assert store.count_active(reviewer_id="user-store", product_id=product_id) == 1

    def test_same_reviewer_may_review_other_products(self, manager, register_product, product_id):
        other = register_product(product_id="prod-store-2")
        _create(manager, product_id)
        _create(manager, other)

    def test_soft_delete_frees_the_slot(self, manager, store, product_id):
        first = _create(manager, product_id)
        manager.soft_delete(first.id, deleted_by="user-store")

        second = _create(manager, product_id, rating=5)
        assert second.id != first.id

        historical = store.get(first.id)
        assert historical.is_deleted is True
        assert store.count_active(reviewer_id="user-store", product_id=product_id) == 1

    def test_restore_conflicts_with_newer_active_review(self, manager, store, product_id):
        first = _create(manager, product_id)
        manager.soft_delete(first.id, deleted_by="user-store")
        _create(manager, product_id, rating=5)

        with pytest.raises(RestoreConflictError):
            manager.restore(first.id)
        assert store.get(first.id).is_deleted is True

    def test_duplicate_error_is_a_validation_error(self, manager, product_id):
        from protean.exceptions import ValidationError

        _create(manager, product_id)
        with pytest.raises(ValidationError) as exc:
            _create(manager, product_id)
        assert "review" in exc.value.messages


class TestActiveViews:
    def test_find_by_id_active_hides_deleted_reviews(self, manager, store, product_id):
        review = _create(manager, product_id)
        manager.soft_delete(review.id, deleted_by="user-store")
        with pytest.raises(ObjectNotFoundError):
            store.find_by_id_active(review.id)

    def test_find_by_id_deleted_only_sees_deleted_reviews(self, manager, store, product_id):
        review = _create(manager, product_id)
        with pytest.raises(ObjectNotFoundError):
            store.find_by_id_deleted(review.id)

        manager.soft_delete(review.id, deleted_by="moderator-1")
        deleted = store.find_by_id_deleted(review.id)
        assert deleted.deleted_by == "moderator-1"

    def test_update_of_deleted_review_is_not_found(self, manager, product_id):
        review = _create(manager, product_id)
        manager.soft_delete(review.id, deleted_by="user-store")
        with pytest.raises(ObjectNotFoundError):
            manager.update_review(review.id, {"title": "Back from the dead"})

    def test_delete_of_deleted_review_is_not_found(self, manager, product_id):
        review = _create(manager, product_id)
        manager.soft_delete(review.id, deleted_by="user-store")
        with pytest.raises(ObjectNotFoundError):
            manager.soft_delete(review.id, deleted_by="user-store")

    def test_restore_of_active_review_is_not_found(self, manager, product_id):
        review = _create(manager, product_id)
        with pytest.raises(ObjectNotFoundError):
            manager.restore(review.id)

    def test_find_and_count_active_exclude_deleted(self, manager, store, product_id):
        keep = _create(manager, product_id, reviewer_id="u-keep")
        gone = _create(manager, product_id, reviewer_id="u-gone")
        manager.soft_delete(gone.id, deleted_by="u-gone")

        assert [str(r.id) for r in store.find_active(product_id=product_id)] == [str(keep.id)]
        assert store.count_active(product_id=product_id) == 1
        assert [str(r.id) for r in store.find_deleted(product_id=product_id)] == [str(gone.id)]

    def test_find_counted_only_returns_published_reviews(self, manager, store, product_id):
        published = _create(manager, product_id, reviewer_id="u-pub")
        manager.set_status(published.id, "approved")
        _create(manager, product_id, reviewer_id="u-pending")

        assert [str(r.id) for r in store.find_counted(product_id)] == [str(published.id)]

    def test_find_active_for_pair(self, manager, store, product_id):
        review = _create(manager, product_id)
        assert str(store.find_active_for("user-store", product_id).id) == str(review.id)
        assert store.find_active_for("someone-else", product_id) is None


class TestCreateAndPurge:
    def test_review_for_unknown_product_is_rejected(self, manager):
        with pytest.raises(ObjectNotFoundError):
            _create(manager, "prod-missing")

    def test_purge_removes_review_entirely(self, manager, store, product_id):
        review = _create(manager, product_id)
        manager.purge(review.id)
        with pytest.raises(ObjectNotFoundError):
            store.get(review.id)
