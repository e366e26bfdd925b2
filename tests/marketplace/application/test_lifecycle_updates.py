"""Application tests for review updates, engagement and listings."""

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.review.errors import VoteError
from marketplace.review.lifecycle import ReviewLifecycleManager


@pytest.fixture()
def product_id(register_product):
    return register_product(product_id="prod-upd")


@pytest.fixture()
def review(manager, product_id):
    return manager.create_review(
        reviewer_id="user-upd",
        product_id=product_id,
        overall_rating=4,
        title="Great dashboard",
        content="The dashboard makes reporting easy for the whole team.",
        sub_ratings={"ease_of_use": 6},
    )


class TestPatchValidation:
    def test_empty_patch_is_rejected(self, manager, review):
        with pytest.raises(ValidationError):
            manager.update_review(review.id, {})

    @pytest.mark.parametrize("field", ["product_id", "reviewer_id", "is_deleted", "keywords"])
    def test_immutable_fields_are_rejected(self, manager, review, field):
        with pytest.raises(ValidationError) as exc:
            manager.update_review(review.id, {field: "other"})
        assert field in exc.value.messages

    def test_required_fields_cannot_be_nulled(self, manager, review):
        with pytest.raises(ValidationError):
            manager.update_review(review.id, {"title": None})

    def test_out_of_range_rating_is_not_persisted(self, manager, review):
        with pytest.raises(ValidationError):
            manager.update_review(review.id, {"overall_rating": 9})
        assert manager.get_review(review.id).overall_rating == 4

    def test_unknown_status_is_rejected(self, manager, review):
        with pytest.raises(ValidationError):
            manager.set_status(review.id, "archived")

    def test_unknown_review_is_not_found(self, manager):
        with pytest.raises(ObjectNotFoundError):
            manager.update_review("no-such-review", {"title": "Hello"})


class TestKeywordRefresh:
    def test_initial_keywords_are_extracted(self, review):
        assert "dashboard" in review.keyword_list
        assert "reporting" in review.mention_list

    def test_content_change_re_extracts(self, manager, review):
        updated = manager.update_review(review.id, {"content": "Pricing is fair and the api is solid."})
        assert "pricing" in updated.keyword_list
        assert "reporting" not in updated.keyword_list
        assert "dashboard" in updated.keyword_list  # still in the title

    def test_rating_change_keeps_keywords(self, manager, review):
        updated = manager.update_review(review.id, {"overall_rating": 5})
        assert updated.keyword_list == review.keyword_list


class TestOtherUpdates:
    def test_moderation_note_is_stored(self, manager, review):
        updated = manager.set_status(review.id, "rejected", note="Off-topic")
        assert updated.status == "rejected"
        assert updated.moderation_note == "Off-topic"

    def test_verification_can_be_updated(self, manager, review):
        updated = manager.update_review(
            review.id,
            {"verification": {"method": "company_email", "email": "jane@acme.io"}},
        )
        assert updated.verification.method == "company_email"
        assert updated.verification.email == "jane@acme.io"

    def test_invalid_verification_is_rejected(self, manager, review):
        with pytest.raises(ValidationError):
            manager.update_review(review.id, {"verification": {"method": "linkedin"}})

    def test_attachments_are_replaced(self, manager, review):
        updated = manager.update_review(
            review.id,
            {"attachments": [{"file_name": "report.pdf", "file_url": "https://cdn.example.com/report.pdf"}]},
        )
        assert [a.file_name for a in updated.attachments] == ["report.pdf"]

    def test_sub_ratings_can_be_cleared(self, manager, review):
        updated = manager.update_review(review.id, {"sub_ratings": None})
        assert updated.sub_rating_map == {}


class TestEngagement:
    def test_helpful_votes(self, manager, review):
        assert manager.vote_helpful(review.id, "voter-1") == 1
        assert manager.vote_helpful(review.id, "voter-2") == 2
        assert manager.withdraw_helpful_vote(review.id, "voter-1") == 1
        assert manager.get_review(review.id).helpful_count == 1

    def test_duplicate_vote_is_rejected(self, manager, review):
        manager.vote_helpful(review.id, "voter-1")
        with pytest.raises(VoteError):
            manager.vote_helpful(review.id, "voter-1")

    def test_reply_counter(self, manager, review):
        assert manager.record_reply(review.id) == 1
        assert manager.record_reply(review.id) == 2
        assert manager.remove_reply(review.id) == 1


class TestListings:
    def test_product_reviews_lists_counted_reviews_newest_first(self, manager, product_id):
        ids = []
        for reviewer, rating in (("l1", 5), ("l2", 4), ("l3", 3)):
            review = manager.create_review(
                reviewer_id=reviewer,
                product_id=product_id,
                overall_rating=rating,
                title="Workflow automation",
                content="Automation of our workflow is the main reason we bought it.",
            )
            manager.set_status(review.id, "approved")
            ids.append(str(review.id))
        manager.create_review(
            reviewer_id="l4",
            product_id=product_id,
            overall_rating=1,
            title="Pending review",
            content="This one is still waiting for moderation.",
        )

        page = manager.list_product_reviews(product_id, limit=2)
        assert page.total == 3
        assert page.pages == 2
        assert [str(r.id) for r in page.items] == [ids[2], ids[1]]

        second = manager.list_product_reviews(product_id, page=2, limit=2)
        assert [str(r.id) for r in second.items] == [ids[0]]

    def test_product_reviews_filtered_by_mention(self, manager, product_id):
        for reviewer, content in (("m1", "Great api and cloud sync."), ("m2", "Mobile app is slick.")):
            review = manager.create_review(
                reviewer_id=reviewer,
                product_id=product_id,
                overall_rating=5,
                title="Nice",
                content=content,
            )
            manager.set_status(review.id, "approved")

        page = manager.list_product_reviews(product_id, mention="API")
        assert page.total == 1
        assert str(page.items[0].reviewer_id) == "m1"

    def test_deleted_reviews_listing(self, manager, review):
        manager.soft_delete(review.id, deleted_by="moderator-1")
        page = manager.list_deleted_reviews()
        assert [str(r.id) for r in page.items] == [str(review.id)]

    def test_reviewer_review_lookup(self, manager, review, product_id):
        assert str(manager.get_reviewer_review("user-upd", product_id).id) == str(review.id)
        assert manager.get_reviewer_review("nobody", product_id) is None

    def test_invalid_page_is_rejected(self, manager, product_id):
        with pytest.raises(ValidationError):
            manager.list_product_reviews(product_id, page=0)


class TestInitialStatusPolicy:
    def test_default_comes_from_configuration(self):
        assert ReviewLifecycleManager().initial_status == "pending"

    def test_override_must_be_a_known_status(self):
        with pytest.raises(ValidationError):
            ReviewLifecycleManager(initial_status="published")
