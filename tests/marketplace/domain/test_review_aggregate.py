"""Tests for Review aggregate creation, editing, moderation and soft delete."""

import json

import pytest
from protean.exceptions import ValidationError

from marketplace.review.events import (
    ReviewApproved,
    ReviewCreated,
    ReviewDeleted,
    ReviewEdited,
    ReviewFlagged,
    ReviewMarkedPending,
    ReviewRejected,
    ReviewRestored,
)
from marketplace.review.review import Review, ReviewStatus


def _review(**overrides):
    defaults = {
        "product_id": "prod-001",
        "reviewer_id": "user-001",
        "overall_rating": 4,
        "title": "Solid CRM",
        "content": "The dashboard is clear and the integration works well.",
    }
    defaults.update(overrides)
    return Review.submit(**defaults)


def _events_of(review, event_cls):
    return [e for e in review._events if isinstance(e, event_cls)]


class TestReviewSubmission:
    def test_submit_creates_pending_review(self):
        review = _review()
        assert review.id is not None
        assert review.status == ReviewStatus.PENDING.value
        assert review.published_at is None
        assert review.is_deleted is False
        assert review.is_counted is False

    def test_submit_as_approved_publishes_immediately(self):
        review = _review(status="approved")
        assert review.published_at is not None
        assert review.is_counted is True

    def test_submit_stores_json_metadata(self):
        review = _review(
            sub_ratings={"ease_of_use": 5, "pricing": 0},
            keywords=["solid", "crm"],
            mentions=["crm"],
        )
        assert review.sub_rating_map == {"ease_of_use": 5, "pricing": 0}
        assert review.keyword_list == ["solid", "crm"]
        assert review.mention_list == ["crm"]
        assert json.loads(review.sub_ratings) == {"ease_of_use": 5, "pricing": 0}

    def test_submit_defaults_engagement_counters(self):
        review = _review()
        assert review.helpful_count == 0
        assert review.total_replies == 0
        assert review.review_version == "1.0"

    def test_submit_adds_attachments(self):
        review = _review(
            attachments=[
                {"file_name": "screen.png", "file_url": "https://cdn.example.com/screen.png", "file_size": 1024},
            ]
        )
        assert len(review.attachments) == 1
        assert review.attachments[0].file_name == "screen.png"
        assert review.attachments[0].uploaded_at is not None

    def test_submit_raises_created_event(self):
        review = _review()
        events = _events_of(review, ReviewCreated)
        assert len(events) == 1
        assert str(events[0].review_id) == str(review.id)
        assert events[0].status == "pending"

    def test_unknown_initial_status_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _review(status="published")
        assert "status" in exc.value.messages


class TestReviewRevision:
    def test_revise_returns_changed_fields(self):
        review = _review()
        changed = review.revise(title="Even better CRM", overall_rating=5)
        assert changed == ["title", "overall_rating"]
        assert review.title == "Even better CRM"
        assert review.overall_rating == 5

    def test_revise_with_same_values_changes_nothing(self):
        review = _review()
        review._events.clear()
        assert review.revise(title="Solid CRM") == []
        assert review._events == []

    def test_revise_raises_edited_event(self):
        review = _review()
        review.revise(sub_ratings={"pricing": 3})
        event = _events_of(review, ReviewEdited)[0]
        assert json.loads(event.changed_fields) == ["sub_ratings"]

    def test_revise_replaces_attachments(self):
        review = _review(attachments=[{"file_name": "a.png", "file_url": "https://cdn.example.com/a.png"}])
        review.revise(attachments=[{"file_name": "b.png", "file_url": "https://cdn.example.com/b.png"}])
        assert [a.file_name for a in review.attachments] == ["b.png"]

    def test_deleted_review_cannot_be_revised(self):
        review = _review()
        review.soft_delete("user-001")
        with pytest.raises(ValidationError):
            review.revise(title="Sneaky edit")


class TestReviewModeration:
    def test_approve_publishes(self):
        review = _review()
        assert review.set_status("approved") is True
        assert review.status == "approved"
        assert review.published_at is not None
        assert review.is_counted is True
        assert len(_events_of(review, ReviewApproved)) == 1

    def test_leaving_approved_clears_published_at(self):
        review = _review(status="approved")
        review.set_status("flagged", note="Suspicious wording")
        assert review.published_at is None
        assert review.moderation_note == "Suspicious wording"
        assert review.is_counted is False
        assert len(_events_of(review, ReviewFlagged)) == 1

    def test_reject_raises_rejected_event(self):
        review = _review()
        review.set_status("rejected", note="Spam")
        event = _events_of(review, ReviewRejected)[0]
        assert event.note == "Spam"

    def test_back_to_pending_raises_marked_pending(self):
        review = _review(status="rejected")
        review.set_status("pending")
        assert len(_events_of(review, ReviewMarkedPending)) == 1

    def test_same_status_is_a_no_op(self):
        review = _review()
        review._events.clear()
        assert review.set_status("pending") is False
        assert review._events == []

    def test_unknown_status_is_rejected(self):
        review = _review()
        with pytest.raises(ValidationError):
            review.set_status("archived")


class TestReviewSoftDelete:
    def test_soft_delete_sets_flags_and_keeps_status(self):
        review = _review(status="approved")
        review.soft_delete("moderator-9")
        assert review.is_deleted is True
        assert review.deleted_at is not None
        assert str(review.deleted_by) == "moderator-9"
        assert review.status == "approved"
        assert review.is_counted is False
        assert len(_events_of(review, ReviewDeleted)) == 1

    def test_deleting_twice_fails(self):
        review = _review()
        review.soft_delete("user-001")
        with pytest.raises(ValidationError):
            review.soft_delete("user-001")

    def test_restore_clears_flags(self):
        review = _review(status="approved")
        review.soft_delete("user-001")
        review.restore()
        assert review.is_deleted is False
        assert review.deleted_at is None
        assert review.deleted_by is None
        assert review.is_counted is True
        assert len(_events_of(review, ReviewRestored)) == 1

    def test_restore_of_active_review_fails(self):
        review = _review()
        with pytest.raises(ValidationError):
            review.restore()


class TestReviewReplies:
    def test_record_and_remove_reply(self):
        review = _review()
        review.record_reply()
        review.record_reply()
        review.remove_reply()
        assert review.total_replies == 1

    def test_reply_count_never_goes_negative(self):
        review = _review()
        with pytest.raises(ValidationError):
            review.remove_reply()
