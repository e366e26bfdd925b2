"""UpdateReview — edit review content and/or apply a moderation decision.

Only active reviews can be updated. Product and reviewer never change.
"""

import json

from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.review.review import Review, Verification


@marketplace.command(part_of="Review")
class UpdateReview:
    review_id = Identifier(required=True)
    title = String(max_length=200)
    content = Text()
    overall_rating = Integer()
    sub_ratings = Text()  # JSON object
    keywords = Text()  # JSON array, present when title or content changed
    mentions = Text()  # JSON array, present when title or content changed
    verification = Text()  # JSON object
    attachments = Text()  # JSON array, replaces existing attachments
    status = String()
    moderation_note = Text()


_JSON_FIELDS = ("sub_ratings", "keywords", "mentions", "attachments")


@marketplace.command_handler(part_of=Review)
class UpdateReviewHandler:
    @handle(UpdateReview)
    def update_review(self, command):
        patch = {}
        for name in ("title", "content", "overall_rating", "status", "moderation_note"):
            value = getattr(command, name)
            if value is not None:
                patch[name] = value
        for name in _JSON_FIELDS:
            value = getattr(command, name)
            if value is not None:
                patch[name] = json.loads(value)
        if command.verification is not None:
            patch["verification"] = Verification.from_dict(json.loads(command.verification))

        return current_domain.repository_for(Review).update(command.review_id, patch)
