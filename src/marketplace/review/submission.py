"""SubmitReview — submit a new product review.

One active review per reviewer and product: the check happens in
``ReviewStore.create`` while the caller holds the pair's slot lock.
Keywords and mentions arrive pre-extracted from the lifecycle manager.
"""

import json

from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.product.product import Product
from marketplace.review.review import Review, ReviewStatus, Verification


@marketplace.command(part_of="Review")
class SubmitReview:
    product_id = Identifier(required=True)
    reviewer_id = Identifier(required=True)
    overall_rating = Integer(required=True)
    title = String(required=True, max_length=200)
    content = Text(required=True)
    sub_ratings = Text()  # JSON object of category -> score
    keywords = Text()  # JSON array of strings
    mentions = Text()  # JSON array of strings
    verification = Text()  # JSON object {method, ...payload, verified_at}
    attachments = Text()  # JSON array of {file_name, file_url, file_type, file_size}
    review_source = String(max_length=100)
    status = String(default=ReviewStatus.PENDING.value)


@marketplace.command_handler(part_of=Review)
class SubmitReviewHandler:
    @handle(SubmitReview)
    def submit_review(self, command):
        # Unknown products raise ObjectNotFoundError
        current_domain.repository_for(Product).get(command.product_id)

        review = Review.submit(
            product_id=command.product_id,
            reviewer_id=command.reviewer_id,
            overall_rating=command.overall_rating,
            title=command.title,
            content=command.content,
            sub_ratings=json.loads(command.sub_ratings) if command.sub_ratings else None,
            keywords=json.loads(command.keywords) if command.keywords else None,
            mentions=json.loads(command.mentions) if command.mentions else None,
            verification=Verification.from_dict(json.loads(command.verification) if command.verification else None),
            attachments=json.loads(command.attachments) if command.attachments else None,
            review_source=command.review_source,
            status=command.status,
        )

        return current_domain.repository_for(Review).create(review)
