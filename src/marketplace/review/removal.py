"""DeleteReview / RestoreReview / PurgeReview.

Soft delete hides a review and frees the reviewer's slot for the product.
Restore brings it back only while that slot is still free. Purge is a
moderation-only hard delete.
"""

from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.review.review import Review


@marketplace.command(part_of="Review")
class DeleteReview:
    review_id = Identifier(required=True)
    deleted_by = Identifier(required=True)


@marketplace.command(part_of="Review")
class RestoreReview:
    review_id = Identifier(required=True)


@marketplace.command(part_of="Review")
class PurgeReview:
    review_id = Identifier(required=True)


@marketplace.command_handler(part_of=Review)
class ReviewRemovalHandler:
    @handle(DeleteReview)
    def delete_review(self, command):
        return current_domain.repository_for(Review).soft_delete(command.review_id, command.deleted_by)

    @handle(RestoreReview)
    def restore_review(self, command):
        return current_domain.repository_for(Review).restore(command.review_id)

    @handle(PurgeReview)
    def purge_review(self, command):
        return current_domain.repository_for(Review).purge(command.review_id)
