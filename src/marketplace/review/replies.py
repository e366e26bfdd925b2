"""RecordReply / RemoveReply — keep a review's reply counter in step with
the (external) discussion thread."""

from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.review.review import Review


@marketplace.command(part_of="Review")
class RecordReply:
    review_id = Identifier(required=True)


@marketplace.command(part_of="Review")
class RemoveReply:
    review_id = Identifier(required=True)


@marketplace.command_handler(part_of=Review)
class ReplyCounterHandler:
    @handle(RecordReply)
    def record_reply(self, command):
        repo = current_domain.repository_for(Review)
        review = repo.find_by_id_active(command.review_id)
        review.record_reply()
        repo.add(review)
        return review.total_replies

    @handle(RemoveReply)
    def remove_reply(self, command):
        repo = current_domain.repository_for(Review)
        review = repo.find_by_id_active(command.review_id)
        review.remove_reply()
        repo.add(review)
        return review.total_replies
