"""VoteHelpful / WithdrawHelpfulVote — helpful votes on active reviews.

Cannot vote on own review. Cannot vote twice.
"""

from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.review.review import Review


@marketplace.command(part_of="Review")
class VoteHelpful:
    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)


@marketplace.command(part_of="Review")
class WithdrawHelpfulVote:
    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)


@marketplace.command_handler(part_of=Review)
class HelpfulVoteHandler:
    @handle(VoteHelpful)
    def vote_helpful(self, command):
        repo = current_domain.repository_for(Review)
        review = repo.find_by_id_active(command.review_id)

        review.vote_helpful(command.voter_id)

        repo.add(review)
        return review.helpful_count

    @handle(WithdrawHelpfulVote)
    def withdraw_helpful_vote(self, command):
        repo = current_domain.repository_for(Review)
        review = repo.find_by_id_active(command.review_id)

        review.withdraw_helpful_vote(command.voter_id)

        repo.add(review)
        return review.helpful_count
