"""
Vote aggregation for quotes.

Casting a vote follows toggle semantics: the first vote creates a row, voting
the same way again takes it back, and voting the other way flips the stored
row. Counting is shared by the vote statistics and the yearly leaderboard so
both agree on what a quote's net score is.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from models.projections import VoteAction, VoteResult, VoteStats, Voter
from models.tables.vote import VoteType
from utils.repositories.vote_repository import VoteRepository

logger = logging.getLogger(__name__)


def decide_vote_action(
    existing: Optional[VoteType], requested: VoteType
) -> VoteAction:
    """What a new vote does given the user's current vote on the quote."""
    if existing is None:
        return VoteAction.CREATED
    if existing == requested:
        return VoteAction.REMOVED
    return VoteAction.UPDATED


def net_score(upvotes: int, downvotes: int) -> int:
    return upvotes - downvotes


def tally(vote_types: Iterable[str]) -> tuple[int, int]:
    """Count upvotes and downvotes in a batch of stored vote types."""
    upvotes = downvotes = 0
    for vote_type in vote_types:
        if vote_type == VoteType.UPVOTE.value:
            upvotes += 1
        elif vote_type == VoteType.DOWNVOTE.value:
            downvotes += 1
    return upvotes, downvotes


class VoteAggregator:
    """Casts votes and reports vote statistics for quotes."""

    def __init__(self, votes: VoteRepository):
        self.votes = votes

    net_score = staticmethod(net_score)
    tally = staticmethod(tally)

    async def cast_vote(
        self, quote_id: int, user_id: str, vote_type: VoteType
    ) -> VoteResult:
        """Apply a vote with toggle semantics.

        The lookup and the change run in one transaction. Two racing first
        votes from the same user both try to insert; the unique constraint
        on (quote, user) rejects the second with ConstraintViolationError.

        Args:
            quote_id: The quote being voted on.
            user_id: The voting user.
            vote_type: Upvote or downvote.

        Returns:
            Whether the row was created, updated or removed.
        """
        async with self.votes.transaction("cast vote") as session:
            existing = await self.votes.find_vote(session, quote_id, user_id)
            action = decide_vote_action(
                VoteType(existing.vote_type) if existing else None, vote_type
            )

            if action is VoteAction.CREATED:
                await self.votes.insert_vote(session, quote_id, user_id, vote_type)
            elif action is VoteAction.REMOVED:
                await self.votes.delete_vote(session, existing)
            else:
                await self.votes.set_vote_type(session, existing, vote_type)

        logger.info(
            f"Vote {action.value} on quote {quote_id} by {user_id} ({vote_type.value})"
        )
        return VoteResult(success=True, action=action)

    async def get_vote_stats(
        self, quote_id: int, requesting_user_id: Optional[str] = None
    ) -> VoteStats:
        """Vote counts for a quote and the requesting user's own vote, read together."""
        upvotes, downvotes, user_vote = await self.votes.count_and_user_vote(
            quote_id, requesting_user_id
        )
        return VoteStats(upvotes=upvotes, downvotes=downvotes, user_vote=user_vote)

    async def get_voters(self, quote_id: int, vote_type: VoteType) -> list[Voter]:
        """Users who voted a given way on a quote, most recent first."""
        rows = await self.votes.get_voters(quote_id, vote_type)
        return [Voter(id=user_id, name=name, voted_at=voted_at) for user_id, name, voted_at in rows]
