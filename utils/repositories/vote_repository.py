"""Repository for quote_votes table.

The write helpers take an open session so the vote aggregator can run the
lookup and the change inside one transaction.
"""

from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.tables.user import User
from models.tables.vote import QuoteVote, VoteType
from utils.repository import BaseRepository
from utils.sqlalchemy_db import SessionMaker, read_scope, transaction_scope


class VoteRepository(BaseRepository[QuoteVote, int]):
    """Repository for quote_votes table."""

    def __init__(self, session_maker: SessionMaker) -> None:
        super().__init__(session_maker, QuoteVote)

    def transaction(self, operation: str) -> AbstractAsyncContextManager[AsyncSession]:
        return transaction_scope(self.session_maker, operation)

    async def find_vote(
        self, session: AsyncSession, quote_id: int, user_id: str
    ) -> QuoteVote | None:
        """The user's vote on a quote, if any."""
        result = await session.execute(
            select(QuoteVote).where(
                QuoteVote.quote_id == quote_id, QuoteVote.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def insert_vote(
        self, session: AsyncSession, quote_id: int, user_id: str, vote_type: VoteType
    ) -> QuoteVote:
        vote = QuoteVote(quote_id=quote_id, user_id=user_id, vote_type=vote_type.value)
        session.add(vote)
        await session.flush()
        return vote

    async def delete_vote(self, session: AsyncSession, vote: QuoteVote) -> None:
        await session.execute(delete(QuoteVote).where(QuoteVote.id == vote.id))

    async def set_vote_type(
        self, session: AsyncSession, vote: QuoteVote, vote_type: VoteType
    ) -> None:
        vote.vote_type = vote_type.value
        await session.flush()

    async def count_and_user_vote(
        self, quote_id: int, user_id: str | None = None
    ) -> tuple[int, int, VoteType | None]:
        """Upvotes, downvotes and the user's own vote on one quote.

        All three come from a single statement so they describe the same
        moment even while other votes are being cast.
        """
        columns = [
            func.coalesce(
                func.sum(case((QuoteVote.vote_type == VoteType.UPVOTE.value, 1), else_=0)),
                0,
            ),
            func.coalesce(
                func.sum(case((QuoteVote.vote_type == VoteType.DOWNVOTE.value, 1), else_=0)),
                0,
            ),
        ]
        if user_id is not None:
            # At most one row per (quote, user), so max() just picks it out
            columns.append(
                func.max(case((QuoteVote.user_id == user_id, QuoteVote.vote_type), else_=None))
            )

        async with read_scope(self.session_maker, "count votes") as session:
            result = await session.execute(
                select(*columns).where(QuoteVote.quote_id == quote_id)
            )
            row = result.one()

        user_vote = row[2] if user_id is not None else None
        return (
            int(row[0]),
            int(row[1]),
            VoteType(user_vote) if user_vote is not None else None,
        )

    async def get_voters(
        self, quote_id: int, vote_type: VoteType
    ) -> Sequence[tuple[str, str | None, object]]:
        """Voters of one type on a quote as (user id, name, voted at), newest first."""
        async with read_scope(self.session_maker, "list voters") as session:
            result = await session.execute(
                select(User.id, User.name, QuoteVote.created_at)
                .join(User, User.id == QuoteVote.user_id)
                .where(
                    QuoteVote.quote_id == quote_id,
                    QuoteVote.vote_type == vote_type.value,
                )
                .order_by(QuoteVote.created_at.desc(), QuoteVote.id.desc())
            )
            return [tuple(row) for row in result.all()]
