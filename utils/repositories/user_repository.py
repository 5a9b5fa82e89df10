"""Repository for users table."""

from collections.abc import Sequence

from sqlalchemy import case, func, select

from models.projections import ProfileStats
from models.tables.quote import Quote
from models.tables.user import User
from models.tables.vote import QuoteVote, VoteType
from utils.exceptions import ResourceNotFoundError
from utils.repository import BaseRepository
from utils.sqlalchemy_db import SessionMaker, read_scope, transaction_scope


class UserRepository(BaseRepository[User, str]):
    """Repository for users table."""

    def __init__(self, session_maker: SessionMaker) -> None:
        super().__init__(session_maker, User)

    async def get_or_create(self, user_id: str, name: str | None = None) -> User:
        """Fetch a user, creating it with the USER role on first sight.

        A changed display name is written back so listings stay current.

        Args:
            user_id: The member's Discord ID.
            name: The member's current display name.

        Returns:
            The stored user.
        """
        async with transaction_scope(self.session_maker, "get or create user") as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(id=user_id, name=name)
                session.add(user)
                await session.flush()
                self.logger.info(f"Registered user {user_id}")
            elif name and user.name != name:
                user.name = name
        return user

    async def list_by_name(self) -> Sequence[User]:
        """All users, alphabetically."""
        async with read_scope(self.session_maker, "list users") as session:
            result = await session.execute(select(User).order_by(User.name, User.id))
            return result.scalars().all()

    async def get_profile_stats(self, user_id: str) -> ProfileStats:
        """Submission count and votes received for one user.

        Raises:
            ResourceNotFoundError: If the user does not exist.
        """
        async with read_scope(self.session_maker, "get profile stats") as session:
            user = await session.get(User, user_id)
            if user is None:
                raise ResourceNotFoundError("user", user_id)

            quotes_count = (
                await session.execute(
                    select(func.count())
                    .select_from(Quote)
                    .where(Quote.submitted_by_id == user_id)
                )
            ).scalar_one()

            totals = (
                await session.execute(
                    select(
                        func.coalesce(
                            func.sum(
                                case((QuoteVote.vote_type == VoteType.UPVOTE.value, 1), else_=0)
                            ),
                            0,
                        ),
                        func.coalesce(
                            func.sum(
                                case((QuoteVote.vote_type == VoteType.DOWNVOTE.value, 1), else_=0)
                            ),
                            0,
                        ),
                    )
                    .select_from(QuoteVote)
                    .join(Quote, Quote.id == QuoteVote.quote_id)
                    .where(Quote.submitted_by_id == user_id)
                )
            ).one()

        return ProfileStats(
            user_id=user.id,
            name=user.name,
            role=user.role,
            quotes_count=quotes_count,
            total_upvotes=int(totals[0]),
            total_downvotes=int(totals[1]),
        )
