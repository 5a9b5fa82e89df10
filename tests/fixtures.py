"""
Test fixtures for Hearsay.

This module provides reusable helpers for setting up and tearing down
test environments: an in-memory SQLite database with the real schema, a
seeder that writes users, speakers, quotes and votes directly, and an
in-memory quote store that stands in for the repository in pure tests.
"""

import os
import sys
from datetime import date, datetime, timedelta
from typing import Optional

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from faker import Faker
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from models.base import utcnow
from models.projections import QuoteView, SpeakerRef
from models.tables import DatePrecision, Quote, QuoteSpeaker, QuoteVote, Speaker, User, VoteType
from utils.filters import Predicate, evaluate
from utils.sqlalchemy_db import (
    SessionMaker,
    create_session_maker,
    enable_sqlite_foreign_keys,
    init_models,
)

fake = Faker()

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_GUILD_ID = 424242424242424242


class DatabaseFixture:
    """
    Fixture for database testing.

    One in-memory database per fixture. A static pool keeps every session on
    the same connection so the schema survives between sessions.
    """

    def __init__(self, database_url: str = TEST_DATABASE_URL) -> None:
        self.database_url = database_url
        self.engine: AsyncEngine | None = None
        self.session_maker: SessionMaker | None = None

    async def setup(self) -> None:
        """Create the engine, the session maker and all tables."""
        self.engine = create_async_engine(
            self.database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_foreign_keys(self.engine)
        self.session_maker = create_session_maker(self.engine)
        await init_models(self.engine)

    async def teardown(self) -> None:
        if self.engine:
            await self.engine.dispose()

    async def __aenter__(self) -> "DatabaseFixture":
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.teardown()


class StoreSeeder:
    """
    Writes test data straight into the database.

    Rows are inserted without going through the repositories so tests can
    control timestamps and set up states the commands would not produce.
    """

    def __init__(self, session_maker: SessionMaker) -> None:
        self.session_maker = session_maker

    async def _add(self, *rows):
        async with self.session_maker() as session:
            async with session.begin():
                session.add_all(rows)
        return rows

    async def user(
        self, user_id: Optional[str] = None, name: Optional[str] = None, role: str = "USER"
    ) -> User:
        user = User(
            id=user_id or str(fake.unique.random_int(10**17, 10**18 - 1)),
            name=name or fake.user_name(),
            role=role,
        )
        await self._add(user)
        return user

    async def speaker(self, name: Optional[str] = None, created_by_id: Optional[str] = None) -> Speaker:
        if created_by_id is None:
            created_by_id = (await self.user()).id
        speaker = Speaker(name=name or fake.unique.name(), created_by_id=created_by_id)
        await self._add(speaker)
        return speaker

    async def quote(
        self,
        content: str,
        speaker_ids: list[int],
        submitted_by_id: str,
        *,
        context: Optional[str] = None,
        quote_date: Optional[date] = None,
        precision: DatePrecision = DatePrecision.UNKNOWN,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Insert a quote with its speaker links and return its id."""
        async with self.session_maker() as session:
            async with session.begin():
                quote = Quote(
                    content=content,
                    context=context,
                    quote_date=quote_date,
                    quote_date_precision=precision.value,
                    submitted_by_id=submitted_by_id,
                    created_at=created_at or utcnow(),
                )
                session.add(quote)
                await session.flush()
                session.add_all(
                    QuoteSpeaker(quote_id=quote.id, speaker_id=speaker_id)
                    for speaker_id in speaker_ids
                )
        return quote.id

    async def vote(
        self,
        quote_id: int,
        user_id: str,
        vote_type: VoteType,
        created_at: Optional[datetime] = None,
    ) -> None:
        await self._add(
            QuoteVote(
                quote_id=quote_id,
                user_id=user_id,
                vote_type=vote_type.value,
                created_at=created_at or utcnow(),
            )
        )

    async def votes(self, quote_id: int, upvotes: int = 0, downvotes: int = 0) -> None:
        """Give a quote this many upvotes and downvotes from fresh users."""
        for vote_type, count in ((VoteType.UPVOTE, upvotes), (VoteType.DOWNVOTE, downvotes)):
            for _ in range(count):
                voter = await self.user()
                await self.vote(quote_id, voter.id, vote_type)


def make_view(
    quote_id: int,
    content: str = "",
    *,
    context: Optional[str] = None,
    speakers: tuple[str, ...] = (),
    submitted_by_id: str = "1",
    quote_date: Optional[date] = None,
    created_at: Optional[datetime] = None,
) -> QuoteView:
    """A QuoteView built without a database; newer ids are created later by default."""
    return QuoteView(
        id=quote_id,
        content=content or fake.sentence(),
        context=context,
        quote_date=quote_date,
        quote_date_precision=(
            DatePrecision.FULL.value if quote_date else DatePrecision.UNKNOWN.value
        ),
        submitted_by_id=submitted_by_id,
        submitted_by_name=None,
        created_at=created_at or datetime(2024, 1, 1) + timedelta(minutes=quote_id),
        updated_at=None,
        speakers=tuple(
            SpeakerRef(id=index + 1, name=name) for index, name in enumerate(speakers)
        ),
    )


class InMemoryQuoteStore:
    """
    The read side of the quote repository over a list of views.

    Filtering goes through the same predicate evaluator the SQL compiler is
    checked against, and ordering matches the database: newest first.
    """

    def __init__(self, views: list[QuoteView], speaker_links: Optional[dict[int, list[int]]] = None) -> None:
        self.views = list(views)
        self.speaker_links = speaker_links or {}
        self.calls: list[str] = []

    async def get_quote_ids_for_speaker(self, speaker_id: int) -> list[int]:
        self.calls.append("get_quote_ids_for_speaker")
        return list(self.speaker_links.get(speaker_id, []))

    async def find_filtered(self, predicate: Optional[Predicate] = None) -> list[QuoteView]:
        self.calls.append("find_filtered")
        matches = [view for view in self.views if evaluate(predicate, view)]
        return sorted(matches, key=lambda view: (view.created_at, view.id), reverse=True)
