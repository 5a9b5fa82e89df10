"""Repository for quotes operations."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.projections import QuoteView, YearCount
from models.tables.quote import Quote, QuoteSpeaker
from models.tables.speaker import Speaker
from models.tables.vote import QuoteVote
from utils.exceptions import ResourceNotFoundError
from utils.filters import Predicate, to_sql
from utils.repository import BaseRepository
from utils.sqlalchemy_db import SessionMaker, read_scope, transaction_scope
from utils.validation import QuoteDraft

# Filter field names mapped to the columns they compile to
QUOTE_FILTER_COLUMNS = {
    "id": Quote.id,
    "submitted_by_id": Quote.submitted_by_id,
    "quote_date": Quote.quote_date,
}


def with_attribution(stmt):
    """Eager-load the speakers and submitter a QuoteView needs."""
    return stmt.options(
        selectinload(Quote.speaker_links).selectinload(QuoteSpeaker.speaker),
        selectinload(Quote.submitted_by),
    )


class QuoteRepository(BaseRepository[Quote, int]):
    """Repository for managing quotes and their speaker links."""

    def __init__(self, session_maker: SessionMaker) -> None:
        super().__init__(session_maker, Quote)

    async def get_quote_ids_for_speaker(self, speaker_id: int) -> list[int]:
        """Ids of every quote credited to a speaker.

        Args:
            speaker_id: The speaker ID.

        Returns:
            The linked quote ids, possibly empty.
        """
        async with read_scope(self.session_maker, "resolve speaker quotes") as session:
            result = await session.execute(
                select(QuoteSpeaker.quote_id)
                .where(QuoteSpeaker.speaker_id == speaker_id)
                .distinct()
            )
            return list(result.scalars().all())

    async def find_filtered(self, predicate: Predicate | None = None) -> list[QuoteView]:
        """All quotes matching a filter, newest first, with attribution.

        Args:
            predicate: Filter over the quote id, submitter and quote date.
                None returns every quote.

        Returns:
            Matching quotes ordered by creation time, most recent first.
        """
        stmt = with_attribution(select(Quote)).order_by(
            Quote.created_at.desc(), Quote.id.desc()
        )
        if predicate is not None:
            stmt = stmt.where(to_sql(predicate, QUOTE_FILTER_COLUMNS))

        async with read_scope(self.session_maker, "search quotes") as session:
            result = await session.execute(stmt)
            return [QuoteView.from_row(quote) for quote in result.scalars().all()]

    async def get_view(self, quote_id: int) -> QuoteView:
        """One quote with attribution.

        Raises:
            ResourceNotFoundError: If the quote does not exist.
        """
        async with read_scope(self.session_maker, "get quote") as session:
            result = await session.execute(
                with_attribution(select(Quote)).where(Quote.id == quote_id)
            )
            quote = result.scalar_one_or_none()
            if quote is None:
                raise ResourceNotFoundError("quote", str(quote_id))
            return QuoteView.from_row(quote)

    async def _check_speakers(self, session: AsyncSession, speaker_ids: Sequence[int]) -> None:
        result = await session.execute(
            select(Speaker.id).where(Speaker.id.in_(list(speaker_ids)))
        )
        found = set(result.scalars().all())
        missing = [speaker_id for speaker_id in speaker_ids if speaker_id not in found]
        if missing:
            raise ResourceNotFoundError("speaker", ", ".join(str(i) for i in missing))

    async def _load_view(self, session: AsyncSession, quote_id: int) -> QuoteView:
        result = await session.execute(
            with_attribution(select(Quote))
            .where(Quote.id == quote_id)
            .execution_options(populate_existing=True)
        )
        return QuoteView.from_row(result.scalar_one())

    async def create_quote(self, draft: QuoteDraft, submitted_by_id: str) -> QuoteView:
        """Insert a quote and its speaker links in one transaction.

        Args:
            draft: The validated quote fields and speaker ids.
            submitted_by_id: The submitting user.

        Returns:
            The stored quote.

        Raises:
            ResourceNotFoundError: If any speaker does not exist. Nothing is
                written in that case.
        """
        async with transaction_scope(self.session_maker, "create quote") as session:
            await self._check_speakers(session, draft.speaker_ids)

            quote = Quote(
                content=draft.content,
                context=draft.context,
                quote_date=draft.stored_date,
                quote_date_precision=draft.quote_date_precision.value,
                submitted_by_id=submitted_by_id,
            )
            session.add(quote)
            await session.flush()

            session.add_all(
                QuoteSpeaker(quote_id=quote.id, speaker_id=speaker_id)
                for speaker_id in draft.speaker_ids
            )
            await session.flush()
            view = await self._load_view(session, quote.id)

        self.logger.info(
            f"Created quote {view.id} with {len(draft.speaker_ids)} speaker(s)"
        )
        return view

    async def update_quote(self, quote_id: int, draft: QuoteDraft) -> QuoteView:
        """Rewrite a quote and replace its speaker links in one transaction.

        Raises:
            ResourceNotFoundError: If the quote or any speaker does not exist.
        """
        async with transaction_scope(self.session_maker, "update quote") as session:
            quote = await session.get(Quote, quote_id)
            if quote is None:
                raise ResourceNotFoundError("quote", str(quote_id))
            await self._check_speakers(session, draft.speaker_ids)

            quote.content = draft.content
            quote.context = draft.context
            quote.quote_date = draft.stored_date
            quote.quote_date_precision = draft.quote_date_precision.value

            await session.execute(
                delete(QuoteSpeaker).where(QuoteSpeaker.quote_id == quote_id)
            )
            session.add_all(
                QuoteSpeaker(quote_id=quote_id, speaker_id=speaker_id)
                for speaker_id in draft.speaker_ids
            )
            await session.flush()
            view = await self._load_view(session, quote_id)

        self.logger.info(f"Updated quote {quote_id}")
        return view

    async def delete_quote(self, quote_id: int) -> None:
        """Delete a quote with its speaker links and votes.

        Raises:
            ResourceNotFoundError: If the quote does not exist.
        """
        async with transaction_scope(self.session_maker, "delete quote") as session:
            found = await session.execute(select(Quote.id).where(Quote.id == quote_id))
            if found.scalar_one_or_none() is None:
                raise ResourceNotFoundError("quote", str(quote_id))

            await session.execute(delete(QuoteVote).where(QuoteVote.quote_id == quote_id))
            await session.execute(
                delete(QuoteSpeaker).where(QuoteSpeaker.quote_id == quote_id)
            )
            await session.execute(delete(Quote).where(Quote.id == quote_id))

        self.logger.info(f"Deleted quote {quote_id}")

    async def get_available_years(self) -> list[YearCount]:
        """Quote counts per year of submission, latest year first."""
        year = func.extract("year", Quote.created_at)
        async with read_scope(self.session_maker, "list quote years") as session:
            result = await session.execute(
                select(year.label("year"), func.count(Quote.id).label("count"))
                .group_by(year)
                .order_by(year.desc())
            )
            return [YearCount(year=int(row.year), count=row.count) for row in result]

    async def get_by_year_with_votes(self, year: int) -> list[Quote]:
        """Quotes submitted in a year with attribution and every vote loaded.

        Votes are fetched in one batch for all the quotes. Rows come back
        newest first.
        """
        start = datetime(year, 1, 1)
        end = datetime(year + 1, 1, 1) if year < 9999 else datetime.max
        stmt = (
            with_attribution(select(Quote))
            .options(selectinload(Quote.votes))
            .where(Quote.created_at >= start, Quote.created_at < end)
            .order_by(Quote.created_at.desc(), Quote.id.desc())
        )
        async with read_scope(self.session_maker, "rank quotes") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
