"""SQLAlchemy models for quotes and quote_speakers tables."""

import enum
from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow
from models.tables.speaker import Speaker
from models.tables.user import User

MIN_SPEAKERS_PER_QUOTE = 1
MAX_SPEAKERS_PER_QUOTE = 10


class DatePrecision(str, enum.Enum):
    """How much of a quote's date is actually known."""

    FULL = "full"
    YEAR_MONTH = "year-month"
    YEAR = "year"
    UNKNOWN = "unknown"

    def normalize(self, value: date | None) -> date | None:
        """Truncate a date to this precision.

        A year-only date is stored as January 1st and a year-month date as the
        first of the month. Unknown precision never stores a date.
        """
        if value is None or self is DatePrecision.UNKNOWN:
            return None
        if self is DatePrecision.YEAR:
            return date(value.year, 1, 1)
        if self is DatePrecision.YEAR_MONTH:
            return date(value.year, value.month, 1)
        return value


class Quote(Base):
    """Model for quotes table.

    A quote always has between one and ten linked speakers through
    the quote_speakers association table.
    """

    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Required fields
    content: Mapped[str] = mapped_column(Text, nullable=False)
    submitted_by_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )

    # Optional fields
    context: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    quote_date: Mapped[date | None] = mapped_column(Date, nullable=True, default=None)
    quote_date_precision: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DatePrecision.UNKNOWN.value
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None, onupdate=utcnow
    )

    submitted_by: Mapped[User] = relationship(lazy="raise")
    speaker_links: Mapped[list["QuoteSpeaker"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteSpeaker.id",
        passive_deletes=True,
        lazy="raise",
    )
    votes: Mapped[list["QuoteVote"]] = relationship(  # noqa: F821
        back_populates="quote",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )


class QuoteSpeaker(Base):
    """Model for quote_speakers association table."""

    __tablename__ = "quote_speakers"
    __table_args__ = (
        UniqueConstraint("quote_id", "speaker_id", name="quote_speaker_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    speaker_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("speakers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    quote: Mapped[Quote] = relationship(back_populates="speaker_links", lazy="raise")
    speaker: Mapped[Speaker] = relationship(lazy="raise")
