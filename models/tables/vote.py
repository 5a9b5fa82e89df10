"""SQLAlchemy model for quote_votes table."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow
from models.tables.quote import Quote
from models.tables.user import User


class VoteType(str, enum.Enum):
    """Direction of a vote."""

    UPVOTE = "upvote"
    DOWNVOTE = "downvote"


class QuoteVote(Base):
    """Model for quote_votes table.

    At most one row exists per (quote, user) pair; the unique constraint is
    what keeps concurrent double submissions from creating two rows.
    """

    __tablename__ = "quote_votes"
    __table_args__ = (
        UniqueConstraint("quote_id", "user_id", name="quote_vote_unique_user_quote"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vote_type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    quote: Mapped[Quote] = relationship(back_populates="votes", lazy="raise")
    user: Mapped[User] = relationship(lazy="raise")
