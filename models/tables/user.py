"""SQLAlchemy model for users table."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, utcnow


class User(Base):
    """Model for users table.

    This table stores the community members who submit and vote on quotes.
    The primary key is the member's Discord snowflake, kept as a string.
    """

    __tablename__ = "users"

    # Primary key
    id: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Optional fields
    name: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)

    # Required fields with defaults
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="USER")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
