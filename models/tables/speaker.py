"""SQLAlchemy model for speakers table."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utcnow
from models.tables.user import User


class Speaker(Base):
    """Model for speakers table.

    Speakers are the people quotes are attributed to. Names are unique.
    """

    __tablename__ = "speakers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(256), nullable=False, unique=True, index=True
    )
    created_by_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    created_by: Mapped[User] = relationship(lazy="raise")
