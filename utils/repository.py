"""
Repository pattern implementation for SQLAlchemy.

This module provides the base repository class shared by the quote, speaker,
vote and user repositories. Reads go through ``read_scope`` and writes through
``transaction_scope`` so store failures always surface as DatabaseError
subclasses.
"""

import logging
from typing import Generic, Optional, Type, TypeAlias, TypeVar

from sqlalchemy import func, select

from utils.sqlalchemy_db import SessionMaker, read_scope

# Type variables for generic repository
T = TypeVar("T")
ID = TypeVar("ID")

# Type aliases
EntityType: TypeAlias = Type[T]


class BaseRepository(Generic[T, ID]):
    """Base repository for SQLAlchemy models.

    Attributes:
        session_maker: Factory creating database sessions.
        entity_type: The SQLAlchemy model class this repository manages.
    """

    def __init__(self, session_maker: SessionMaker, entity_type: EntityType):
        """Initialize the repository.

        Args:
            session_maker: Factory creating database sessions.
            entity_type: The SQLAlchemy model class this repository manages.
        """
        self.session_maker = session_maker
        self.entity_type = entity_type
        self.logger = logging.getLogger(self.__class__.__module__)

    @property
    def entity_name(self) -> str:
        return self.entity_type.__name__.lower()

    async def get_by_id(self, entity_id: ID) -> Optional[T]:
        """Get an entity by its ID.

        Args:
            entity_id: The ID of the entity to retrieve.

        Returns:
            The entity if found, None otherwise.
        """
        async with read_scope(self.session_maker, f"get {self.entity_name}") as session:
            return await session.get(self.entity_type, entity_id)

    async def exists(self, entity_id: ID) -> bool:
        """Check whether an entity with this ID exists."""
        async with read_scope(self.session_maker, f"check {self.entity_name}") as session:
            stmt = select(self.entity_type.id).where(self.entity_type.id == entity_id)
            result = await session.execute(stmt)
            return result.scalar_one_or_none() is not None

    async def count(self) -> int:
        """Count all entities.

        Returns:
            The number of entities.
        """
        async with read_scope(self.session_maker, f"count {self.entity_name}") as session:
            stmt = select(func.count()).select_from(self.entity_type)
            result = await session.execute(stmt)
            return result.scalar_one()
