"""Repository for speakers table."""

from collections.abc import Sequence

from sqlalchemy import func, select

from models.tables.quote import QuoteSpeaker
from models.tables.speaker import Speaker
from utils.exceptions import (
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    ValidationError,
)
from utils.repository import BaseRepository
from utils.sqlalchemy_db import SessionMaker, read_scope, transaction_scope
from utils.validation import validate_string

MAX_SPEAKER_NAME_LENGTH = 256


def clean_speaker_name(name: str) -> str:
    """Strip a speaker name and check its length."""
    return validate_string(name, max_length=MAX_SPEAKER_NAME_LENGTH, field="name")


class SpeakerRepository(BaseRepository[Speaker, int]):
    """Repository for speakers table."""

    def __init__(self, session_maker: SessionMaker) -> None:
        """Initialize the repository.

        Args:
            session_maker: Factory creating database sessions.
        """
        super().__init__(session_maker, Speaker)

    async def list_by_name(self) -> Sequence[Speaker]:
        """All speakers, alphabetically."""
        async with read_scope(self.session_maker, "list speakers") as session:
            result = await session.execute(select(Speaker).order_by(Speaker.name))
            return result.scalars().all()

    async def get_by_name(self, name: str) -> Speaker | None:
        async with read_scope(self.session_maker, "get speaker by name") as session:
            result = await session.execute(select(Speaker).where(Speaker.name == name))
            return result.scalar_one_or_none()

    async def create_speaker(self, name: str, created_by_id: str) -> Speaker:
        """Create a speaker with a unique name.

        Args:
            name: The speaker's name.
            created_by_id: The user creating the speaker.

        Returns:
            The new speaker.

        Raises:
            ValidationError: If the name is empty or too long.
            ResourceAlreadyExistsError: If the name is already taken.
        """
        name = clean_speaker_name(name)
        async with transaction_scope(self.session_maker, "create speaker") as session:
            existing = await session.execute(
                select(Speaker.id).where(Speaker.name == name)
            )
            if existing.scalar_one_or_none() is not None:
                raise ResourceAlreadyExistsError("speaker", name)

            speaker = Speaker(name=name, created_by_id=created_by_id)
            session.add(speaker)
            await session.flush()

        self.logger.info(f"Created speaker {speaker.id} ({speaker.name})")
        return speaker

    async def rename_speaker(self, speaker_id: int, name: str) -> Speaker:
        """Give a speaker a new, unique name.

        Raises:
            ResourceNotFoundError: If the speaker does not exist.
            ResourceAlreadyExistsError: If another speaker has the name.
        """
        name = clean_speaker_name(name)
        async with transaction_scope(self.session_maker, "rename speaker") as session:
            speaker = await session.get(Speaker, speaker_id)
            if speaker is None:
                raise ResourceNotFoundError("speaker", str(speaker_id))

            clash = await session.execute(
                select(Speaker.id).where(Speaker.name == name, Speaker.id != speaker_id)
            )
            if clash.scalar_one_or_none() is not None:
                raise ResourceAlreadyExistsError("speaker", name)

            speaker.name = name

        self.logger.info(f"Renamed speaker {speaker_id} to {name}")
        return speaker

    async def count_quotes(self, speaker_id: int) -> int:
        """Number of quotes crediting this speaker."""
        async with read_scope(self.session_maker, "count speaker quotes") as session:
            result = await session.execute(
                select(func.count())
                .select_from(QuoteSpeaker)
                .where(QuoteSpeaker.speaker_id == speaker_id)
            )
            return result.scalar_one()

    async def delete_speaker(self, speaker_id: int) -> None:
        """Delete a speaker no quote is credited to.

        Raises:
            ResourceNotFoundError: If the speaker does not exist.
            ValidationError: If quotes are still credited to the speaker,
                since removing the link could leave a quote without speakers.
        """
        async with transaction_scope(self.session_maker, "delete speaker") as session:
            speaker = await session.get(Speaker, speaker_id)
            if speaker is None:
                raise ResourceNotFoundError("speaker", str(speaker_id))

            linked = await session.execute(
                select(func.count())
                .select_from(QuoteSpeaker)
                .where(QuoteSpeaker.speaker_id == speaker_id)
            )
            quote_count = linked.scalar_one()
            if quote_count:
                raise ValidationError(
                    field="speaker",
                    message=(
                        f"{speaker.name} is still credited on {quote_count} "
                        f"quote(s); reassign or delete them first"
                    ),
                )

            await session.delete(speaker)

        self.logger.info(f"Deleted speaker {speaker_id}")
