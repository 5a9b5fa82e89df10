"""Base cog class for Hearsay.

This module provides a base class for cogs with common functionality,
reducing code duplication across cogs.
"""

from typing import Any, TypeVar

import discord
import structlog
from discord.ext import commands

from utils.permissions import Principal, resolve_principal
from utils.repositories.user_repository import UserRepository
from utils.service_container import CONFIG, USERS, ServiceContainer

T = TypeVar("T")


class BaseCog(commands.Cog):
    """Base class for cogs with common functionality.

    Attributes:
        bot: The bot instance.
        logger: Structured logger for this cog.
        container: Service container holding the repositories and services.
    """

    def __init__(self, bot: commands.Bot, name: str | None = None) -> None:
        """Initialize the cog.

        Args:
            bot: The bot instance. Must expose a ``container`` attribute.
            name: Optional name for the cog. If not provided, the class name will be used.
        """
        self.bot = bot
        cog_name = name or self.__class__.__name__.lower().replace("cog", "")
        self.logger = structlog.get_logger(f"cogs.{cog_name}")
        self.container: ServiceContainer = bot.container

    def service(self, service_id: str, expected_type: type[T]) -> T:
        return self.container.get_typed(service_id, expected_type)

    @property
    def guild_id(self) -> int | None:
        return self.container.get(CONFIG).guild_id

    async def principal(self, interaction: discord.Interaction) -> Principal:
        """The member behind an interaction, registered on first use."""
        return await resolve_principal(
            interaction, self.service(USERS, UserRepository), self.guild_id
        )

    def log_command_usage(self, interaction: discord.Interaction, command_name: str, **info: Any) -> None:
        """Log command usage with structured logging.

        Args:
            interaction: The interaction.
            command_name: The name of the command being used.
            **info: Extra fields to include.
        """
        user = interaction.user
        guild = interaction.guild

        self.logger.info(
            "command_used",
            command=command_name,
            user_id=user.id,
            user_name=user.name,
            guild_id=guild.id if guild else None,
            **info,
        )
