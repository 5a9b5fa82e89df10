"""Permission utilities for Hearsay.

This module provides the role-based access rules applied by the slash
commands. A member's role is stored with their user row; the commands resolve
a Principal for every interaction and check it against the Permission table
below. The core search, ranking and voting services never check roles
themselves.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import discord

from utils.exceptions import GuildMembershipError, RolePermissionError
from utils.repositories.user_repository import UserRepository

logger = logging.getLogger("permissions")


class PermissionLevel(enum.IntEnum):
    """Enum representing permission levels in the bot.

    Higher values represent higher permission levels.
    """

    NONE = 0
    USER = 10
    MODERATOR = 50
    ADMIN = 80
    OWNER = 100

    @classmethod
    def from_string(cls, level_str: str) -> "PermissionLevel":
        """Convert a stored role name to its level, NONE when unrecognised."""
        try:
            return cls[level_str.upper()]
        except (KeyError, AttributeError):
            return cls.NONE


class Permission(enum.Enum):
    """Enum representing specific permissions in the bot.

    Each permission has a name and a minimum required permission level.
    """

    # Basic permissions
    SUBMIT_QUOTES = ("submit_quotes", PermissionLevel.USER)
    VOTE = ("vote", PermissionLevel.USER)

    # Moderation permissions
    MANAGE_SPEAKERS = ("manage_speakers", PermissionLevel.MODERATOR)

    # Admin permissions
    DELETE_SPEAKERS = ("delete_speakers", PermissionLevel.ADMIN)
    MODERATE_QUOTES = ("moderate_quotes", PermissionLevel.ADMIN)

    def __init__(self, name: str, level: PermissionLevel) -> None:
        self.permission_name = name
        self.required_level = level


@dataclass(frozen=True)
class Principal:
    """The authenticated member behind an interaction."""

    user_id: str
    name: Optional[str]
    level: PermissionLevel

    def has(self, permission: Permission) -> bool:
        return self.level >= permission.required_level


def require(principal: Principal, permission: Permission) -> None:
    """Raise unless the principal holds the permission.

    Raises:
        RolePermissionError: If the principal's level is too low.
    """
    if not principal.has(permission):
        logger.info(
            f"Denied {permission.permission_name} to {principal.user_id} "
            f"({principal.level.name})"
        )
        raise RolePermissionError(required_role=permission.required_level.name.lower())


def can_modify_quote(principal: Principal, submitted_by_id: str) -> bool:
    """Submitters may edit their own quotes; admins may edit any."""
    return principal.user_id == submitted_by_id or principal.has(
        Permission.MODERATE_QUOTES
    )


def require_quote_owner(principal: Principal, submitted_by_id: str) -> None:
    """Raise unless the principal may edit or delete the quote.

    Raises:
        RolePermissionError: If the principal is neither the submitter nor an admin.
    """
    if not can_modify_quote(principal, submitted_by_id):
        raise RolePermissionError(
            message="Only the person who submitted this quote or an admin can change it"
        )


def ensure_guild(interaction: discord.Interaction, guild_id: Optional[int]) -> None:
    """Reject interactions from outside the community guild.

    With no guild configured any guild is accepted, but direct messages never are.

    Raises:
        GuildMembershipError: If the interaction is not in the guild.
    """
    guild = interaction.guild
    if guild is None or (guild_id is not None and guild.id != guild_id):
        raise GuildMembershipError()


async def resolve_principal(
    interaction: discord.Interaction,
    users: UserRepository,
    guild_id: Optional[int] = None,
) -> Principal:
    """Check guild membership and load the member's stored role.

    Members are registered with the USER role the first time they interact.
    """
    ensure_guild(interaction, guild_id)
    member = interaction.user
    user = await users.get_or_create(str(member.id), member.display_name)
    return Principal(
        user_id=user.id,
        name=user.name,
        level=PermissionLevel.from_string(user.role),
    )
