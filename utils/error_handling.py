"""
Error handling utilities for Hearsay.

This module provides the standardized error handling used by the slash
commands: a decorator that turns exceptions into ephemeral user messages,
structured error logging, and redaction so connection strings and tokens
never reach a Discord channel or a log line.
"""

import functools
import logging
import re
import sys
import traceback
from typing import Any, Callable, Coroutine, Dict, List, Pattern, Set, Type, TypeVar

import discord
from discord import app_commands
from discord.ext import commands

from utils.exceptions import (
    # Base exception
    HearsayError,
    # Input validation errors
    UserInputError,
    ValidationError,
    FormatError,
    # Permission errors
    PermissionError,
    RolePermissionError,
    GuildMembershipError,
    # Resource errors
    ResourceNotFoundError,
    ResourceAlreadyExistsError,
    # Configuration errors
    ConfigurationError,
    MissingConfigurationError,
    # Database errors
    DatabaseError,
    QueryError,
    TransactionError,
    ConstraintViolationError,
)

CommandT = TypeVar("CommandT", bound=Callable[..., Coroutine[Any, Any, Any]])

logger = logging.getLogger("error_handling")


# Patterns for sensitive information that should be redacted
SENSITIVE_PATTERNS: List[Pattern] = [
    # API keys and tokens
    re.compile(
        r'(api[_-]?key|token|secret|password|auth)[=:]\s*["\'`]?([a-zA-Z0-9_\-\.]{20,})["\'`]?',
        re.IGNORECASE,
    ),
    # Discord tokens
    re.compile(r"[MN][A-Za-z\d]{23}\.[\w-]{6}\.[\w-]{27}"),
    # Database connection strings
    re.compile(r"(postgres(?:ql)?(?:\+\w+)?|sqlite(?:\+\w+)?)://[^\s]+", re.IGNORECASE),
    # IP addresses
    re.compile(r"\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b"),
    # JSON web tokens
    re.compile(r"eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}"),
]

# Error types that should have sanitized messages
SENSITIVE_ERROR_TYPES: Set[Type[Exception]] = {
    DatabaseError,
    QueryError,
    TransactionError,
    ConfigurationError,
    MissingConfigurationError,
}


# Security levels for error messages
class ErrorSecurityLevel:
    """Security levels for error messages."""

    # Show detailed error information (for developers)
    DEBUG = 0
    # Show general error information (for trusted users)
    NORMAL = 1
    # Show minimal error information (for all users)
    SECURE = 2


def detect_sensitive_info(text: str) -> bool:
    """
    Detect if a string contains sensitive information.

    Args:
        text: The text to check

    Returns:
        True if sensitive information is detected, False otherwise
    """
    if not text:
        return False

    return any(pattern.search(text) for pattern in SENSITIVE_PATTERNS)


def redact_sensitive_info(text: str) -> str:
    """
    Redact sensitive information from a string.

    Args:
        text: The text to redact

    Returns:
        The redacted text
    """
    if not text:
        return text

    redacted_text = text

    for pattern in SENSITIVE_PATTERNS:
        if pattern.groups:
            # Keep the label, drop the value
            redacted_text = pattern.sub(r"\1: [REDACTED]", redacted_text)
        else:
            redacted_text = pattern.sub("[REDACTED]", redacted_text)

    return redacted_text


def sanitize_error_message(
    error: Exception, security_level: int = ErrorSecurityLevel.NORMAL
) -> str:
    """
    Sanitize an error message to prevent information disclosure.

    Args:
        error: The exception to sanitize
        security_level: The security level to apply

    Returns:
        A sanitized error message
    """
    error_type = type(error).__name__
    error_message = getattr(error, "message", str(error))

    # For debug level, just redact sensitive information
    if security_level == ErrorSecurityLevel.DEBUG:
        return f"{error_type}: {redact_sensitive_info(error_message)}"

    # For secure level or sensitive error types, use a generic message
    if (
        security_level == ErrorSecurityLevel.SECURE
        or type(error) in SENSITIVE_ERROR_TYPES
    ):
        return "An error occurred. Please contact an administrator if this persists."

    if detect_sensitive_info(error_message):
        return f"{error_type} error occurred. Details have been logged."

    # Only the first line, and not too long
    sanitized_message = error_message.split("\n")[0]
    if len(sanitized_message) > 100:
        sanitized_message = sanitized_message[:97] + "..."
    return sanitized_message


# Error response configuration
# Maps exception types to user-friendly messages and logging levels.
# The first matching entry wins, so subclasses come before their bases.
ERROR_RESPONSES: Dict[Type[Exception], Dict[str, Any]] = {
    # Input validation errors
    ValidationError: {
        "message": "Validation error: {error.message}",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    FormatError: {
        "message": "Format error: {error.message}",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    UserInputError: {
        "message": "Invalid input: {error.message}",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    # Permission errors
    GuildMembershipError: {
        "message": "{error.message}",
        "log_level": logging.WARNING,
        "ephemeral": True,
    },
    RolePermissionError: {
        "message": "Permission denied: {error.message}",
        "log_level": logging.WARNING,
        "ephemeral": True,
    },
    PermissionError: {
        "message": "Permission denied: {error.message}",
        "log_level": logging.WARNING,
        "ephemeral": True,
    },
    # Resource errors
    ResourceNotFoundError: {
        "message": "Not found: {error.message}",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    ResourceAlreadyExistsError: {
        "message": "Already exists: {error.message}",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    # Configuration errors
    MissingConfigurationError: {
        "message": "Missing configuration: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    ConfigurationError: {
        "message": "Configuration error: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    # Database errors
    ConstraintViolationError: {
        "message": "{error.message}. Please try again.",
        "log_level": logging.WARNING,
        "ephemeral": True,
    },
    TransactionError: {
        "message": "Transaction error: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    QueryError: {
        "message": "Query error: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    DatabaseError: {
        "message": "Database error: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    # discord.py app command errors
    app_commands.CommandOnCooldown: {
        "message": "Please wait {error.retry_after:.1f} seconds before using this command again.",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    app_commands.NoPrivateMessage: {
        "message": "This command cannot be used in private messages.",
        "log_level": logging.INFO,
        "ephemeral": True,
    },
    app_commands.CheckFailure: {
        "message": "You don't have permission to use this command.",
        "log_level": logging.WARNING,
        "ephemeral": True,
    },
    # Fallback for any HearsayError not specifically handled
    HearsayError: {
        "message": "Error: {error.message}",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
    # Fallback for any Exception not specifically handled
    Exception: {
        "message": "An unexpected error occurred. The bot administrators have been notified.",
        "log_level": logging.ERROR,
        "ephemeral": True,
    },
}


def get_error_response(
    error: Exception, security_level: int = ErrorSecurityLevel.NORMAL
) -> Dict[str, Any]:
    """Get the appropriate error response configuration for an exception.

    Args:
        error: The exception to get the response for
        security_level: The security level to apply to the error message

    Returns:
        A dictionary with response configuration
    """
    for error_type, response in ERROR_RESPONSES.items():
        if isinstance(error, error_type):
            response_copy = response.copy()

            if type(error) in SENSITIVE_ERROR_TYPES or detect_sensitive_info(
                getattr(error, "message", str(error))
            ):
                response_copy["message"] = sanitize_error_message(error, security_level)
                response_copy["sanitized"] = True

            return response_copy

    return ERROR_RESPONSES[Exception].copy()


def format_user_message(
    error: Exception, security_level: int = ErrorSecurityLevel.NORMAL
) -> tuple[str, Dict[str, Any]]:
    """The message to show the user and the response configuration used."""
    response = get_error_response(error, security_level)
    if response.get("sanitized", False):
        return response["message"], response

    try:
        user_message = response["message"].format(error=error)
    except (KeyError, AttributeError, ValueError):
        user_message = sanitize_error_message(error, security_level)

    if detect_sensitive_info(user_message):
        user_message = sanitize_error_message(error, security_level)
    return user_message, response


def log_error(
    error: Exception,
    command_name: str,
    user_id: int,
    log_level: int = logging.ERROR,
    additional_context: str = "",
) -> None:
    """Log an error with standardized format.

    Args:
        error: The exception to log
        command_name: Name of the command that caused the error
        user_id: ID of the user who triggered the error
        log_level: Logging level to use
        additional_context: Any additional context to include in the log
    """
    error_type = type(error).__name__
    error_message = getattr(error, "message", str(error))

    log_message = f"{error_type} in {command_name}: {redact_sensitive_info(error_message)} | User: {user_id}"
    if additional_context:
        log_message += f" | {additional_context}"

    logger.log(log_level, log_message)

    # Store failures and unexpected errors get the full traceback, chained cause included
    if isinstance(error, DatabaseError) or not isinstance(
        error, (HearsayError, app_commands.AppCommandError)
    ):
        error_details = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        logger.log(
            log_level,
            f"Traceback for {error_type} in {command_name}:\n"
            f"{redact_sensitive_info(error_details)}",
        )


async def send_error_message(
    interaction: discord.Interaction, message: str, ephemeral: bool = True
) -> None:
    """Reply with an error whether or not the interaction was already answered."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(message, ephemeral=ephemeral)
    except discord.HTTPException as e:
        logger.error(f"Failed to send error message to user: {e}")


def handle_interaction_errors(func: CommandT) -> CommandT:
    """Decorator for application command callbacks to standardize error handling.

    This decorator catches exceptions raised by application command callbacks and provides
    appropriate user feedback based on the exception type.

    Args:
        func: The application command callback to decorate

    Returns:
        The decorated function
    """

    @functools.wraps(func)
    async def wrapper(self, interaction: discord.Interaction, *args, **kwargs):
        try:
            return await func(self, interaction, *args, **kwargs)
        except Exception as error:
            # Server administrators get the detailed message
            security_level = ErrorSecurityLevel.NORMAL
            permissions = getattr(interaction.user, "guild_permissions", None)
            if permissions is not None and permissions.administrator is True:
                security_level = ErrorSecurityLevel.DEBUG

            user_message, response = format_user_message(error, security_level)
            await send_error_message(
                interaction, user_message, response.get("ephemeral", True)
            )

            log_error(
                error=error,
                command_name=func.__name__,
                user_id=interaction.user.id,
                log_level=response.get("log_level", logging.ERROR),
            )

    return wrapper


async def handle_global_app_command_error(
    interaction: discord.Interaction, error: app_commands.AppCommandError
) -> None:
    """Global error handler for application command errors.

    Errors escaping a command's own handler are unwrapped and answered the
    same way ``handle_interaction_errors`` answers them.

    Args:
        interaction: The interaction context
        error: The error that occurred
    """
    if isinstance(error, app_commands.CommandInvokeError):
        error = error.original

    user_message, response = format_user_message(error)
    await send_error_message(interaction, user_message, response.get("ephemeral", True))

    command_name = interaction.command.name if interaction.command else "unknown"
    log_error(
        error=error,
        command_name=command_name,
        user_id=interaction.user.id,
        log_level=response.get("log_level", logging.ERROR),
    )


def setup_global_exception_handler(bot: commands.Bot) -> None:
    """Set up global exception handlers for the bot.

    Args:
        bot: The bot instance
    """

    @bot.tree.error
    async def on_app_command_error(
        interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        await handle_global_app_command_error(interaction, error)

    def global_exception_handler(exctype, value, traceback_obj):
        logger.critical(f"Uncaught exception: {exctype.__name__}: {value}")
        logger.critical(
            "".join(traceback.format_exception(exctype, value, traceback_obj))
        )
        sys.__excepthook__(exctype, value, traceback_obj)

    sys.excepthook = global_exception_handler

    logger.info("Global exception handlers set up successfully")
