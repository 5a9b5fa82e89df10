"""Custom exception hierarchy for Hearsay.

This module defines a hierarchy of custom exceptions for standardized error handling
throughout the bot. Core services raise these so the command layer can tell a bad
request apart from a missing record or a failing database.
"""


class HearsayError(Exception):
    """Base exception for all Hearsay errors."""

    def __init__(self, message: str = "An error occurred", *args, **kwargs) -> None:
        self.message = message
        super().__init__(message, *args, **kwargs)


# Input Validation Errors


class UserInputError(HearsayError):
    """Errors caused by invalid user input."""

    def __init__(self, message: str = "Invalid user input", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


class ValidationError(UserInputError):
    """Errors caused by input validation failures."""

    def __init__(self, field: str = None, message: str = None, *args, **kwargs) -> None:
        self.field = field
        if field and not message:
            message = f"Invalid value for {field}"
        elif not message:
            message = "Validation failed"
        super().__init__(message, *args, **kwargs)


class FormatError(UserInputError):
    """Errors caused by incorrectly formatted input."""

    def __init__(
        self, expected_format: str = None, message: str = None, *args, **kwargs
    ) -> None:
        self.expected_format = expected_format
        if expected_format and not message:
            message = f"Input has incorrect format. Expected: {expected_format}"
        elif not message:
            message = "Input has incorrect format"
        super().__init__(message, *args, **kwargs)


# Permission Errors


class PermissionError(HearsayError):
    """Errors related to permissions."""

    def __init__(
        self,
        message: str = "You don't have permission to perform this action",
        *args,
        **kwargs,
    ) -> None:
        super().__init__(message, *args, **kwargs)


class RolePermissionError(PermissionError):
    """Errors related to role-based permissions."""

    def __init__(self, required_role: str = None, message: str = None, *args, **kwargs) -> None:
        self.required_role = required_role
        if required_role and not message:
            message = f"This action requires the {required_role} role"
        super().__init__(message or "You don't have permission to perform this action", *args, **kwargs)


class GuildMembershipError(PermissionError):
    """Errors when a command is used outside the community guild."""

    def __init__(
        self,
        message: str = "Hearsay is only available inside the community server",
        *args,
        **kwargs,
    ) -> None:
        super().__init__(message, *args, **kwargs)


# Resource Errors


class ResourceNotFoundError(HearsayError):
    """Errors when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: str | None = None,
        *args,
        **kwargs,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id

        if resource_id is not None:
            message = f"{resource_type.capitalize()} with ID {resource_id} not found"
        else:
            message = f"{resource_type.capitalize()} not found"

        super().__init__(message, *args, **kwargs)


class ResourceAlreadyExistsError(HearsayError):
    """Errors when attempting to create a resource that already exists."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: str | None = None,
        *args,
        **kwargs,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id

        if resource_id is not None:
            message = (
                f"{resource_type.capitalize()} with ID {resource_id} already exists"
            )
        else:
            message = f"{resource_type.capitalize()} already exists"

        super().__init__(message, *args, **kwargs)


# Configuration Errors


class ConfigurationError(HearsayError):
    """Errors related to bot configuration."""

    def __init__(self, message: str = "Bot configuration error", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


class MissingConfigurationError(ConfigurationError):
    """Errors when a required configuration value is missing."""

    def __init__(self, config_key: str = None, message: str = None, *args, **kwargs) -> None:
        self.config_key = config_key
        if config_key and not message:
            message = f"Missing required configuration value: {config_key}"
        super().__init__(message or "Bot configuration error", *args, **kwargs)


# Database Errors


class DatabaseError(HearsayError):
    """Errors related to database operations."""

    def __init__(self, message: str = "Database operation failed", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


class QueryError(DatabaseError):
    """Errors related to database queries."""

    def __init__(self, query: str = None, message: str = None, *args, **kwargs) -> None:
        self.query = query
        if not message:
            message = "Database query failed"
        super().__init__(message, *args, **kwargs)


class TransactionError(DatabaseError):
    """Errors related to database transactions."""

    def __init__(self, message: str = "Database transaction failed", *args, **kwargs) -> None:
        super().__init__(message, *args, **kwargs)


class ConstraintViolationError(DatabaseError):
    """Errors when a write breaks a uniqueness or foreign key constraint."""

    def __init__(self, operation: str = None, message: str = None, *args, **kwargs) -> None:
        self.operation = operation
        if operation and not message:
            message = f"Could not {operation}: the change conflicts with existing data"
        super().__init__(message or "Database constraint violated", *args, **kwargs)
