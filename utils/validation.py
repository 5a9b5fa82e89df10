"""
Input validation utilities for Hearsay.

This module provides the validators used by the slash commands and the
request models the core services accept. Request models are pydantic models;
``parse_request`` turns a pydantic failure into the bot's own ValidationError
so every bad input is rejected the same way before any store access.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.tables.quote import (
    MAX_SPEAKERS_PER_QUOTE,
    MIN_SPEAKERS_PER_QUOTE,
    DatePrecision,
)
from models.tables.vote import VoteType
from utils.exceptions import FormatError, ValidationError

logger = logging.getLogger("validation")

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_CONTENT_LENGTH = 2000
MAX_CONTEXT_LENGTH = 1000

_PARTIAL_DATE = re.compile(r"^(\d{4})(?:-(\d{1,2})(?:-(\d{1,2}))?)?$")


# Basic validation functions


def validate_string(
    value: Any,
    min_length: int = 0,
    max_length: Optional[int] = None,
    strip: bool = True,
    allow_empty: bool = False,
    field: Optional[str] = None,
) -> str:
    """
    Validate a string value.

    Args:
        value: The value to validate
        min_length: Minimum length of the string
        max_length: Maximum length of the string
        strip: Whether to strip whitespace from the string
        allow_empty: Whether to allow empty strings
        field: Name of the field, used in error messages

    Returns:
        The validated string

    Raises:
        ValidationError: If the value is not a valid string
    """
    label = field.capitalize() if field else "Value"
    if value is None:
        if not allow_empty:
            raise ValidationError(field=field, message=f"{label} cannot be empty")
        return ""

    if not isinstance(value, str):
        value = str(value)

    if strip:
        value = value.strip()

    if not allow_empty and not value:
        raise ValidationError(field=field, message=f"{label} cannot be empty")

    if min_length > 0 and len(value) < min_length:
        raise ValidationError(
            field=field,
            message=f"{label} must be at least {min_length} characters long",
        )

    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            field=field,
            message=f"{label} cannot be longer than {max_length} characters",
        )

    return value


def parse_partial_date(value: str) -> tuple[date, DatePrecision]:
    """
    Parse a date that may be known only to the year or month.

    ``2020`` means some time in 2020, ``2020-05`` some time in May 2020 and
    ``2020-05-17`` that exact day. The returned date is already truncated to
    the precision.

    Args:
        value: The text to parse

    Returns:
        The date and its precision

    Raises:
        FormatError: If the value is not in one of the three forms or is not
            a real calendar date
    """
    match = _PARTIAL_DATE.match((value or "").strip())
    if not match:
        raise FormatError(expected_format="YYYY, YYYY-MM or YYYY-MM-DD")

    year, month, day = match.groups()
    try:
        if day is not None:
            return date(int(year), int(month), int(day)), DatePrecision.FULL
        if month is not None:
            return date(int(year), int(month), 1), DatePrecision.YEAR_MONTH
        return date(int(year), 1, 1), DatePrecision.YEAR
    except ValueError:
        raise FormatError(message=f"{value} is not a valid date")


def parse_date(value: Optional[str], field: str) -> Optional[date]:
    """Parse an optional ``YYYY-MM-DD`` date from a command option."""
    if value is None or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(
            field=field, message=f"{field} must be a date in YYYY-MM-DD format"
        )


# Request models


def describe_errors(error: pydantic.ValidationError) -> str:
    """Flatten a pydantic error into one readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_request(model: Type[ModelT], **data: Any) -> ModelT:
    """
    Build a request model, converting pydantic errors.

    Raises:
        ValidationError: If any field is outside its declared constraints
    """
    try:
        return model(**data)
    except pydantic.ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        logger.debug(f"Rejected {model.__name__}: {describe_errors(e)}")
        raise ValidationError(field=field, message=describe_errors(e)) from e


class QuoteDraft(BaseModel):
    """The editable part of a quote, as submitted for create or update."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    context: Optional[str] = Field(None, max_length=MAX_CONTEXT_LENGTH)
    quote_date: Optional[date] = None
    quote_date_precision: DatePrecision = DatePrecision.UNKNOWN
    speaker_ids: tuple[int, ...] = Field(
        ...,
        min_length=MIN_SPEAKERS_PER_QUOTE,
        max_length=MAX_SPEAKERS_PER_QUOTE,
    )

    @field_validator("context")
    @classmethod
    def blank_context_is_none(cls, v):
        return v or None

    @field_validator("speaker_ids")
    @classmethod
    def speakers_must_be_distinct(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Each speaker may only be credited once")
        return v

    @property
    def stored_date(self) -> Optional[date]:
        """The date as it is written to the store, truncated to its precision."""
        return self.quote_date_precision.normalize(self.quote_date)


class VoteRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    quote_id: int = Field(..., ge=1)
    vote_type: VoteType


class RankingRequest(BaseModel):
    """A leaderboard request; the year must be a real integer."""

    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999, strict=True)
    limit: int = Field(10, ge=1)
