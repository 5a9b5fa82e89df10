"""Read-side projections returned by the search, ranking and voting services.

These are plain dataclasses built from ORM rows inside a session, so callers
never touch lazy relationships after the session is closed.
"""

import enum
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from models.tables.quote import Quote
from models.tables.vote import VoteType


@dataclass(frozen=True)
class MatchedField:
    """Character ranges of one field that matched a search query.

    Each range is an inclusive ``(start, end)`` pair of offsets into ``value``.
    """

    key: str
    value: str
    indices: tuple[tuple[int, int], ...]


@dataclass(frozen=True)
class SpeakerRef:
    """A speaker as shown alongside a quote."""

    id: int
    name: str


@dataclass(frozen=True)
class QuoteView:
    """A quote with its speakers and submitter attached."""

    id: int
    content: str
    context: str | None
    quote_date: date | None
    quote_date_precision: str
    submitted_by_id: str
    submitted_by_name: str | None
    created_at: datetime
    updated_at: datetime | None
    speakers: tuple[SpeakerRef, ...] = ()
    relevance_score: float | None = None
    matches: tuple[MatchedField, ...] = ()

    @property
    def speaker_names(self) -> str:
        """All linked speaker names joined with spaces."""
        return " ".join(speaker.name for speaker in self.speakers)

    def with_score(
        self, score: float, matches: tuple[MatchedField, ...] = ()
    ) -> "QuoteView":
        return replace(self, relevance_score=score, matches=matches)

    @classmethod
    def from_row(cls, quote: Quote) -> "QuoteView":
        """Build a view from a Quote whose speakers and submitter are loaded."""
        return cls(
            id=quote.id,
            content=quote.content,
            context=quote.context,
            quote_date=quote.quote_date,
            quote_date_precision=quote.quote_date_precision,
            submitted_by_id=quote.submitted_by_id,
            submitted_by_name=quote.submitted_by.name if quote.submitted_by else None,
            created_at=quote.created_at,
            updated_at=quote.updated_at,
            speakers=tuple(
                SpeakerRef(id=link.speaker.id, name=link.speaker.name)
                for link in quote.speaker_links
            ),
        )


@dataclass(frozen=True)
class Pagination:
    """Pagination metadata for a page of search results."""

    current_page: int
    total_pages: int
    total_results: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def for_total(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit)
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_results=total,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


@dataclass(frozen=True)
class SearchResult:
    """One page of search results."""

    quotes: list[QuoteView]
    pagination: Pagination

    @classmethod
    def empty(cls, page: int, limit: int) -> "SearchResult":
        return cls(quotes=[], pagination=Pagination.for_total(page, limit, 0))


class VoteAction(str, enum.Enum):
    """What a cast vote did to the stored vote row."""

    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class VoteResult:
    success: bool
    action: VoteAction


@dataclass(frozen=True)
class VoteStats:
    """Vote counts for a quote plus the requesting user's own vote."""

    upvotes: int
    downvotes: int
    user_vote: VoteType | None = None

    @property
    def net_score(self) -> int:
        return self.upvotes - self.downvotes


@dataclass(frozen=True)
class Voter:
    id: str
    name: str | None
    voted_at: datetime


@dataclass(frozen=True)
class YearCount:
    year: int
    count: int


@dataclass(frozen=True)
class RankedQuote:
    """A quote with its aggregated votes for the yearly leaderboard."""

    quote: QuoteView
    upvotes: int
    downvotes: int
    net_score: int

    @property
    def id(self) -> int:
        return self.quote.id


@dataclass(frozen=True)
class ProfileStats:
    """Submission and vote totals for one user."""

    user_id: str
    name: str | None
    role: str
    quotes_count: int
    total_upvotes: int
    total_downvotes: int
    net_score: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "net_score", self.total_upvotes - self.total_downvotes)
