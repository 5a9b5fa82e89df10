"""
Quote search: structured filters, fuzzy ranking and pagination.

A search runs in a fixed order. The speaker filter is resolved to quote ids,
the remaining criteria are folded into one predicate and the store returns
every match newest first. A non-empty query then re-ranks the whole filtered
set in memory before the requested page is sliced out, so pages are always
cut from the same ordering.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.projections import Pagination, SearchResult
from utils.filters import build_quote_filter
from utils.fuzzy_search import FieldWeights, FuzzyMatcher
from utils.repositories.quote_repository import QuoteRepository

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
MAX_PAGE_SIZE = 100


class SearchFilter(BaseModel):
    """A search request. Built per request and never stored."""

    model_config = ConfigDict(frozen=True)

    query: str = Field("", max_length=MAX_QUERY_LENGTH)
    speaker_id: Optional[int] = None
    submitted_by_id: Optional[str] = None
    quote_date_from: Optional[date] = None
    quote_date_to: Optional[date] = None
    include_unknown_dates: bool = True
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("query", mode="before")
    @classmethod
    def none_query_is_empty(cls, v):
        return "" if v is None else v

    @property
    def text(self) -> str:
        return self.query.strip()

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class SearchPipeline:
    """Runs quote searches against the store with a pluggable matcher."""

    def __init__(
        self,
        quotes: QuoteRepository,
        matcher: FuzzyMatcher,
        weights: Optional[FieldWeights] = None,
    ):
        self.quotes = quotes
        self.matcher = matcher
        self.weights = weights or FieldWeights()

    async def search(self, search_filter: SearchFilter) -> SearchResult:
        """Run one search.

        Args:
            search_filter: The validated request.

        Returns:
            The requested page and pagination over the full result list.
        """
        quote_ids = None
        if search_filter.speaker_id is not None:
            quote_ids = await self.quotes.get_quote_ids_for_speaker(
                search_filter.speaker_id
            )
            if not quote_ids:
                logger.debug(
                    f"Speaker {search_filter.speaker_id} has no quotes, skipping search"
                )
                return SearchResult.empty(search_filter.page, search_filter.limit)

        predicate = build_quote_filter(
            quote_ids=quote_ids,
            submitted_by_id=search_filter.submitted_by_id,
            date_from=search_filter.quote_date_from,
            date_to=search_filter.quote_date_to,
            include_unknown_dates=search_filter.include_unknown_dates,
        )
        candidates = await self.quotes.find_filtered(predicate)

        if search_filter.text:
            ranked = self.matcher.rank(candidates, search_filter.text, self.weights)
            results = [match.item.with_score(match.score, match.matches) for match in ranked]
        else:
            results = candidates

        total = len(results)
        start = search_filter.offset
        page = results[start : start + search_filter.limit]

        logger.debug(
            f"Search matched {total} of {len(candidates)} candidate(s), "
            f"returning page {search_filter.page}"
        )
        return SearchResult(
            quotes=page,
            pagination=Pagination.for_total(search_filter.page, search_filter.limit, total),
        )
