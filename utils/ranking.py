"""Yearly quote leaderboard by community net score."""

import logging
from collections.abc import Sequence

from models.projections import QuoteView, RankedQuote, YearCount
from utils.exceptions import ValidationError
from utils.repositories.quote_repository import QuoteRepository
from utils.validation import RankingRequest, parse_request
from utils.votes import VoteAggregator

logger = logging.getLogger(__name__)

DEFAULT_RANKING_LIMIT = 10
MAX_RANKING_LIMIT = 50


class RankingEngine:
    """Ranks the quotes submitted in a calendar year.

    Years are taken from when a quote was submitted, not from the quote's own
    date, so a line from 1950 posted in 2024 competes in 2024.
    """

    def __init__(
        self,
        quotes: QuoteRepository,
        aggregator: VoteAggregator,
        max_limit: int = MAX_RANKING_LIMIT,
    ):
        self.quotes = quotes
        self.aggregator = aggregator
        self.max_limit = max_limit

    async def get_available_years(self) -> list[YearCount]:
        """Years with at least one quote and their counts, latest first."""
        return await self.quotes.get_available_years()

    async def get_ranked_by_year(
        self, year: int, limit: int = DEFAULT_RANKING_LIMIT
    ) -> list[RankedQuote]:
        """The top quotes of a year by net score.

        Ties keep the store order, newest first, so repeated calls without
        writes in between return the same list.

        Args:
            year: Calendar year of submission.
            limit: How many quotes to return, at most ``max_limit``.

        Raises:
            ValidationError: If the year is not an integer or the limit is out
                of range.
        """
        request = parse_request(RankingRequest, year=year, limit=limit)
        if request.limit > self.max_limit:
            raise ValidationError(
                field="limit", message=f"limit must be at most {self.max_limit}"
            )

        rows = await self.quotes.get_by_year_with_votes(request.year)
        ranked = []
        for quote in rows:
            upvotes, downvotes = self.aggregator.tally(vote.vote_type for vote in quote.votes)
            ranked.append(
                RankedQuote(
                    quote=QuoteView.from_row(quote),
                    upvotes=upvotes,
                    downvotes=downvotes,
                    net_score=self.aggregator.net_score(upvotes, downvotes),
                )
            )

        ranked.sort(key=lambda item: item.net_score, reverse=True)
        logger.debug(f"Ranked {len(ranked)} quote(s) for {request.year}")
        return ranked[: request.limit]


def split_best_worst(
    ranked: Sequence[RankedQuote],
) -> tuple[list[RankedQuote], list[RankedQuote]]:
    """Split a leaderboard into its best and worst quotes.

    The best list keeps every quote with a net score of zero or more in
    leaderboard order. The worst list holds the negative ones, most downvoted
    first.
    """
    best = [item for item in ranked if item.net_score >= 0]
    worst = sorted(
        (item for item in ranked if item.net_score < 0), key=lambda item: item.net_score
    )
    return best, worst
