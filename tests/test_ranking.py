"""
Tests for the yearly quote leaderboard.
"""

import os
import sys
from datetime import date, datetime

import pytest
import pytest_asyncio

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from models.projections import RankedQuote, YearCount
from models.tables import DatePrecision
from tests.fixtures import make_view
from utils.exceptions import ValidationError
from utils.ranking import split_best_worst
from utils.service_container import RANKING


def ranked(quote_id, net):
    upvotes, downvotes = (net, 0) if net >= 0 else (0, -net)
    return RankedQuote(quote=make_view(quote_id), upvotes=upvotes, downvotes=downvotes, net_score=net)


@pytest_asyncio.fixture
async def author(seed):
    """A submitter and a speaker to credit quotes to."""
    user = await seed.user(name="author")
    speaker = await seed.speaker("Ada Lovelace", user.id)
    return user.id, speaker.id


class TestSplitBestWorst:
    def test_zero_counts_as_best(self):
        best, worst = split_best_worst([ranked(1, 4), ranked(2, 0), ranked(3, -1)])
        assert [item.id for item in best] == [1, 2]
        assert [item.id for item in worst] == [3]

    def test_worst_leads_with_most_downvoted(self):
        best, worst = split_best_worst([ranked(1, -1), ranked(2, -5), ranked(3, -2)])
        assert best == []
        assert [item.id for item in worst] == [2, 3, 1]


class TestRankedByYear:
    @pytest.mark.asyncio
    async def test_orders_by_net_score(self, seed, container, author):
        user_id, speaker_id = author
        quote_a = await seed.quote("Quote A", [speaker_id], user_id, created_at=datetime(2024, 3, 1))
        quote_b = await seed.quote("Quote B", [speaker_id], user_id, created_at=datetime(2024, 6, 1))
        await seed.votes(quote_a, upvotes=3, downvotes=1)
        await seed.votes(quote_b, upvotes=1, downvotes=4)

        result = await container.get(RANKING).get_ranked_by_year(2024, 10)

        assert [item.id for item in result] == [quote_a, quote_b]
        assert (result[0].upvotes, result[0].downvotes, result[0].net_score) == (3, 1, 2)
        assert (result[1].upvotes, result[1].downvotes, result[1].net_score) == (1, 4, -3)
        assert [speaker.name for speaker in result[0].quote.speakers] == ["Ada Lovelace"]
        assert result[0].quote.submitted_by_name == "author"

        best, worst = split_best_worst(result)
        assert [item.id for item in best] == [quote_a]
        assert [item.id for item in worst] == [quote_b]

    @pytest.mark.asyncio
    async def test_ties_keep_newest_first(self, seed, container, author):
        user_id, speaker_id = author
        older = await seed.quote("Older", [speaker_id], user_id, created_at=datetime(2024, 1, 5))
        newer = await seed.quote("Newer", [speaker_id], user_id, created_at=datetime(2024, 2, 5))
        top = await seed.quote("Top", [speaker_id], user_id, created_at=datetime(2024, 1, 1))
        await seed.votes(top, upvotes=2)

        engine = container.get(RANKING)
        first = await engine.get_ranked_by_year(2024)
        second = await engine.get_ranked_by_year(2024)

        assert [item.id for item in first] == [top, newer, older]
        assert first == second

    @pytest.mark.asyncio
    async def test_uses_submission_year_not_quote_date(self, seed, container, author):
        user_id, speaker_id = author
        old_line = await seed.quote(
            "Said long ago",
            [speaker_id],
            user_id,
            quote_date=date(1950, 1, 1),
            precision=DatePrecision.YEAR,
            created_at=datetime(2024, 5, 1),
        )

        engine = container.get(RANKING)

        assert [item.id for item in await engine.get_ranked_by_year(2024)] == [old_line]
        assert await engine.get_ranked_by_year(1950) == []

    @pytest.mark.asyncio
    async def test_year_boundaries(self, seed, container, author):
        user_id, speaker_id = author
        await seed.quote("New year's eve", [speaker_id], user_id, created_at=datetime(2023, 12, 31, 23, 59, 59))
        first_of_year = await seed.quote("New year", [speaker_id], user_id, created_at=datetime(2024, 1, 1))

        result = await container.get(RANKING).get_ranked_by_year(2024)

        assert [item.id for item in result] == [first_of_year]

    @pytest.mark.asyncio
    async def test_truncates_to_limit(self, seed, container, author):
        user_id, speaker_id = author
        for month in range(1, 7):
            await seed.quote(f"Quote {month}", [speaker_id], user_id, created_at=datetime(2024, month, 1))

        result = await container.get(RANKING).get_ranked_by_year(2024, limit=4)

        assert len(result) == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "year, limit",
        [(True, 10), ("2024", 10), (2024.5, 10), (0, 10), (2024, 0), (2024, 51)],
    )
    async def test_invalid_requests_are_rejected(self, container, year, limit):
        with pytest.raises(ValidationError):
            await container.get(RANKING).get_ranked_by_year(year, limit)


class TestAvailableYears:
    @pytest.mark.asyncio
    async def test_distinct_years_with_counts(self, seed, container, author):
        user_id, speaker_id = author
        for created_at in (datetime(2022, 4, 1), datetime(2024, 1, 1), datetime(2024, 12, 31)):
            await seed.quote("Some quote", [speaker_id], user_id, created_at=created_at)

        years = await container.get(RANKING).get_available_years()

        assert years == [YearCount(year=2024, count=2), YearCount(year=2022, count=1)]

    @pytest.mark.asyncio
    async def test_no_quotes_no_years(self, container):
        assert await container.get(RANKING).get_available_years() == []
