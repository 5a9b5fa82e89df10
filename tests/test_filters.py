"""
Tests for the quote filter builder.

This module checks the predicate trees built from search criteria, their
in-memory evaluation and their compilation to SQL.
"""

import os
import sys
from datetime import date
from types import SimpleNamespace

import pytest
from hypothesis import given
from hypothesis import strategies as st

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from utils.filters import (
    AllOf,
    AnyOf,
    Comparison,
    Op,
    all_of,
    any_of,
    build_quote_filter,
    date_range_clause,
    evaluate,
    to_sql,
)
from utils.repositories.quote_repository import QUOTE_FILTER_COLUMNS

FROM = date(2020, 1, 1)
TO = date(2020, 12, 31)


def record(quote_date=None, quote_id=1, submitted_by_id="100"):
    return SimpleNamespace(id=quote_id, quote_date=quote_date, submitted_by_id=submitted_by_id)


class TestCombinators:
    def test_empty_combination_is_none(self):
        assert all_of() is None
        assert any_of(None, None) is None

    def test_single_clause_is_not_wrapped(self):
        clause = Comparison("id", Op.EQ, 1)
        assert all_of(None, clause) is clause
        assert any_of(clause, None) is clause

    def test_several_clauses_are_wrapped(self):
        first = Comparison("id", Op.EQ, 1)
        second = Comparison("id", Op.EQ, 2)
        assert all_of(first, second) == AllOf((first, second))
        assert any_of(first, second) == AnyOf((first, second))


class TestDateRangePolicy:
    def test_no_bounds_with_unknown_dates_means_no_constraint(self):
        assert date_range_clause(None, None, include_unknown_dates=True) is None

    def test_no_bounds_without_unknown_dates_requires_a_date(self):
        assert date_range_clause(None, None, include_unknown_dates=False) == Comparison(
            "quote_date", Op.IS_NOT_NULL
        )

    def test_both_bounds_with_unknown_dates(self):
        assert date_range_clause(FROM, TO, include_unknown_dates=True) == AnyOf(
            (
                AllOf(
                    (
                        Comparison("quote_date", Op.GE, FROM),
                        Comparison("quote_date", Op.LE, TO),
                    )
                ),
                Comparison("quote_date", Op.IS_NULL),
            )
        )

    def test_both_bounds_without_unknown_dates(self):
        assert date_range_clause(FROM, TO, include_unknown_dates=False) == AllOf(
            (
                Comparison("quote_date", Op.GE, FROM),
                Comparison("quote_date", Op.LE, TO),
            )
        )

    def test_single_bound_uses_only_that_bound(self):
        assert date_range_clause(None, TO, include_unknown_dates=False) == Comparison(
            "quote_date", Op.LE, TO
        )
        assert date_range_clause(FROM, None, include_unknown_dates=True) == AnyOf(
            (Comparison("quote_date", Op.GE, FROM), Comparison("quote_date", Op.IS_NULL))
        )

    @given(
        quote_date=st.none() | st.dates(),
        date_from=st.none() | st.dates(),
        date_to=st.none() | st.dates(),
        include_unknown=st.booleans(),
    )
    def test_evaluation_matches_policy(self, quote_date, date_from, date_to, include_unknown):
        predicate = date_range_clause(date_from, date_to, include_unknown)

        if date_from is None and date_to is None:
            expected = quote_date is not None or include_unknown
        elif quote_date is None:
            expected = include_unknown
        else:
            expected = (date_from is None or quote_date >= date_from) and (
                date_to is None or quote_date <= date_to
            )

        assert evaluate(predicate, record(quote_date)) is expected


class TestBuildQuoteFilter:
    def test_no_criteria(self):
        assert build_quote_filter() is None

    def test_all_criteria_are_conjoined(self):
        predicate = build_quote_filter(
            quote_ids=[3, 5],
            submitted_by_id="42",
            date_from=None,
            date_to=None,
            include_unknown_dates=False,
        )
        assert predicate == AllOf(
            (
                Comparison("id", Op.IN, (3, 5)),
                Comparison("submitted_by_id", Op.EQ, "42"),
                Comparison("quote_date", Op.IS_NOT_NULL),
            )
        )

    def test_speaker_ids_and_submitter_filter_records(self):
        predicate = build_quote_filter(quote_ids=[3, 5], submitted_by_id="42")
        assert evaluate(predicate, record(quote_id=3, submitted_by_id="42"))
        assert not evaluate(predicate, record(quote_id=4, submitted_by_id="42"))
        assert not evaluate(predicate, record(quote_id=5, submitted_by_id="43"))

    def test_empty_id_list_matches_nothing(self):
        predicate = build_quote_filter(quote_ids=[])
        assert not evaluate(predicate, record(quote_id=1))

    def test_null_never_satisfies_a_comparison(self):
        assert not evaluate(Comparison("quote_date", Op.GE, FROM), record(None))
        assert not evaluate(Comparison("quote_date", Op.EQ, None), record(None))

    def test_none_predicate_matches_everything(self):
        assert evaluate(None, record())


class TestToSql:
    def test_date_range_compiles_to_or_with_null_branch(self):
        predicate = build_quote_filter(date_from=FROM, date_to=TO, include_unknown_dates=True)
        sql = str(to_sql(predicate, QUOTE_FILTER_COLUMNS).compile())

        assert "quotes.quote_date >=" in sql
        assert "quotes.quote_date <=" in sql
        assert "quotes.quote_date IS NULL" in sql
        assert " OR " in sql

    def test_membership_and_equality(self):
        predicate = build_quote_filter(quote_ids=[1, 2], submitted_by_id="7")
        sql = str(to_sql(predicate, QUOTE_FILTER_COLUMNS).compile())

        assert "quotes.id IN" in sql
        assert "quotes.submitted_by_id =" in sql
        assert " AND " in sql

    def test_unknown_field_is_rejected(self):
        with pytest.raises(KeyError):
            to_sql(Comparison("speaker_id", Op.EQ, 1), QUOTE_FILTER_COLUMNS)
