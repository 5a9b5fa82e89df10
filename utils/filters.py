"""Composable filter predicates for quote queries.

Search criteria are turned into a small expression tree of comparisons joined
by ``AllOf``/``AnyOf`` nodes. The tree knows nothing about the database: it can
be compiled to a SQLAlchemy where-clause with :func:`to_sql` or evaluated
against plain objects with :func:`evaluate`, which keeps the filter rules
testable without a store.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement


class Op(str, enum.Enum):
    EQ = "eq"
    GE = "ge"
    LE = "le"
    IN = "in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


@dataclass(frozen=True)
class Comparison:
    """A single test on one field."""

    field: str
    op: Op
    value: Any = None


@dataclass(frozen=True)
class AllOf:
    """Conjunction: every clause must hold."""

    clauses: tuple["Predicate", ...]


@dataclass(frozen=True)
class AnyOf:
    """Disjunction: at least one clause must hold."""

    clauses: tuple["Predicate", ...]


Predicate = Union[Comparison, AllOf, AnyOf]


def all_of(*clauses: Predicate | None) -> Predicate | None:
    """Join the non-empty clauses with AND, collapsing trivial cases."""
    present = tuple(clause for clause in clauses if clause is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return AllOf(present)


def any_of(*clauses: Predicate | None) -> Predicate | None:
    """Join the non-empty clauses with OR, collapsing trivial cases."""
    present = tuple(clause for clause in clauses if clause is not None)
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return AnyOf(present)


def date_range_clause(
    date_from: date | None,
    date_to: date | None,
    include_unknown_dates: bool = True,
) -> Predicate | None:
    """Build the quote-date part of a filter.

    With at least one bound, a quote matches when its date falls inside the
    bounds, or when it has no date and unknown dates are included. Without
    bounds, excluding unknown dates means requiring a date; otherwise there is
    no date constraint at all.
    """
    if date_from is not None or date_to is not None:
        in_range = all_of(
            Comparison("quote_date", Op.GE, date_from) if date_from is not None else None,
            Comparison("quote_date", Op.LE, date_to) if date_to is not None else None,
        )
        unknown = Comparison("quote_date", Op.IS_NULL) if include_unknown_dates else None
        return any_of(in_range, unknown)

    if not include_unknown_dates:
        return Comparison("quote_date", Op.IS_NOT_NULL)

    return None


def build_quote_filter(
    *,
    quote_ids: list[int] | None = None,
    submitted_by_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    include_unknown_dates: bool = True,
) -> Predicate | None:
    """Combine the structured search criteria into one predicate.

    Args:
        quote_ids: Restrict to these quote ids (the resolved speaker filter).
        submitted_by_id: Restrict to quotes submitted by this user.
        date_from: Inclusive lower bound on the quote date.
        date_to: Inclusive upper bound on the quote date.
        include_unknown_dates: Whether undated quotes may match.

    Returns:
        The predicate, or None when no criterion applies.
    """
    return all_of(
        Comparison("id", Op.IN, tuple(quote_ids)) if quote_ids is not None else None,
        Comparison("submitted_by_id", Op.EQ, submitted_by_id)
        if submitted_by_id is not None
        else None,
        date_range_clause(date_from, date_to, include_unknown_dates),
    )


def to_sql(predicate: Predicate, columns: Mapping[str, Any]) -> ColumnElement[bool]:
    """Compile a predicate to a SQLAlchemy boolean expression.

    Args:
        predicate: The predicate tree.
        columns: Maps each field name used in the tree to a column.

    Raises:
        KeyError: If the tree refers to a field missing from ``columns``.
    """
    if isinstance(predicate, AllOf):
        return and_(*(to_sql(clause, columns) for clause in predicate.clauses))
    if isinstance(predicate, AnyOf):
        return or_(*(to_sql(clause, columns) for clause in predicate.clauses))

    column = columns[predicate.field]
    if predicate.op is Op.EQ:
        return column == predicate.value
    if predicate.op is Op.GE:
        return column >= predicate.value
    if predicate.op is Op.LE:
        return column <= predicate.value
    if predicate.op is Op.IN:
        return column.in_(list(predicate.value))
    if predicate.op is Op.IS_NULL:
        return column.is_(None)
    if predicate.op is Op.IS_NOT_NULL:
        return column.is_not(None)
    raise ValueError(f"Unsupported operator: {predicate.op}")


def evaluate(predicate: Predicate | None, record: Any) -> bool:
    """Test a record in memory, with SQL null semantics for comparisons.

    Fields are read as attributes of ``record``. A null field never satisfies
    an equality, range or membership test.
    """
    if predicate is None:
        return True
    if isinstance(predicate, AllOf):
        return all(evaluate(clause, record) for clause in predicate.clauses)
    if isinstance(predicate, AnyOf):
        return any(evaluate(clause, record) for clause in predicate.clauses)

    value = getattr(record, predicate.field)
    if predicate.op is Op.IS_NULL:
        return value is None
    if predicate.op is Op.IS_NOT_NULL:
        return value is not None
    if value is None:
        return False
    if predicate.op is Op.EQ:
        return value == predicate.value
    if predicate.op is Op.GE:
        return value >= predicate.value
    if predicate.op is Op.LE:
        return value <= predicate.value
    if predicate.op is Op.IN:
        return value in predicate.value
    raise ValueError(f"Unsupported operator: {predicate.op}")
