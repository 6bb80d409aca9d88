"""Composable product filters.

Search criteria are turned into a small tree of predicate values
(``Equals``, ``Range``, ``Contains``, ``And``). The tree is plain data: it can
be compiled into a SQLAlchemy clause for the listing query, or evaluated
against an in-memory record.

Usage:
    predicate = build_product_predicate(criteria)
    query = select(Product).where(to_clause(predicate, Product))
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Union

from services.catalog_service.schemas import ProductSearchCriteria
from sqlalchemy import and_, or_, true
from sqlalchemy.sql.elements import ColumnElement

# ============================================================================
# PREDICATE VARIANTS
# ============================================================================


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class Range:
    """Bounded comparison; a ``None`` bound is open on that side."""

    field: str
    lower: Any = None
    upper: Any = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True


@dataclass(frozen=True)
class Contains:
    """Case-insensitive substring match against any of ``fields``."""

    fields: tuple[str, ...]
    term: str


@dataclass(frozen=True)
class And:
    clauses: tuple["Predicate", ...] = field(default_factory=tuple)


Predicate = Union[Equals, Range, Contains, And]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


# ============================================================================
# BUILDER
# ============================================================================


class ProductPredicateBuilder:
    """Accumulates optional product conditions, ANDed together.

    Each method ignores an absent or blank argument, so callers can feed raw
    criteria fields without checking them first. Conditions are kept as
    given: supplying both ``keyword`` and ``name`` yields two clauses.
    """

    def __init__(self):
        self._clauses: list[Predicate] = []

    def _add(self, predicate: Predicate) -> "ProductPredicateBuilder":
        self._clauses.append(predicate)
        return self

    def active_only(self, flag: Optional[bool]) -> "ProductPredicateBuilder":
        if flag:
            self._add(Equals("active", True))
        return self

    def keyword(self, keyword: Optional[str]) -> "ProductPredicateBuilder":
        if not _is_blank(keyword):
            self._add(Contains(("name", "description", "sku"), keyword))
        return self

    def name(self, name: Optional[str]) -> "ProductPredicateBuilder":
        if not _is_blank(name):
            self._add(Contains(("name",), name))
        return self

    def category(self, category_id: Optional[int]) -> "ProductPredicateBuilder":
        if category_id is not None:
            self._add(Equals("category_id", category_id))
        return self

    def price_between(
        self, min_price: Optional[Decimal], max_price: Optional[Decimal]
    ) -> "ProductPredicateBuilder":
        # min > max is passed through and simply matches nothing
        if min_price is not None or max_price is not None:
            self._add(Range("price", lower=min_price, upper=max_price))
        return self

    def stock_greater_than(self, min_stock: Optional[int]) -> "ProductPredicateBuilder":
        if min_stock is not None:
            self._add(Range("stock_quantity", lower=min_stock, lower_inclusive=False))
        return self

    def build(self) -> And:
        return And(tuple(self._clauses))


def build_product_predicate(criteria: ProductSearchCriteria) -> And:
    """Translate search criteria into a single conjunctive predicate."""
    return (
        ProductPredicateBuilder()
        .active_only(criteria.active_only)
        .keyword(criteria.keyword)
        .name(criteria.name)
        .category(criteria.category_id)
        .price_between(criteria.min_price, criteria.max_price)
        .stock_greater_than(criteria.min_stock)
        .build()
    )


# ============================================================================
# SQL COMPILATION
# ============================================================================


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally (escape char ``\\``)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_clause(predicate: Predicate, model) -> ColumnElement[bool]:
    """Compile ``predicate`` into a WHERE clause over ``model``'s columns."""
    if isinstance(predicate, Equals):
        return getattr(model, predicate.field) == predicate.value

    if isinstance(predicate, Range):
        column = getattr(model, predicate.field)
        bounds = []
        if predicate.lower is not None:
            bounds.append(
                column >= predicate.lower
                if predicate.lower_inclusive
                else column > predicate.lower
            )
        if predicate.upper is not None:
            bounds.append(
                column <= predicate.upper
                if predicate.upper_inclusive
                else column < predicate.upper
            )
        return and_(true(), *bounds)

    if isinstance(predicate, Contains):
        pattern = f"%{escape_like(predicate.term)}%"
        return or_(
            *(
                getattr(model, name).ilike(pattern, escape="\\")
                for name in predicate.fields
            )
        )

    if isinstance(predicate, And):
        return and_(true(), *(to_clause(c, model) for c in predicate.clauses))

    raise TypeError(f"Unsupported predicate: {predicate!r}")


# ============================================================================
# IN-MEMORY EVALUATION
# ============================================================================


def matches(predicate: Predicate, record: Any) -> bool:
    """Evaluate ``predicate`` against an object exposing the named attributes."""
    if isinstance(predicate, Equals):
        return getattr(record, predicate.field) == predicate.value

    if isinstance(predicate, Range):
        value = getattr(record, predicate.field)
        if value is None:
            return False
        if predicate.lower is not None:
            if predicate.lower_inclusive and value < predicate.lower:
                return False
            if not predicate.lower_inclusive and value <= predicate.lower:
                return False
        if predicate.upper is not None:
            if predicate.upper_inclusive and value > predicate.upper:
                return False
            if not predicate.upper_inclusive and value >= predicate.upper:
                return False
        return True

    if isinstance(predicate, Contains):
        needle = predicate.term.lower()
        return any(
            needle in (getattr(record, name) or "").lower() for name in predicate.fields
        )

    if isinstance(predicate, And):
        return all(matches(c, record) for c in predicate.clauses)

    raise TypeError(f"Unsupported predicate: {predicate!r}")
