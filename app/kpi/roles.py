# =============================================================================
# Column Resolver — Semantic Roles via an Ordered Synonym Table
# =============================================================================
#
# Uploaded CSVs carry no schema. Before any metric can be computed we must
# decide which column plays which financial role ("Sales", "Profit",
# "Segment", ...). This module keeps that decision as DATA:
#
#   SYNONYM_TABLE — ordered (role, RoleSynonyms) pairs
#   match_column  — pure matching function
#   resolve_roles — builds an immutable RoleBinding for one computation
#
# MATCHING RULES (case-insensitive, surrounding whitespace ignored):
#   1. Exact names are tried first, in priority order.
#   2. Then substrings ("contains"), in priority order.
#   3. For each synonym, the first column in vocabulary order wins.
#   4. No match → the role is unresolved and every metric depending on it
#      is unavailable (None), never zero.
#
# Two roles may bind the same column ("Gross Sales" can be both Sales and
# GrossSales). No conflict resolution is attempted beyond priority order.
#
# Bump SYNONYM_TABLE_VERSION whenever a synonym list changes; the version
# is recorded with every stored KPI result.
# =============================================================================

from __future__ import annotations

import enum
import logging
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

logger = logging.getLogger(__name__)

SYNONYM_TABLE_VERSION = 1


class Role(str, enum.Enum):
    """Semantic financial concepts a column can be bound to."""

    SALES = "sales"
    GROSS_SALES = "gross_sales"
    UNITS = "units"
    PROFIT = "profit"
    COGS = "cogs"
    DISCOUNTS = "discounts"
    PRICE = "price"
    SEGMENT = "segment"
    PRODUCT = "product"
    COUNTRY = "country"
    DISCOUNT_BAND = "discount_band"
    YEAR = "year"
    MONTH = "month"
    DATE = "date"


@dataclass(frozen=True)
class RoleSynonyms:
    """Lower-case synonyms for one role, highest priority first."""

    exact: tuple[str, ...] = ()
    contains: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Synonym Table
# ---------------------------------------------------------------------------
# Order inside each tuple is priority order. Substring synonyms are chosen
# so they do not collide with sibling roles: "discounts" (not "discount")
# so that a "Discount Band" column is never read as a discount amount, and
# "units" (not "unit") so that "Unit Price" is never read as a volume.
# ---------------------------------------------------------------------------

SYNONYM_TABLE: tuple[tuple[Role, RoleSynonyms], ...] = (
    (Role.SALES, RoleSynonyms(
        exact=("sales", "net sales", "revenue", "total sales", "gross sales"),
        contains=("sales", "revenue"),
    )),
    (Role.GROSS_SALES, RoleSynonyms(
        exact=("gross sales", "gross revenue"),
        contains=("gross sales", "gross revenue"),
    )),
    (Role.UNITS, RoleSynonyms(
        exact=("units sold", "units", "quantity", "qty"),
        contains=("units", "quantity", "qty"),
    )),
    (Role.PROFIT, RoleSynonyms(
        exact=("profit", "net profit", "gross profit", "net income"),
        contains=("profit", "net income", "earnings"),
    )),
    (Role.COGS, RoleSynonyms(
        exact=("cogs", "cost of goods sold", "cost of sales", "cost of revenue"),
        contains=("cogs", "cost of goods", "cost of sales", "cost of revenue"),
    )),
    (Role.DISCOUNTS, RoleSynonyms(
        exact=("discounts", "discount", "discount amount"),
        contains=("discounts", "discount amount", "discount value"),
    )),
    (Role.PRICE, RoleSynonyms(
        exact=("sale price", "price", "unit price", "selling price"),
        contains=("sale price", "selling price", "unit price", "price"),
    )),
    (Role.SEGMENT, RoleSynonyms(
        exact=("segment", "business segment", "customer segment"),
        contains=("segment",),
    )),
    (Role.PRODUCT, RoleSynonyms(
        exact=("product", "product name", "item"),
        contains=("product",),
    )),
    (Role.COUNTRY, RoleSynonyms(
        exact=("country", "region", "market", "territory"),
        contains=("country", "region"),
    )),
    (Role.DISCOUNT_BAND, RoleSynonyms(
        exact=("discount band", "discount tier"),
        contains=("discount band", "discount tier"),
    )),
    (Role.YEAR, RoleSynonyms(
        exact=("year", "fiscal year", "fy"),
        contains=("year",),
    )),
    (Role.MONTH, RoleSynonyms(
        exact=("month name", "month", "month number"),
        contains=("month",),
    )),
    (Role.DATE, RoleSynonyms(
        exact=("date", "order date", "transaction date"),
        contains=("date",),
    )),
)


# ---------------------------------------------------------------------------
# Role Binding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleBinding:
    """
    Immutable role → column mapping for one KPI computation.

    Keys are any hashable role identifier: `Role` members for the flexible
    engine, `StatementField` members for the fixed-schema engine.
    """

    columns: Mapping[Hashable, str] = field(
        default_factory=lambda: MappingProxyType({}),
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "columns", MappingProxyType(dict(self.columns)),
        )

    def get(self, role: Hashable) -> str | None:
        return self.columns.get(role)

    def is_bound(self, role: Hashable) -> bool:
        return role in self.columns

    @classmethod
    def identity(cls, roles: Iterable[enum.Enum]) -> RoleBinding:
        """Bind each role to the column named by its value."""
        return cls({role: str(role.value) for role in roles})

    def to_dict(self) -> dict[str, str | None]:
        """JSON-friendly view: every Role, bound column or None."""
        return {role.value: self.columns.get(role) for role in Role}


def match_column(
    columns: Sequence[str],
    synonyms: RoleSynonyms,
) -> str | None:
    """
    Return the column that best matches a synonym set, or None.

    Exact names are tried before substrings; within each group the
    synonym order is the priority order, and for a given synonym the
    first column in vocabulary order wins.
    """
    normalized = [(column, column.strip().lower()) for column in columns]

    for name in synonyms.exact:
        for column, lowered in normalized:
            if lowered == name:
                return column

    for fragment in synonyms.contains:
        for column, lowered in normalized:
            if fragment in lowered:
                return column

    return None


def resolve_roles(
    columns: Sequence[str],
    table: Sequence[tuple[Role, RoleSynonyms]] = SYNONYM_TABLE,
) -> RoleBinding:
    """Bind every role in `table` that matches a column in the vocabulary."""
    bound: dict[Hashable, str] = {}
    for role, synonyms in table:
        column = match_column(columns, synonyms)
        if column is not None:
            bound[role] = column

    logger.debug(
        "Resolved %d/%d roles: %s",
        len(bound), len(table),
        {role.value: column for role, column in bound.items()},
    )
    return RoleBinding(bound)
