# =============================================================================
# Aggregator — Totals, Averages, Ratios, Dimensional Breakdowns
# =============================================================================
#
# One Aggregator serves both KPI engines. It is parameterized by a
# RoleBinding: the flexible engine supplies a binding derived from the
# synonym table, the statement engine supplies an identity binding over
# its contractual field names.
#
# NULL-STATE CONTRACT ("unavailable"):
#   Every method returns None — never 0, never an exception — when a role
#   it needs is unbound. Individual non-numeric or missing cells are NOT
#   unavailability: they count as 0 in sums and are skipped in averages.
#   Ratios are None when either operand is None or the denominator is 0.
#
# All methods are pure functions of (rows, binding).
# =============================================================================

from __future__ import annotations

import enum
from collections.abc import Hashable, Mapping, Sequence
from dataclasses import dataclass

from app.kpi.cells import Cell
from app.kpi.normalizer import RowSet
from app.kpi.roles import Role, RoleBinding


class RatioKind(str, enum.Enum):
    """How a ratio metric is expressed."""

    PERCENT = "percent"    # 100 * n / d — margins, rates, returns
    MULTIPLE = "multiple"  # n / d — leverage (debt-to-equity)


@dataclass(frozen=True)
class BreakdownEntry:
    """One slice of a dimensional breakdown."""

    key: str
    value: float
    percentage: float


def ratio(
    numerator: float | None,
    denominator: float | None,
    kind: RatioKind = RatioKind.PERCENT,
) -> float | None:
    """
    Divide two aggregate metrics under the null-state contract.

    >>> ratio(25.0, 200.0)
    12.5
    >>> ratio(3.0, 2.0, RatioKind.MULTIPLE)
    1.5
    >>> ratio(5.0, 0.0) is None
    True
    """
    if numerator is None or denominator is None or denominator == 0:
        return None
    value = numerator / denominator
    if kind is RatioKind.PERCENT:
        return value * 100
    return value


def growth(current: float, previous: float) -> float | None:
    """Percent change from `previous` to `current`; None when previous is 0."""
    if previous == 0:
        return None
    return (current - previous) / previous * 100


class Aggregator:
    """Aggregate metrics over a RowSet through a RoleBinding."""

    def __init__(self, rows: RowSet, binding: RoleBinding) -> None:
        self.rows = rows
        self.binding = binding

    def total(self, *roles: Hashable) -> float | None:
        """
        Sum the first bound role among `roles`.

        Returns None only when none of the candidate roles is bound.
        """
        column = self._first_bound(roles)
        if column is None:
            return None
        return self.column_total(column)

    def column_total(self, column: str) -> float:
        total = 0.0
        for cell in self.rows.cells(column):
            number = cell.number
            if number is not None:
                total += number
        return total

    def average(self, role: Hashable) -> float | None:
        """Mean over numeric cells; None if unbound or nothing numeric."""
        column = self.binding.get(role)
        if column is None:
            return None

        values = [
            cell.number for cell in self.rows.cells(column)
            if cell.number is not None
        ]
        if not values:
            return None
        return sum(values) / len(values)

    def label_range(self, role: Hashable) -> tuple[str | None, str | None]:
        """
        Lexicographic (min, max) of the non-missing labels of a role.

        Used for the dataset date range. Labels are compared as strings,
        so ISO dates order correctly and "1/12/2014"-style dates do not.
        """
        column = self.binding.get(role)
        if column is None:
            return None, None

        labels = sorted(
            cell.label for cell in self.rows.cells(column)
            if cell.label is not None
        )
        if not labels:
            return None, None
        return labels[0], labels[-1]

    def breakdown_by(
        self,
        dimension: Hashable,
        measure: Hashable = Role.SALES,
        unknown_label: str = "Unknown",
    ) -> list[BreakdownEntry]:
        """
        Split the measure total across the values of a dimension role.

        Empty when either role is unbound.
        """
        column = self.binding.get(dimension)
        if column is None:
            return []
        return self.breakdown_by_column(column, measure, unknown_label)

    def breakdown_by_column(
        self,
        column: str,
        measure: Hashable = Role.SALES,
        unknown_label: str = "Unknown",
    ) -> list[BreakdownEntry]:
        """
        Split the measure total across the literal values of `column`.

        - Rows without a value are bucketed under `unknown_label`.
        - Sorted descending by value; ties keep first-seen order.
        - Percentages are shares of the grand total when it is positive,
          otherwise 0.
        """
        measure_column = self.binding.get(measure)
        if measure_column is None or column not in self.rows.columns:
            return []

        buckets: dict[str, float] = {}
        for row in self.rows.rows:
            dimension_cell = row.get(column)
            key = dimension_cell.label if dimension_cell is not None else None
            if key is None:
                key = unknown_label

            measure_cell = row.get(measure_column)
            amount = measure_cell.number if measure_cell is not None else None
            buckets[key] = buckets.get(key, 0.0) + (amount or 0.0)

        grand_total = sum(buckets.values())
        entries = [
            BreakdownEntry(
                key=key,
                value=value,
                percentage=(value / grand_total * 100) if grand_total > 0 else 0.0,
            )
            for key, value in buckets.items()
        ]
        entries.sort(key=lambda entry: entry.value, reverse=True)
        return entries

    def group_totals(
        self,
        keys: Sequence[Hashable],
        measures: Sequence[Hashable],
        missing_label: str = "Unknown",
        required: Sequence[Hashable] | None = None,
    ) -> dict[str, tuple[float, ...]]:
        """
        Sum several measures per composite key, in first-seen key order.

        The key is the labels of `keys` joined with "-". Rows missing a
        `required` role (default: the first key) are skipped; other missing
        parts become `missing_label`. Unbound measures sum to 0. Empty
        when any key role is unbound.
        """
        key_columns = [self.binding.get(role) for role in keys]
        if not key_columns or any(column is None for column in key_columns):
            return {}
        measure_columns = [self.binding.get(role) for role in measures]
        required_columns = (
            [self.binding.get(role) for role in required]
            if required is not None else key_columns[:1]
        )

        totals: dict[str, list[float]] = {}
        for row in self.rows.rows:
            if any(_label(row, column) is None for column in required_columns):
                continue
            labels = [_label(row, column) for column in key_columns]
            key = "-".join(label or missing_label for label in labels)

            acc = totals.setdefault(key, [0.0] * len(measure_columns))
            for i, column in enumerate(measure_columns):
                acc[i] += _number(row, column)

        return {key: tuple(acc) for key, acc in totals.items()}

    # -----------------------------------------------------------------------
    # Internal Helpers
    # -----------------------------------------------------------------------

    def _first_bound(self, roles: tuple[Hashable, ...]) -> str | None:
        for role in roles:
            column = self.binding.get(role)
            if column is not None:
                return column
        return None


def _label(row: Mapping[str, Cell], column: str | None) -> str | None:
    if column is None:
        return None
    cell = row.get(column)
    return cell.label if cell is not None else None


def _number(row: Mapping[str, Cell], column: str | None) -> float:
    if column is None:
        return 0.0
    cell = row.get(column)
    if cell is None or cell.number is None:
        return 0.0
    return cell.number
