# =============================================================================
# Tabular Record Normalizer
# =============================================================================
#
# Flattens one or more uploaded datasets into a single row set plus the
# column vocabulary used for role resolution.
#
# CONTRACT:
#   - Rows from all datasets are concatenated in input order.
#   - The column vocabulary is taken from the FIRST dataset. Datasets in one
#     computation are assumed to share a schema; this is not validated.
#   - Every raw value is parsed into a Cell (see cells.py). A row that lacks
#     a vocabulary column yields MISSING for it rather than a KeyError.
#   - An empty input yields an empty row set. There are no error conditions.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.kpi.cells import MISSING, Cell, parse_cell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawDataset:
    """
    One uploaded dataset as fetched from the store.

    `rows` may also be a single mapping: the upload endpoint of the first
    release stored one row per record, and those records still exist.
    """

    columns: Sequence[str] = field(default_factory=tuple)
    rows: Sequence[Mapping[str, Any]] | Mapping[str, Any] = field(
        default_factory=tuple,
    )


@dataclass(frozen=True)
class RowSet:
    """Normalized rows plus the column vocabulary of the first dataset."""

    columns: tuple[str, ...] = ()
    rows: tuple[Mapping[str, Cell], ...] = ()

    def __len__(self) -> int:
        return len(self.rows)

    def cells(self, column: str) -> Iterable[Cell]:
        """Yield the cell for `column` in every row, MISSING where absent."""
        for row in self.rows:
            yield row.get(column, MISSING)


def normalize(datasets: Iterable[RawDataset]) -> RowSet:
    """
    Concatenate the rows of all datasets into one RowSet.

    Pipeline position: first step of every KPI computation
    (normalize → resolve roles → aggregate → format).
    """
    columns: tuple[str, ...] | None = None
    rows: list[Mapping[str, Cell]] = []

    for dataset in datasets:
        if columns is None:
            columns = tuple(dataset.columns or ())

        raw_rows = dataset.rows
        if isinstance(raw_rows, Mapping):
            raw_rows = [raw_rows]

        for raw_row in raw_rows or ():
            if not isinstance(raw_row, Mapping):
                logger.debug("Skipping non-mapping row: %r", raw_row)
                continue
            rows.append(
                {str(key): parse_cell(value) for key, value in raw_row.items()}
            )

    row_set = RowSet(columns=columns or (), rows=tuple(rows))
    logger.debug(
        "Normalized %d rows with %d columns", len(row_set), len(row_set.columns),
    )
    return row_set
