# =============================================================================
# CSV Ingestion — Uploaded File → Column Vocabulary + Raw Rows
# =============================================================================
#
# Reads an uploaded CSV with pandas and returns the header row and the data
# rows as plain {column: value} dicts, ready for JSONB storage.
#
# DESIGN DECISION: Every cell is read as TEXT (dtype=str, no NA inference).
# Typing happens once, later, in the KPI engine (app/kpi/cells.py), which
# understands "$1,234.50", "(200)" and "12%". Letting pandas infer dtypes
# here would turn "00123" into 123 and blank cells into NaN floats.
#
# RULES:
#   - Header and values are whitespace-trimmed.
#   - Quoted fields may contain commas and doubled quotes ("").
#   - Rows with more fields than the header are skipped; short rows are
#     padded with missing values (None).
#   - Fully blank rows are skipped.
#   - A file with a header but no valid rows is an error.
# =============================================================================

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

import pandas as pd

logger = logging.getLogger(__name__)


class CsvIngestError(ValueError):
    """The upload is not a usable CSV file. Mapped to HTTP 400."""


@dataclass
class ParsedCsv:
    columns: list[str]
    rows: list[dict[str, str | None]]


def parse_csv(content: bytes, max_rows: int | None = None) -> ParsedCsv:
    """
    Parse uploaded CSV bytes.

    Raises:
        CsvIngestError: Undecodable, empty, malformed, or no valid rows,
            or more than `max_rows` data rows.
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CsvIngestError("File is not UTF-8 encoded text.") from exc

    if not text.strip():
        raise CsvIngestError("Uploaded file is empty.")

    # header=None: the header is read as row 0, so a long first data row
    # cannot be taken for an implicit index column
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            on_bad_lines="skip",
            quoting=csv.QUOTE_MINIMAL,
            engine="python",
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise CsvIngestError(f"Could not parse CSV: {exc}") from exc

    columns = [str(column).strip() for column in frame.iloc[0]]
    frame = frame.iloc[1:]
    frame.columns = columns

    rows: list[dict[str, str | None]] = []
    for record in frame.to_dict(orient="records"):
        values = {
            column: (value.strip() if isinstance(value, str) else None)
            for column, value in record.items()
        }
        if all(value in ("", None) for value in values.values()):
            continue
        rows.append(values)

    if not rows:
        raise CsvIngestError("No valid records found in CSV.")
    if max_rows is not None and len(rows) > max_rows:
        raise CsvIngestError(
            f"CSV has {len(rows)} rows; the limit is {max_rows}."
        )

    logger.info("Parsed CSV: %d columns, %d rows", len(columns), len(rows))
    return ParsedCsv(columns=columns, rows=rows)
