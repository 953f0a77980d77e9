# =============================================================================
# Cell Values — Typed Sum Over Uploaded Data
# =============================================================================
#
# Uploaded CSVs have no declared schema: the same column can hold
# "$1,234.00", "1234", "" or "n/a" in different rows. Every raw value is
# parsed exactly once into one of three cell types:
#
#   NumericValue(value, text) — parsed number plus its source text
#   TextValue(text)           — non-empty, non-numeric text
#   Missing                   — None, empty string, NaN/inf, absent key
#
# Aggregation code asks a cell for `.number` (float or None) and `.label`
# (str or None) and must handle the None case explicitly.
#
# DESIGN DECISION: NumericValue keeps its source text. Period and dimension
# keys are built from labels, so a "Year" column holding 2014 produces the
# key "2014" whether the upstream store returned the int 2014, the float
# 2014.0 or the string "2014".
# =============================================================================

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

# Accounting-style numbers: optional sign, optional "$", thousands
# separators, optional decimals, optional exponent, optional trailing "%".
_NUMBER_RE = re.compile(
    r"^[-+]?\$?[-+]?(\d{1,3}(,\d{3})+|\d+)?(\.\d*)?([eE][-+]?\d+)?%?$"
)


@dataclass(frozen=True)
class NumericValue:
    """A cell that parsed as a finite number."""

    value: float
    text: str

    @property
    def number(self) -> float:
        return self.value

    @property
    def label(self) -> str:
        return self.text


@dataclass(frozen=True)
class TextValue:
    """A non-empty cell that is not a number."""

    text: str

    @property
    def number(self) -> None:
        return None

    @property
    def label(self) -> str:
        return self.text


@dataclass(frozen=True)
class Missing:
    """An absent or empty cell."""

    @property
    def number(self) -> None:
        return None

    @property
    def label(self) -> None:
        return None


MISSING = Missing()

Cell = NumericValue | TextValue | Missing


def parse_cell(raw: Any) -> Cell:
    """
    Parse a raw scalar from an uploaded row into a Cell.

    Examples:
        parse_cell(1200)          → NumericValue(1200.0, "1200")
        parse_cell(" $1,234.50 ") → NumericValue(1234.5, "$1,234.50")
        parse_cell("(300.00)")    → NumericValue(-300.0, "(300.00)")
        parse_cell("Government")  → TextValue("Government")
        parse_cell("   ")         → MISSING
    """
    if raw is None:
        return MISSING

    # bool is an int subclass; a True/False cell is a flag, not a quantity
    if isinstance(raw, bool):
        return TextValue(str(raw).lower())

    if isinstance(raw, (int, float)):
        value = float(raw)
        if not math.isfinite(value):
            return MISSING
        return NumericValue(value, _number_text(raw))

    text = str(raw).strip()
    if not text:
        return MISSING

    value = _parse_number(text)
    if value is None:
        return TextValue(text)
    return NumericValue(value, text)


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _number_text(raw: int | float) -> str:
    """Render a JSON number the way it was most likely written."""
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    return str(raw)


def _parse_number(text: str) -> float | None:
    negative = False
    candidate = text.replace(" ", "")

    # Accounting negatives: (1,234.00) or ($1,234.00)
    if candidate.startswith("(") and candidate.endswith(")"):
        negative = True
        candidate = candidate[1:-1]
        # the parentheses are the sign
        if candidate.lstrip("$").startswith(("-", "+")):
            return None

    if not candidate or not _NUMBER_RE.match(candidate):
        return None

    cleaned = candidate.replace("$", "").replace(",", "").rstrip("%")
    if cleaned in ("", "+", "-", ".", "+.", "-."):
        return None

    try:
        value = float(cleaned)
    except ValueError:
        return None

    if not math.isfinite(value):
        return None
    return -value if negative else value
