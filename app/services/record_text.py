# =============================================================================
# Record Text Renderer — Statement Record → Embeddable Text Block
# =============================================================================
#
# Statement records are embedded as a fixed "Label: value" block so that
# similarity search over them works on plain text:
#
#   Company: Acme Corp
#   Fiscal Year: 2024
#   Fiscal Period: Q2
#   Revenue: $1,250,000
#   ...
#   Segment: Cloud
#
# Missing values render as "N/A"; money values as "$1,234.5".
# The line order is fixed; changing it changes every stored embedding.
# =============================================================================

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# (label, field, is_money)
RECORD_LINES: tuple[tuple[str, str, bool], ...] = (
    ("Company", "company_name", False),
    ("Fiscal Year", "fiscal_year", False),
    ("Fiscal Period", "fiscal_period", False),
    ("Revenue", "revenue", True),
    ("Cost of Revenue", "cost_of_revenue", True),
    ("Gross Profit", "gross_profit", True),
    ("Operating Expenses", "operating_expenses", True),
    ("Operating Income", "operating_income", True),
    ("Net Income", "net_income", True),
    ("Total Assets", "total_assets", True),
    ("Total Liabilities", "total_liabilities", True),
    ("Shareholders Equity", "shareholders_equity", True),
    ("Segment", "segment", False),
)


def render_record_text(record: Mapping[str, Any]) -> str:
    """Render one statement record as its embeddable text block."""
    lines = []
    for label, key, is_money in RECORD_LINES:
        value = record.get(key)
        if value is None or value == "":
            rendered = "N/A"
        elif is_money:
            rendered = _money(value)
        else:
            rendered = str(value)
        lines.append(f"{label}: {rendered}")
    return "\n".join(lines)


def record_metadata(record: Mapping[str, Any]) -> dict[str, Any]:
    """Metadata stored alongside each chunk of a record."""
    return {
        "company_name": record.get("company_name"),
        "fiscal_year": record.get("fiscal_year"),
        "fiscal_period": record.get("fiscal_period"),
    }


def _money(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    # Thousands separators, up to three decimals, no trailing zeros
    text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return f"${text}"
