# =============================================================================
# KPI Package — Financial KPI Computation Engine
# =============================================================================
# Pure, synchronous computation over uploaded tabular data. No I/O, no
# database access, no shared state: the API layer fetches datasets and
# hands them in, the engine hands back a KPI set and a text summary.
#
#   cells.py      → typed cell values (numeric / text / missing)
#   normalizer.py → flatten datasets into one row set + column vocabulary
#   roles.py      → synonym table and column resolver (role → column)
#   aggregator.py → totals, averages, ratios, dimensional breakdowns
#   periods.py    → period buckets, trends, period-over-period growth
#   engine.py     → flexible (schema-less) KPI engine
#   statements.py → fixed-schema financial statement KPI engine
#   formatter.py  → deterministic KPI summary text (LLM context)
# =============================================================================

from app.kpi.engine import AnalysisConfig, FlexibleKPIEngine, FlexibleKPISet
from app.kpi.normalizer import RawDataset, RowSet, normalize
from app.kpi.periods import ComparisonType
from app.kpi.statements import StatementKPIEngine, StatementKPISet

__all__ = [
    "AnalysisConfig",
    "ComparisonType",
    "FlexibleKPIEngine",
    "FlexibleKPISet",
    "RawDataset",
    "RowSet",
    "StatementKPIEngine",
    "StatementKPISet",
    "normalize",
]
