# =============================================================================
# Unit Tests — Statement KPI Engine
# =============================================================================

import pytest

from app.kpi.statements import StatementKPIEngine

RECORDS = [
    {
        "company_name": "Acme", "fiscal_year": 2022, "fiscal_period": "Q4",
        "revenue": 100_000_000, "gross_profit": 40_000_000,
        "operating_income": 20_000_000, "net_income": 10_000_000,
        "total_assets": 200_000_000, "total_liabilities": 90_000_000,
        "shareholders_equity": 60_000_000, "segment": "Cloud",
    },
    {
        "company_name": "Acme", "fiscal_year": 2023, "fiscal_period": "Q1",
        "revenue": 150_000_000, "gross_profit": 60_000_000,
        "operating_income": 30_000_000, "net_income": -5_000_000,
        "total_assets": 200_000_000, "total_liabilities": 90_000_000,
        "shareholders_equity": 60_000_000, "segment": None,
    },
]


class TestStatementKPIs:

    def test_totals_and_margins(self):
        kpis = StatementKPIEngine(RECORDS).calculate()
        assert kpis.total_revenue == 250_000_000
        assert kpis.gross_margin == pytest.approx(40.0)
        assert kpis.operating_margin == pytest.approx(20.0)
        assert kpis.net_margin == pytest.approx(2.0)

    def test_balance_sheet_ratios(self):
        kpis = StatementKPIEngine(RECORDS).calculate()
        assert kpis.debt_to_equity == pytest.approx(1.5)
        assert kpis.return_on_equity == pytest.approx(5_000_000 / 120_000_000 * 100)
        assert kpis.return_on_assets == pytest.approx(5_000_000 / 400_000_000 * 100)

    def test_growth_series(self):
        kpis = StatementKPIEngine(RECORDS).calculate()
        assert kpis.revenue_by_year == (("2022", 100_000_000.0), ("2023", 150_000_000.0))
        assert kpis.yoy_revenue_growth == pytest.approx(50.0)
        assert [p for p, _ in kpis.revenue_by_period] == ["2022-Q4", "2023-Q1"]
        assert kpis.qoq_revenue_growth == pytest.approx(50.0)

    def test_years_sort_numerically(self):
        records = [
            {"fiscal_year": 10000, "revenue": 1},
            {"fiscal_year": 9999, "revenue": 1},
        ]
        kpis = StatementKPIEngine(records).calculate()
        assert [y for y, _ in kpis.revenue_by_year] == ["9999", "10000"]

    def test_missing_segment_goes_to_other(self):
        kpis = StatementKPIEngine(RECORDS).calculate()
        assert [e.key for e in kpis.segment_breakdown] == ["Other", "Cloud"]

    def test_no_records(self):
        kpis = StatementKPIEngine([]).calculate()
        assert kpis.total_revenue == 0.0
        assert kpis.gross_margin is None
        assert kpis.yoy_revenue_growth is None
        assert kpis.debt_to_equity is None

    def test_single_year_has_no_growth(self):
        kpis = StatementKPIEngine(RECORDS[:1]).calculate()
        assert kpis.yoy_revenue_growth is None
        assert kpis.qoq_revenue_growth is None


class TestStatementSummary:

    def test_sections_and_formats(self):
        text = StatementKPIEngine(RECORDS).summary()
        assert text.startswith("# Financial KPI Summary")
        assert "- Total Revenue: $250.00M" in text
        assert "- Year-over-Year Growth: +50.00%" in text
        assert "- Net Margin: +2.00%" in text
        assert "- Debt-to-Equity Ratio: 1.50" in text
        assert "- Cloud: $100.00M (40.00% of total)" in text
        assert "- 2023: $150.00M" in text

    def test_empty_summary_has_na(self):
        text = StatementKPIEngine([]).summary()
        assert "- Total Revenue: $0.00M" in text
        assert "- Gross Margin: N/A" in text

    def test_to_dict(self):
        data = StatementKPIEngine(RECORDS).calculate().to_dict()
        assert data["revenue_by_year"][0] == {"year": "2022", "revenue": 100_000_000.0}
        assert data["segment_breakdown"][0]["key"] == "Other"
