# =============================================================================
# Unit Tests — Column Resolver
# =============================================================================

import pytest

from app.kpi.roles import (
    SYNONYM_TABLE,
    Role,
    RoleBinding,
    RoleSynonyms,
    match_column,
    resolve_roles,
)

FINANCIAL_SAMPLE_COLUMNS = [
    "Segment", "Country", "Product", "Discount Band", "Units Sold",
    "Manufacturing Price", "Sale Price", "Gross Sales", "Discounts",
    "Sales", "COGS", "Profit", "Date", "Month Number", "Month Name", "Year",
]


class TestMatchColumn:

    def test_exact_is_case_and_whitespace_insensitive(self):
        synonyms = RoleSynonyms(exact=("sales",))
        assert match_column(["  SALES "], synonyms) == "  SALES "

    def test_exact_beats_contains(self):
        synonyms = RoleSynonyms(exact=("sales",), contains=("sales",))
        assert match_column(["Gross Sales", "Sales"], synonyms) == "Sales"

    def test_synonym_priority_before_column_order(self):
        synonyms = RoleSynonyms(exact=("net sales", "revenue"))
        assert match_column(["Revenue", "Net Sales"], synonyms) == "Net Sales"

    def test_first_column_wins_for_one_synonym(self):
        synonyms = RoleSynonyms(contains=("sales",))
        assert match_column(["Gross Sales", "Net Sales"], synonyms) == "Gross Sales"

    def test_no_match(self):
        assert match_column(["Foo"], RoleSynonyms(exact=("bar",))) is None


class TestResolveRoles:

    def test_financial_sample_binding(self):
        binding = resolve_roles(FINANCIAL_SAMPLE_COLUMNS)
        assert binding.get(Role.SALES) == "Sales"
        assert binding.get(Role.GROSS_SALES) == "Gross Sales"
        assert binding.get(Role.UNITS) == "Units Sold"
        assert binding.get(Role.PRICE) == "Sale Price"
        assert binding.get(Role.DISCOUNTS) == "Discounts"
        assert binding.get(Role.DISCOUNT_BAND) == "Discount Band"
        assert binding.get(Role.MONTH) == "Month Name"
        assert binding.get(Role.YEAR) == "Year"

    def test_sparse_vocabulary(self):
        binding = resolve_roles(["Gross Sales", "COGS", "Country"])
        assert binding.get(Role.SALES) == "Gross Sales"
        assert binding.get(Role.COGS) == "COGS"
        assert binding.get(Role.COUNTRY) == "Country"
        assert binding.get(Role.SEGMENT) is None
        assert not binding.is_bound(Role.SEGMENT)

    def test_two_roles_may_share_a_column(self):
        binding = resolve_roles(["Gross Sales"])
        assert binding.get(Role.SALES) == binding.get(Role.GROSS_SALES)

    def test_discount_band_is_not_a_discount_amount(self):
        binding = resolve_roles(["Discount Band"])
        assert binding.get(Role.DISCOUNTS) is None

    def test_every_role_has_synonyms(self):
        assert {role for role, _ in SYNONYM_TABLE} == set(Role)


class TestRoleBinding:

    def test_immutable(self):
        binding = RoleBinding({Role.SALES: "Sales"})
        with pytest.raises(TypeError):
            binding.columns[Role.PROFIT] = "Profit"

    def test_identity(self):
        binding = RoleBinding.identity([Role.SALES, Role.YEAR])
        assert binding.get(Role.SALES) == "sales"
        assert binding.get(Role.YEAR) == "year"

    def test_to_dict_lists_every_role(self):
        data = RoleBinding({Role.SALES: "Sales"}).to_dict()
        assert data["sales"] == "Sales"
        assert data["segment"] is None
        assert len(data) == len(Role)
