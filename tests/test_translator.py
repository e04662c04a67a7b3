"""Tests for the fallback pattern translator."""
import pytest

from data_query_engine.translator import (
    PATTERN_RULES,
    translate,
    supported_shapes,
    unsupported_pattern_error,
    execute_structured,
)
from data_query_engine.schemas_query import Predicate, StructuredQuery
from data_query_engine.errors import BackendExecutionError


def rule_for(text: str) -> str | None:
    translated = translate(text)
    return translated[0].name if translated else None


class TestRuleOrder:
    """The recognition order is part of the contract."""

    def test_rule_order_is_fixed(self):
        assert [r.name for r in PATTERN_RULES] == [
            "select_all",
            "count_all",
            "where_string",
            "where_number",
            "select_columns",
            "group_count",
            "loose_select_all",
        ]

    def test_rules_are_immutable(self):
        assert isinstance(PATTERN_RULES, tuple)
        with pytest.raises(Exception):
            PATTERN_RULES[0].name = "other"

    def test_specific_rule_wins_over_loose_rule(self):
        # Also matches the loose rule; the where rule must win
        assert rule_for("SELECT * FROM users WHERE city = 'Chicago'") == "where_string"


class TestSelectAll:

    def test_plain(self):
        rule, query = translate("SELECT * FROM users")
        assert rule.name == "select_all"
        assert query == StructuredQuery(table="users", columns="*")

    def test_with_limit_and_semicolon(self):
        _, query = translate("select * from Users limit 5;")
        assert query.table == "users"
        assert query.limit == 5


class TestCount:

    def test_default_alias(self):
        rule, query = translate("SELECT COUNT(*) FROM users")
        assert rule.name == "count_all"
        assert query.aggregate == "count"
        assert query.result_alias == "count"

    def test_explicit_alias(self):
        _, query = translate("SELECT COUNT(*) as total FROM products")
        assert query.table == "products"
        assert query.result_alias == "total"

    def test_count_with_where_is_not_count_rule(self):
        assert rule_for("SELECT COUNT(*) FROM users WHERE city = 'Chicago'") is None


class TestWhere:

    def test_string_literal_keeps_case(self):
        rule, query = translate("SELECT * FROM users WHERE city = 'Chicago'")
        assert rule.name == "where_string"
        assert query.table == "users"
        assert query.predicate == Predicate(column="city", value="Chicago")

    def test_string_literal_with_escaped_quote(self):
        _, query = translate("SELECT * FROM users WHERE last_name = 'O''Brien' LIMIT 2")
        assert query.predicate.value == "O'Brien"
        assert query.limit == 2

    def test_integer_literal(self):
        rule, query = translate("SELECT * FROM users WHERE id = 3")
        assert rule.name == "where_number"
        assert query.predicate.value == 3
        assert isinstance(query.predicate.value, int)

    def test_decimal_literal_with_limit(self):
        _, query = translate("SELECT * FROM products WHERE price = 29.99 LIMIT 1")
        assert query.predicate.value == 29.99
        assert query.limit == 1


class TestSelectColumns:

    def test_column_list(self):
        rule, query = translate("SELECT id, first_name,email FROM users LIMIT 3")
        assert rule.name == "select_columns"
        assert query.columns == ("id", "first_name", "email")
        assert query.limit == 3

    def test_single_column(self):
        _, query = translate("SELECT name FROM products")
        assert query.columns == ("name",)


class TestGroupCount:

    def test_group_count(self):
        rule, query = translate("SELECT category, COUNT(*) as n FROM products GROUP BY category")
        assert rule.name == "group_count"
        assert query.aggregate == "group_count"
        assert query.group_by == "category"
        assert query.result_alias == "n"

    def test_default_alias(self):
        _, query = translate("select city, count(*) from users group by city")
        assert query.result_alias == "count"

    def test_mismatched_group_column_not_matched(self):
        assert rule_for("SELECT category, COUNT(*) FROM products GROUP BY name") is None


class TestLooseSelectAll:

    @pytest.mark.parametrize("text", [
        "SELECT * FROM users ORDER BY id",
        "SELECT * FROM users WHERE city IS NOT NULL",
        "SELECT * FROM users u JOIN orders o ON o.user_id = u.id",
    ])
    def test_extra_clauses_ignored(self, text):
        rule, query = translate(text)
        assert rule.name == "loose_select_all"
        assert query == StructuredQuery(table="users", columns="*")

    @pytest.mark.parametrize("text", [
        "SELECT DISTINCT * FROM users",
        "SELECT users.* FROM users",
        "SELECT *, id FROM users",
        "SELECT u.* FROM users u JOIN orders o ON o.user_id = u.id",
    ])
    def test_qualified_or_mixed_star_projection(self, text):
        rule, query = translate(text)
        assert rule.name == "loose_select_all"
        assert query.table == "users"

    @pytest.mark.parametrize("text", [
        "SELECT COUNT(*) FROM users WHERE city = 'Chicago'",
        "SELECT price * 2 FROM products",
    ])
    def test_star_outside_projection_not_matched(self, text):
        assert translate(text) is None


class TestNoMatch:

    @pytest.mark.parametrize("text", [
        "SELECT name, SUM(price) FROM products GROUP BY name",
        "SELECT id FROM users WHERE city = 'Chicago'",
        "SELECT 1",
        "SELECT DISTINCT city FROM users",
    ])
    def test_unsupported(self, text):
        assert translate(text) is None

    def test_error_lists_supported_shapes(self):
        error = unsupported_pattern_error("SELECT 1")
        for shape in supported_shapes():
            assert shape in error.message
        assert error.kind == "UnsupportedPattern"
        assert error.details["supported_shapes"] == supported_shapes()


class TestExecuteStructured:

    def test_rows(self, fallback_backend):
        query = StructuredQuery(table="users", predicate=Predicate(column="city", value="Chicago"))
        rows = execute_structured(query, fallback_backend)
        assert [r["id"] for r in rows] == [3, 5]

    def test_count(self, fallback_backend):
        query = StructuredQuery(table="products", aggregate="count", result_alias="total")
        assert execute_structured(query, fallback_backend) == [{"total": 6}]
        assert fallback_backend.calls == [("count", "products")]

    def test_group_count(self, fallback_backend):
        query = StructuredQuery(
            table="products", columns=("category",), aggregate="group_count",
            group_by="category", result_alias="n"
        )
        rows = execute_structured(query, fallback_backend)
        assert sorted(rows, key=lambda r: r["category"]) == [
            {"category": "Accessories", "n": 2},
            {"category": "Electronics", "n": 3},
            {"category": "Office", "n": 1},
        ]
        assert fallback_backend.calls == [("column_values", "products", "category")]

    def test_backend_error_propagates(self, fallback_backend):
        with pytest.raises(BackendExecutionError, match="does not exist"):
            execute_structured(StructuredQuery(table="missing"), fallback_backend)
