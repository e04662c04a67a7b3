"""Tests for result masking and text summaries."""
from data_query_engine.formatting import MASK_VALUE, format_results_summary, mask_sensitive_fields


def test_mask_replaces_only_listed_fields(tables):
    rows = tables["users"][:1]
    masked = mask_sensitive_fields(rows, ["email"])
    assert masked[0]["email"] == MASK_VALUE
    assert masked[0]["first_name"] == "John"
    # Input untouched
    assert rows[0]["email"] == "john.doe@email.com"


def test_summary_empty():
    assert format_results_summary([]) == "No data found for your query."
    assert format_results_summary(None) == "No data found for your query."


def test_summary_records():
    summary = format_results_summary([{"id": 1, "email": "a@b.c"}], mask_fields=["email"])
    assert summary.startswith("Found 1 record(s):")
    assert "Record 1:" in summary
    assert "  id: 1" in summary
    assert "  email: ***" in summary


def test_summary_nested_values():
    summary = format_results_summary([{"tags": [1, 2, 3], "meta": {"a": 1}}])
    assert "tags: [Array with 3 items]" in summary
    assert "meta: {Object}" in summary


def test_summary_truncated():
    rows = [{"id": i, "note": "x" * 50} for i in range(100)]
    summary = format_results_summary(rows)
    assert summary.endswith("\n... (truncated)")
    assert len(summary) == 2000 + len("\n... (truncated)")
