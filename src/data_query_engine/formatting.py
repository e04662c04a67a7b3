"""Display helpers for result rows: field masking and a plain-text summary.

Kept outside the engine; the transport applies them per caller role.
"""
from typing import Any, Iterable

MASK_VALUE = "***"
SUMMARY_MAX_CHARS = 2000


def mask_sensitive_fields(rows: list[dict[str, Any]], fields: Iterable[str]) -> list[dict[str, Any]]:
    """Return copies of ``rows`` with the given fields replaced by ``***``."""
    fields = set(fields)
    return [
        {key: MASK_VALUE if key in fields else value for key, value in row.items()}
        for row in rows
    ]


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return f"[Array with {len(value)} items]"
    if isinstance(value, dict):
        return "{Object}"
    return str(value)


def format_results_summary(rows: list[dict[str, Any]] | None, mask_fields: Iterable[str] = ()) -> str:
    """Record-by-record text summary, truncated to SUMMARY_MAX_CHARS."""
    if not rows:
        return "No data found for your query."

    masked = mask_sensitive_fields(rows, mask_fields)
    lines = [f"Found {len(masked)} record(s):", ""]
    for i, row in enumerate(masked, start=1):
        lines.append(f"Record {i}:")
        lines.extend(f"  {key}: {_format_value(value)}" for key, value in row.items())
        lines.append("")

    summary = "\n".join(lines)
    if len(summary) > SUMMARY_MAX_CHARS:
        summary = summary[:SUMMARY_MAX_CHARS] + "\n... (truncated)"
    return summary
