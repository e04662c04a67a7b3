"""Pattern translator for the structured fallback path.

When the generic execution path is unavailable, a bounded set of query
shapes is recognized and re-expressed as calls against the
capability-limited structured API (select, equality filter, limit, count,
group-count). This is deliberately not a parser: the supported language is
exactly the list of rules below.

Rules are tried in a fixed priority order, most specific first, and the
first rule that matches wins. Reordering PATTERN_RULES changes which
queries are accepted, so the order is part of the contract.

Identifiers are folded to lower case the way Postgres folds unquoted names;
string literals keep their case.
"""
import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional

from .backends.base import BackendAdapter
from .cancellation import CancellationToken, check
from .errors import UnsupportedPatternError
from .schemas_query import Predicate, Row, StructuredQuery

logger = logging.getLogger(__name__)


DEFAULT_COUNT_ALIAS = "count"

_IDENT = r"(\w+)"
_COLUMN_LIST = r"(\w+(?:\s*,\s*\w+)*)"
_LIMIT = r"(?:\s+limit\s+(\d+))?"
_END = r"(?:\s*;)?"
_COUNT_STAR = r"count\s*\(\s*\*\s*\)"
_ALIAS = r"(?:\s+as\s+(\w+))?"
_STRING = r"'((?:[^']|'')*)'"
_NUMBER = r"(-?\d+(?:\.\d+)?)"


@dataclass(frozen=True)
class PatternRule:
    """One recognizable query shape.

    Attributes:
        name: Stable identifier reported in results and logs
        shape: Human-readable form listed in UnsupportedPattern errors
        pattern: Compiled, case-insensitive recognizer
        build: Turns the match into a StructuredQuery; returning None
               means the shape did not really match (e.g. GROUP BY on a
               different column than the one selected)
        loose: Search anywhere in the text instead of matching all of it
    """
    name: str
    shape: str
    pattern: re.Pattern
    build: Callable[[re.Match], Optional[StructuredQuery]]
    loose: bool = False

    def apply(self, text: str) -> Optional[StructuredQuery]:
        match = self.pattern.search(text) if self.loose else self.pattern.fullmatch(text)
        if match is None:
            return None
        return self.build(match)


def _rule(name: str, shape: str, regex: str, build, loose: bool = False) -> PatternRule:
    return PatternRule(name, shape, re.compile(regex, re.IGNORECASE | re.DOTALL), build, loose)


def _ident(value: str) -> str:
    return value.lower()


def _limit(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


def _number(value: str):
    return float(value) if "." in value else int(value)


def _build_select_all(m: re.Match) -> StructuredQuery:
    return StructuredQuery(table=_ident(m.group(1)), columns="*", limit=_limit(m.group(2)))


def _build_count(m: re.Match) -> StructuredQuery:
    alias = _ident(m.group(1)) if m.group(1) else DEFAULT_COUNT_ALIAS
    return StructuredQuery(table=_ident(m.group(2)), aggregate="count", result_alias=alias)


def _build_where_string(m: re.Match) -> StructuredQuery:
    return StructuredQuery(
        table=_ident(m.group(1)),
        predicate=Predicate(column=_ident(m.group(2)), value=m.group(3).replace("''", "'")),
        limit=_limit(m.group(4)),
    )


def _build_where_number(m: re.Match) -> StructuredQuery:
    return StructuredQuery(
        table=_ident(m.group(1)),
        predicate=Predicate(column=_ident(m.group(2)), value=_number(m.group(3))),
        limit=_limit(m.group(4)),
    )


def _build_select_columns(m: re.Match) -> StructuredQuery:
    columns = tuple(_ident(c.strip()) for c in m.group(1).split(","))
    return StructuredQuery(table=_ident(m.group(2)), columns=columns, limit=_limit(m.group(3)))


def _build_group_count(m: re.Match) -> Optional[StructuredQuery]:
    column, group_column = _ident(m.group(1)), _ident(m.group(4))
    if column != group_column:
        return None
    alias = _ident(m.group(2)) if m.group(2) else DEFAULT_COUNT_ALIAS
    return StructuredQuery(
        table=_ident(m.group(3)),
        columns=(column,),
        aggregate="group_count",
        group_by=column,
        result_alias=alias,
    )


def _build_loose_select_all(m: re.Match) -> StructuredQuery:
    return StructuredQuery(table=_ident(m.group(1)), columns="*")


PATTERN_RULES: tuple[PatternRule, ...] = (
    _rule(
        "select_all",
        "SELECT * FROM table [LIMIT n]",
        rf"select\s+\*\s+from\s+{_IDENT}{_LIMIT}{_END}",
        _build_select_all,
    ),
    _rule(
        "count_all",
        "SELECT COUNT(*) [AS alias] FROM table",
        rf"select\s+{_COUNT_STAR}{_ALIAS}\s+from\s+{_IDENT}{_END}",
        _build_count,
    ),
    _rule(
        "where_string",
        "SELECT * FROM table WHERE column = 'text' [LIMIT n]",
        rf"select\s+\*\s+from\s+{_IDENT}\s+where\s+{_IDENT}\s*=\s*{_STRING}{_LIMIT}{_END}",
        _build_where_string,
    ),
    _rule(
        "where_number",
        "SELECT * FROM table WHERE column = number [LIMIT n]",
        rf"select\s+\*\s+from\s+{_IDENT}\s+where\s+{_IDENT}\s*=\s*{_NUMBER}{_LIMIT}{_END}",
        _build_where_number,
    ),
    _rule(
        "select_columns",
        "SELECT col1, col2 FROM table [LIMIT n]",
        rf"select\s+{_COLUMN_LIST}\s+from\s+{_IDENT}{_LIMIT}{_END}",
        _build_select_columns,
    ),
    _rule(
        "group_count",
        "SELECT column, COUNT(*) [AS alias] FROM table GROUP BY column",
        rf"select\s+{_IDENT}\s*,\s*{_COUNT_STAR}{_ALIAS}\s+from\s+{_IDENT}\s+group\s+by\s+{_IDENT}{_END}",
        _build_group_count,
    ),
    # Last resort: a bare or table-qualified * in the projection (not COUNT(*)),
    # first FROM table wins, other clauses ignored
    _rule(
        "loose_select_all",
        "... SELECT [DISTINCT] * | t.* [, ...] FROM table ... (additional clauses ignored)",
        rf"\bselect\b[^;]*?(?<![\w(])(?:\w+\.)?\*\s*(?:,[^;]*?)?\bfrom\s+{_IDENT}",
        _build_loose_select_all,
        loose=True,
    ),
)


def translate(cleaned_text: str) -> Optional[tuple[PatternRule, StructuredQuery]]:
    """Map cleaned query text onto a structured query.

    Returns:
        ``(rule, query)`` for the first matching rule, or None if no rule
        recognizes the text
    """
    for rule in PATTERN_RULES:
        query = rule.apply(cleaned_text)
        if query is not None:
            return rule, query
    return None


def supported_shapes() -> list[str]:
    return [rule.shape for rule in PATTERN_RULES]


def unsupported_pattern_error(cleaned_text: str) -> UnsupportedPatternError:
    shapes = supported_shapes()
    listing = "\n".join(f"  - {s}" for s in shapes)
    return UnsupportedPatternError(
        "Query pattern not supported by the structured query fallback. "
        f"Supported shapes (optional trailing semicolon):\n{listing}",
        details={"query": cleaned_text, "supported_shapes": shapes},
    )


def execute_structured(
    query: StructuredQuery,
    backend: BackendAdapter,
    cancel_token: Optional[CancellationToken] = None
) -> list[Row]:
    """Issue a structured query against the backend.

    Count and group-count are computed here rather than delegated to the
    generic path. Group-count fetches every value of the column and
    aggregates in process: an unbounded fetch with no server-side grouping.
    """
    if query.aggregate == "count":
        total = backend.count(query.table, cancel_token=cancel_token)
        return [{query.result_alias or DEFAULT_COUNT_ALIAS: total}]

    if query.aggregate == "group_count":
        values = backend.column_values(query.table, query.group_by, cancel_token=cancel_token)
        check(cancel_token, "group_count aggregation")
        counts = Counter(values)
        alias = query.result_alias or DEFAULT_COUNT_ALIAS
        logger.debug("Grouped %d values of %s.%s into %d groups", len(values), query.table, query.group_by, len(counts))
        return [{query.group_by: value, alias: n} for value, n in counts.items()]

    return backend.structured_query(
        query.table,
        query.columns,
        predicate=query.predicate,
        limit=query.limit,
        order_by=query.order_by,
        cancel_token=cancel_token,
    )
