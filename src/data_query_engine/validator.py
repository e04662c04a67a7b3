"""Read-only query validator.

Pure function, no I/O. Decides whether a loosely-trusted query string may
run at all and returns the cleaned text the rest of the pipeline uses.

Rules, in order:
  1. Non-empty after trimming
  2. Trailing statement terminators stripped
  3. Must start with SELECT
  4. No mutating keyword as a whole word
  5. A single statement only
"""
import re

from .errors import (
    EmptyQueryError,
    NotReadOnlyError,
    ForbiddenKeywordError,
    MultipleStatementsError,
)


READ_ONLY_KEYWORD = "select"

# Mutating / privilege keywords that are never allowed, even inside a SELECT
FORBIDDEN_KEYWORDS = (
    "insert", "update", "delete", "drop", "alter", "create", "truncate",
    "grant", "revoke", "exec", "call",
)

# Word-boundary matching: "created_at" or "last_update" are plain identifiers
_FORBIDDEN_PATTERN = re.compile(
    r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b",
    re.IGNORECASE,
)
_READ_ONLY_PATTERN = re.compile(r"^" + READ_ONLY_KEYWORD + r"\b", re.IGNORECASE)
_TRAILING_TERMINATORS = re.compile(r"[;\s]+$")
_INTERNAL_STATEMENT = re.compile(r";\s*\S")


def normalize(raw_text: str) -> str:
    """Trim and strip one or more trailing ``;`` (with interleaved whitespace)."""
    return _TRAILING_TERMINATORS.sub("", raw_text.strip()).strip()


def find_forbidden_keyword(text: str) -> str | None:
    """Return the first mutating keyword present as a whole word, if any."""
    match = _FORBIDDEN_PATTERN.search(text)
    return match.group(1).lower() if match else None


def validate(raw_text: str) -> str:
    """Validate a query and return its cleaned text.

    Args:
        raw_text: Query text as received from the caller

    Returns:
        Cleaned query text (trimmed, trailing terminators removed)

    Raises:
        EmptyQueryError: Nothing left after trimming
        NotReadOnlyError: Does not start with SELECT
        ForbiddenKeywordError: Contains a mutating keyword as a whole word
        MultipleStatementsError: A terminator is followed by more text
    """
    if raw_text is None or not raw_text.strip():
        raise EmptyQueryError("Query is empty")

    cleaned = normalize(raw_text)
    if not cleaned:
        raise EmptyQueryError("Query is empty after removing statement terminators")

    if not _READ_ONLY_PATTERN.match(cleaned):
        raise NotReadOnlyError(
            "Only SELECT statements are allowed",
            details={"received": cleaned[:50]},
        )

    keyword = find_forbidden_keyword(cleaned)
    if keyword:
        raise ForbiddenKeywordError(f"Keyword '{keyword.upper()}' is not allowed", keyword=keyword)

    if _INTERNAL_STATEMENT.search(cleaned):
        raise MultipleStatementsError("Multiple SQL statements are not allowed")

    return cleaned
