"""FTS5 MATCH query preparation shared by the title and body indexes."""
import logging
import re
from typing import Callable, List, Optional, TypeVar

from notevault.exceptions import StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FTS5_KEYWORDS = {"AND", "OR", "NOT", "NEAR"}

# Engine messages for a MATCH expression it cannot parse
QUERY_SYNTAX_MARKERS = (
    "fts5: syntax error",
    "no such column",
    "unterminated string",
    "unknown special query",
)

SNIPPET_OPEN = "<mark>"
SNIPPET_CLOSE = "</mark>"
SNIPPET_ELLIPSIS = "..."
SNIPPET_TOKENS = 32


def uses_fts_syntax(query: str) -> bool:
    """Detect whether a query already speaks FTS5 query syntax.

    FTS5 operators are case-sensitive, so lowercase "and" is a plain word.
    """
    words = query.split()
    if any(kw in words for kw in FTS5_KEYWORDS):
        return True
    if query.count('"') >= 2:
        return True
    if re.search(r"\b\w+\*", query):
        return True
    if re.search(r"\b\w+:", query):
        return True
    return False


def escape_phrase(query: str) -> str:
    """Escape text into a single quoted FTS5 phrase."""
    result = query.replace('"', '""')
    result = re.sub(r"[*^]", "", result)
    return f'"{result}"'


def prepare_match_query(keyword: Optional[str]) -> Optional[str]:
    """Turn user input into a MATCH expression.

    Returns:
        None for blank input (callers return no rows instead of querying),
        otherwise a MATCH expression safe to bind.
    """
    if keyword is None or not keyword.strip():
        return None

    query = keyword.strip()
    if uses_fts_syntax(query):
        return query
    return escape_phrase(query)


def is_query_syntax_error(error: StorageError) -> bool:
    """True when the engine rejected the MATCH expression itself."""
    message = str(error.original_error or error).lower()
    return any(marker in message for marker in QUERY_SYNTAX_MARKERS)


def search_with_fallback(keyword: Optional[str], run: Callable[[str], List[T]]) -> List[T]:
    """Run ``run`` with the prepared MATCH expression for ``keyword``.

    Input that looked like FTS5 syntax but is rejected by the engine (a
    title such as "Meeting: agenda" reads as a column filter) is retried
    once as a quoted phrase. Other store failures propagate.
    """
    query = prepare_match_query(keyword)
    if query is None:
        return []

    try:
        return run(query)
    except StorageError as e:
        phrase = escape_phrase(keyword.strip())
        if query == phrase or not is_query_syntax_error(e):
            raise
        logger.warning(f"MATCH rejected {query!r} ({e.original_error}); retrying as phrase")
        return run(phrase)
