"""
Source Lookup
=============
Regex and heuristic helpers that read cached sources to enrich frames.

Operations:
    gather_context(url, line)             — lines of source around a frame
    guess_function_name(url, line)        — name of the enclosing function
    find_source_in_line(fragment, ...)    — column of an identifier on a line
    find_source_in_urls(regex, urls)      — first match of a regex across sources
    find_source_by_function_body(func)    — where a function's body is defined

Contract:
    - Best-effort only. Duplicate identifiers or minified code can produce
      wrong names and locations; callers must treat results as unverified.
    - Never raises for missing sources: empty source → None / "?".
"""
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Optional

from errorwatch.core.config import LINES_OF_CONTEXT
from errorwatch.core.constants import MAX_GUESS_LINES, UNKNOWN_FUNCTION
from errorwatch.services.source_cache import SourceCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Regex Escaping
# ---------------------------------------------------------------------------
_SPECIAL_CHARS = re.compile(r"[\-\[\]{}()*+?.,\\^$|#]")
_WHITESPACE = re.compile(r"\s+")

# Characters an HTML page may have entity-encoded inside attributes
_HTML_ALTERNATIVES: dict[str, str] = {
    "<": "(?:<|&lt;)",
    ">": "(?:>|&gt;)",
    "&": "(?:&|&amp;)",
    '"': '(?:"|&quot;)',
}


def escape_regexp(text: str) -> str:
    """Escape regex metacharacters in `text`, leaving whitespace alone."""
    return _SPECIAL_CHARS.sub(r"\\\g<0>", text)


def normalize_whitespace(pattern: str) -> str:
    """Let every whitespace run in `pattern` match any whitespace run."""
    return _WHITESPACE.sub(r"\\s+", pattern)


def escape_code_for_html(body: str) -> str:
    """
    Escape a code fragment so it also matches its HTML-encoded form.

    Used to find handler code and inline script excerpts inside the
    document source, where < > & " may appear as entities.
    """
    escaped = re.sub(r'[<>&"]', lambda m: _HTML_ALTERNATIVES[m.group(0)], escape_regexp(body))
    return normalize_whitespace(escaped)


# ---------------------------------------------------------------------------
# Name Guessing Grammars
# ---------------------------------------------------------------------------
# foo = function(...) / "foo": function / foo = lambda
_GUESS_FUNCTION = re.compile(
    r"""['"]?([0-9A-Za-z$_]+)['"]?\s*[:=]\s*(function|eval|new Function|lambda)"""
)

# function foo(a, b) / def foo(a, b)
_FUNCTION_ARG_NAMES = re.compile(r"(?:function|def) ([^(]*)\(([^)]*)\)")


def _as_line_number(line: object) -> Optional[int]:
    try:
        return int(line)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class SourceLocation:
    """Where a code fragment was found."""
    url: str
    line: int
    column: int


class SourceLookup:
    """
    Frame enrichment on top of a SourceCache.

    Usage:
        lookup = SourceLookup(SourceCache(page=page))
        context = lookup.gather_context("http://example.com/app.js", 42)
        name = lookup.guess_function_name("http://example.com/app.js", 42)
    """

    def __init__(self, cache: SourceCache, lines_of_context: int = LINES_OF_CONTEXT) -> None:
        self.cache = cache
        self.lines_of_context = lines_of_context

    @property
    def page(self):
        return self.cache.page

    def gather_context(self, url: Optional[str], line: object) -> Optional[list[str]]:
        """
        Retrieve the source lines surrounding `line`.

        The window holds `lines_of_context` lines in total. For an odd total
        the offending line sits in the middle; for an even total the extra
        line goes *before* it. The window is clipped at file boundaries.

        Parameters
        ----------
        url : str | None
            Source URL.
        line : int
            1-based line number.

        Returns
        -------
        list[str] | None
            Context lines, or None if the source is empty or the window
            holds no lines.
        """
        line_no = _as_line_number(line)
        source = self.cache.get_lines(url)
        if not source or line_no is None:
            return None

        # both counts are inclusive of the offending line
        lines_before = self.lines_of_context // 2
        lines_after = lines_before + self.lines_of_context % 2
        start = max(0, line_no - lines_before - 1)
        end = min(len(source), line_no + lines_after - 1)

        context = source[start:end]
        return context or None

    def guess_function_name(self, url: Optional[str], line: object) -> str:
        """
        Guess the name of the function enclosing `line`.

        Walks backwards from the offending line for up to MAX_GUESS_LINES,
        prepending each earlier line to an accumulator, and returns the
        first assignment-style or declaration-style name found.

        Returns
        -------
        str
            The guessed name, or UNKNOWN_FUNCTION.
        """
        line_no = _as_line_number(line)
        source = self.cache.get_lines(url)
        if not source or line_no is None:
            return UNKNOWN_FUNCTION

        accumulated = ""
        for i in range(MAX_GUESS_LINES):
            index = line_no - 1 - i
            if index < 0:
                break
            if index >= len(source):
                continue
            accumulated = source[index] + accumulated

            m = _GUESS_FUNCTION.search(accumulated)
            if m:
                return m.group(1)
            m = _FUNCTION_ARG_NAMES.search(accumulated)
            if m:
                return m.group(1).strip() or UNKNOWN_FUNCTION

        return UNKNOWN_FUNCTION

    def find_source_in_line(self, fragment: str, url: Optional[str], line: object) -> Optional[int]:
        """Return the 0-based column of identifier `fragment` on `line`, if present."""
        line_no = _as_line_number(line)
        source = self.cache.get_lines(url)
        if not source or line_no is None or not fragment:
            return None

        index = line_no - 1
        if index < 0 or index >= len(source):
            return None

        m = re.search(r"\b" + escape_regexp(fragment) + r"\b", source[index])
        return m.start() if m else None

    def find_source_in_urls(self, regex: re.Pattern, urls: list[str]) -> Optional[SourceLocation]:
        """Return the location of the first match of `regex` in the sources of `urls`."""
        for url in urls:
            lines = self.cache.get_lines(url)
            if not lines:
                continue
            source = "\n".join(lines)
            m = regex.search(source)
            if m:
                pos = m.start()
                return SourceLocation(
                    url=url,
                    line=source.count("\n", 0, pos) + 1,
                    column=pos - source.rfind("\n", 0, pos) - 1,
                )
        return None

    def find_source_by_function_body(self, func: object, urls: list[str]) -> Optional[SourceLocation]:
        """
        Determine where a function was defined by searching for its source.

        The function's own source text is escaped and whitespace-normalized
        into a regex, then searched for across `urls`. Identical bodies in
        several places will match the first one found.

        Parameters
        ----------
        func : function | code object
            Anything inspect.getsource() accepts.
        urls : list[str]
            Candidate sources, searched in order.
        """
        try:
            code = inspect.getsource(func).strip()
        except (OSError, TypeError, IndexError):
            return None
        if not code:
            return None

        regex = re.compile(normalize_whitespace(escape_regexp(code)))
        return self.find_source_in_urls(regex, urls)
