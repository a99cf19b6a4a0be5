"""
Native Trace Strategy
=====================
Parses the newline-delimited `stack` string of V8, WinJS and Gecko engines,
and Python tracebacks.

Dialects (tried per line, first match wins, non-matching lines skipped):

    Python: '  File "/srv/app/views.py", line 10, in index'
    V8:     "    at fn (http://host/app.js:10:5)"
            "    at http://host/app.js:10:5"            (via WinJS grammar)
            "    at eval (eval at fn (http://host/app.js:3:7), <anonymous>:1:1)"
    WinJS:  "    at fn (ms-appx://app/js/main.js:10:5)"
    Gecko:  "fn@http://host/app.js:10:5"
            "fn/<@http://host/app.js line 3 > eval:1:1"

Special cases:
    - Python tracebacks list the most recent call last; their frames are
      reversed so that frame 0 is still where the error occurred.
    - eval wrappers are unwrapped to the url/line/column of the code that
      called eval, not the eval'd snippet's own coordinates.
    - Gecko omits the column on frame 0; it is back-filled from the error's
      columnNumber (0-based, hence +1).
    - "X is undefined" messages: the top frame's column is recovered from
      the first word-bounded occurrence of X on that source line.
"""
import logging
import re
from typing import Optional

from errorwatch.core.constants import MODE_NATIVE_TRACE, UNKNOWN_FUNCTION
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.strategies.base import RecoveryStrategy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Line Grammars
# ---------------------------------------------------------------------------
# at fn (url:line:col); url may be absolute, a scheme, or a bare file name
_CHROME = re.compile(
    r"^\s*at (.*?) ?\("
    r"((?:file|https?|blob|chrome-extension|native|eval|webpack|<anonymous>|/|[\w\-.]+(?=[:/)]))"
    r".*?)(?::(\d+))?(?::(\d+|NaN))?\)?\s*$",
    re.IGNORECASE,
)

# at [fn] url:line[:col]: WinJS, and V8 frames without a function name
_WINJS = re.compile(
    r"^\s*at (?:((?:\[object object\])?.+) )?\(?"
    r"((?:file|ms-appx|https?|webpack|blob):.*?):(\d+)(?::(\d+))?\)?\s*$",
    re.IGNORECASE,
)

# fn(args)@url:line:col
_GECKO = re.compile(
    r"^\s*(.*?)(?:\((.*?)\))?(?:^|@)"
    r"((?:file|https?|blob|chrome|webpack|resource|\[native).*?|[^@]*bundle)"
    r"(?::(\d+))?(?::(\d+))?\s*$",
    re.IGNORECASE,
)

# File "path", line N, in fn
_PYTHON = re.compile(r'^\s*File "([^"]+)", line (\d+)(?:, in (.+?))?\s*$')

_GECKO_EVAL = re.compile(r"(\S+) line (\d+)(?: > eval line \d+)* > eval", re.IGNORECASE)
_CHROME_EVAL = re.compile(r"\((\S*)(?::(\d+))(?::(\d+))\)")

_UNDEFINED_REFERENCE = re.compile(r"^(.*) is undefined$")


def _number(value: Optional[str]) -> Optional[int]:
    if not value or not value.isdigit():
        return None
    return int(value)


def _parse_chrome(parts: re.Match) -> StackFrame:
    url, line, column = parts.group(2), parts.group(3), parts.group(4)
    is_native = bool(url) and url.startswith("native")
    is_eval = bool(url) and url.startswith("eval")
    if is_eval:
        submatch = _CHROME_EVAL.search(url)
        if submatch:
            # throw out eval line/column and use the top-most location
            url, line, column = submatch.group(1), submatch.group(2), submatch.group(3)

    return StackFrame(
        url=None if is_native else url,
        function_name=parts.group(1) or UNKNOWN_FUNCTION,
        arguments=[url] if is_native else [],
        line=_number(line),
        column=_number(column),
    )


def _parse_winjs(parts: re.Match) -> StackFrame:
    return StackFrame(
        url=parts.group(2),
        function_name=parts.group(1) or UNKNOWN_FUNCTION,
        arguments=[],
        line=_number(parts.group(3)),
        column=_number(parts.group(4)),
    )


def _parse_python(parts: re.Match) -> StackFrame:
    return StackFrame(
        url=parts.group(1),
        function_name=parts.group(3) or UNKNOWN_FUNCTION,
        line=int(parts.group(2)),
    )


def _parse_gecko(parts: re.Match, first: bool, column_number: Optional[int]) -> StackFrame:
    url, line, column = parts.group(3), parts.group(4), parts.group(5)
    is_eval = bool(url) and " > eval" in url
    submatch = _GECKO_EVAL.search(url) if is_eval else None

    frame = StackFrame(
        url=url,
        function_name=parts.group(1) or UNKNOWN_FUNCTION,
        arguments=parts.group(2).split(",") if parts.group(2) else [],
        line=_number(line),
        column=_number(column),
    )
    if submatch:
        # no column for eval'd code
        frame.url = submatch.group(1)
        frame.line = _number(submatch.group(2))
        frame.column = None
    elif first and frame.column is None and column_number is not None:
        # Gecko reports columnNumber only for the top frame, 0-based
        frame.column = column_number + 1
    return frame


class NativeTraceStrategy(RecoveryStrategy):
    """Recover frames from the `stack` property."""

    mode = MODE_NATIVE_TRACE

    def parse_line(self, text: str, first: bool = False, column_number: Optional[int] = None) -> Optional[StackFrame]:
        """Parse one trace line with the first dialect that matches it."""
        parts = _PYTHON.match(text)
        if parts:
            return _parse_python(parts)
        parts = _CHROME.match(text)
        if parts:
            return _parse_chrome(parts)
        parts = _WINJS.match(text)
        if parts:
            return _parse_winjs(parts)
        parts = _GECKO.match(text)
        if parts:
            return _parse_gecko(parts, first, column_number)
        return None

    def try_recover(self, fields: ErrorFields, depth: int = 0) -> Optional[StackTrace]:
        if not fields.stack:
            return None

        frames: list[StackFrame] = []
        most_recent_last = False
        for text in fields.stack.split("\n"):
            frame = self.parse_line(text, first=not frames, column_number=fields.column_number)
            if frame is None:
                continue

            most_recent_last = most_recent_last or bool(_PYTHON.match(text))
            self._name_frame(frame)
            frame.context = self.lookup.gather_context(frame.url, frame.line) if frame.line else None
            frames.append(frame)

        if not frames:
            return None
        if most_recent_last:
            frames.reverse()

        top = frames[0]
        reference = _UNDEFINED_REFERENCE.match(fields.message or "")
        if reference and top.line and top.column is None:
            top.column = self.lookup.find_source_in_line(reference.group(1), top.url, top.line)

        logger.debug("Parsed %d frame(s) from stack property", len(frames))
        return StackTrace(
            mode=self.mode,
            name=fields.name,
            message=fields.message,
            frames=frames,
        )
