"""
Caller Walk Strategy
====================
Last resort for values that carry no trace at all: walk the live call
chain from the point of the report.

This only describes the error when the orchestrator runs synchronously at
the point of failure, so it applies to live Python exceptions only;
foreign payloads (dicts, objects posted from another runtime) have no
relation to this interpreter's stack and yield no result.

Per frame:
    - name: the code object's declared name; lambdas are named from their
      source (`name = lambda ...`), else guessed from the surrounding lines
    - location: the function's source is searched for across the page's
      scripts and document; if not found, the live frame's own file and
      current line are used
    - column: a quoted 'identifier' in the message, located on that line

Caveats:
    - function names and urls are UNVERIFIED: duplicate or minified bodies
      can match the wrong place.
    - the walk sees only the frames still on the stack at report time; the
      true top frame is restored by augmenting with the error's own
      location fields afterwards.
"""
import inspect
import logging
import re
import sys
from types import CodeType
from typing import Optional

from errorwatch.core.config import REPORT_FUNC_NAME, WALK_CALLERS
from errorwatch.core.constants import COMPUTE_FUNC_NAME, MODE_CALLER_WALK, UNKNOWN_FUNCTION
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.augment import augment_stack_trace_with_initial_element
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.frame_markers import marker_of
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.strategies.base import RecoveryStrategy

logger = logging.getLogger(__name__)

_NAMED_LAMBDA = re.compile(r"([A-Za-z_]\w*)\s*=\s*lambda\b")
_QUOTED_REFERENCE = re.compile(r" '([^']+)' ")


def _declared_name(code: CodeType) -> str:
    if code.co_name != "<lambda>":
        return code.co_name
    try:
        source = inspect.getsource(code)
    except (OSError, TypeError, IndexError):
        return UNKNOWN_FUNCTION
    m = _NAMED_LAMBDA.search(source)
    return m.group(1) if m else UNKNOWN_FUNCTION


class CallerWalkStrategy(RecoveryStrategy):
    """Recover frames by walking the live call chain."""

    mode = MODE_CALLER_WALK

    def __init__(
        self,
        lookup: SourceLookup,
        enabled: bool = WALK_CALLERS,
        report_func_name: str = REPORT_FUNC_NAME,
    ) -> None:
        super().__init__(lookup)
        self.enabled = enabled
        self.skip_markers = {COMPUTE_FUNC_NAME, report_func_name}

    def _page_urls(self) -> list[str]:
        page = self.lookup.page
        urls = [page.url] if page.url else []
        return urls + page.script_urls

    def _frame_for(self, frame, message: Optional[str]) -> StackFrame:
        code = frame.f_code
        item = StackFrame(function_name=_declared_name(code))

        urls = self._page_urls()
        location = self.lookup.find_source_by_function_body(code, urls) if urls else None
        if location:
            item.url, item.line = location.url, location.line
        elif not code.co_filename.startswith("<"):
            item.url, item.line = code.co_filename, frame.f_lineno

        if item.url and item.line:
            self._name_frame(item)
            reference = _QUOTED_REFERENCE.search(message or "")
            if reference:
                item.column = self.lookup.find_source_in_line(reference.group(1), item.url, item.line)
        return item

    def try_recover(self, fields: ErrorFields, depth: int = 0) -> Optional[StackTrace]:
        if not self.enabled or not fields.is_live:
            return None

        frames: list[StackFrame] = []
        seen: set[CodeType] = set()
        current = sys._getframe(1)
        try:
            while current is not None:
                code = current.f_code
                if marker_of(code) in self.skip_markers:
                    current = current.f_back
                    continue

                frames.append(self._frame_for(current, fields.location_message))

                # the same function twice: recursion, stop here
                if code in seen:
                    break
                seen.add(code)
                current = current.f_back
        finally:
            del current

        if depth:
            del frames[:depth]

        trace = StackTrace(
            mode=self.mode,
            name=fields.name,
            message=fields.message,
            frames=frames,
        )
        augment_stack_trace_with_initial_element(
            trace,
            fields.location_url,
            fields.location_line,
            fields.location_message,
            self.lookup,
        )
        logger.debug("Walked %d caller frame(s)", len(frames))
        return trace
