"""
Alternate Trace Strategy
========================
Parses the `stacktrace` property of Presto engines (Opera 10+).

Two lines per frame — a location line followed by a source excerpt:

    Opera 10:
        "  Line 44 of linked script http://host/app.js: in function foo"
        "    this.undef();"
    Opera 11:
        "Error thrown at line 42, column 12 in <anonymous function: foo>(a, b) in http://host/app.js:"
        "    this.undef();"

When no context can be computed for a frame, the excerpt line itself
becomes a one-line context.
"""
import logging
import re
from typing import Optional

from errorwatch.core.constants import MODE_ALT_TRACE, UNKNOWN_FUNCTION
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.strategies.base import RecoveryStrategy

logger = logging.getLogger(__name__)


_OPERA10 = re.compile(r" line (\d+).*script (?:in )?(\S+)(?:: in function (\S+))?$", re.IGNORECASE)
_OPERA11 = re.compile(
    r" line (\d+), column (\d+)\s*"
    r"(?:in (?:<anonymous function: ([^>]+)>|([^)]+))\((.*)\))? in (.*):\s*$",
    re.IGNORECASE,
)


def _parse_location(text: str) -> Optional[StackFrame]:
    parts = _OPERA10.search(text)
    if parts:
        return StackFrame(
            url=parts.group(2),
            line=int(parts.group(1)),
            column=None,
            function_name=parts.group(3) or UNKNOWN_FUNCTION,
        )
    parts = _OPERA11.search(text)
    if parts:
        return StackFrame(
            url=parts.group(6),
            line=int(parts.group(1)),
            column=int(parts.group(2)),
            function_name=parts.group(3) or parts.group(4) or UNKNOWN_FUNCTION,
            arguments=parts.group(5).split(",") if parts.group(5) else [],
        )
    return None


class AltTraceStrategy(RecoveryStrategy):
    """Recover frames from the `stacktrace` property."""

    mode = MODE_ALT_TRACE

    def try_recover(self, fields: ErrorFields, depth: int = 0) -> Optional[StackTrace]:
        if not fields.stacktrace:
            return None

        lines = fields.stacktrace.split("\n")
        frames: list[StackFrame] = []
        for index in range(0, len(lines), 2):
            frame = _parse_location(lines[index])
            if frame is None:
                continue

            self._name_frame(frame)
            frame.context = self.lookup.gather_context(frame.url, frame.line)
            if not frame.context and index + 1 < len(lines):
                frame.context = [lines[index + 1]]
            frames.append(frame)

        if not frames:
            return None

        logger.debug("Parsed %d frame(s) from stacktrace property", len(frames))
        return StackTrace(
            mode=self.mode,
            name=fields.name,
            message=fields.message,
            frames=frames,
        )
