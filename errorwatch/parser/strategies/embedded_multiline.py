"""
Embedded Multiline Strategy
===========================
Recovers frames from a trace embedded in the error message (Opera 9 and
earlier, with "Exceptions Have Stacktrace" enabled):

    Statement on line 3: Undefined variable: undefinedFunc
    Backtrace:
      Line 3 of linked script file://localhost/sample.js: In function zzz
            undefinedFunc(a);
      Line 7 of inline#1 script in file://localhost/sample.html: In function yyy
              zzz(x, y, z);
      Line 1 of function script
        try { xxx('hi'); return false; } catch(ex) { report(ex); }

Location lines sit at even indexes from 2 on; each is followed by a
source excerpt. A computed context is trusted only when its middle line
matches the excerpt; otherwise the excerpt becomes a one-line context.
"""
import logging
import re
from typing import Optional

from errorwatch.core.constants import MODE_EMBEDDED_MULTILINE, UNKNOWN_FUNCTION
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.source_lookup import escape_code_for_html
from errorwatch.parser.strategies.base import RecoveryStrategy

logger = logging.getLogger(__name__)

MIN_MESSAGE_LINES = 4

_LINKED_SCRIPT = re.compile(
    r"^\s*Line (\d+) of linked script ((?:file|https?|blob)\S+)(?:: in function (\S+))?\s*$",
    re.IGNORECASE,
)
_INLINE_SCRIPT = re.compile(
    r"^\s*Line (\d+) of inline#(\d+) script in ((?:file|https?|blob)\S+)(?:: in function (\S+))?\s*$",
    re.IGNORECASE,
)
_FUNCTION_SCRIPT = re.compile(r"^\s*Line (\d+) of function script\s*$", re.IGNORECASE)


class EmbeddedMultilineStrategy(RecoveryStrategy):
    """Recover frames from a backtrace embedded in the message."""

    mode = MODE_EMBEDDED_MULTILINE

    def _inline_frame(self, parts: re.Match) -> StackFrame:
        frame = StackFrame(
            url=parts.group(3),
            function_name=parts.group(4) or UNKNOWN_FUNCTION,
            line=int(parts.group(1)),
        )
        # the reported line is relative to the start of the <script> block;
        # without the block's position in the document it is unknown
        inline_scripts = self.lookup.page.inline_scripts
        block = int(parts.group(2)) - 1
        pos = -1
        if 0 <= block < len(inline_scripts) and inline_scripts[block].text:
            source = "\n".join(self.lookup.cache.get_lines(frame.url))
            pos = source.find(inline_scripts[block].text) if source else -1
        if pos >= 0:
            frame.line += source.count("\n", 0, pos) + 1
        else:
            frame.line = None
        return frame

    def _function_script_frame(self, parts: re.Match, excerpt: str) -> Optional[StackFrame]:
        page_url = self.lookup.page.url
        if not page_url:
            return None
        url = re.sub(r"#.*$", "", page_url)
        code = excerpt.strip()
        location = None
        if code:
            location = self.lookup.find_source_in_urls(re.compile(escape_code_for_html(code)), [url])
        return StackFrame(
            url=url,
            line=location.line if location else int(parts.group(1)),
        )

    def _parse_location(self, text: str, excerpt: str) -> Optional[StackFrame]:
        parts = _LINKED_SCRIPT.match(text)
        if parts:
            return StackFrame(
                url=parts.group(2),
                function_name=parts.group(3) or UNKNOWN_FUNCTION,
                line=int(parts.group(1)),
            )
        parts = _INLINE_SCRIPT.match(text)
        if parts:
            return self._inline_frame(parts)
        parts = _FUNCTION_SCRIPT.match(text)
        if parts:
            return self._function_script_frame(parts, excerpt)
        return None

    def try_recover(self, fields: ErrorFields, depth: int = 0) -> Optional[StackTrace]:
        if not fields.message:
            return None
        lines = fields.message.split("\n")
        if len(lines) < MIN_MESSAGE_LINES:
            return None

        frames: list[StackFrame] = []
        for index in range(2, len(lines), 2):
            excerpt = lines[index + 1] if index + 1 < len(lines) else ""
            frame = self._parse_location(lines[index], excerpt)
            if frame is None:
                continue

            self._name_frame(frame)
            context = self.lookup.gather_context(frame.url, frame.line)
            midline = context[len(context) // 2] if context else None
            if midline is not None and midline.strip() == excerpt.strip():
                frame.context = context
            else:
                frame.context = [excerpt]
            frames.append(frame)

        if not frames:
            return None

        logger.debug("Parsed %d frame(s) from multiline message", len(frames))
        return StackTrace(
            mode=self.mode,
            name=fields.name,
            message=lines[0],
            frames=frames,
        )
