"""
Augmentation
============
Adds the true top frame to a trace that could not see it, using location
information delivered out-of-band (a global handler's url/line, or the
error's own location fields).

Merge policy against the existing top frame:
    1. same url, same line                   → already present, no change
    2. same url, top frame has no line, and
       the same function name                → backfill line + context in place
    3. otherwise                             → insert the candidate at index 0
                                               and mark the trace partial
A candidate without url or line only marks the trace incomplete.
Resource traces carry no frames and are left untouched.
"""
import logging
import re
from typing import Optional

from errorwatch.core.constants import MODE_RESOURCE
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.source_lookup import SourceLookup

logger = logging.getLogger(__name__)

_QUOTED_REFERENCE = re.compile(r" '([^']+)' ")


def _as_line(line: object) -> Optional[int]:
    try:
        return int(line) if line else None
    except (TypeError, ValueError):
        return None


def augment_stack_trace_with_initial_element(
    trace: StackTrace,
    url: Optional[str],
    line: object,
    message: Optional[str],
    lookup: SourceLookup,
) -> bool:
    """
    Add information about the first frame to an incomplete trace.

    Parameters
    ----------
    trace : StackTrace
        Trace to patch in place.
    url : str | None
        Url of the script that raised, from an independent source.
    line : int | None
        Line that raised, from the same source.
    message : str | None
        Error message, which hopefully names the offending identifier in
        single quotes.
    lookup : SourceLookup
        Used to guess the function name, context and column.

    Returns
    -------
    bool
        True if a frame was inserted.
    """
    if trace.mode == MODE_RESOURCE:
        return False

    line_no = _as_line(line)
    if not url or not line_no:
        trace.incomplete = True
        return False

    trace.incomplete = False
    initial = StackFrame(
        url=url,
        line=line_no,
        function_name=lookup.guess_function_name(url, line_no),
        context=lookup.gather_context(url, line_no),
    )

    reference = _QUOTED_REFERENCE.search(message or "")
    if reference:
        initial.column = lookup.find_source_in_line(reference.group(1), url, line_no)

    if trace.frames is None:
        trace.frames = []

    top = trace.top
    if top is not None and top.url == initial.url:
        if top.line == initial.line:
            return False
        if not top.line and top.function_name == initial.function_name:
            top.line = initial.line
            top.context = initial.context
            return False

    trace.frames.insert(0, initial)
    trace.partial = True
    logger.debug("Inserted top frame %s:%s into %s trace", url, line_no, trace.mode)
    return True
