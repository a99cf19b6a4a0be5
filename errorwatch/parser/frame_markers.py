"""
Frame Markers
=============
Registry of the library's own entry points (the trace orchestrator and
the reporting calls). Their frames are left out of caller walks, and
their traceback entries are never taken as the location of an error.
"""
from types import CodeType, TracebackType
from typing import Callable, Optional

# code object → marker name
_MARKED_CODES: dict[CodeType, str] = {}


def marked_frame(marker: str) -> Callable:
    """Register a function under a marker name. The function is returned unchanged."""
    def decorate(func):
        _MARKED_CODES[func.__code__] = marker
        return func
    return decorate


def marker_of(code: CodeType) -> Optional[str]:
    return _MARKED_CODES.get(code)


def innermost_location(tb: Optional[TracebackType]) -> tuple[Optional[str], Optional[int]]:
    """
    File and line of the deepest traceback entry outside marked functions.

    An error that was never raised before report() re-raised it has only
    the reporting calls below its caller; those entries are skipped.
    Returns (None, None) when no unmarked entry exists.
    """
    location: tuple[Optional[str], Optional[int]] = (None, None)
    while tb is not None:
        code = tb.tb_frame.f_code
        if code not in _MARKED_CODES:
            location = (code.co_filename, tb.tb_lineno)
        tb = tb.tb_next
    return location
