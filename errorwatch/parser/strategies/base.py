"""
Recovery Strategy Base
======================
Common capability of the frame recovery strategies.

Each strategy extracts an ordered list of frames from one signal carried by
the raised value. It returns a complete StackTrace or None ("no result,
let the next strategy try"). Strategies do not catch their own faults;
the orchestrator treats any exception escaping try_recover() as None.
"""
from abc import ABC, abstractmethod
from typing import Optional

from errorwatch.core.constants import UNKNOWN_FUNCTION
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.source_lookup import SourceLookup


class RecoveryStrategy(ABC):
    mode: str = ""

    def __init__(self, lookup: SourceLookup) -> None:
        self.lookup = lookup

    @abstractmethod
    def try_recover(self, fields: ErrorFields, depth: int = 0) -> Optional[StackTrace]:
        """Return a trace recovered from `fields`, or None."""

    def _name_frame(self, frame: StackFrame) -> None:
        """Guess the function name of an anonymous frame with a known line."""
        if frame.function_name == UNKNOWN_FUNCTION and frame.line:
            frame.function_name = self.lookup.guess_function_name(frame.url, frame.line)
