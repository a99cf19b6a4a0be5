"""
Stack Trace Computation
=======================
Runs the frame recovery strategies as an ordered fallback chain.

Pipeline:
    1. Snapshot every field of the raised value (ErrorFields.capture).
       The alternate `stacktrace` field is read before the native `stack`
       field because reading `stack` destroys `stacktrace` in Opera 10.
       This snapshot is a precondition of the ordering below, not an
       optimisation: no strategy touches the raw value.
    2. Try, in this fixed order:
           native-trace → alt-trace → embedded-multiline → caller-walk
       The first non-None result wins.
    3. All strategies failed → an "unrecoverable" trace with no frames.

Contract:
    - Never raises: a fault inside a strategy is logged and treated as
      "no result" (unless debug is on, which re-raises it).
    - Caller-walk frames are approximate; see strategies.caller_walk.
"""
import logging
from typing import Any, Optional

from errorwatch.core.config import DEBUG, REPORT_FUNC_NAME, WALK_CALLERS
from errorwatch.core.constants import COMPUTE_FUNC_NAME, MODE_UNRECOVERABLE
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.frame_markers import marked_frame
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.strategies.alt_trace import AltTraceStrategy
from errorwatch.parser.strategies.base import RecoveryStrategy
from errorwatch.parser.strategies.caller_walk import CallerWalkStrategy
from errorwatch.parser.strategies.embedded_multiline import EmbeddedMultilineStrategy
from errorwatch.parser.strategies.native_trace import NativeTraceStrategy
from errorwatch.services.source_cache import SourceCache

logger = logging.getLogger(__name__)


class TraceComputer:
    """
    Computes canonical stack traces for raised values.

    Usage:
        computer = TraceComputer(SourceLookup(SourceCache(page=page)))
        trace = computer.compute(error)
        trace = computer.of_caller()
    """

    def __init__(
        self,
        lookup: SourceLookup,
        debug: bool = DEBUG,
        walk_callers: bool = WALK_CALLERS,
        report_func_name: str = REPORT_FUNC_NAME,
    ) -> None:
        self.lookup = lookup
        self.debug = debug
        self.strategies: list[RecoveryStrategy] = [
            NativeTraceStrategy(lookup),
            AltTraceStrategy(lookup),
            EmbeddedMultilineStrategy(lookup),
            CallerWalkStrategy(lookup, enabled=walk_callers, report_func_name=report_func_name),
        ]

    @marked_frame(COMPUTE_FUNC_NAME)
    def compute(self, error: Any, depth: int = 0) -> StackTrace:
        """
        Compute a stack trace for `error`.

        Parameters
        ----------
        error : Any
            The raised value: exception, payload dict, or object with
            trace fields.
        depth : int
            Frames to drop from the head of a caller-walk trace.

        Returns
        -------
        StackTrace
            The first successful strategy's trace, or an "unrecoverable"
            trace with an empty frame list.
        """
        fields = ErrorFields.capture(error)

        for strategy in self.strategies:
            try:
                trace = strategy.try_recover(fields, depth)
            except Exception:
                logger.debug("%s strategy failed", strategy.mode, exc_info=True)
                if self.debug:
                    raise
                continue
            if trace is not None:
                return trace

        logger.debug("No strategy recovered frames for %s", fields.name)
        return StackTrace(
            mode=MODE_UNRECOVERABLE,
            name=fields.name,
            message=fields.message,
            frames=[],
        )

    @marked_frame(COMPUTE_FUNC_NAME)
    def of_caller(self, depth: int = 0) -> StackTrace:
        """Trace of the live call chain, starting at the function calling this."""
        return self.compute(Exception(), depth)


@marked_frame(COMPUTE_FUNC_NAME)
def compute_stack_trace(error: Any, depth: int = 0, lookup: Optional[SourceLookup] = None) -> StackTrace:
    """Compute a trace with a one-off computer (fresh source cache unless `lookup` is given)."""
    computer = TraceComputer(lookup or SourceLookup(SourceCache()))
    return computer.compute(error, depth)


@marked_frame(COMPUTE_FUNC_NAME)
def compute_stack_trace_of_caller(depth: int = 0, lookup: Optional[SourceLookup] = None) -> StackTrace:
    """Trace of the code calling this function, minus `depth` further frames."""
    computer = TraceComputer(lookup or SourceLookup(SourceCache()))
    return computer.of_caller(depth)
