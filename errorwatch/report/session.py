"""
Report Session
==============
Delivers computed traces to subscribers, coalescing a manually reported
error with the same error surfacing later through a global handler.

State machine (one pending slot):

    Idle ──report(e)──────────────────────────────▶ Pending(e)
    Pending(e) ──report(e)──────────────────────────▶ Pending(e)    (already seen)
    Pending(e1) ──report(e2)── flush e1 ────────────▶ Pending(e2)
    Pending(e) ──global error── augment, flush ─────▶ Idle
    Pending(e) ──timer fires── flush ───────────────▶ Idle
    Idle ──global error / unhandled rejection── deliver directly, stays Idle

Timing:
    The flush timer is scheduled right away for complete traces (delay 0)
    and after `incomplete_delay_ms` for incomplete ones, giving a global
    handler carrying the missing location a chance to arrive first. A
    flush cancels the outstanding timer; a timer that still fires finds
    another (or no) pending report and does nothing.

Dispatch:
    Every handler runs with (trace, is_window_error, raw_error). A failing
    handler does not stop the others; the LAST failure is re-raised once
    all have run, earlier ones are only logged.

Lifecycle:
    The first subscribe() installs the global hooks and the resource
    listener; removing the last subscriber restores the previous hooks.
    Sessions are independent objects, so tests build their own.
"""
import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from errorwatch.core.config import (
    COLLECT_SOURCE_ERRORS,
    COLLECT_WINDOW_ERRORS,
    DEBUG,
    INCOMPLETE_DELAY_MS,
    LINES_OF_CONTEXT,
    LOCAL_SOURCES,
    REMOTE_FETCHING,
    REPORT_FUNC_NAME,
    WALK_CALLERS,
)
from errorwatch.core.constants import MODE_HANDLER_ONLY
from errorwatch.models.page_context import PageContext
from errorwatch.models.stack_frame import StackFrame
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.augment import augment_stack_trace_with_initial_element
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.stack_trace import TraceComputer
from errorwatch.parser.frame_markers import marked_frame
from errorwatch.report.global_handlers import GlobalHandlers
from errorwatch.report.resource_error import ResourceErrorListener
from errorwatch.services.source_cache import SourceCache

logger = logging.getLogger(__name__)

Handler = Callable[[StackTrace, bool, Any], None]
Scheduler = Callable[[float, Callable[[], None]], Any]

# Uncaught TypeError: x is not a function → ("TypeError", "x is not a function")
ERROR_TYPES_RE = re.compile(
    r"^(?:[Uu]ncaught (?:exception: )?)?"
    r"(?:((?:Eval|Internal|Range|Reference|Syntax|Type|URI|)Error): )?(.*)$",
    re.DOTALL,
)


class ReportedValueError(Exception):
    """Raised by report() for values that are not exceptions themselves."""

    def __init__(self, value: Any) -> None:
        super().__init__(repr(value))
        self.value = value


# ---------------------------------------------------------------------------
# Schedulers
# ---------------------------------------------------------------------------
def thread_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run `callback` after `delay` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


def asyncio_scheduler(loop: asyncio.AbstractEventLoop) -> Scheduler:
    """Scheduler running callbacks on `loop`. Reports must come from the loop's thread."""
    def schedule(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return loop.call_later(delay, callback)
    return schedule


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class PendingReport:
    error: Any
    trace: StackTrace
    timer: Any = None


class ReportSession:
    """
    One reporting environment: handlers, pending slot, source cache and hooks.

    Usage:
        session = ReportSession(PageContext(url="http://example.com/"))
        session.subscribe(lambda trace, is_window_error, error: send(trace))
        try:
            risky()
        except Exception as e:
            session.report(e)   # re-raises e
    """

    def __init__(
        self,
        page: Optional[PageContext] = None,
        *,
        remote_fetching: bool = REMOTE_FETCHING,
        local_sources: bool = LOCAL_SOURCES,
        lines_of_context: int = LINES_OF_CONTEXT,
        collect_window_errors: bool = COLLECT_WINDOW_ERRORS,
        collect_source_errors: bool = COLLECT_SOURCE_ERRORS,
        incomplete_delay_ms: int = INCOMPLETE_DELAY_MS,
        debug: bool = DEBUG,
        walk_callers: bool = WALK_CALLERS,
        cache_size: Optional[int] = None,
        scheduler: Optional[Scheduler] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        install_global_handlers: bool = True,
    ) -> None:
        self.cache = SourceCache(
            page, remote_fetching=remote_fetching, local_sources=local_sources, max_entries=cache_size,
        )
        self.lookup = SourceLookup(self.cache, lines_of_context=lines_of_context)
        self.computer = TraceComputer(
            self.lookup, debug=debug, walk_callers=walk_callers, report_func_name=REPORT_FUNC_NAME,
        )
        self.collect_window_errors = collect_window_errors
        self.incomplete_delay_ms = incomplete_delay_ms

        if scheduler is None:
            scheduler = asyncio_scheduler(loop) if loop is not None else thread_scheduler
        self.scheduler = scheduler

        self.handlers: list[Handler] = []
        self.pending: Optional[PendingReport] = None
        self._lock = threading.RLock()

        self.global_handlers = GlobalHandlers(self, loop=loop) if install_global_handlers else None
        self.resources = ResourceErrorListener(self.notify_handlers, enabled=collect_source_errors)

    @property
    def page(self) -> PageContext:
        return self.cache.page

    # -----------------------------------------------------------------------
    # Subscribers
    # -----------------------------------------------------------------------
    def subscribe(self, handler: Handler) -> None:
        """Add a crash handler, installing the global hooks on first use."""
        if self.global_handlers is not None:
            self.global_handlers.install()
        self.resources.install()
        self.handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        """Remove every registration of `handler`; the last one out restores the hooks."""
        self.handlers = [h for h in self.handlers if h != handler]

        if not self.handlers:
            if self.global_handlers is not None:
                self.global_handlers.uninstall()
            self.resources.uninstall()

    def notify_handlers(self, trace: StackTrace, is_window_error: bool, error: Any) -> None:
        """
        Dispatch a trace to all handlers.

        Raises
        ------
        Exception
            The last exception raised by a handler, after every handler ran.
        """
        if is_window_error and not self.collect_window_errors:
            return

        failure: Optional[Exception] = None
        for handler in list(self.handlers):
            try:
                handler(trace, is_window_error, error)
            except Exception as e:
                logger.warning("Report handler %r failed: %s", handler, e)
                failure = e

        if failure is not None:
            raise failure

    # -----------------------------------------------------------------------
    # Manual reporting
    # -----------------------------------------------------------------------
    @marked_frame(REPORT_FUNC_NAME)
    def report(self, error: Any) -> None:
        """
        Report a caught error, then re-raise it.

        The error is re-raised even when it was already pending, so that it
        keeps propagating towards the global hooks, which may still supply
        a better location for an incomplete trace.
        """
        with self._lock:
            if self.pending is not None:
                if self.pending.error is error:
                    logger.debug("Error already pending, not reported twice")
                    _reraise(error)
                self._process_last_exception()

            trace = self.computer.compute(error)
            pending = PendingReport(error=error, trace=trace)
            self.pending = pending

            delay = self.incomplete_delay_ms / 1000 if trace.incomplete else 0
            pending.timer = self.scheduler(delay, lambda: self._flush_if_pending(pending))
            logger.debug("Pending %s trace, flush in %ss", trace.mode, delay)

        _reraise(error)

    def _flush_if_pending(self, pending: PendingReport) -> None:
        with self._lock:
            if self.pending is pending:
                self._process_last_exception()

    def _process_last_exception(self) -> None:
        pending, self.pending = self.pending, None
        if pending.timer is not None:
            pending.timer.cancel()
        self.notify_handlers(pending.trace, False, pending.error)

    # -----------------------------------------------------------------------
    # Global entry points
    # -----------------------------------------------------------------------
    @marked_frame(REPORT_FUNC_NAME)
    def on_global_error(
        self,
        message: Optional[str],
        url: Optional[str] = None,
        line: Any = None,
        column: Any = None,
        error: Any = None,
    ) -> StackTrace:
        """
        Handle an uncaught error reported with its location.

        Parameters
        ----------
        message : str | None
            Error message as shown by the environment.
        url, line, column
            Location of the failure, independent of any trace.
        error : Any
            The raised value, when the environment provides it.

        Returns
        -------
        StackTrace
            The trace that was delivered.
        """
        if isinstance(error, ReportedValueError):
            # raised by report(); its traceback only locates the reporting call
            error, url, line, column = error.value, None, None, None

        with self._lock:
            if self.pending is not None:
                trace = self.pending.trace
                augment_stack_trace_with_initial_element(trace, url, line, message, self.lookup)
                self._process_last_exception()
                return trace

        if error is not None:
            trace = self.computer.compute(error)
            self.notify_handlers(trace, True, error)
            return trace

        name, text = None, message
        if isinstance(message, str):
            groups = ERROR_TYPES_RE.match(message)
            if groups:
                name, text = groups.group(1), groups.group(2)

        line_no = _as_int(line)
        location = StackFrame(
            url=url,
            line=line_no,
            column=_as_int(column),
            function_name=self.lookup.guess_function_name(url, line_no),
            context=self.lookup.gather_context(url, line_no),
        )
        trace = StackTrace(mode=MODE_HANDLER_ONLY, name=name, message=text, frames=[location])
        self.notify_handlers(trace, True, None)
        return trace

    @marked_frame(REPORT_FUNC_NAME)
    def on_unhandled_rejection(self, reason: Any) -> StackTrace:
        """Handle an error raised by a task or future nobody awaited."""
        if isinstance(reason, ReportedValueError):
            reason = reason.value
        trace = self.computer.compute(reason)
        self.notify_handlers(trace, True, reason)
        return trace

    def on_resource_error(
        self,
        local_name: Optional[str],
        src: Optional[str] = None,
        href: Optional[str] = None,
        current_src: Optional[str] = None,
        event: Any = None,
    ) -> Optional[StackTrace]:
        """Handle a failed resource load; ignored until someone subscribes."""
        return self.resources.handle(local_name, src=src, href=href, current_src=current_src, event=event)


@marked_frame(REPORT_FUNC_NAME)
def _reraise(error: Any) -> None:
    if isinstance(error, BaseException):
        raise error
    raise ReportedValueError(error)
