"""
Global Handlers
===============
Routes errors nobody caught into a ReportSession.

Hooks:
    sys.excepthook          → session.on_global_error   (uncaught, main thread)
    threading.excepthook    → session.on_global_error   (uncaught, other threads)
    loop exception handler  → session.on_unhandled_rejection
                              (exceptions of tasks/futures nobody awaited)

Each hook hands the error over first and then always chains to the hook
that was installed before it, so existing crash output is preserved.
uninstall() puts the previous hooks back.
"""
import asyncio
import logging
import sys
import threading
from typing import Any, Optional

from errorwatch.parser.frame_markers import innermost_location

logger = logging.getLogger(__name__)


def _message(exc_type: type, exc_value: Optional[BaseException]) -> str:
    text = str(exc_value) if exc_value is not None else ""
    return f"{exc_type.__name__}: {text}" if text else exc_type.__name__


class GlobalHandlers:
    """
    Installs and removes the interpreter-level hooks of one session.

    Usage:
        hooks = GlobalHandlers(session, loop=loop)
        hooks.install()
        ...
        hooks.uninstall()
    """

    def __init__(self, session: Any, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.session = session
        self.loop = loop
        self.installed = False
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._previous_loop_handler = None

    # -----------------------------------------------------------------------
    # Hooks
    # -----------------------------------------------------------------------
    def excepthook(self, exc_type, exc_value, exc_tb) -> None:
        try:
            if not issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
                url, line = innermost_location(exc_tb)
                self.session.on_global_error(_message(exc_type, exc_value), url, line, None, exc_value)
        finally:
            previous = self._previous_excepthook or sys.__excepthook__
            previous(exc_type, exc_value, exc_tb)

    def threading_excepthook(self, args) -> None:
        try:
            if not issubclass(args.exc_type, SystemExit):
                url, line = innermost_location(args.exc_traceback)
                self.session.on_global_error(
                    _message(args.exc_type, args.exc_value), url, line, None, args.exc_value,
                )
        finally:
            previous = self._previous_threading_excepthook or threading.__excepthook__
            previous(args)

    def loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        try:
            reason = context.get("exception")
            if reason is None:
                reason = context.get("message")
            self.session.on_unhandled_rejection(reason)
        finally:
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------
    def install(self) -> None:
        if self.installed:
            return

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self.excepthook
        self._previous_threading_excepthook = threading.excepthook
        threading.excepthook = self.threading_excepthook
        if self.loop is not None:
            self._previous_loop_handler = self.loop.get_exception_handler()
            self.loop.set_exception_handler(self.loop_exception_handler)

        self.installed = True
        logger.debug("Global error hooks installed")

    def uninstall(self) -> None:
        if not self.installed:
            return

        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_threading_excepthook
        if self.loop is not None:
            self.loop.set_exception_handler(self._previous_loop_handler)

        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._previous_loop_handler = None
        self.installed = False
        logger.debug("Global error hooks restored")
