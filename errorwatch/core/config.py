"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    ERRORWATCH_REMOTE_FETCHING        — Fetch same-origin sources over HTTP (default: false)
    ERRORWATCH_LOCAL_SOURCES          — Read local file paths via linecache (default: true)
    ERRORWATCH_COLLECT_WINDOW_ERRORS  — Deliver global-handler errors to subscribers (default: true)
    ERRORWATCH_COLLECT_SOURCE_ERRORS  — Deliver resource-load failures (default: true)
    ERRORWATCH_LINES_OF_CONTEXT       — Total source lines kept around a frame (default: 11)
    ERRORWATCH_DEBUG                  — Let strategy faults propagate (default: false)
    ERRORWATCH_REPORT_FUNC_NAME       — Marker name of the reporting entry point
    ERRORWATCH_INCOMPLETE_DELAY_MS    — Grace period for incomplete traces (default: 2000)
    ERRORWATCH_FETCH_TIMEOUT          — Seconds allowed for one source fetch (default: 5.0)
    ERRORWATCH_WALK_CALLERS           — Enable the live call-chain strategy (default: true)
    ERRORWATCH_PAGE_URL               — Document URL used for same-origin checks
    ERRORWATCH_API_CACHE_SIZE         — Sources kept by the HTTP session (default: 256)
    LOG_LEVEL                         — Root log level for main.py (default: INFO)
    LOG_DIR                           — Directory for dated log files (unset: console only)

Grace Period:
    A report whose top frame has no url/line is held for
    INCOMPLETE_DELAY_MS before being flushed, so that a global handler
    carrying the missing location can augment it first. Complete traces
    are flushed on the next timer tick (delay 0).

Remote Fetching:
    Disabled by default. When enabled, fetches are synchronous and
    best-effort; any failure degrades to an empty source.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


REMOTE_FETCHING = _flag("ERRORWATCH_REMOTE_FETCHING", "false")
LOCAL_SOURCES = _flag("ERRORWATCH_LOCAL_SOURCES", "true")
COLLECT_WINDOW_ERRORS = _flag("ERRORWATCH_COLLECT_WINDOW_ERRORS", "true")
COLLECT_SOURCE_ERRORS = _flag("ERRORWATCH_COLLECT_SOURCE_ERRORS", "true")
LINES_OF_CONTEXT = int(os.getenv("ERRORWATCH_LINES_OF_CONTEXT", 11))
DEBUG = _flag("ERRORWATCH_DEBUG", "false")
REPORT_FUNC_NAME = os.getenv("ERRORWATCH_REPORT_FUNC_NAME", "ErrorWatch.report")
WALK_CALLERS = _flag("ERRORWATCH_WALK_CALLERS", "true")
PAGE_URL = os.getenv("ERRORWATCH_PAGE_URL")

# Seconds allowed for one synchronous source fetch
FETCH_TIMEOUT = float(os.getenv("ERRORWATCH_FETCH_TIMEOUT", 5.0))

# Source cache entries kept by the HTTP process session
API_CACHE_SIZE = int(os.getenv("ERRORWATCH_API_CACHE_SIZE", 256))

# Milliseconds to wait for a global handler before flushing an incomplete trace
INCOMPLETE_DELAY_MS = int(os.getenv("ERRORWATCH_INCOMPLETE_DELAY_MS", 2000))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR")
