"""
Ingestion Endpoints
===================
HTTP surface for agents running in other environments (browsers, Node).

Routes:
    POST /traces            — compute a canonical trace for a posted error
    POST /errors            — uncaught error from a page's global handler
    POST /resource-errors   — failed resource load on a page
    GET  /reports           — most recent deliveries of the process session

Isolation:
    /traces builds a fresh source cache per request, primed only with the
    sources posted alongside the error; it never fetches, since its page
    URL comes from the client. /errors and /resource-errors feed the single
    process session, whose subscriber logs and keeps recent deliveries and
    whose cache is bounded. Server-local files are never read for posted
    errors.

Routes are plain functions so that source fetches run in the worker
threadpool, not on the event loop.
"""
import logging
from collections import deque
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from errorwatch.core.config import API_CACHE_SIZE, PAGE_URL
from errorwatch.models.page_context import PageContext, ScriptElement
from errorwatch.models.stack_trace import StackTrace
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.stack_trace import TraceComputer
from errorwatch.report.session import ReportSession
from errorwatch.services.source_cache import SourceCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingest"])

# Deliveries kept for GET /reports
_MAX_RECENT = 100


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class TraceRequest(BaseModel):
    error: dict[str, Any]
    page_url: Optional[str] = None
    scripts: list[ScriptElement] = Field(default_factory=list)
    sources: dict[str, str] = Field(default_factory=dict)


class WindowErrorRequest(BaseModel):
    message: Optional[str] = None
    url: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    error: Optional[dict[str, Any]] = None


class ResourceErrorRequest(BaseModel):
    local_name: str
    src: Optional[str] = None
    href: Optional[str] = None
    current_src: Optional[str] = None


# ---------------------------------------------------------------------------
# Process session
# ---------------------------------------------------------------------------
class RecentReports:
    """Subscriber that logs every delivery and keeps the latest ones."""

    def __init__(self, maxlen: int = _MAX_RECENT) -> None:
        self.items: deque[dict[str, Any]] = deque(maxlen=maxlen)

    def __call__(self, trace: StackTrace, is_window_error: bool, error: Any) -> None:
        logger.info(
            "Delivered %s trace: %s: %s (%d frame(s), window=%s)",
            trace.mode, trace.name, trace.message, len(trace.frames or []), is_window_error,
        )
        self.items.append({"window_error": is_window_error, "trace": trace.to_canonical()})


_session: Optional[ReportSession] = None
_recent = RecentReports()


def get_session() -> ReportSession:
    """The process-wide session, created on first use."""
    global _session
    if _session is None:
        _session = ReportSession(
            PageContext(url=PAGE_URL),
            local_sources=False,
            walk_callers=False,
            cache_size=API_CACHE_SIZE,
            install_global_handlers=False,
        )
        _session.subscribe(_recent)
        logger.info("Report session started for page %s", PAGE_URL)
    return _session


def get_recent() -> RecentReports:
    return _recent


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("/traces")
def compute_trace(request: TraceRequest):
    page = PageContext(url=request.page_url, scripts=request.scripts)
    cache = SourceCache(page, remote_fetching=False, local_sources=False)
    for url, text in request.sources.items():
        cache.add_source(url, text)

    trace = TraceComputer(SourceLookup(cache), walk_callers=False).compute(request.error)
    return trace.to_canonical()


@router.post("/errors", status_code=202)
def ingest_window_error(request: WindowErrorRequest, session: ReportSession = Depends(get_session)):
    trace = session.on_global_error(
        request.message, request.url, request.line, request.column, request.error,
    )
    return trace.to_canonical()


@router.post("/resource-errors", status_code=202)
def ingest_resource_error(request: ResourceErrorRequest, session: ReportSession = Depends(get_session)):
    trace = session.on_resource_error(
        request.local_name, src=request.src, href=request.href, current_src=request.current_src,
    )
    return {"accepted": trace is not None}


@router.get("/reports")
def recent_reports(recent: RecentReports = Depends(get_recent)):
    return {"reports": list(recent.items)}
