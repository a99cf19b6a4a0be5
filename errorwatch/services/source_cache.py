"""
Source Cache
============
Fetches and memoizes the raw text of resources by URL.

Used only to recover context lines and guess identifier names, so every
failure degrades to an empty source instead of raising.

Fetch rules:
    - http(s) URLs are fetched only when remote fetching is enabled AND the
      URL's domain equals the page domain. Cross-origin content is never
      requested.
    - file:// URLs and absolute paths are read through linecache when local
      sources are enabled (the interpreter's own modules are never
      cross-origin).
    - Anything else (relative names, unparseable URLs) stays empty unless
      primed with add_source().

Cache lifetime:
    - Populated lazily. Unbounded unless `max_entries` is given, in which
      case the oldest entries are dropped first.
    - One cache per ReportSession; isolated caches for tests and API requests.
"""
import linecache
import logging
import os
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from errorwatch.core.config import FETCH_TIMEOUT, LOCAL_SOURCES, REMOTE_FETCHING
from errorwatch.models.page_context import PageContext, parse_domain

logger = logging.getLogger(__name__)


def _local_path(url: str) -> Optional[str]:
    """Map a file:// URL or an absolute path to a filesystem path."""
    if url.startswith("file://"):
        return unquote(urlparse(url).path) or None
    if "://" not in url and os.path.isabs(url):
        return url
    return None


class SourceCache:
    """
    Process-lifetime map of URL → source lines.

    Usage:
        cache = SourceCache(page=PageContext(url="http://example.com/"))
        cache.add_source("http://example.com/app.js", "var a = 1;\\n...")
        lines = cache.get_lines("http://example.com/app.js")
    """

    def __init__(
        self,
        page: Optional[PageContext] = None,
        remote_fetching: bool = REMOTE_FETCHING,
        local_sources: bool = LOCAL_SOURCES,
        fetch_timeout: float = FETCH_TIMEOUT,
        max_entries: Optional[int] = None,
    ) -> None:
        self.page = page or PageContext()
        self.remote_fetching = remote_fetching
        self.local_sources = local_sources
        self.fetch_timeout = fetch_timeout
        self.max_entries = max_entries
        self._sources: dict[str, list[str]] = {}

    def get_lines(self, url: Optional[str]) -> list[str]:
        """
        Return the source lines for `url`, loading them on first use.

        Parameters
        ----------
        url : str | None
            Script URL or file path.

        Returns
        -------
        list[str]
            Source split on newlines. Empty list if the source is
            unavailable, cross-origin, or `url` is not a string.
        """
        if not isinstance(url, str) or not url:
            return []
        if url not in self._sources:
            return self._remember(url, self._load(url))
        return self._sources[url]

    def add_source(self, url: str, text: str) -> None:
        """Prime the cache with known source text for `url`."""
        self._remember(url, text.split("\n") if text else [])

    def _remember(self, url: str, lines: list[str]) -> list[str]:
        self._sources.pop(url, None)
        self._sources[url] = lines
        if self.max_entries is not None:
            while len(self._sources) > self.max_entries:
                # dicts keep insertion order: the first key is the oldest
                del self._sources[next(iter(self._sources))]
        return lines

    def _load(self, url: str) -> list[str]:
        path = _local_path(url)
        if path is not None:
            if not self.local_sources:
                return []
            return [line.rstrip("\r\n") for line in linecache.getlines(path)]

        domain = parse_domain(url)
        if domain is None or domain != self.page.domain:
            logger.debug("Not fetching %s: domain %r is not the page domain %r",
                         url, domain, self.page.domain)
            return []

        text = self._fetch(url)
        return text.split("\n") if text else []

    def _fetch(self, url: str) -> str:
        if not self.remote_fetching:
            return ""
        try:
            response = httpx.get(url, timeout=self.fetch_timeout, follow_redirects=True)
            response.raise_for_status()
            return response.text
        except httpx.HTTPError as e:
            logger.debug("Source fetch failed for %s: %s", url, e)
            return ""

    def __contains__(self, url: object) -> bool:
        return url in self._sources

    def __len__(self) -> int:
        """Number of URLs looked up so far."""
        return len(self._sources)
