"""
Unit Tests — Source Cache
=========================
Memoization, same-origin fetch rules and local file reading.
httpx is mocked — no network.
"""
from unittest.mock import MagicMock, patch

import httpx

from errorwatch.models.page_context import PageContext
from errorwatch.services.source_cache import SourceCache

PAGE = PageContext(url="http://example.com/index.html")


def _response(text):
    response = MagicMock()
    response.text = text
    response.raise_for_status.return_value = None
    return response


# ===========================================================================
# 1. Lookup basics
# ===========================================================================
class TestLookup:

    def test_non_string_url_is_empty(self):
        cache = SourceCache(PAGE)
        assert cache.get_lines(None) == []
        assert cache.get_lines(42) == []
        assert cache.get_lines("") == []

    def test_primed_source(self):
        cache = SourceCache(PAGE)
        cache.add_source("app.js", "var a = 1;\nvar b = 2;")
        assert cache.get_lines("app.js") == ["var a = 1;", "var b = 2;"]
        assert "app.js" in cache

    def test_relative_name_without_source_is_empty(self):
        assert SourceCache(PAGE).get_lines("app.js") == []

    def test_page_domain_derived_from_url(self):
        assert PAGE.domain == "example.com"


# ===========================================================================
# 2. Remote fetching
# ===========================================================================
class TestRemoteFetching:

    @patch("errorwatch.services.source_cache.httpx.get")
    def test_same_origin_fetched_once(self, mock_get):
        mock_get.return_value = _response("line one\nline two")
        cache = SourceCache(PAGE, remote_fetching=True)

        assert cache.get_lines("http://example.com/app.js") == ["line one", "line two"]
        assert cache.get_lines("http://example.com/app.js") == ["line one", "line two"]
        mock_get.assert_called_once()
        assert len(cache) == 1

    @patch("errorwatch.services.source_cache.httpx.get")
    def test_cross_origin_never_fetched(self, mock_get):
        cache = SourceCache(PAGE, remote_fetching=True)
        assert cache.get_lines("http://cdn.other.com/lib.js") == []
        mock_get.assert_not_called()

    @patch("errorwatch.services.source_cache.httpx.get")
    def test_fetching_disabled(self, mock_get):
        cache = SourceCache(PAGE, remote_fetching=False)
        assert cache.get_lines("http://example.com/app.js") == []
        mock_get.assert_not_called()

    @patch("errorwatch.services.source_cache.httpx.get")
    def test_fetch_failure_degrades_to_empty(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("connection refused")
        cache = SourceCache(PAGE, remote_fetching=True)
        assert cache.get_lines("http://example.com/app.js") == []


# ===========================================================================
# 3. Local sources
# ===========================================================================
class TestLocalSources:

    def test_absolute_path(self, tmp_path):
        path = tmp_path / "module.py"
        path.write_text("def f():\n    return 1\n")
        cache = SourceCache(local_sources=True)
        assert cache.get_lines(str(path)) == ["def f():", "    return 1"]

    def test_file_url(self, tmp_path):
        path = tmp_path / "script.js"
        path.write_text("var a = 1;\n")
        cache = SourceCache(local_sources=True)
        assert cache.get_lines(path.as_uri()) == ["var a = 1;"]

    def test_local_sources_disabled(self, tmp_path):
        path = tmp_path / "module.py"
        path.write_text("x = 1\n")
        cache = SourceCache(local_sources=False)
        assert cache.get_lines(str(path)) == []


# ===========================================================================
# 4. Bounded caches
# ===========================================================================
class TestBounded:

    def test_oldest_entry_dropped(self):
        cache = SourceCache(PAGE, remote_fetching=False, max_entries=2)
        cache.add_source("a.js", "a")
        cache.add_source("b.js", "b")
        cache.get_lines("http://other.example/c.js")

        assert len(cache) == 2
        assert "a.js" not in cache
        assert "b.js" in cache

    def test_unbounded_by_default(self):
        cache = SourceCache(PAGE, remote_fetching=False)
        for i in range(300):
            cache.get_lines(f"http://host/{i}.js")
        assert len(cache) == 300
