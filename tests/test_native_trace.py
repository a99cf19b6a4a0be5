"""
Unit Tests — Native Trace Strategy
==================================
V8, WinJS, Gecko and Python traceback dialects of the `stack` field.
"""
import pytest

from errorwatch.core.constants import MODE_NATIVE_TRACE, UNKNOWN_FUNCTION
from errorwatch.models.page_context import PageContext
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.strategies.native_trace import NativeTraceStrategy
from errorwatch.services.source_cache import SourceCache


@pytest.fixture
def cache():
    return SourceCache(PageContext(url="http://host/index.html"), remote_fetching=False)


@pytest.fixture
def strategy(cache):
    return NativeTraceStrategy(SourceLookup(cache))


def _recover(strategy, **error):
    return strategy.try_recover(ErrorFields.capture(error))


def _raise_value_error():
    raise ValueError("boom")


# ===========================================================================
# 1. V8
# ===========================================================================
class TestChrome:

    def test_frames_in_order(self, strategy):
        trace = _recover(
            strategy,
            name="TypeError",
            message="x is not a function",
            stack=(
                "TypeError: x is not a function\n"
                "    at foo (http://host/a.js:10:5)\n"
                "    at bar (http://host/b.js:20:7)\n"
                "    at http://host/c.js:30:1"
            ),
        )
        assert trace.mode == MODE_NATIVE_TRACE
        assert trace.name == "TypeError"
        assert [(f.url, f.line, f.column) for f in trace.frames] == [
            ("http://host/a.js", 10, 5),
            ("http://host/b.js", 20, 7),
            ("http://host/c.js", 30, 1),
        ]
        assert [f.function_name for f in trace.frames] == ["foo", "bar", UNKNOWN_FUNCTION]

    def test_native_frame(self, strategy):
        trace = _recover(strategy, stack="Error\n    at Array.map (native)")
        frame = trace.frames[0]
        assert frame.url is None
        assert frame.arguments == ["native"]
        assert frame.function_name == "Array.map"

    def test_eval_unwrapped(self, strategy):
        trace = _recover(
            strategy,
            stack="Error\n    at eval (eval at foo (http://host/app.js:3:7), <anonymous>:1:1)",
        )
        frame = trace.frames[0]
        assert (frame.url, frame.line, frame.column) == ("http://host/app.js", 3, 7)
        assert frame.function_name == "eval"

    def test_undefined_reference_column(self, strategy, cache):
        cache.add_source("app.js", "\n" * 9 + "console.log(X)")
        trace = _recover(
            strategy,
            message="X is undefined",
            stack="ReferenceError: X is undefined\n    at f (app.js:10:NaN)",
        )
        top = trace.frames[0]
        assert top.url == "app.js"
        assert top.line == 10
        assert top.column == 12
        assert "console.log(X)" in top.context

    def test_anonymous_frame_named_from_source(self, strategy, cache):
        cache.add_source("http://host/a.js", "var handler = function() {\n  boom();\n};")
        trace = _recover(strategy, stack="Error\n    at http://host/a.js:2:3")
        assert trace.frames[0].function_name == "handler"
        assert trace.frames[0].context == ["var handler = function() {", "  boom();", "};"]


# ===========================================================================
# 2. WinJS
# ===========================================================================
class TestWinJS:

    def test_ms_appx(self, strategy):
        trace = _recover(strategy, stack="Error\n   at run (ms-appx://app/js/main.js:10:5)")
        frame = trace.frames[0]
        assert (frame.url, frame.line, frame.column) == ("ms-appx://app/js/main.js", 10, 5)
        assert frame.function_name == "run"


# ===========================================================================
# 3. Gecko
# ===========================================================================
class TestGecko:

    def test_frames_with_arguments(self, strategy):
        trace = _recover(strategy, stack="foo(a,b)@http://host/a.js:10:5\nbar@http://host/b.js:20:1")
        assert trace.frames[0].arguments == ["a", "b"]
        assert (trace.frames[1].function_name, trace.frames[1].line) == ("bar", 20)

    def test_top_column_from_column_number(self, strategy):
        trace = _recover(
            strategy,
            columnNumber=3,
            stack="foo@http://host/a.js:10\nbar@http://host/b.js:20",
        )
        assert trace.frames[0].column == 4
        assert trace.frames[1].column is None

    def test_eval_frame(self, strategy):
        trace = _recover(strategy, stack="fn/<@http://host/app.js line 3 > eval:1:1")
        frame = trace.frames[0]
        assert (frame.url, frame.line, frame.column) == ("http://host/app.js", 3, None)


# ===========================================================================
# 4. Python tracebacks
# ===========================================================================
class TestPythonTraceback:

    def test_live_exception(self, strategy):
        try:
            _raise_value_error()
        except ValueError as e:
            error = e

        trace = strategy.try_recover(ErrorFields.capture(error))
        assert trace.name == "ValueError"
        assert trace.message == "boom"
        assert trace.frames[0].function_name == "_raise_value_error"
        assert trace.frames[1].function_name.endswith("test_live_exception")
        assert trace.frames[0].url.endswith("test_native_trace.py")
        assert any('raise ValueError("boom")' in line for line in trace.frames[0].context)

    def test_formatted_traceback_reversed(self, strategy):
        stack = (
            "Traceback (most recent call last):\n"
            '  File "/srv/app/main.py", line 5, in <module>\n'
            "    run()\n"
            '  File "/srv/app/views.py", line 10, in index\n'
            "    return render()\n"
        )
        trace = _recover(strategy, stack=stack)
        assert [(f.url, f.line, f.function_name) for f in trace.frames] == [
            ("/srv/app/views.py", 10, "index"),
            ("/srv/app/main.py", 5, "<module>"),
        ]


# ===========================================================================
# 5. No result
# ===========================================================================
class TestNoResult:

    def test_missing_stack(self, strategy):
        assert _recover(strategy, message="boom") is None

    def test_unparseable_stack(self, strategy):
        assert _recover(strategy, stack="something went wrong\nsomewhere") is None
