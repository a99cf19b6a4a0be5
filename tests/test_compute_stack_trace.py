"""
Unit Tests — Stack Trace Computation
====================================
Strategy ordering, the stacktrace-before-stack read, fault isolation
and the canonical output shape.
"""
from unittest.mock import patch

import pytest

from errorwatch.core.constants import MODE_ALT_TRACE, MODE_NATIVE_TRACE, MODE_UNRECOVERABLE
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.stack_trace import TraceComputer, compute_stack_trace
from errorwatch.parser.strategies.native_trace import NativeTraceStrategy
from errorwatch.services.source_cache import SourceCache

CHROME_STACK = "Error: boom\n    at foo (http://host/a.js:10:5)"
OPERA_STACKTRACE = "  Line 44 of linked script http://host/app.js: in function foo\n    this.undef();"


class OperaError:
    """Error whose stacktrace vanishes once stack has been read."""

    def __init__(self):
        self.reads = []
        self.message = "boom"

    @property
    def stacktrace(self):
        self.reads.append("stacktrace")
        return None if "stack" in self.reads else OPERA_STACKTRACE

    @property
    def stack(self):
        self.reads.append("stack")
        return None


class ExplodingError:
    @property
    def stack(self):
        raise RuntimeError("getter failed")


def _computer(**kwargs):
    return TraceComputer(SourceLookup(SourceCache(remote_fetching=False)), **kwargs)


# ===========================================================================
# 1. Unrecoverable
# ===========================================================================
@pytest.mark.parametrize("error", [{}, {"message": "boom"}, {"name": "Error"}, None, 42, "boom", object()])
def test_no_trace_fields_is_unrecoverable(error):
    trace = compute_stack_trace(error)
    assert trace.mode == MODE_UNRECOVERABLE
    assert trace.frames == []


def test_failing_field_getter_is_unrecoverable():
    trace = _computer().compute(ExplodingError())
    assert trace.mode == MODE_UNRECOVERABLE


# ===========================================================================
# 2. Ordering
# ===========================================================================
class TestOrdering:

    def test_native_trace_wins(self):
        trace = _computer().compute({"stack": CHROME_STACK, "stacktrace": OPERA_STACKTRACE})
        assert trace.mode == MODE_NATIVE_TRACE

    def test_alt_trace_when_no_stack(self):
        trace = _computer().compute({"stacktrace": OPERA_STACKTRACE})
        assert trace.mode == MODE_ALT_TRACE

    def test_stacktrace_read_before_stack(self):
        error = OperaError()
        trace = _computer().compute(error)
        assert error.reads.index("stacktrace") < error.reads.index("stack")
        assert trace.mode == MODE_ALT_TRACE
        assert trace.frames[0].line == 44


# ===========================================================================
# 3. Fault isolation
# ===========================================================================
class TestFaults:

    def test_strategy_fault_falls_through(self):
        with patch.object(NativeTraceStrategy, "try_recover", side_effect=RuntimeError("bug")):
            trace = _computer().compute({"stack": CHROME_STACK, "stacktrace": OPERA_STACKTRACE})
        assert trace.mode == MODE_ALT_TRACE

    def test_debug_reraises(self):
        with patch.object(NativeTraceStrategy, "try_recover", side_effect=RuntimeError("bug")):
            with pytest.raises(RuntimeError):
                _computer(debug=True).compute({"stack": CHROME_STACK})


# ===========================================================================
# 4. Canonical shape
# ===========================================================================
def test_canonical_shape():
    trace = _computer().compute({"name": "Error", "message": "boom", "stack": CHROME_STACK})
    assert trace.to_canonical() == {
        "mode": MODE_NATIVE_TRACE,
        "name": "Error",
        "message": "boom",
        "stack": [{
            "url": "http://host/a.js",
            "func": "foo",
            "args": [],
            "line": 10,
            "column": 5,
            "context": None,
        }],
    }
