"""
Unit Tests — Embedded Multiline Strategy
========================================
Backtraces embedded in the error message: linked scripts, inline
scripts and function scripts.
"""
from errorwatch.core.constants import MODE_EMBEDDED_MULTILINE
from errorwatch.models.page_context import PageContext, ScriptElement
from errorwatch.parser.error_fields import ErrorFields
from errorwatch.parser.source_lookup import SourceLookup
from errorwatch.parser.strategies.embedded_multiline import EmbeddedMultilineStrategy
from errorwatch.services.source_cache import SourceCache

PAGE_URL = "http://host/sample.html"

INLINE_SCRIPT = "var inline = 1;\nfunction yyy(x, y, z) {\n  zzz(x, y, z);\n}"

DOCUMENT = (
    "<html>\n"
    "<script>" + INLINE_SCRIPT + "</script>\n"
    "<body>\n"
    "  <button onclick=\"handle()\">go</button>\n"
    "    try { xxx('hi'); return false; } catch(ex) { report(ex); }\n"
    "</body>\n"
    "</html>"
)

MESSAGE = (
    "Statement on line 3: Undefined variable: undefinedFunc\n"
    "Backtrace:\n"
    "  Line 3 of linked script http://host/sample.js: In function zzz\n"
    "        undefinedFunc(a);\n"
    "  Line 3 of inline#1 script in http://host/sample.html: In function yyy\n"
    "          zzz(x, y, z);\n"
    "  Line 1 of function script \n"
    "    try { xxx('hi'); return false; } catch(ex) { report(ex); }"
)


def _strategy():
    page = PageContext(url=PAGE_URL + "#top", scripts=[ScriptElement(src="http://host/sample.js"),
                                                       ScriptElement(text=INLINE_SCRIPT)])
    cache = SourceCache(page, remote_fetching=False)
    cache.add_source(PAGE_URL, DOCUMENT)
    return EmbeddedMultilineStrategy(SourceLookup(cache))


def test_frames_from_message():
    trace = _strategy().try_recover(ErrorFields.capture({"message": MESSAGE}))
    assert trace.mode == MODE_EMBEDDED_MULTILINE
    assert trace.message == "Statement on line 3: Undefined variable: undefinedFunc"
    assert len(trace.frames) == 3


def test_linked_script():
    linked = _strategy().try_recover(ErrorFields.capture({"message": MESSAGE})).frames[0]
    assert (linked.url, linked.line, linked.function_name) == ("http://host/sample.js", 3, "zzz")
    assert linked.context == ["        undefinedFunc(a);"]


def test_inline_script_line_is_document_relative():
    inline = _strategy().try_recover(ErrorFields.capture({"message": MESSAGE})).frames[1]
    assert inline.url == PAGE_URL
    assert inline.function_name == "yyy"
    # the <script> block starts on document line 2
    assert inline.line == 3 + 2


def test_function_script_located_in_document():
    frame = _strategy().try_recover(ErrorFields.capture({"message": MESSAGE})).frames[2]
    assert frame.url == PAGE_URL
    assert frame.line == 8
    assert frame.context == ["    try { xxx('hi'); return false; } catch(ex) { report(ex); }"]


def test_short_message_ignored():
    strategy = _strategy()
    assert strategy.try_recover(ErrorFields.capture({"message": "one\ntwo\nthree"})) is None
    assert strategy.try_recover(ErrorFields.capture({})) is None


def _inline_frame(scripts, document=DOCUMENT):
    page = PageContext(url=PAGE_URL, scripts=scripts)
    cache = SourceCache(page, remote_fetching=False)
    cache.add_source(PAGE_URL, document)
    trace = EmbeddedMultilineStrategy(SourceLookup(cache)).try_recover(ErrorFields.capture({"message": MESSAGE}))
    return trace.frames[1]


def test_inline_script_not_in_document_has_no_line():
    frame = _inline_frame([ScriptElement(text=INLINE_SCRIPT)], document="<html></html>")
    assert frame.url == PAGE_URL
    assert frame.line is None
    assert frame.context == ["          zzz(x, y, z);"]


def test_empty_inline_script_not_matched():
    assert _inline_frame([ScriptElement(text="")]).line is None


def test_missing_inline_block_has_no_line():
    assert _inline_frame([]).line is None
