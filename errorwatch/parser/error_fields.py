"""
Error Fields
============
Snapshot of every environment-specific field of a raised error value.

Raised values arrive in many shapes:
    - browser error payloads (dicts with camelCase keys, as posted by agents)
    - arbitrary objects exposing the same fields as attributes
    - live Python exceptions raised in this interpreter

Known fields per environment:

    V8 (Chrome / Node):  name, message, stack
    Gecko (Firefox):     name, message, stack, fileName, lineNumber, columnNumber
    Presto (Opera 10+):  name, message, stacktrace
    Presto (Opera 9-):   name, message (trace embedded in the message)
    JavaScriptCore:      name, message, line, sourceURL
    Trident (IE):        name, message, description
    Python:              type name, str(exc), formatted __traceback__ as the
                         stack, innermost traceback entry as the location

Read order:
    `stacktrace` is read BEFORE `stack`. Opera 10 destroys its stacktrace
    property once stack has been touched, so recovery strategies never read
    the raw value themselves; they all work from this snapshot.
"""
import logging
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from errorwatch.parser.frame_markers import innermost_location

logger = logging.getLogger(__name__)


def _read(error: Any, *names: str) -> Any:
    """Return the first non-None field among `names`, reading keys or attributes."""
    for name in names:
        try:
            if isinstance(error, Mapping):
                value = error.get(name)
            else:
                value = getattr(error, name, None)
        except Exception as e:
            logger.debug("Reading field %r raised %s", name, e)
            continue
        if value is not None:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class ErrorFields:
    """Fields read once from a raised value, in the order recovery needs them."""
    raw: Any
    stacktrace: Optional[str] = None
    stack: Optional[str] = None
    name: Optional[str] = None
    message: Optional[str] = None
    description: Optional[str] = None
    column_number: Optional[int] = None
    file_name: Optional[str] = None
    line_number: Optional[int] = None
    source_url: Optional[str] = None
    line: Optional[int] = None
    is_live: bool = False

    @classmethod
    def capture(cls, error: Any) -> "ErrorFields":
        # stacktrace first, see module docstring
        stacktrace = _text(_read(error, "stacktrace"))
        stack = _text(_read(error, "stack"))

        fields = cls(
            raw=error,
            stacktrace=stacktrace,
            stack=stack,
            name=_text(_read(error, "name")),
            message=_text(_read(error, "message")),
            description=_text(_read(error, "description")),
            column_number=_int(_read(error, "columnNumber", "column_number")),
            file_name=_text(_read(error, "fileName", "file_name")),
            line_number=_int(_read(error, "lineNumber", "line_number")),
            source_url=_text(_read(error, "sourceURL", "source_url")),
            line=_int(_read(error, "line")),
            is_live=isinstance(error, BaseException),
        )

        if isinstance(error, BaseException):
            # ImportError.name, AttributeError.name etc. are not the error kind
            fields.name = type(error).__name__
            if fields.message is None:
                fields.message = str(error)
            if fields.stack is None and error.__traceback__ is not None:
                fields.stack = "".join(traceback.format_tb(error.__traceback__))
            if fields.file_name is None and fields.line_number is None:
                fields.file_name, fields.line_number = innermost_location(error.__traceback__)

        return fields

    @property
    def location_url(self) -> Optional[str]:
        """Url of the error's own top frame, as reported by the environment."""
        return self.source_url or self.file_name

    @property
    def location_line(self) -> Optional[int]:
        return self.line or self.line_number

    @property
    def location_message(self) -> Optional[str]:
        return self.message or self.description
