"""
Stack Frame Model
=================
Pydantic model for one call-site recovered from a raised error.

Fields:
    url             — script / file URL, None for native frames or when unknown
    function_name   — function name, "?" when neither the trace nor a guess named it
    arguments       — argument strings when the trace carried them (often empty)
    line            — 1-based line number, None when unknown
    column          — column number, None when unknown
    context         — source lines around `line`; always contains `line` when set

Canonical keys (see StackTrace.to_canonical):
    url, func, args, line, column, context
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from errorwatch.core.constants import UNKNOWN_FUNCTION


class StackFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    function_name: str = Field(default=UNKNOWN_FUNCTION, serialization_alias="func")
    arguments: list[str] = Field(default_factory=list, serialization_alias="args")
    line: Optional[int] = None
    column: Optional[int] = None
    context: Optional[list[str]] = None
