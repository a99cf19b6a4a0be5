"""
Stack Trace Model
=================
Pydantic model for the result of trace recovery.

Fields:
    name        — error kind (e.g. "TypeError"), None if unknown
    message     — error message, None if unknown
    mode        — which recovery path produced the trace (see core.constants)
    frames      — innermost first: frames[0] is where the error occurred.
                  None only for the "resource" variant.
    incomplete  — top frame still lacks url + line and cannot be trusted
    partial     — a frame was inserted by augmentation rather than recovered

The canonical shape consumed by telemetry drops the two transient flags:
    { mode, name, message, stack: [ {url, func, args, line, column, context} ] }
"""
from typing import Any, Optional
from pydantic import BaseModel, Field

from errorwatch.models.stack_frame import StackFrame


class StackTrace(BaseModel):
    name: Optional[str] = None
    message: Optional[str] = None
    mode: str
    frames: Optional[list[StackFrame]] = Field(default_factory=list)
    incomplete: bool = False
    partial: bool = False

    @property
    def top(self) -> Optional[StackFrame]:
        """Frame where the error occurred, if any."""
        if not self.frames:
            return None
        return self.frames[0]

    def to_canonical(self) -> dict[str, Any]:
        data = {
            "mode": self.mode,
            "name": self.name,
            "message": self.message,
            "stack": None,
        }
        if self.frames is not None:
            data["stack"] = [f.model_dump(by_alias=True) for f in self.frames]
        return data
