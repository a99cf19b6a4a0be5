"""
Page Context Model
==================
What the parser may know about the document an error came from.

Fields:
    url       — current document URL (used for same-origin checks and
                for locating inline / "function script" code)
    domain    — document domain; derived from `url` when not given
    scripts   — script elements in document order. Inline scripts have
                src=None and carry their text.
"""
import re
from typing import Optional
from pydantic import BaseModel, Field, model_validator

# 0 - full url, 1 - protocol, 2 - domain, 3 - port, 4 - path
URL_PARTS_RE = re.compile(r"(.*?)://([^:/]+)([:\d]*)/?([\s\S]*)")


def parse_domain(url: Optional[str]) -> Optional[str]:
    """Return the domain part of `url`, or None if it doesn't parse."""
    if not isinstance(url, str):
        return None
    match = URL_PARTS_RE.search(url)
    if not match:
        return None
    return match.group(2)


class ScriptElement(BaseModel):
    src: Optional[str] = None
    text: str = ""


class PageContext(BaseModel):
    url: Optional[str] = None
    domain: Optional[str] = None
    scripts: list[ScriptElement] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_domain(self) -> "PageContext":
        if self.domain is None:
            self.domain = parse_domain(self.url)
        return self

    @property
    def script_urls(self) -> list[str]:
        return [s.src for s in self.scripts if s.src]

    @property
    def inline_scripts(self) -> list[ScriptElement]:
        return [s for s in self.scripts if not s.src]
