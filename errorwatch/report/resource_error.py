"""
Resource Load Errors
====================
Failed loads of page resources (<img>, <script>, <link>, ...) reported as
a disjoint trace variant.

Output shape:
    {
        "mode": "resource",
        "name": <the failed resource's url>,
        "message": "<tag> is load error",
        "stack": null
    }

Events without an element tag come from the page itself rather than a
resource; they are left to the global error handler.
"""
import logging
from typing import Any, Callable, Optional

from errorwatch.core.config import COLLECT_SOURCE_ERRORS
from errorwatch.core.constants import MODE_RESOURCE
from errorwatch.models.stack_trace import StackTrace

logger = logging.getLogger(__name__)


def resource_error_trace(
    local_name: str,
    src: Optional[str] = None,
    href: Optional[str] = None,
    current_src: Optional[str] = None,
) -> StackTrace:
    """Build the resource variant for a failed `local_name` element."""
    return StackTrace(
        mode=MODE_RESOURCE,
        name=src or href or current_src,
        message=f"{local_name} is load error",
        frames=None,
    )


class ResourceErrorListener:
    """
    Forwards resource load failures to a delivery callback while installed.

    Usage:
        listener = ResourceErrorListener(session.notify_handlers)
        listener.install()
        listener.handle("img", src="http://host/404.jpg")
        listener.uninstall()
    """

    def __init__(
        self,
        deliver: Callable[[StackTrace, bool, Any], None],
        enabled: bool = COLLECT_SOURCE_ERRORS,
    ) -> None:
        self.deliver = deliver
        self.enabled = enabled
        self.installed = False

    def install(self) -> None:
        if self.installed or not self.enabled:
            return
        self.installed = True
        logger.debug("Resource error listener installed")

    def uninstall(self) -> None:
        if self.installed:
            self.installed = False
            logger.debug("Resource error listener removed")

    def handle(
        self,
        local_name: Optional[str],
        src: Optional[str] = None,
        href: Optional[str] = None,
        current_src: Optional[str] = None,
        event: Any = None,
    ) -> Optional[StackTrace]:
        """
        Deliver one failed load as a window error.

        Returns
        -------
        StackTrace | None
            The delivered trace, or None when the listener is not installed
            or the event has no element tag.
        """
        if not self.installed or not local_name:
            return None

        trace = resource_error_trace(local_name, src, href, current_src)
        logger.info("Resource failed to load: <%s> %s", local_name, trace.name)
        self.deliver(trace, True, event)
        return trace
