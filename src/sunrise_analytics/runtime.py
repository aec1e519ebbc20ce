"""Vendor handles and page context consumed by the provider adapters.

Loading a vendor script is a platform concern. The bootstrap code that does
it registers the resulting handle here (``gtag``, ``posthog``,
``plausible``); adapters only wait until the handle is available.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ProviderTimeoutError

logger = logging.getLogger(__name__)

GTAG = "gtag"
POSTHOG = "posthog"
PLAUSIBLE = "plausible"

DEFAULT_WAIT_TIMEOUT = 5.0
DEFAULT_POLL_INTERVAL = 0.1


@dataclass
class PageContext:
    """The current page, standing in for the browser document and location."""

    title: Optional[str] = None
    url: Optional[str] = None
    path: Optional[str] = None
    referrer: Optional[str] = None
    origin: Optional[str] = None


class VendorRuntime:
    """Registry of vendor handles plus the current page context."""

    def __init__(self, page_context: Optional[PageContext] = None) -> None:
        self._handles: Dict[str, Any] = {}
        self.page_context = page_context

    def register(self, name: str, handle: Any) -> None:
        """Make a vendor handle available to adapters."""
        self._handles[name] = handle
        logger.debug("Vendor handle registered: %s", name)

    def unregister(self, name: str) -> None:
        """Remove a vendor handle, if registered."""
        self._handles.pop(name, None)

    def get(self, name: str) -> Optional[Any]:
        """Get a vendor handle.

        Args:
            name: Handle name, e.g. ``GTAG``.

        Returns:
            The handle, or None if it has not been registered.
        """
        return self._handles.get(name)

    def has(self, name: str) -> bool:
        """Check whether a vendor handle is registered."""
        return name in self._handles

    async def wait_for(
        self,
        name: str,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Any:
        """Poll until a handle is registered.

        Args:
            name: Handle name.
            timeout: Maximum time to wait in seconds.
            interval: Delay between polls in seconds.

        Returns:
            The registered handle.

        Raises:
            ProviderTimeoutError: If the handle does not appear in time.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while name not in self._handles:
            if loop.time() >= deadline:
                raise ProviderTimeoutError(f"Timeout waiting for {name} to load")
            await asyncio.sleep(interval)

        return self._handles[name]


_default_runtime: Optional[VendorRuntime] = None


def get_runtime() -> VendorRuntime:
    """Get the process-wide vendor runtime."""
    global _default_runtime
    if _default_runtime is None:
        _default_runtime = VendorRuntime()
    return _default_runtime
