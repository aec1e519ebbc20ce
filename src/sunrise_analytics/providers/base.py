"""Provider capability contract shared by all analytics backends."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models import PropertyBag, ProviderFeatures, ProviderKind, TrackResult
from ..privacy import scrub_dict
from ..runtime import PageContext, VendorRuntime, get_runtime

logger = logging.getLogger(__name__)


class AnalyticsProvider(ABC):
    """Base class for analytics providers.

    A provider moves from not-ready to ready once :meth:`init` completes and
    never goes back; the registry replaces the object instead. Calls made
    before that return a failed result rather than raising.
    """

    name: str = ""
    kind: ProviderKind

    def __init__(self, runtime: Optional[VendorRuntime] = None, debug: bool = False) -> None:
        self._runtime = runtime or get_runtime()
        self._debug = debug
        self._ready = False

    @abstractmethod
    async def init(self) -> None:
        """Prepare the provider. Calling it again once ready is a no-op."""

    @abstractmethod
    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Associate subsequent events with a user."""

    @abstractmethod
    async def track(
        self, event: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Record a custom event."""

    @abstractmethod
    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Record a page view."""

    @abstractmethod
    async def reset(self) -> TrackResult:
        """Forget the identified user (on logout)."""

    @abstractmethod
    def get_features(self) -> ProviderFeatures:
        """Report which capabilities this provider supports."""

    def is_ready(self) -> bool:
        """Whether ``init()`` has completed."""
        return self._ready

    def _not_initialized(self) -> TrackResult:
        return TrackResult.fail(f"{self.name} not initialized")

    @property
    def _page_context(self) -> PageContext:
        return self._runtime.page_context or PageContext()

    def _log(self, method: str, *args: Any) -> None:
        if not self._debug:
            return
        logger.debug(
            "[%s] %s %s",
            self.name,
            method,
            [scrub_dict(a) if isinstance(a, dict) else a for a in args],
        )
