"""Consent-gated analytics session.

The session is what call sites use instead of talking to providers. It
checks consent before every call, initializes the provider when consent is
granted, resets it when consent is revoked, and converts every provider
error into a failed :class:`~sunrise_analytics.models.TrackResult`.

Example:
    consent = ConsentState(granted=True)
    async with AnalyticsSession(consent) as analytics:
        with analytics.bind():
            await use_analytics().track("user_logged_in", {"method": "email"})
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Any, Awaitable, Callable, Iterator, Optional, Set, Tuple, Union

from .client import AnalyticsClientRegistry, get_registry
from .consent import ConsentSource, ObservableConsentSource
from .errors import AnalyticsScopeError, report_error
from .models import PropertyBag, TrackResult, as_dict
from .providers import AnalyticsProvider

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "Analytics not available"
NOT_READY = "Analytics not ready"

_current_session: ContextVar[Optional["AnalyticsSession"]] = ContextVar(
    "analytics_session", default=None
)


def _event_name(event: Union[str, Enum]) -> str:
    return event.value if isinstance(event, Enum) else event


class AnalyticsSession:
    """Analytics facade scoped to one user session.

    Args:
        consent: Source of the optional-consent flag. If it can be
            subscribed to, consent changes are picked up automatically;
            otherwise call :meth:`refresh` after a change.
        registry: Client registry. Defaults to the process-wide one.
    """

    def __init__(
        self,
        consent: ConsentSource,
        registry: Optional[AnalyticsClientRegistry] = None,
    ) -> None:
        self._consent = consent
        self._registry = registry or get_registry()
        self._previous_consent = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._pending: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "AnalyticsSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Mount the session: read consent, subscribe, initialize if granted."""
        granted = self._consent.has_optional_consent()
        self._previous_consent = granted

        if isinstance(self._consent, ObservableConsentSource) and self._unsubscribe is None:
            self._unsubscribe = self._consent.subscribe(self._on_consent_change)

        if granted:
            await self._initialize()

    async def stop(self) -> None:
        """Unsubscribe from consent changes and wait for pending refreshes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def refresh(self) -> None:
        """React to a consent change since the last check.

        Only edges count: granting initializes the provider once, revoking
        resets it once. Calling this with unchanged consent does nothing.
        """
        granted = self._consent.has_optional_consent()
        previous = self._previous_consent
        self._previous_consent = granted

        if granted == previous:
            return

        if granted:
            await self._initialize()
        else:
            await self._teardown()

    def _on_consent_change(self, granted: bool) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Consent changed outside an event loop, waiting for refresh()")
            return

        task = loop.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _initialize(self) -> None:
        client = self._registry.get_client()
        if client is None or client.is_ready():
            return

        # The registry joins callers of the same client onto one init
        try:
            await self._registry.init_client()
        except Exception as e:
            report_error(e, "Analytics initialization failed", provider=client.name)

    async def _teardown(self) -> None:
        client = self._registry.get_client()
        if client is not None and client.is_ready():
            try:
                await client.reset()
            except Exception as e:
                logger.debug("Ignoring analytics reset error on consent revocation: %s", e)

        # Start clean on the next grant
        self._registry.reset_client()

    @property
    def is_ready(self) -> bool:
        """Consent granted and the provider initialized."""
        if not self._consent.has_optional_consent():
            return False
        client = self._registry.get_client()
        return client is not None and client.is_ready()

    @property
    def is_enabled(self) -> bool:
        """Whether the user has consented to analytics."""
        return self._consent.has_optional_consent()

    @property
    def provider_name(self) -> Optional[str]:
        """Display name of the active provider, or None when disabled."""
        return self._registry.provider_name()

    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Identify the current user.

        Args:
            user_id: Stable user identifier.
            traits: User traits such as email or plan.

        Returns:
            The provider result, or a failed result when consent is missing
            or the provider is not ready.
        """
        if not self._consent.has_optional_consent():
            return TrackResult.fail(NOT_AVAILABLE)
        return await self._call("identify", lambda client: client.identify(user_id, traits))

    async def track(
        self, event: Union[str, Enum], properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Track a custom event. Catalog enum members are accepted."""
        if not self._consent.has_optional_consent():
            return TrackResult.fail(NOT_AVAILABLE)
        name = _event_name(event)
        return await self._call("track", lambda client: client.track(name, properties))

    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Record a page view."""
        if not self._consent.has_optional_consent():
            return TrackResult.fail(NOT_AVAILABLE)
        return await self._call("page", lambda client: client.page(name, properties))

    async def reset(self) -> TrackResult:
        """Forget the identified user.

        Runs even without consent so logging out always clears identity.
        """
        return await self._call("reset", lambda client: client.reset())

    async def identify_then_track(
        self,
        user_id: str,
        event: Union[str, Enum],
        traits: Optional[PropertyBag] = None,
        properties: Optional[PropertyBag] = None,
    ) -> Tuple[TrackResult, TrackResult]:
        """Identify a user, then track an event bound to them."""
        identified = await self.identify(user_id, traits)
        tracked = await self.track(event, properties)
        return identified, tracked

    async def identify_then_page(
        self,
        user_id: str,
        name: Optional[str] = None,
        properties: Optional[PropertyBag] = None,
        traits: Optional[PropertyBag] = None,
    ) -> Tuple[TrackResult, TrackResult]:
        """Identify a user, then record a page view bound to them."""
        identified = await self.identify(user_id, traits)
        viewed = await self.page(name, properties)
        return identified, viewed

    async def _call(
        self,
        operation: str,
        invoke: Callable[[AnalyticsProvider], Awaitable[TrackResult]],
    ) -> TrackResult:
        client = self._registry.get_client()
        if client is None or not client.is_ready():
            init_error = self._registry.init_error
            if init_error is not None:
                return TrackResult.fail(f"{NOT_READY}: {init_error}")
            return TrackResult.fail(NOT_READY)

        try:
            return await invoke(client)
        except Exception as e:
            report_error(e, f"Analytics {operation} error", provider=client.name)
            return TrackResult.fail(str(e))

    @contextmanager
    def bind(self) -> Iterator["AnalyticsSession"]:
        """Make this session the one returned by :func:`use_analytics`."""
        token = _current_session.set(self)
        try:
            yield self
        finally:
            _current_session.reset(token)


def use_analytics() -> AnalyticsSession:
    """Get the session bound to the current context.

    Raises:
        AnalyticsScopeError: If no session is bound.
    """
    session = _current_session.get()
    if session is None:
        raise AnalyticsScopeError("use_analytics must be used within a bound AnalyticsSession")
    return session


class PageTracker:
    """Records a page view whenever the current path changes.

    Args:
        session: Analytics session. Defaults to the bound one.
        skip_initial: Skip the first page (when something else tracks it,
            e.g. after identifying the user).
        properties: Extra properties added to every page view.
    """

    def __init__(
        self,
        session: Optional[AnalyticsSession] = None,
        skip_initial: bool = False,
        properties: Optional[PropertyBag] = None,
    ) -> None:
        self._session = session or use_analytics()
        self._skip_initial = skip_initial
        self._properties = as_dict(properties)
        self._last_path: Optional[str] = None
        self._skipped_initial = False

    async def on_route_change(
        self,
        path: str,
        url: Optional[str] = None,
        search: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> Optional[TrackResult]:
        """Track the new route. Returns None when nothing was sent."""
        if not self._session.is_ready:
            return None

        if self._skip_initial and not self._skipped_initial:
            self._skipped_initial = True
            self._last_path = path
            return None

        if path == self._last_path:
            return None
        self._last_path = path

        route = {"path": path, "url": url, "search": search or None, "referrer": referrer}
        page_properties = {k: v for k, v in route.items() if v is not None}
        page_properties.update(self._properties)
        return await self._session.page(None, page_properties)
