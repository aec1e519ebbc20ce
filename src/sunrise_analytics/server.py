"""Server-side analytics.

Sends events straight to each provider's public ingestion API, bypassing the
browser adapters (and ad blockers). Server-initiated events are assumed to
be authorized by the caller, so no consent check happens here, and nothing
is shared with the client registry.

Example:
    result = await server_track(
        "subscription_created",
        user_id=user.id,
        properties={"plan": "pro", "value": 99.99, "currency": "USD"},
    )
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

import httpx

from .config import (
    AnalyticsSettings,
    get_ga4_config,
    get_plausible_config,
    get_posthog_config,
    load_settings,
    resolve_provider,
)
from .errors import report_error
from .models import (
    ProviderKind,
    PropertyBag,
    ServerTrackContext,
    TrackResult,
    as_dict,
    is_primitive,
)
from .privacy import scrub_dict

logger = logging.getLogger(__name__)

GA4_COLLECT_URL = "https://www.google-analytics.com/mp/collect"
LIB_NAME = "sunrise-server"
LIB_VERSION = "1.0.0"
DEFAULT_TIMEOUT = 5.0

_request_headers: ContextVar[Optional[httpx.Headers]] = ContextVar(
    "analytics_request_headers", default=None
)


@contextmanager
def bind_request_headers(headers: Mapping[str, str]) -> Iterator[None]:
    """Expose the inbound request's headers to server-side tracking.

    Typically entered by request middleware for the duration of a request.
    """
    token = _request_headers.set(httpx.Headers(headers))
    try:
        yield
    finally:
        _request_headers.reset(token)


def _current_headers() -> httpx.Headers:
    headers = _request_headers.get()
    if headers is None:
        raise LookupError("No inbound request headers bound")
    return headers


def get_request_context(provided: Optional[ServerTrackContext] = None) -> ServerTrackContext:
    """Get the request context for an event.

    Uses the explicit context when given, else the bound inbound headers,
    else an empty context.
    """
    if provided is not None:
        return provided

    try:
        headers = _current_headers()
    except LookupError:
        return ServerTrackContext()

    forwarded_for = headers.get("x-forwarded-for")
    ip = forwarded_for.split(",")[0].strip() if forwarded_for else headers.get("x-real-ip")
    referer = headers.get("referer")

    return ServerTrackContext(
        ip=ip,
        user_agent=headers.get("user-agent"),
        page_url=referer,
        page_referrer=referer,
    )


def generate_anonymous_id() -> str:
    """Random id for events without a user."""
    return f"anon_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ServerTracker:
    """Posts events to the active provider's server API.

    Args:
        settings_loader: Returns the settings snapshot for each call.
        http_client: Client to send requests with. A short-lived client is
            created per call when omitted.
        timeout: Request timeout in seconds for per-call clients.
    """

    def __init__(
        self,
        settings_loader: Callable[[], AnalyticsSettings] = load_settings,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._settings_loader = settings_loader
        self._http_client = http_client
        self._timeout = timeout

    async def track(
        self,
        event: str,
        user_id: Optional[str] = None,
        anonymous_id: Optional[str] = None,
        properties: Optional[PropertyBag] = None,
        context: Optional[ServerTrackContext] = None,
    ) -> TrackResult:
        """Track an event server-side. Never raises."""
        settings = self._settings_loader()
        provider = resolve_provider(settings)
        props = as_dict(properties)

        if provider is None or provider is ProviderKind.CONSOLE:
            logger.debug(
                "Server track (console): %s user=%s properties=%s",
                event,
                user_id,
                scrub_dict(props),
            )
            return TrackResult.ok()

        try:
            request_context = get_request_context(context)
            distinct_id = user_id or anonymous_id or generate_anonymous_id()

            if provider is ProviderKind.GA4:
                return await self._track_ga4(
                    settings, event, distinct_id, user_id, props, request_context
                )
            if provider is ProviderKind.POSTHOG:
                return await self._track_posthog(
                    settings, event, distinct_id, props, request_context
                )
            if provider is ProviderKind.PLAUSIBLE:
                return await self._track_plausible(settings, event, props, request_context)
            return TrackResult.fail(f"Unknown provider: {provider}")
        except Exception as e:
            report_error(e, "Server track failed", event=event, provider=provider.value)
            return TrackResult.fail(str(e))

    async def page_view(
        self, page_name: str, url: str, user_id: Optional[str] = None
    ) -> TrackResult:
        """Track a page view from server-rendered code."""
        return await self.track(
            "pageview",
            user_id=user_id,
            properties={"page_name": page_name, "url": url},
            context=ServerTrackContext(page_url=url),
        )

    async def _track_ga4(
        self,
        settings: AnalyticsSettings,
        event: str,
        client_id: str,
        user_id: Optional[str],
        properties: Dict[str, Any],
        context: ServerTrackContext,
    ) -> TrackResult:
        """Measurement Protocol.

        See: https://developers.google.com/analytics/devguides/collection/protocol/ga4
        """
        config = get_ga4_config(settings)
        if config is None or not config.api_secret:
            return TrackResult.fail(
                "GA4 server-side tracking requires GA4_API_SECRET to be configured"
            )

        payload: Dict[str, Any] = {
            "client_id": client_id,
            "events": [
                {
                    "name": event,
                    "params": {**properties, "engagement_time_msec": 100},
                }
            ],
        }
        if user_id:
            payload["user_id"] = user_id

        headers = {}
        if context.user_agent:
            headers["User-Agent"] = context.user_agent

        response = await self._post(
            GA4_COLLECT_URL,
            payload,
            headers=headers,
            params={"measurement_id": config.measurement_id, "api_secret": config.api_secret},
        )
        if not response.is_success:
            return TrackResult.fail(f"GA4 API error: {response.status_code}")
        return TrackResult.ok()

    async def _track_posthog(
        self,
        settings: AnalyticsSettings,
        event: str,
        distinct_id: str,
        properties: Dict[str, Any],
        context: ServerTrackContext,
    ) -> TrackResult:
        """PostHog capture endpoint.

        See: https://posthog.com/docs/api/capture
        """
        config = get_posthog_config(settings)
        api_key = settings.posthog_api_key or settings.posthog_key
        if config is None or not api_key:
            return TrackResult.fail(
                "PostHog server-side tracking requires POSTHOG_API_KEY to be configured"
            )

        event_properties: Dict[str, Any] = {
            **properties,
            "$lib": LIB_NAME,
            "$lib_version": LIB_VERSION,
        }
        if context.ip:
            event_properties["$ip"] = context.ip
        if context.user_agent:
            event_properties["$user_agent"] = context.user_agent
        if context.page_url:
            event_properties["$current_url"] = context.page_url
        if context.page_referrer:
            event_properties["$referrer"] = context.page_referrer

        payload = {
            "api_key": api_key,
            "event": event,
            "distinct_id": distinct_id,
            "properties": event_properties,
        }

        response = await self._post(f"{config.host.rstrip('/')}/capture/", payload)
        if not response.is_success:
            return TrackResult.fail(f"PostHog API error: {response.status_code}")
        return TrackResult.ok()

    async def _track_plausible(
        self,
        settings: AnalyticsSettings,
        event: str,
        properties: Dict[str, Any],
        context: ServerTrackContext,
    ) -> TrackResult:
        """Plausible Events API.

        See: https://plausible.io/docs/events-api
        """
        config = get_plausible_config(settings)
        if config is None:
            return TrackResult.fail("Plausible not configured")

        # Plausible requires a URL for every event
        payload: Dict[str, Any] = {
            "name": event,
            "url": context.page_url or f"https://{config.domain}/",
            "domain": config.domain,
        }
        if properties:
            payload["props"] = json.dumps(
                {k: v for k, v in properties.items() if is_primitive(v)}
            )

        headers = {}
        if context.user_agent:
            headers["User-Agent"] = context.user_agent
        if context.ip:
            headers["X-Forwarded-For"] = context.ip

        response = await self._post(
            f"{config.host.rstrip('/')}/api/event", payload, headers=headers
        )
        if not response.is_success:
            return TrackResult.fail(f"Plausible API error: {response.status_code}")
        return TrackResult.ok()

    async def _post(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, headers=headers, params=params)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload, headers=headers, params=params)


_default_tracker: Optional[ServerTracker] = None


def get_server_tracker() -> ServerTracker:
    """Get the process-wide server tracker."""
    global _default_tracker
    if _default_tracker is None:
        _default_tracker = ServerTracker()
    return _default_tracker


async def server_track(
    event: str,
    user_id: Optional[str] = None,
    anonymous_id: Optional[str] = None,
    properties: Optional[PropertyBag] = None,
    context: Optional[ServerTrackContext] = None,
) -> TrackResult:
    """Track an event server-side with the default tracker."""
    return await get_server_tracker().track(
        event,
        user_id=user_id,
        anonymous_id=anonymous_id,
        properties=properties,
        context=context,
    )


async def server_page_view(
    page_name: str, url: str, user_id: Optional[str] = None
) -> TrackResult:
    """Track a page view server-side with the default tracker."""
    return await get_server_tracker().page_view(page_name, url, user_id=user_id)
