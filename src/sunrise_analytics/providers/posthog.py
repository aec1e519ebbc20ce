"""PostHog provider.

Full-featured provider: events, identification, feature flags and optional
session replay, driven through the ``posthog`` handle.

See: https://posthog.com/docs
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from ..config import PostHogConfig
from ..models import PropertyBag, ProviderFeatures, ProviderKind, TrackResult, as_dict
from ..runtime import POSTHOG, VendorRuntime
from .base import AnalyticsProvider

# Named traits and their PostHog person-property keys
TRAIT_KEYS = {
    "email": "email",
    "name": "name",
    "first_name": "first_name",
    "firstName": "first_name",
    "last_name": "last_name",
    "lastName": "last_name",
    "created_at": "created_at",
    "createdAt": "created_at",
    "plan": "plan",
    "company": "company",
}

DEFAULT_CURRENCY = "USD"


class PostHogHandle(Protocol):
    """The subset of the PostHog client the provider relies on."""

    def init(self, api_key: str, options: Dict[str, Any]) -> None: ...

    def capture(self, event: str, properties: Dict[str, Any]) -> None: ...

    def identify(self, distinct_id: str, properties: Dict[str, Any]) -> None: ...

    def reset(self) -> None: ...

    def is_feature_enabled(self, key: str) -> bool: ...

    def get_feature_flag(self, key: str) -> Optional[Union[str, bool]]: ...

    def on_feature_flags(self, callback: Callable[[List[str]], None]) -> None: ...


class PostHogProvider(AnalyticsProvider):
    """Analytics provider backed by PostHog.

    Example:
        provider = PostHogProvider(PostHogConfig(api_key="phc_..."))
        await provider.init()
        await provider.track("purchase", {"revenue": 99.99})
        if provider.get_features().supports_feature_flags:
            enabled = provider.is_feature_enabled("new-checkout")
    """

    name = "PostHog"
    kind = ProviderKind.POSTHOG

    def __init__(
        self,
        config: PostHogConfig,
        runtime: Optional[VendorRuntime] = None,
        load_timeout: float = 5.0,
    ) -> None:
        super().__init__(runtime=runtime, debug=config.debug)
        self.api_key = config.api_key
        self.host = config.host
        self.enable_session_recording = config.enable_session_recording
        self.disable_auto_page_views = config.disable_auto_page_views
        self._load_timeout = load_timeout
        self._user_id: Optional[str] = None

    async def init(self) -> None:
        if self._ready:
            return

        handle: PostHogHandle = await self._runtime.wait_for(
            POSTHOG, timeout=self._load_timeout
        )
        handle.init(
            self.api_key,
            {
                "api_host": self.host,
                "capture_pageview": not self.disable_auto_page_views,
                "capture_pageleave": True,
                "disable_session_recording": not self.enable_session_recording,
            },
        )

        self._ready = True
        self._log("init", "PostHog provider initialized")

    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        self._user_id = user_id

        person_properties: Dict[str, Any] = {}
        for key, value in as_dict(traits).items():
            if key in TRAIT_KEYS:
                if value:
                    person_properties[TRAIT_KEYS[key]] = value
            else:
                person_properties[key] = value

        self._handle.identify(user_id, person_properties)

        self._log("identify", user_id, person_properties)
        return TrackResult.ok()

    async def track(
        self, event: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        event_properties = as_dict(properties)
        if event_properties.get("revenue") is not None:
            event_properties["$value"] = event_properties["revenue"]
            event_properties["$currency"] = event_properties.get("currency") or DEFAULT_CURRENCY

        self._handle.capture(event, event_properties)

        self._log("track", event, event_properties)
        return TrackResult.ok()

    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        props = as_dict(properties)
        context = self._page_context
        page_name = name if name is not None else context.title

        page_properties: Dict[str, Any] = {
            "$current_url": props.get("url", context.url),
            "$pathname": props.get("path", context.path),
            "$referrer": props.get("referrer", context.referrer),
            "$title": page_name,
            **props,
        }

        self._handle.capture("$pageview", page_properties)

        self._log("page", page_name, page_properties)
        return TrackResult.ok()

    async def reset(self) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        previous_user_id = self._user_id
        self._user_id = None

        self._handle.reset()

        self._log("reset", f"User {previous_user_id} logged out")
        return TrackResult.ok()

    def get_features(self) -> ProviderFeatures:
        return ProviderFeatures(
            supports_identify=True,
            supports_server_side=True,
            supports_feature_flags=True,
            supports_session_replay=self.enable_session_recording,
            supports_cookieless=True,
        )

    def is_feature_enabled(self, flag_key: str) -> bool:
        """Check whether a feature flag is on. False until ready."""
        handle = self._runtime.get(POSTHOG)
        if not self._ready or handle is None:
            return False
        return bool(handle.is_feature_enabled(flag_key))

    def get_feature_flag(self, flag_key: str) -> Optional[Union[str, bool]]:
        """Get a feature flag value (variant name or boolean)."""
        handle = self._runtime.get(POSTHOG)
        if not self._ready or handle is None:
            return None
        return handle.get_feature_flag(flag_key)

    def on_feature_flags(self, callback: Callable[[List[str]], None]) -> None:
        """Subscribe to feature flag loads and updates."""
        handle = self._runtime.get(POSTHOG)
        if not self._ready or handle is None:
            return
        handle.on_feature_flags(callback)

    @property
    def _handle(self) -> PostHogHandle:
        return self._runtime.get(POSTHOG)
