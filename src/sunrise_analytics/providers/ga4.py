"""Google Analytics 4 provider.

Drives the ``gtag`` handle registered by the script bootstrap.

See: https://developers.google.com/analytics/devguides/collection/ga4
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..config import GA4Config
from ..models import PropertyBag, ProviderFeatures, ProviderKind, TrackResult, as_dict
from ..runtime import GTAG, VendorRuntime
from .base import AnalyticsProvider

# Only these traits are forwarded as GA4 user properties
USER_PROPERTY_KEYS = ("email", "name", "plan", "company")

DEFAULT_CURRENCY = "USD"


class GA4Provider(AnalyticsProvider):
    """Analytics provider backed by gtag.js.

    Example:
        provider = GA4Provider(GA4Config(measurement_id="G-XXXXXXXXXX"))
        await provider.init()
        await provider.track("purchase", {"revenue": 99.99, "currency": "EUR"})
    """

    name = "Google Analytics 4"
    kind = ProviderKind.GA4

    def __init__(
        self,
        config: GA4Config,
        runtime: Optional[VendorRuntime] = None,
        load_timeout: float = 5.0,
    ) -> None:
        super().__init__(runtime=runtime, debug=config.debug)
        self.measurement_id = config.measurement_id
        self._load_timeout = load_timeout
        self._user_id: Optional[str] = None

    async def init(self) -> None:
        if self._ready:
            return

        await self._runtime.wait_for(GTAG, timeout=self._load_timeout)

        self._gtag("js", datetime.now())
        # Page views are tracked manually
        self._gtag(
            "config",
            self.measurement_id,
            {"send_page_view": False, "debug_mode": self._debug},
        )

        self._ready = True
        self._log("init", "GA4 provider initialized")

    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        self._user_id = user_id
        self._gtag("config", self.measurement_id, {"user_id": user_id})

        if traits is not None:
            trait_dict = as_dict(traits)
            user_properties = {
                key: trait_dict[key] for key in USER_PROPERTY_KEYS if trait_dict.get(key)
            }
            self._gtag("set", "user_properties", user_properties)

        self._log("identify", user_id, as_dict(traits))
        return TrackResult.ok()

    async def track(
        self, event: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        props = as_dict(properties)
        params: Dict[str, Any] = dict(props)

        if props.get("category"):
            params["event_category"] = props["category"]
        if props.get("label"):
            params["event_label"] = props["label"]
        if props.get("value") is not None:
            params["value"] = props["value"]
        if props.get("revenue") is not None:
            params["value"] = props["revenue"]
            params["currency"] = props.get("currency") or DEFAULT_CURRENCY

        self._gtag("event", event, params)

        self._log("track", event, params)
        return TrackResult.ok()

    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        props = as_dict(properties)
        context = self._page_context
        page_name = name if name is not None else context.title

        params: Dict[str, Any] = {
            "page_title": page_name,
            "page_location": props.get("url", context.url),
            "page_path": props.get("path", context.path),
            "page_referrer": props.get("referrer", context.referrer),
            **props,
        }

        self._gtag("event", "page_view", params)

        self._log("page", page_name, params)
        return TrackResult.ok()

    async def reset(self) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        previous_user_id = self._user_id
        self._user_id = None

        self._gtag("config", self.measurement_id, {"user_id": None})
        self._gtag("set", "user_properties", {key: None for key in USER_PROPERTY_KEYS})

        self._log("reset", f"User {previous_user_id} logged out")
        return TrackResult.ok()

    def get_features(self) -> ProviderFeatures:
        return ProviderFeatures(
            supports_identify=True,
            supports_server_side=True,
            supports_feature_flags=False,
            supports_session_replay=False,
            supports_cookieless=False,
        )

    def _gtag(self, *args: Any) -> None:
        gtag: Optional[Callable[..., Any]] = self._runtime.get(GTAG)
        if gtag is not None:
            gtag(*args)
