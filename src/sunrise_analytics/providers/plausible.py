"""Plausible provider.

Privacy-focused provider. Plausible has no per-user identity model, so
:meth:`PlausibleProvider.identify` and :meth:`PlausibleProvider.reset` are
explicit no-ops that always succeed.

See: https://plausible.io/docs
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from ..config import PlausibleConfig
from ..models import (
    PropertyBag,
    ProviderFeatures,
    ProviderKind,
    TrackResult,
    as_dict,
    is_primitive,
)
from ..runtime import PLAUSIBLE, VendorRuntime
from .base import AnalyticsProvider

# The vendor callback does not always fire; stop waiting after this long
CALLBACK_TIMEOUT = 0.5

# Page fields consumed as URL/metadata rather than sent as props
PAGE_FIELDS = ("url", "path", "referrer", "search", "title")

DEFAULT_CURRENCY = "USD"


def _primitive_props(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in properties.items() if is_primitive(v)}


class PlausibleProvider(AnalyticsProvider):
    """Analytics provider backed by Plausible.

    Plausible has no user identification, session replay or feature flags.
    Property values other than strings, numbers and booleans are dropped.
    """

    name = "Plausible"
    kind = ProviderKind.PLAUSIBLE

    def __init__(
        self,
        config: PlausibleConfig,
        runtime: Optional[VendorRuntime] = None,
        load_timeout: float = 5.0,
        callback_timeout: float = CALLBACK_TIMEOUT,
    ) -> None:
        super().__init__(runtime=runtime, debug=config.debug)
        self.domain = config.domain
        self.host = config.host
        self.hash_mode = config.hash_mode
        self._load_timeout = load_timeout
        self._callback_timeout = callback_timeout

    async def init(self) -> None:
        if self._ready:
            return

        await self._runtime.wait_for(PLAUSIBLE, timeout=self._load_timeout)

        self._ready = True
        self._log("init", "Plausible provider initialized")

    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        # No user identification in Plausible, intentionally a no-op
        self._log("identify", "No-op, Plausible does not support user identification")
        return TrackResult.ok(data={"note": "Plausible does not support user identification"})

    async def track(
        self, event: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        options: Dict[str, Any] = {}

        if properties is not None:
            props = as_dict(properties)
            primitive = _primitive_props(props)
            if primitive:
                options["props"] = primitive

            if props.get("revenue") is not None:
                options["revenue"] = {
                    "currency": props.get("currency") or DEFAULT_CURRENCY,
                    "amount": props["revenue"],
                }

        return await self._send(event, options)

    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        options: Dict[str, Any] = {}

        if properties is not None:
            props = as_dict(properties)
            origin = self._page_context.origin

            if props.get("url"):
                options["u"] = props["url"]
            elif props.get("path") and origin:
                options["u"] = origin + props["path"]

            page_props: Dict[str, Any] = {}
            if name:
                page_props["page_name"] = name
            if props.get("title"):
                page_props["title"] = props["title"]
            for key, value in _primitive_props(props).items():
                if key not in PAGE_FIELDS:
                    page_props[key] = value

            if page_props:
                options["props"] = page_props

        return await self._send("pageview", options)

    async def reset(self) -> TrackResult:
        # Plausible does not track individual users, nothing to reset
        self._log("reset", "No-op, Plausible does not track individual users")
        return TrackResult.ok()

    def get_features(self) -> ProviderFeatures:
        return ProviderFeatures(
            supports_identify=False,
            supports_server_side=True,
            supports_feature_flags=False,
            supports_session_replay=False,
            supports_cookieless=True,
        )

    async def _send(self, event: str, options: Dict[str, Any]) -> TrackResult:
        """Send an event and wait briefly for the vendor callback.

        Resolves successfully whether or not the callback fires in time.
        """
        loop = asyncio.get_running_loop()
        delivered = loop.create_future()

        def callback() -> None:
            if not delivered.done():
                delivered.set_result(True)

        options["callback"] = callback

        handle = self._runtime.get(PLAUSIBLE)
        if handle is not None:
            handle(event, options)
        self._log("track" if event != "pageview" else "page", event, options)

        await asyncio.wait({delivered}, timeout=self._callback_timeout)
        if not delivered.done():
            delivered.cancel()
        return TrackResult.ok()
