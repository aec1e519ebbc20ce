"""Console analytics provider.

Development provider that writes every analytics call to the log instead of
sending it anywhere. Used as the fallback in development builds.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import ConsoleConfig
from ..models import PropertyBag, ProviderFeatures, ProviderKind, TrackResult, as_dict
from ..privacy import scrub_dict
from ..runtime import VendorRuntime
from .base import AnalyticsProvider

logger = logging.getLogger(__name__)

# Per-method message templates: prefix, method, timestamp, then the payload
_FORMATS = {
    "init": "%s init [%s] %s",
    "identify": "%s identify [%s] user=%s traits=%s",
    "track": "%s track [%s] event=%s properties=%s",
    "page": "%s page [%s] name=%s properties=%s",
    "reset": "%s reset [%s] %s",
}


class ConsoleProvider(AnalyticsProvider):
    """Logs all analytics calls in a readable format.

    Example:
        provider = ConsoleProvider(ConsoleConfig(prefix="[Analytics]"))
        await provider.init()
        await provider.track("button_clicked", {"button_id": "signup"})
        # [Analytics] track [12:00:01.250] event=button_clicked properties={...}
    """

    name = "Console"
    kind = ProviderKind.CONSOLE

    def __init__(
        self,
        config: Optional[ConsoleConfig] = None,
        runtime: Optional[VendorRuntime] = None,
    ) -> None:
        config = config or ConsoleConfig()
        super().__init__(runtime=runtime, debug=config.debug)
        self.prefix = config.prefix
        # Only used to make the log output readable
        self._user_id: Optional[str] = None
        self._user_traits: Dict[str, Any] = {}

    async def init(self) -> None:
        if self._ready:
            return
        self._ready = True
        self._emit("init", "Console analytics provider initialized")

    async def identify(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        self._user_id = user_id
        trait_dict = as_dict(traits)
        self._user_traits.update(trait_dict)

        self._emit("identify", user_id, trait_dict)
        return TrackResult.ok()

    async def track(
        self, event: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        self._emit("track", event, {**as_dict(properties), "_user_id": self._user_id})
        return TrackResult.ok()

    async def page(
        self, name: Optional[str] = None, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        context = self._page_context
        page_name = name or context.title or "Unknown"
        page_properties = {
            "title": context.title,
            "path": context.path,
            "url": context.url,
            "referrer": context.referrer,
            **as_dict(properties),
            "_user_id": self._user_id,
        }

        self._emit("page", page_name, page_properties)
        return TrackResult.ok()

    async def reset(self) -> TrackResult:
        if not self._ready:
            return self._not_initialized()

        previous_user_id = self._user_id
        self._user_id = None
        self._user_traits = {}

        self._emit("reset", f"User {previous_user_id} logged out")
        return TrackResult.ok()

    def get_features(self) -> ProviderFeatures:
        return ProviderFeatures(
            supports_identify=True,
            supports_server_side=True,
            supports_feature_flags=False,
            supports_session_replay=False,
            supports_cookieless=True,
        )

    def _emit(self, method: str, *args: Any) -> None:
        if not self._debug:
            return
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        args = tuple(scrub_dict(a) if isinstance(a, dict) else a for a in args)
        logger.info(_FORMATS[method], self.prefix, timestamp, *args)
