"""Analytics client registry.

Owns the single live provider instance. The provider is resolved and built
lazily on first use, initialized at most once, and thrown away on reset so
the next use picks up new configuration or consent state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .config import (
    GA4_ENV,
    PLAUSIBLE_ENV,
    POSTHOG_ENV,
    AnalyticsSettings,
    get_console_config,
    get_ga4_config,
    get_plausible_config,
    get_posthog_config,
    load_settings,
    resolve_provider,
)
from .errors import ProviderConfigurationError
from .models import ProviderKind
from .providers import (
    AnalyticsProvider,
    ConsoleProvider,
    GA4Provider,
    PlausibleProvider,
    PostHogProvider,
)
from .runtime import VendorRuntime, get_runtime

logger = logging.getLogger(__name__)


def create_provider(
    kind: ProviderKind,
    settings: AnalyticsSettings,
    runtime: Optional[VendorRuntime] = None,
) -> AnalyticsProvider:
    """Build the adapter for a provider kind.

    Raises:
        ProviderConfigurationError: If the provider's required settings are missing.
    """
    if kind is ProviderKind.CONSOLE:
        return ConsoleProvider(get_console_config(settings), runtime=runtime)

    if kind is ProviderKind.GA4:
        ga4_config = get_ga4_config(settings)
        if ga4_config is None:
            raise ProviderConfigurationError(
                f"GA4 provider requested but not configured (missing {GA4_ENV['MEASUREMENT_ID']})"
            )
        return GA4Provider(ga4_config, runtime=runtime)

    if kind is ProviderKind.POSTHOG:
        posthog_config = get_posthog_config(settings)
        if posthog_config is None:
            raise ProviderConfigurationError(
                f"PostHog provider requested but not configured (missing {POSTHOG_ENV['KEY']})"
            )
        return PostHogProvider(posthog_config, runtime=runtime)

    if kind is ProviderKind.PLAUSIBLE:
        plausible_config = get_plausible_config(settings)
        if plausible_config is None:
            raise ProviderConfigurationError(
                "Plausible provider requested but not configured "
                f"(missing {PLAUSIBLE_ENV['DOMAIN']})"
            )
        return PlausibleProvider(plausible_config, runtime=runtime)

    raise ProviderConfigurationError(f"Unknown analytics provider type: {kind}")


class AnalyticsClientRegistry:
    """Holder of at most one analytics provider.

    A process-wide registry is available through :meth:`get_instance`;
    tests and embedding applications can create isolated registries.
    """

    _instance: Optional["AnalyticsClientRegistry"] = None

    def __init__(
        self,
        settings_loader: Callable[[], AnalyticsSettings] = load_settings,
        runtime: Optional[VendorRuntime] = None,
    ) -> None:
        self._settings_loader = settings_loader
        self._runtime = runtime
        self._client: Optional[AnalyticsProvider] = None
        self._init_task: Optional[asyncio.Future] = None
        self._warning_logged = False
        self.init_error: Optional[BaseException] = None

    @classmethod
    def get_instance(cls) -> "AnalyticsClientRegistry":
        """Get the process-wide registry."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the process-wide registry (useful for testing)."""
        cls._instance = None

    def get_client(self) -> Optional[AnalyticsProvider]:
        """Get the provider, constructing it on first use.

        Never raises. Returns None when no provider resolves or the resolved
        provider is missing configuration.
        """
        if self._client is not None:
            return self._client

        settings = self._settings_loader()
        kind = resolve_provider(settings)

        if kind is None:
            if not self._warning_logged:
                self._warning_logged = True
                logger.debug("No analytics provider configured, tracking disabled")
            return None

        try:
            self._client = create_provider(
                kind, settings, runtime=self._runtime or get_runtime()
            )
        except ProviderConfigurationError as e:
            if not self._warning_logged:
                self._warning_logged = True
                logger.error("%s", e)
            return None

        logger.debug("Analytics provider created: %s", self._client.name)
        return self._client

    async def init_client(self) -> None:
        """Initialize the provider.

        Concurrent callers share one in-flight initialization; once it has
        completed, further calls return immediately. A failed initialization
        is re-raised to every caller and not retried until reset.
        """
        if self._init_task is None:
            client = self.get_client()
            if client is None:
                return
            self._init_task = asyncio.ensure_future(self._run_init(client))

        await asyncio.shield(self._init_task)

    async def _run_init(self, client: AnalyticsProvider) -> None:
        try:
            await client.init()
        except Exception as e:
            # A client dropped by reset_client() must not leave its error behind
            if self._client is client:
                self.init_error = e
            raise
        logger.debug("Analytics provider ready: %s", client.name)

    def reset_client(self) -> None:
        """Forget the provider so the next use resolves it from scratch."""
        self._client = None
        self._init_task = None
        self._warning_logged = False
        self.init_error = None

    def is_enabled(self) -> bool:
        """Whether a provider resolves and is configured."""
        return self.get_client() is not None

    def provider_name(self) -> Optional[str]:
        """Display name of the current provider, or None."""
        client = self.get_client()
        return client.name if client is not None else None


def get_registry() -> AnalyticsClientRegistry:
    """Get the process-wide client registry."""
    return AnalyticsClientRegistry.get_instance()
