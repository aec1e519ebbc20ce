"""Sunrise Analytics - Consent-gated, provider-agnostic product analytics.

This package gives an application one tracking vocabulary
(``identify``/``track``/``page``/``reset``) over several analytics backends
and never tracks without the user's consent.

Features:
- Google Analytics 4, PostHog, Plausible and a console provider for development
- Provider auto-detection from configured credentials, with explicit override
- Consent gating with automatic initialization and reset
- Failures returned as TrackResult values, never raised to callers
- Server-side tracking through each provider's ingestion API

Quick Start:
    from sunrise_analytics import AnalyticsSession, ConsentState

    consent = ConsentState(granted=True)
    async with AnalyticsSession(consent) as analytics:
        await analytics.identify("user-123", {"email": "ada@example.com"})
        await analytics.track("user_logged_in", {"method": "email"})

Event helpers:
    from sunrise_analytics.events import AuthAnalytics, AuthEventProps, AuthMethod

    with analytics.bind():
        await AuthAnalytics().track_login(AuthEventProps(method=AuthMethod.EMAIL))

Server-side:
    from sunrise_analytics import server_track

    await server_track("subscription_created", user_id="user-123", properties={"plan": "pro"})

Configuration:
    # Explicit provider (otherwise detected from credentials)
    export ANALYTICS_PROVIDER=posthog
    export POSTHOG_KEY=phc_...
    # Console fallback when nothing is configured
    export APP_ENV=development
"""

from sunrise_analytics.client import (
    AnalyticsClientRegistry,
    create_provider,
    get_registry,
)
from sunrise_analytics.config import (
    AnalyticsSettings,
    ConsoleConfig,
    GA4Config,
    PlausibleConfig,
    PostHogConfig,
    is_analytics_enabled,
    load_settings,
    resolve_provider,
)
from sunrise_analytics.consent import ConsentSource, ConsentState
from sunrise_analytics.errors import (
    AnalyticsError,
    AnalyticsScopeError,
    ProviderConfigurationError,
    ProviderTimeoutError,
    init_error_tracking,
    report_error,
)
from sunrise_analytics.models import (
    EventProperties,
    PageProperties,
    ProviderFeatures,
    ProviderKind,
    ServerTrackContext,
    TrackResult,
    UserTraits,
)
from sunrise_analytics.providers import (
    AnalyticsProvider,
    ConsoleProvider,
    GA4Provider,
    PlausibleProvider,
    PostHogProvider,
)
from sunrise_analytics.runtime import PageContext, VendorRuntime, get_runtime
from sunrise_analytics.server import (
    ServerTracker,
    bind_request_headers,
    server_page_view,
    server_track,
)
from sunrise_analytics.session import AnalyticsSession, PageTracker, use_analytics

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Models
    "ProviderKind",
    "TrackResult",
    "ProviderFeatures",
    "UserTraits",
    "EventProperties",
    "PageProperties",
    "ServerTrackContext",
    # Config
    "AnalyticsSettings",
    "GA4Config",
    "PostHogConfig",
    "PlausibleConfig",
    "ConsoleConfig",
    "load_settings",
    "resolve_provider",
    "is_analytics_enabled",
    # Providers
    "AnalyticsProvider",
    "ConsoleProvider",
    "GA4Provider",
    "PostHogProvider",
    "PlausibleProvider",
    "VendorRuntime",
    "PageContext",
    "get_runtime",
    # Registry
    "AnalyticsClientRegistry",
    "create_provider",
    "get_registry",
    # Session
    "ConsentSource",
    "ConsentState",
    "AnalyticsSession",
    "PageTracker",
    "use_analytics",
    # Server
    "ServerTracker",
    "server_track",
    "server_page_view",
    "bind_request_headers",
    # Errors
    "AnalyticsError",
    "AnalyticsScopeError",
    "ProviderConfigurationError",
    "ProviderTimeoutError",
    "init_error_tracking",
    "report_error",
]
