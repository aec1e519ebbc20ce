"""Configuration management for the analytics layer.

Settings are read from a key/value mapping (the process environment by
default) once per call to :func:`load_settings` and never mutated. Provider
selection follows the priority order:
1. Explicit ``ANALYTICS_PROVIDER`` override (highest priority)
2. Credential detection: PostHog, then GA4, then Plausible
3. Console fallback in development (lowest priority)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .models import ProviderKind

logger = logging.getLogger(__name__)

# Environment variable names
ANALYTICS_PROVIDER_ENV = "ANALYTICS_PROVIDER"
APP_ENV = "APP_ENV"
SENTRY_DSN_ENV = "SENTRY_DSN"

GA4_ENV = {
    "MEASUREMENT_ID": "GA4_MEASUREMENT_ID",
    "API_SECRET": "GA4_API_SECRET",
}

POSTHOG_ENV = {
    "KEY": "POSTHOG_KEY",
    "HOST": "POSTHOG_HOST",
    "API_KEY": "POSTHOG_API_KEY",
    "SESSION_RECORDING": "POSTHOG_SESSION_RECORDING",
}

PLAUSIBLE_ENV = {
    "DOMAIN": "PLAUSIBLE_DOMAIN",
    "HOST": "PLAUSIBLE_HOST",
    "HASH_MODE": "PLAUSIBLE_HASH_MODE",
}

CONSOLE_PREFIX_ENV = "ANALYTICS_CONSOLE_PREFIX"

DEFAULT_POSTHOG_HOST = "https://us.i.posthog.com"
DEFAULT_PLAUSIBLE_HOST = "https://plausible.io"
DEFAULT_CONSOLE_PREFIX = "[Analytics]"


@dataclass(frozen=True)
class AnalyticsSettings:
    """Raw analytics settings as read from the configuration source."""

    provider: Optional[str] = None
    environment: str = "production"
    ga4_measurement_id: Optional[str] = None
    ga4_api_secret: Optional[str] = None
    posthog_key: Optional[str] = None
    posthog_host: Optional[str] = None
    posthog_api_key: Optional[str] = None
    posthog_session_recording: bool = False
    plausible_domain: Optional[str] = None
    plausible_host: Optional[str] = None
    plausible_hash_mode: bool = False
    console_prefix: Optional[str] = None
    sentry_dsn: Optional[str] = None

    @property
    def is_development(self) -> bool:
        """Whether this is a development build."""
        return self.environment.lower() == "development"


@dataclass(frozen=True)
class GA4Config:
    measurement_id: str
    api_secret: Optional[str] = None
    debug: bool = False


@dataclass(frozen=True)
class PostHogConfig:
    api_key: str
    host: str = DEFAULT_POSTHOG_HOST
    # Privacy-first: recording is opt-in
    enable_session_recording: bool = False
    disable_auto_page_views: bool = True
    debug: bool = False


@dataclass(frozen=True)
class PlausibleConfig:
    domain: str
    host: str = DEFAULT_PLAUSIBLE_HOST
    hash_mode: bool = False
    debug: bool = False


@dataclass(frozen=True)
class ConsoleConfig:
    prefix: str = DEFAULT_CONSOLE_PREFIX
    debug: bool = True


def _parse_bool(value: str) -> bool:
    """Parse a boolean from a string value."""
    return value.lower() in ("true", "1", "yes", "on")


def _get(env: Mapping[str, str], key: str) -> Optional[str]:
    """Return a stripped value, treating blank strings as unset."""
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings(env: Optional[Mapping[str, str]] = None) -> AnalyticsSettings:
    """Load analytics settings from a configuration mapping.

    Args:
        env: Key/value source. Defaults to ``os.environ``.

    Returns:
        AnalyticsSettings: The settings snapshot.
    """
    if env is None:
        env = os.environ

    return AnalyticsSettings(
        provider=_get(env, ANALYTICS_PROVIDER_ENV),
        environment=_get(env, APP_ENV) or "production",
        ga4_measurement_id=_get(env, GA4_ENV["MEASUREMENT_ID"]),
        ga4_api_secret=_get(env, GA4_ENV["API_SECRET"]),
        posthog_key=_get(env, POSTHOG_ENV["KEY"]),
        posthog_host=_get(env, POSTHOG_ENV["HOST"]),
        posthog_api_key=_get(env, POSTHOG_ENV["API_KEY"]),
        posthog_session_recording=_parse_bool(_get(env, POSTHOG_ENV["SESSION_RECORDING"]) or ""),
        plausible_domain=_get(env, PLAUSIBLE_ENV["DOMAIN"]),
        plausible_host=_get(env, PLAUSIBLE_ENV["HOST"]),
        plausible_hash_mode=_parse_bool(_get(env, PLAUSIBLE_ENV["HASH_MODE"]) or ""),
        console_prefix=_get(env, CONSOLE_PREFIX_ENV),
        sentry_dsn=_get(env, SENTRY_DSN_ENV),
    )


def get_explicit_provider(settings: AnalyticsSettings) -> Optional[ProviderKind]:
    """Get the explicitly configured provider.

    An unrecognized value is ignored with a warning so auto-detection can
    still pick a provider.
    """
    if not settings.provider:
        return None

    try:
        return ProviderKind(settings.provider.lower())
    except ValueError:
        logger.warning(
            "Unknown analytics provider %r, using auto-detection", settings.provider
        )
        return None


def is_ga4_configured(settings: AnalyticsSettings) -> bool:
    """Check whether a GA4 measurement ID is set."""
    return bool(settings.ga4_measurement_id)


def get_ga4_config(settings: AnalyticsSettings) -> Optional[GA4Config]:
    """Build the GA4 config. The API secret is optional and server-only."""
    if not settings.ga4_measurement_id:
        return None

    return GA4Config(
        measurement_id=settings.ga4_measurement_id,
        api_secret=settings.ga4_api_secret,
        debug=settings.is_development,
    )


def is_posthog_configured(settings: AnalyticsSettings) -> bool:
    """Check whether a PostHog project key is set."""
    return bool(settings.posthog_key)


def get_posthog_config(settings: AnalyticsSettings) -> Optional[PostHogConfig]:
    """Build the PostHog config.

    Args:
        settings: Settings snapshot.

    Returns:
        The config, or None when no project key is set. The host falls back
        to PostHog Cloud (US).
    """
    if not settings.posthog_key:
        return None

    return PostHogConfig(
        api_key=settings.posthog_key,
        host=settings.posthog_host or DEFAULT_POSTHOG_HOST,
        enable_session_recording=settings.posthog_session_recording,
        debug=settings.is_development,
    )


def is_plausible_configured(settings: AnalyticsSettings) -> bool:
    """Check whether a Plausible site domain is set."""
    return bool(settings.plausible_domain)


def get_plausible_config(settings: AnalyticsSettings) -> Optional[PlausibleConfig]:
    """Build the Plausible config.

    Args:
        settings: Settings snapshot.

    Returns:
        The config, or None when no domain is set.
    """
    if not settings.plausible_domain:
        return None

    return PlausibleConfig(
        domain=settings.plausible_domain,
        host=settings.plausible_host or DEFAULT_PLAUSIBLE_HOST,
        hash_mode=settings.plausible_hash_mode,
        debug=settings.is_development,
    )


def get_console_config(settings: AnalyticsSettings) -> ConsoleConfig:
    """Build the console config. Always available."""
    return ConsoleConfig(prefix=settings.console_prefix or DEFAULT_CONSOLE_PREFIX)


def resolve_provider(settings: Optional[AnalyticsSettings] = None) -> Optional[ProviderKind]:
    """Detect which analytics provider should be used.

    Resolution is not cached; callers that need a stable answer cache it.

    Args:
        settings: Settings snapshot. Loaded from the environment if omitted.

    Returns:
        The provider kind, or None when analytics is disabled.
    """
    if settings is None:
        settings = load_settings()

    explicit = get_explicit_provider(settings)
    if explicit is not None:
        return explicit

    # PostHog first (most capable), then GA4 (most common), then Plausible
    if is_posthog_configured(settings):
        return ProviderKind.POSTHOG
    if is_ga4_configured(settings):
        return ProviderKind.GA4
    if is_plausible_configured(settings):
        return ProviderKind.PLAUSIBLE

    if settings.is_development:
        return ProviderKind.CONSOLE

    return None


def is_analytics_enabled(settings: Optional[AnalyticsSettings] = None) -> bool:
    """Whether any provider resolves."""
    return resolve_provider(settings) is not None
