"""Analytics provider adapters."""

from .base import AnalyticsProvider
from .console import ConsoleProvider
from .ga4 import GA4Provider
from .plausible import PlausibleProvider
from .posthog import PostHogProvider

__all__ = [
    "AnalyticsProvider",
    "ConsoleProvider",
    "GA4Provider",
    "PlausibleProvider",
    "PostHogProvider",
]
