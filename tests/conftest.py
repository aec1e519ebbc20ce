"""Pytest configuration and fixtures for analytics tests."""

import os
from typing import Dict
from unittest.mock import MagicMock

import pytest

from sunrise_analytics.client import AnalyticsClientRegistry
from sunrise_analytics.config import load_settings
from sunrise_analytics.runtime import GTAG, PLAUSIBLE, POSTHOG, PageContext, VendorRuntime

ANALYTICS_ENV_VARS = [
    "ANALYTICS_PROVIDER",
    "APP_ENV",
    "GA4_MEASUREMENT_ID",
    "GA4_API_SECRET",
    "POSTHOG_KEY",
    "POSTHOG_HOST",
    "POSTHOG_API_KEY",
    "POSTHOG_SESSION_RECORDING",
    "PLAUSIBLE_DOMAIN",
    "PLAUSIBLE_HOST",
    "PLAUSIBLE_HASH_MODE",
    "ANALYTICS_CONSOLE_PREFIX",
    "SENTRY_DSN",
]


@pytest.fixture(autouse=True)
def reset_registry():
    """Reset the registry singleton before and after each test."""
    AnalyticsClientRegistry.reset_instance()
    yield
    AnalyticsClientRegistry.reset_instance()


@pytest.fixture
def clean_env():
    """Provide an environment without analytics-related variables."""
    original = {var: os.environ.get(var) for var in ANALYTICS_ENV_VARS}

    for var in ANALYTICS_ENV_VARS:
        if var in os.environ:
            del os.environ[var]

    yield

    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]


@pytest.fixture
def page_context():
    return PageContext(
        title="Dashboard",
        url="https://app.example.com/dashboard?tab=1",
        path="/dashboard",
        referrer="https://example.com/",
        origin="https://app.example.com",
    )


@pytest.fixture
def runtime(page_context):
    """A runtime with no vendor handles registered."""
    return VendorRuntime(page_context=page_context)


@pytest.fixture
def gtag(runtime):
    handle = MagicMock(name="gtag")
    runtime.register(GTAG, handle)
    return handle


@pytest.fixture
def posthog_handle(runtime):
    handle = MagicMock(name="posthog")
    runtime.register(POSTHOG, handle)
    return handle


@pytest.fixture
def plausible_handle(runtime):
    """A plausible function that fires the delivery callback immediately."""

    def fire(event, options):
        callback = options.get("callback")
        if callback is not None:
            callback()

    handle = MagicMock(name="plausible", side_effect=fire)
    runtime.register(PLAUSIBLE, handle)
    return handle


def make_registry(env: Dict[str, str], runtime: VendorRuntime) -> AnalyticsClientRegistry:
    """Registry reading settings from a fixed mapping."""
    return AnalyticsClientRegistry(settings_loader=lambda: load_settings(env), runtime=runtime)
