"""Tests for the analytics client registry."""

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from conftest import make_registry
from sunrise_analytics.client import AnalyticsClientRegistry, create_provider, get_registry
from sunrise_analytics.config import AnalyticsSettings
from sunrise_analytics.errors import ProviderConfigurationError, ProviderTimeoutError
from sunrise_analytics.models import ProviderKind
from sunrise_analytics.providers import ConsoleProvider, GA4Provider, PlausibleProvider


class TestCreateProvider:
    """Tests for building adapters from settings."""

    def test_builds_console(self, runtime):
        provider = create_provider(ProviderKind.CONSOLE, AnalyticsSettings(), runtime)
        assert isinstance(provider, ConsoleProvider)

    def test_builds_configured_provider(self, runtime):
        settings = AnalyticsSettings(plausible_domain="example.com")

        provider = create_provider(ProviderKind.PLAUSIBLE, settings, runtime)

        assert isinstance(provider, PlausibleProvider)
        assert provider.domain == "example.com"

    def test_missing_configuration_names_variable(self, runtime):
        with pytest.raises(ProviderConfigurationError, match="GA4_MEASUREMENT_ID"):
            create_provider(ProviderKind.GA4, AnalyticsSettings(), runtime)


class TestGetClient:
    """Tests for lazy client construction."""

    def test_returns_none_when_nothing_configured(self, runtime):
        """Production without credentials disables analytics."""
        registry = make_registry({}, runtime)

        assert registry.get_client() is None
        assert registry.is_enabled() is False
        assert registry.provider_name() is None

    def test_console_in_development(self, runtime):
        """Development without credentials falls back to the console."""
        registry = make_registry({"APP_ENV": "development"}, runtime)

        assert isinstance(registry.get_client(), ConsoleProvider)
        assert registry.provider_name() == "Console"

    def test_client_is_cached(self, runtime):
        """Repeated calls return the same instance."""
        registry = make_registry({"GA4_MEASUREMENT_ID": "G-TEST"}, runtime)

        first = registry.get_client()

        assert isinstance(first, GA4Provider)
        assert registry.get_client() is first

    def test_settings_read_once_per_client(self, runtime):
        """Settings are not re-read while a client exists."""
        calls = []

        def loader():
            calls.append(1)
            return AnalyticsSettings(ga4_measurement_id="G-TEST")

        registry = AnalyticsClientRegistry(settings_loader=loader, runtime=runtime)
        registry.get_client()
        registry.get_client()

        assert len(calls) == 1

    def test_explicit_provider_missing_config_logs_once(self, runtime, caplog):
        """A misconfigured override yields no client and a single error."""
        registry = make_registry({"ANALYTICS_PROVIDER": "posthog"}, runtime)

        with caplog.at_level(logging.ERROR, logger="sunrise_analytics.client"):
            assert registry.get_client() is None
            assert registry.get_client() is None

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "POSTHOG_KEY" in errors[0].getMessage()


class TestInitClient:
    """Tests for single-flight initialization."""

    async def test_concurrent_init_runs_once(self, runtime):
        """Concurrent callers share one initialization."""
        registry = make_registry({"APP_ENV": "development"}, runtime)
        client = registry.get_client()
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_init():
            started.set()
            await release.wait()

        with patch.object(client, "init", AsyncMock(side_effect=slow_init)) as init:
            waiters = [asyncio.ensure_future(registry.init_client()) for _ in range(5)]
            await started.wait()
            release.set()
            await asyncio.gather(*waiters)

        init.assert_awaited_once()

    async def test_init_after_completion_is_noop(self, runtime):
        registry = make_registry({"APP_ENV": "development"}, runtime)
        client = registry.get_client()

        with patch.object(client, "init", AsyncMock()) as init:
            await registry.init_client()
            await registry.init_client()

        init.assert_awaited_once()

    async def test_init_without_client_is_noop(self, runtime):
        registry = make_registry({}, runtime)

        await registry.init_client()

        assert registry.init_error is None

    async def test_failed_init_is_recorded_and_reraised(self, runtime):
        """Every caller sees the failure; it is not retried until reset."""
        registry = make_registry({"GA4_MEASUREMENT_ID": "G-TEST"}, runtime)
        client = registry.get_client()
        error = ProviderTimeoutError("Timeout waiting for gtag to load")

        with patch.object(client, "init", AsyncMock(side_effect=error)) as init:
            with pytest.raises(ProviderTimeoutError):
                await registry.init_client()
            with pytest.raises(ProviderTimeoutError):
                await registry.init_client()

        init.assert_awaited_once()
        assert registry.init_error is error
        assert client.is_ready() is False

    async def test_real_provider_becomes_ready(self, runtime, gtag):
        registry = make_registry({"GA4_MEASUREMENT_ID": "G-TEST"}, runtime)

        await registry.init_client()

        assert registry.get_client().is_ready() is True


class TestResetClient:
    """Tests for dropping the client."""

    async def test_reset_rebuilds_from_current_settings(self, runtime):
        """The next use after a reset resolves configuration again."""
        env = {"APP_ENV": "development"}
        registry = make_registry(env, runtime)
        first = registry.get_client()
        await registry.init_client()

        env["PLAUSIBLE_DOMAIN"] = "example.com"
        registry.reset_client()
        second = registry.get_client()

        assert second is not first
        assert isinstance(second, PlausibleProvider)
        assert second.is_ready() is False

    async def test_reset_clears_init_error(self, runtime):
        registry = make_registry({"GA4_MEASUREMENT_ID": "G-TEST"}, runtime)
        registry.init_error = RuntimeError("boom")

        registry.reset_client()

        assert registry.init_error is None

    async def test_dropped_client_failure_not_recorded(self, runtime):
        """An init that fails after a reset leaves the fresh state clean."""
        registry = make_registry({"GA4_MEASUREMENT_ID": "G-TEST"}, runtime)
        registry.get_client()._load_timeout = 0.05

        pending = asyncio.ensure_future(registry.init_client())
        await asyncio.sleep(0.01)
        registry.reset_client()

        with pytest.raises(ProviderTimeoutError):
            await pending

        assert registry.init_error is None


class TestSingleton:
    """Tests for the process-wide registry."""

    def test_get_instance_returns_same_registry(self):
        assert AnalyticsClientRegistry.get_instance() is AnalyticsClientRegistry.get_instance()
        assert get_registry() is AnalyticsClientRegistry.get_instance()

    def test_reset_instance(self):
        first = AnalyticsClientRegistry.get_instance()
        AnalyticsClientRegistry.reset_instance()

        assert AnalyticsClientRegistry.get_instance() is not first
