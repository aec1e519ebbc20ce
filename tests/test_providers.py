"""Tests for the analytics provider adapters."""

import asyncio
import logging
from unittest.mock import MagicMock, call

import pytest

from sunrise_analytics.config import ConsoleConfig, GA4Config, PlausibleConfig, PostHogConfig
from sunrise_analytics.errors import ProviderTimeoutError
from sunrise_analytics.models import EventProperties, PageProperties, ProviderKind, UserTraits
from sunrise_analytics.providers import (
    ConsoleProvider,
    GA4Provider,
    PlausibleProvider,
    PostHogProvider,
)
from sunrise_analytics.runtime import GTAG, PLAUSIBLE, POSTHOG, VendorRuntime


def build(kind, runtime):
    if kind is ProviderKind.CONSOLE:
        return ConsoleProvider(ConsoleConfig(), runtime=runtime)
    if kind is ProviderKind.GA4:
        return GA4Provider(GA4Config(measurement_id="G-TEST"), runtime=runtime)
    if kind is ProviderKind.POSTHOG:
        return PostHogProvider(PostHogConfig(api_key="phc_test"), runtime=runtime)
    return PlausibleProvider(PlausibleConfig(domain="example.com"), runtime=runtime)


@pytest.fixture
def all_handles(gtag, posthog_handle, plausible_handle):
    return gtag, posthog_handle, plausible_handle


@pytest.fixture
async def ga4(runtime, gtag):
    """An initialized GA4 provider with the init calls cleared."""
    provider = GA4Provider(GA4Config(measurement_id="G-TEST", debug=True), runtime=runtime)
    await provider.init()
    gtag.reset_mock()
    return provider


@pytest.fixture
async def posthog(runtime, posthog_handle):
    provider = PostHogProvider(
        PostHogConfig(api_key="phc_test", host="https://eu.i.posthog.com"), runtime=runtime
    )
    await provider.init()
    return provider


@pytest.fixture
async def plausible(runtime, plausible_handle):
    provider = PlausibleProvider(PlausibleConfig(domain="example.com"), runtime=runtime)
    await provider.init()
    return provider


class TestCommonContract:
    """Behavior every provider shares."""

    @pytest.mark.parametrize("kind", list(ProviderKind))
    async def test_ready_after_init_and_idempotent(self, kind, runtime, all_handles):
        provider = build(kind, runtime)
        assert provider.is_ready() is False

        await provider.init()
        assert provider.is_ready() is True

        await provider.init()
        assert provider.is_ready() is True

    @pytest.mark.parametrize("kind", list(ProviderKind))
    async def test_calls_before_init_fail_without_raising(self, kind, runtime, all_handles):
        provider = build(kind, runtime)

        results = [
            await provider.track("button_clicked", {"id": "signup"}),
            await provider.page("Home"),
        ]
        if kind is not ProviderKind.PLAUSIBLE:
            results.append(await provider.identify("user-1"))
            results.append(await provider.reset())

        for result in results:
            assert result.success is False
            assert "not initialized" in result.error

    @pytest.mark.parametrize(
        "kind, handle_name",
        [
            (ProviderKind.GA4, "gtag"),
            (ProviderKind.POSTHOG, "posthog"),
            (ProviderKind.PLAUSIBLE, "plausible"),
        ],
    )
    async def test_init_times_out_without_vendor_handle(self, kind, handle_name):
        runtime = VendorRuntime()
        if kind is ProviderKind.GA4:
            provider = GA4Provider(GA4Config(measurement_id="G-TEST"), runtime, load_timeout=0.05)
        elif kind is ProviderKind.POSTHOG:
            provider = PostHogProvider(PostHogConfig(api_key="phc"), runtime, load_timeout=0.05)
        else:
            provider = PlausibleProvider(
                PlausibleConfig(domain="example.com"), runtime, load_timeout=0.05
            )

        with pytest.raises(ProviderTimeoutError, match=f"Timeout waiting for {handle_name}"):
            await provider.init()

        assert provider.is_ready() is False


class TestConsoleProvider:
    """Tests for the console provider."""

    def test_features(self):
        features = ConsoleProvider().get_features()

        assert features.supports_identify is True
        assert features.supports_feature_flags is False

    async def test_logs_every_call(self, runtime, caplog):
        provider = ConsoleProvider(ConsoleConfig(prefix="[Test]"), runtime=runtime)

        with caplog.at_level(logging.INFO, logger="sunrise_analytics.providers.console"):
            await provider.init()
            await provider.identify("user-1", UserTraits(email="ada@example.com"))
            track = await provider.track("signup_completed", {"plan": "pro"})
            page = await provider.page()
            reset = await provider.reset()

        assert track.success and page.success and reset.success
        assert "[Test] identify" in caplog.text
        assert "event=signup_completed" in caplog.text
        assert "'_user_id': 'user-1'" in caplog.text
        assert "name=Dashboard" in caplog.text
        assert "User user-1 logged out" in caplog.text

    async def test_scrubs_credentials_from_log(self, runtime, caplog):
        provider = ConsoleProvider(runtime=runtime)

        with caplog.at_level(logging.INFO, logger="sunrise_analytics.providers.console"):
            await provider.init()
            await provider.track("api_key_rotated", {"api_key": "phc_abcdef"})

        assert "phc_abcdef" not in caplog.text
        assert "[REDACTED]" in caplog.text


class TestGA4Provider:
    """Tests for the GA4 provider."""

    async def test_init_configures_without_page_views(self, runtime, gtag):
        provider = GA4Provider(GA4Config(measurement_id="G-TEST"), runtime=runtime)
        await provider.init()

        assert gtag.call_args_list[0].args[0] == "js"
        gtag.assert_any_call("config", "G-TEST", {"send_page_view": False, "debug_mode": False})

    async def test_identify_keeps_allowed_traits_only(self, ga4, gtag):
        traits = UserTraits(
            email="ada@example.com",
            name="Ada",
            plan="pro",
            company="Acme",
            role="admin",
            extra={"favourite_color": "green"},
        )

        result = await ga4.identify("user-1", traits)

        assert result.success is True
        gtag.assert_has_calls(
            [
                call("config", "G-TEST", {"user_id": "user-1"}),
                call(
                    "set",
                    "user_properties",
                    {"email": "ada@example.com", "name": "Ada", "plan": "pro", "company": "Acme"},
                ),
            ]
        )

    async def test_identify_without_traits_sets_user_id_only(self, ga4, gtag):
        await ga4.identify("user-1")

        gtag.assert_called_once_with("config", "G-TEST", {"user_id": "user-1"})

    async def test_track_maps_parameters(self, ga4, gtag):
        await ga4.track("cta_clicked", EventProperties(category="cta", label="hero", value=3))

        name, event, params = gtag.call_args.args
        assert (name, event) == ("event", "cta_clicked")
        assert params["event_category"] == "cta"
        assert params["event_label"] == "hero"
        assert params["value"] == 3

    async def test_revenue_overrides_value_and_defaults_currency(self, ga4, gtag):
        await ga4.track("purchase", {"value": 1, "revenue": 99.99})

        params = gtag.call_args.args[2]
        assert params["value"] == 99.99
        assert params["currency"] == "USD"

    async def test_revenue_keeps_given_currency(self, ga4, gtag):
        await ga4.track("purchase", {"revenue": 10, "currency": "EUR"})

        assert gtag.call_args.args[2]["currency"] == "EUR"

    async def test_page_defaults_from_page_context(self, ga4, gtag):
        await ga4.page()

        name, event, params = gtag.call_args.args
        assert event == "page_view"
        assert params["page_title"] == "Dashboard"
        assert params["page_location"] == "https://app.example.com/dashboard?tab=1"
        assert params["page_path"] == "/dashboard"
        assert params["page_referrer"] == "https://example.com/"

    async def test_page_explicit_values_win(self, ga4, gtag):
        await ga4.page("Pricing", PageProperties(path="/pricing", url="https://x.io/pricing"))

        params = gtag.call_args.args[2]
        assert params["page_title"] == "Pricing"
        assert params["page_path"] == "/pricing"
        assert params["page_location"] == "https://x.io/pricing"

    async def test_reset_nulls_user_properties(self, ga4, gtag):
        await ga4.identify("user-1")
        result = await ga4.reset()

        assert result.success is True
        gtag.assert_any_call("config", "G-TEST", {"user_id": None})
        gtag.assert_any_call(
            "set",
            "user_properties",
            {"email": None, "name": None, "plan": None, "company": None},
        )


class TestPostHogProvider:
    """Tests for the PostHog provider."""

    async def test_init_passes_options(self, posthog, posthog_handle):
        posthog_handle.init.assert_called_once_with(
            "phc_test",
            {
                "api_host": "https://eu.i.posthog.com",
                "capture_pageview": False,
                "capture_pageleave": True,
                "disable_session_recording": True,
            },
        )

    async def test_identify_maps_traits_and_passes_custom_keys(self, posthog, posthog_handle):
        await posthog.identify(
            "user-1",
            {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.com", "tier": 2},
        )

        posthog_handle.identify.assert_called_once_with(
            "user-1",
            {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com", "tier": 2},
        )

    async def test_identify_with_typed_traits(self, posthog, posthog_handle):
        await posthog.identify("user-1", UserTraits(first_name="Ada", plan="pro"))

        posthog_handle.identify.assert_called_once_with(
            "user-1", {"first_name": "Ada", "plan": "pro"}
        )

    async def test_track_maps_revenue(self, posthog, posthog_handle):
        await posthog.track("purchase", {"revenue": 42, "plan": "pro"})

        posthog_handle.capture.assert_called_once_with(
            "purchase", {"revenue": 42, "plan": "pro", "$value": 42, "$currency": "USD"}
        )

    async def test_page_captures_pageview(self, posthog, posthog_handle):
        await posthog.page("Settings", {"path": "/settings"})

        event, props = posthog_handle.capture.call_args.args
        assert event == "$pageview"
        assert props["$pathname"] == "/settings"
        assert props["$current_url"] == "https://app.example.com/dashboard?tab=1"
        assert props["$title"] == "Settings"

    async def test_reset(self, posthog, posthog_handle):
        result = await posthog.reset()

        assert result.success is True
        posthog_handle.reset.assert_called_once_with()

    async def test_feature_flags(self, posthog, posthog_handle):
        posthog_handle.is_feature_enabled.return_value = True
        posthog_handle.get_feature_flag.return_value = "variant-b"
        callback = MagicMock()

        assert posthog.is_feature_enabled("new-checkout") is True
        assert posthog.get_feature_flag("new-checkout") == "variant-b"
        posthog.on_feature_flags(callback)
        posthog_handle.on_feature_flags.assert_called_once_with(callback)

    def test_feature_flags_before_init(self, runtime, posthog_handle):
        provider = PostHogProvider(PostHogConfig(api_key="phc_test"), runtime=runtime)

        assert provider.is_feature_enabled("new-checkout") is False
        assert provider.get_feature_flag("new-checkout") is None
        posthog_handle.is_feature_enabled.assert_not_called()

    def test_session_replay_feature_follows_config(self):
        provider = PostHogProvider(PostHogConfig(api_key="phc", enable_session_recording=True))

        assert provider.get_features().supports_session_replay is True
        assert provider.get_features().supports_feature_flags is True


class TestPlausibleProvider:
    """Tests for the Plausible provider."""

    async def test_identify_and_reset_always_succeed(self, runtime):
        provider = PlausibleProvider(PlausibleConfig(domain="example.com"), runtime=runtime)

        identified = await provider.identify("user-1", {"email": "ada@example.com"})
        reset = await provider.reset()

        assert identified.success is True
        assert "does not support user identification" in identified.data["note"]
        assert reset.success is True
        assert provider.get_features().supports_identify is False

    async def test_identify_does_not_call_vendor(self, plausible, plausible_handle):
        await plausible.identify("user-1")
        await plausible.reset()

        plausible_handle.assert_not_called()

    async def test_track_keeps_primitive_props(self, plausible, plausible_handle):
        result = await plausible.track(
            "signup",
            {"plan": "pro", "seats": 3, "trial": True, "tags": ["a"], "meta": {"x": 1}, "n": None},
        )

        assert result.success is True
        event, options = plausible_handle.call_args.args
        assert event == "signup"
        assert options["props"] == {"plan": "pro", "seats": 3, "trial": True}

    async def test_track_revenue(self, plausible, plausible_handle):
        await plausible.track("purchase", {"revenue": 20, "currency": "EUR"})

        options = plausible_handle.call_args.args[1]
        assert options["revenue"] == {"currency": "EUR", "amount": 20}

    async def test_resolves_when_callback_never_fires(self, runtime):
        silent = MagicMock(name="plausible")
        runtime.register(PLAUSIBLE, silent)
        provider = PlausibleProvider(
            PlausibleConfig(domain="example.com"), runtime=runtime, callback_timeout=0.01
        )
        await provider.init()
        loop = asyncio.get_running_loop()

        started = loop.time()
        result = await provider.track("signup")
        elapsed = loop.time() - started

        assert result.success is True
        assert elapsed < 0.5
        silent.assert_called_once()

    async def test_page_custom_url_and_props(self, plausible, plausible_handle):
        await plausible.page("Pricing", {"path": "/pricing", "title": "Plans", "variant": "b"})

        event, options = plausible_handle.call_args.args
        assert event == "pageview"
        assert options["u"] == "https://app.example.com/pricing"
        assert options["props"] == {"page_name": "Pricing", "title": "Plans", "variant": "b"}

    async def test_page_without_properties(self, plausible, plausible_handle):
        await plausible.page()

        options = plausible_handle.call_args.args[1]
        assert "u" not in options
        assert "props" not in options


class TestRuntimeHandles:
    """Vendor handle registration."""

    async def test_wait_for_returns_late_handle(self):
        runtime = VendorRuntime()
        handle = MagicMock()

        asyncio.get_running_loop().call_later(0.02, lambda: runtime.register(GTAG, handle))
        assert await runtime.wait_for(GTAG, timeout=1.0, interval=0.01) is handle

    def test_unregister(self):
        runtime = VendorRuntime()
        runtime.register(POSTHOG, object())
        runtime.unregister(POSTHOG)

        assert runtime.has(POSTHOG) is False
        assert runtime.get(POSTHOG) is None
