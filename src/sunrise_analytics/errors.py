"""Exceptions and error reporting for the analytics layer.

Tracking failures never propagate to callers. They are converted into failed
:class:`~sunrise_analytics.models.TrackResult` values at the session and
server boundaries and reported here: always to the log, and to Sentry (or a
compatible backend such as GlitchTip) when error tracking is initialized.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import sentry_sdk

from .config import load_settings
from .privacy import create_before_send_filter, scrub_dict, scrub_string

logger = logging.getLogger(__name__)


class AnalyticsError(Exception):
    """Base class for analytics errors."""


class ProviderTimeoutError(AnalyticsError):
    """A vendor script never became available."""


class ProviderConfigurationError(AnalyticsError):
    """A provider was requested without its required configuration."""


class AnalyticsScopeError(AnalyticsError):
    """The analytics session was used outside of a bound scope."""


def init_error_tracking(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    **kwargs: Any,
) -> bool:
    """Initialize Sentry for analytics error reports.

    Args:
        dsn: The Sentry/GlitchTip DSN. Defaults to ``SENTRY_DSN``; nothing is
            initialized without one.
        environment: Environment name. Defaults to ``APP_ENV``.
        **kwargs: Additional arguments passed to ``sentry_sdk.init()``.

    Returns:
        True if Sentry was initialized.
    """
    settings = load_settings()
    dsn = dsn or settings.sentry_dsn
    if not dsn:
        logger.debug("Error tracking disabled (no DSN configured)")
        return False

    sentry_kwargs = {
        "dsn": dsn,
        "environment": environment or settings.environment,
        "send_default_pii": False,
        "before_send": create_before_send_filter(),
    }
    sentry_kwargs.update(kwargs)

    sentry_sdk.init(**sentry_kwargs)
    sentry_sdk.set_tag("component", "analytics")
    logger.info("Error tracking initialized (environment=%s)", sentry_kwargs["environment"])
    return True


def report_error(error: BaseException, message: str, **context: Any) -> Optional[str]:
    """Log an analytics failure and forward it to Sentry when active.

    Args:
        error: The exception that was caught.
        message: Short description of the failed operation.
        **context: Extra context; credentials are scrubbed.

    Returns:
        The Sentry event ID if one was sent.
    """
    safe_context = scrub_dict(context, deep=True, scrub_values=True)
    logger.error("%s: %s", message, scrub_string(str(error)), extra={"analytics": safe_context})

    if not sentry_sdk.get_client().is_active():
        return None

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("analytics.operation", message)
        for key, value in safe_context.items():
            scope.set_extra(key, value)
        return sentry_sdk.capture_exception(error)
