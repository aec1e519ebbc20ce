"""Credential scrubbing for log context and error reports.

Analytics payloads themselves are sent to vendors as given; this module only
cleans what the library writes to its own logs and to Sentry:
- Key-based redaction of credentials (secrets, tokens, API keys)
- Pattern-based redaction of bearer tokens and query-string secrets
"""

from __future__ import annotations

import re
from typing import Any, Dict, FrozenSet, List, Optional

REDACTED = "[REDACTED]"

# Substrings of field names whose values are never logged
SENSITIVE_FIELDS: FrozenSet[str] = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "cookie",
        "credential",
        "creditcard",
        "credit_card",
        "ssn",
        "dsn",
    }
)

SENSITIVE_PATTERNS = [
    re.compile(r"Bearer\s+[\w.~+/-]+=*"),
    # GA4 Measurement Protocol URLs carry the secret as a query parameter
    re.compile(r"(?<=api_secret=)[^&\s]+"),
    # PostHog project and personal keys
    re.compile(r"\bph[cx]_[A-Za-z0-9]{16,}\b"),
]


def is_sensitive_key(key: str) -> bool:
    """Check whether a field name looks like it holds a credential.

    ``API-Key`` and ``api_key`` are treated alike.
    """
    normalized = str(key).lower().replace("-", "_")
    return any(field in normalized for field in SENSITIVE_FIELDS)


def scrub_string(value: str) -> str:
    """Replace credential patterns in a string with a placeholder."""
    for pattern in SENSITIVE_PATTERNS:
        value = pattern.sub(REDACTED, value)
    return value


def _scrub(value: Any, deep: bool, scrub_values: bool) -> Any:
    if isinstance(value, dict):
        return scrub_dict(value, deep=deep, scrub_values=scrub_values) if deep else value
    if isinstance(value, list):
        return scrub_list(value, scrub_values=scrub_values) if deep else value
    if isinstance(value, str) and scrub_values:
        return scrub_string(value)
    return value


def scrub_dict(
    data: Dict[str, Any],
    deep: bool = True,
    scrub_values: bool = False,
) -> Dict[str, Any]:
    """Return a copy of ``data`` with credentials redacted.

    Args:
        data: Mapping to clean. It is not modified.
        deep: Descend into nested dicts and lists.
        scrub_values: Also run :func:`scrub_string` over string values.

    Returns:
        The cleaned copy.
    """
    return {
        key: REDACTED if is_sensitive_key(key) else _scrub(value, deep, scrub_values)
        for key, value in data.items()
    }


def scrub_list(data: List[Any], scrub_values: bool = False) -> List[Any]:
    """Return a copy of ``data`` with credentials redacted from its items."""
    return [_scrub(item, True, scrub_values) for item in data]


def create_before_send_filter():
    """Build the ``before_send`` hook passed to ``sentry_sdk.init``.

    Exception messages and breadcrumb messages are pattern-scrubbed; extras,
    contexts and breadcrumb data are key-scrubbed.
    """
    from sentry_sdk.types import Event, Hint

    def before_send(event: Event, hint: Hint) -> Optional[Event]:
        for exception in event.get("exception", {}).get("values", []):
            if isinstance(exception.get("value"), str):
                exception["value"] = scrub_string(exception["value"])

        if isinstance(event.get("extra"), dict):
            event["extra"] = scrub_dict(event["extra"], scrub_values=True)
        if isinstance(event.get("contexts"), dict):
            event["contexts"] = scrub_dict(event["contexts"])

        for crumb in event.get("breadcrumbs", {}).get("values", []):
            if isinstance(crumb.get("message"), str):
                crumb["message"] = scrub_string(crumb["message"])
            if isinstance(crumb.get("data"), dict):
                crumb["data"] = scrub_dict(crumb["data"], scrub_values=True)

        return event

    return before_send
