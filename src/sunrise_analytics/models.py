"""Core data types for the analytics layer.

Property bags are typed dataclasses with an explicit ``extra`` map so that
known fields keep their names while arbitrary keys can still reach the
vendor SDKs. Every public call also accepts a plain mapping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class ProviderKind(str, Enum):
    """Supported analytics backends."""

    GA4 = "ga4"
    POSTHOG = "posthog"
    PLAUSIBLE = "plausible"
    CONSOLE = "console"


@dataclass
class TrackResult:
    """Outcome of a tracking call. Returned, never raised."""

    success: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> "TrackResult":
        """Build a successful result.

        Args:
            data: Optional provider response data.

        Returns:
            A result with ``success=True``.
        """
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "TrackResult":
        """Build a failed result carrying an error message."""
        return cls(success=False, error=error)


@dataclass(frozen=True)
class ProviderFeatures:
    """Capability flags reported by a provider."""

    supports_identify: bool
    supports_server_side: bool
    supports_feature_flags: bool
    supports_session_replay: bool
    supports_cookieless: bool


def _compact(values: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    result = {k: v for k, v in values.items() if v is not None}
    result.update(extra)
    return result


@dataclass
class UserTraits:
    """Traits attached to an identified user."""

    email: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: Optional[Union[datetime, date, str]] = None
    role: Optional[str] = None
    plan: Optional[str] = None
    company: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        created_at = self.created_at
        if isinstance(created_at, (datetime, date)):
            created_at = created_at.isoformat()
        return _compact(
            {
                "email": self.email,
                "name": self.name,
                "first_name": self.first_name,
                "last_name": self.last_name,
                "created_at": created_at,
                "role": self.role,
                "plan": self.plan,
                "company": self.company,
            },
            self.extra,
        )


@dataclass
class EventProperties:
    """Properties of a custom event."""

    category: Optional[str] = None
    label: Optional[str] = None
    value: Optional[float] = None
    revenue: Optional[float] = None
    currency: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "category": self.category,
                "label": self.label,
                "value": self.value,
                "revenue": self.revenue,
                "currency": self.currency,
            },
            self.extra,
        )


@dataclass
class PageProperties:
    """Properties of a page view."""

    title: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None
    referrer: Optional[str] = None
    search: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "title": self.title,
                "path": self.path,
                "url": self.url,
                "referrer": self.referrer,
                "search": self.search,
            },
            self.extra,
        )


@dataclass
class ServerTrackContext:
    """Request context forwarded with server-side events."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    page_url: Optional[str] = None
    page_path: Optional[str] = None
    page_referrer: Optional[str] = None


PropertyBag = Union[Mapping[str, Any], UserTraits, EventProperties, PageProperties]


def as_dict(properties: Optional[PropertyBag]) -> Dict[str, Any]:
    """Normalize a typed property bag or a plain mapping into a new dict."""
    if properties is None:
        return {}
    to_dict = getattr(properties, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(properties)


def is_primitive(value: Any) -> bool:
    """Whether a value is a string, number or boolean."""
    return isinstance(value, (str, int, float, bool))
