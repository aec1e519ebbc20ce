"""Typed properties for catalog events.

Each shape names its known fields and carries an ``extra`` map for
anything else, so they can be passed wherever a property mapping is
accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AuthMethod(str, Enum):
    EMAIL = "email"
    OAUTH = "oauth"


class SettingsTab(str, Enum):
    PROFILE = "profile"
    SECURITY = "security"
    NOTIFICATIONS = "notifications"
    ACCOUNT = "account"


def _value(item: Any) -> Any:
    return item.value if isinstance(item, Enum) else item


@dataclass
class AuthEventProps:
    """Login and signup properties.

    Example:
        AuthEventProps(method=AuthMethod.OAUTH, provider="google")
    """

    method: AuthMethod
    # OAuth provider id when method is oauth (google, facebook, linkedin)
    provider: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"method": _value(self.method)}
        if self.provider is not None:
            result["provider"] = self.provider
        result.update(self.extra)
        return result


@dataclass
class SettingsTabEventProps:
    tab: SettingsTab
    # None on initial load
    previous_tab: Optional[SettingsTab] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"tab": _value(self.tab)}
        if self.previous_tab is not None:
            result["previous_tab"] = _value(self.previous_tab)
        result.update(self.extra)
        return result


@dataclass
class ProfileUpdatedEventProps:
    fields_changed: List[str]
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"fields_changed": list(self.fields_changed), **self.extra}


@dataclass
class PreferencesUpdatedEventProps:
    marketing: bool
    product_updates: bool
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "marketing": self.marketing,
            "product_updates": self.product_updates,
            **self.extra,
        }


@dataclass
class FormSubmittedEventProps:
    """Generic form submission properties."""

    # Where the form was submitted from (header, footer, modal)
    source: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.source is not None:
            result["source"] = self.source
        result.update(self.extra)
        return result
