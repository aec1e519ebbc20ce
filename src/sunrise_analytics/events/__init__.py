"""Event catalog and domain tracking helpers."""

from .auth import AuthAnalytics
from .constants import FORM_SUBMITTED_SUFFIX, AnalyticsEvent
from .forms import FormAnalytics, form_event_name
from .settings import SettingsAnalytics
from .types import (
    AuthEventProps,
    AuthMethod,
    FormSubmittedEventProps,
    PreferencesUpdatedEventProps,
    ProfileUpdatedEventProps,
    SettingsTab,
    SettingsTabEventProps,
)

__all__ = [
    "AnalyticsEvent",
    "FORM_SUBMITTED_SUFFIX",
    "AuthAnalytics",
    "SettingsAnalytics",
    "FormAnalytics",
    "form_event_name",
    "AuthMethod",
    "AuthEventProps",
    "SettingsTab",
    "SettingsTabEventProps",
    "ProfileUpdatedEventProps",
    "PreferencesUpdatedEventProps",
    "FormSubmittedEventProps",
]
