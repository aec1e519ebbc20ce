"""Analytics event names.

Names are snake_case and describe a completed action (``user_logged_in``,
``profile_updated``). Form submissions are named dynamically by
:func:`sunrise_analytics.events.forms.form_event_name`.
"""

from __future__ import annotations

from enum import Enum


class AnalyticsEvent(str, Enum):
    """Catalog of domain events."""

    # Authentication
    USER_SIGNED_UP = "user_signed_up"
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"

    # Settings
    SETTINGS_TAB_CHANGED = "settings_tab_changed"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    PREFERENCES_UPDATED = "preferences_updated"
    AVATAR_UPLOADED = "avatar_uploaded"
    ACCOUNT_DELETED = "account_deleted"


FORM_SUBMITTED_SUFFIX = "_form_submitted"
