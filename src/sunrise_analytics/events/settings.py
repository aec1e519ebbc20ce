"""Settings page analytics helpers."""

from __future__ import annotations

from typing import Optional

from ..models import TrackResult
from ..session import AnalyticsSession, use_analytics
from .constants import AnalyticsEvent
from .types import (
    PreferencesUpdatedEventProps,
    ProfileUpdatedEventProps,
    SettingsTabEventProps,
)


class SettingsAnalytics:
    """Track changes users make on their settings pages."""

    def __init__(self, session: Optional[AnalyticsSession] = None) -> None:
        self._session = session or use_analytics()

    async def track_tab_changed(self, props: SettingsTabEventProps) -> TrackResult:
        """Track a switch between settings tabs."""
        return await self._session.track(AnalyticsEvent.SETTINGS_TAB_CHANGED, props)

    async def track_profile_updated(self, props: ProfileUpdatedEventProps) -> TrackResult:
        return await self._session.track(AnalyticsEvent.PROFILE_UPDATED, props)

    async def track_password_changed(self) -> TrackResult:
        return await self._session.track(AnalyticsEvent.PASSWORD_CHANGED)

    async def track_preferences_updated(
        self, props: PreferencesUpdatedEventProps
    ) -> TrackResult:
        return await self._session.track(AnalyticsEvent.PREFERENCES_UPDATED, props)

    async def track_avatar_uploaded(self) -> TrackResult:
        return await self._session.track(AnalyticsEvent.AVATAR_UPLOADED)

    async def track_account_deleted(self) -> TrackResult:
        """Track account deletion. Call before the session ends."""
        return await self._session.track(AnalyticsEvent.ACCOUNT_DELETED)
