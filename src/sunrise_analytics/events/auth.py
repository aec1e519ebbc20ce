"""Authentication analytics helpers."""

from __future__ import annotations

from typing import Optional

from ..models import PropertyBag, TrackResult
from ..session import AnalyticsSession, use_analytics
from .constants import AnalyticsEvent
from .types import AuthEventProps


class AuthAnalytics:
    """Track signup, login and logout, and manage user identity.

    Example:
        auth = AuthAnalytics(session)
        await auth.identify_user(user.id, {"email": user.email})
        await auth.track_login(AuthEventProps(method=AuthMethod.EMAIL))
    """

    def __init__(self, session: Optional[AnalyticsSession] = None) -> None:
        self._session = session or use_analytics()

    async def track_signup(self, props: AuthEventProps) -> TrackResult:
        """Track a completed signup."""
        return await self._session.track(AnalyticsEvent.USER_SIGNED_UP, props)

    async def track_login(self, props: AuthEventProps) -> TrackResult:
        """Track a successful login."""
        return await self._session.track(AnalyticsEvent.USER_LOGGED_IN, props)

    async def track_logout(self) -> TrackResult:
        return await self._session.track(AnalyticsEvent.USER_LOGGED_OUT)

    async def identify_user(
        self, user_id: str, traits: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Associate following events with a user.

        Args:
            user_id: Stable user identifier.
            traits: User traits such as email or plan.
        """
        return await self._session.identify(user_id, traits)

    async def reset_user(self) -> TrackResult:
        """Clear identity after logout."""
        return await self._session.reset()
