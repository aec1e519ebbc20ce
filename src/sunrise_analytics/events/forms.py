"""Form analytics helpers.

Any form can be tracked without adding a catalog entry:
``track_form_submitted("Bug Report")`` sends ``bug_report_form_submitted``.
"""

from __future__ import annotations

import re
from typing import Optional

from ..models import PropertyBag, TrackResult
from ..session import AnalyticsSession, use_analytics
from .constants import FORM_SUBMITTED_SUFFIX

_SEPARATORS = re.compile(r"[\s-]+")


def form_event_name(form_name: str) -> str:
    """Build the event name for a form submission.

    The name is lower-cased and each run of whitespace or hyphens becomes a
    single underscore.

    Examples:
        >>> form_event_name("Bug Report")
        'bug_report_form_submitted'
        >>> form_event_name("User Sign-Up")
        'user_sign_up_form_submitted'
    """
    return _SEPARATORS.sub("_", form_name.lower()) + FORM_SUBMITTED_SUFFIX


class FormAnalytics:
    """Track form submissions under names derived from the form name.

    Args:
        session: Analytics session. Defaults to the bound one.
    """

    def __init__(self, session: Optional[AnalyticsSession] = None) -> None:
        self._session = session or use_analytics()

    async def track_form_submitted(
        self, form_name: str, properties: Optional[PropertyBag] = None
    ) -> TrackResult:
        """Track a submission of the named form."""
        return await self._session.track(form_event_name(form_name), properties)
