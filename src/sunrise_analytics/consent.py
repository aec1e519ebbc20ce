"""Consent source consumed by the analytics session.

Consent management itself lives outside this package. Anything with a
``has_optional_consent()`` method (and, for reactive updates, a
``subscribe()`` method) can gate analytics; :class:`ConsentState` is a
minimal in-memory implementation.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

ConsentListener = Callable[[bool], None]


@runtime_checkable
class ConsentSource(Protocol):
    """Anything that can answer whether optional consent was given."""

    def has_optional_consent(self) -> bool: ...


@runtime_checkable
class ObservableConsentSource(ConsentSource, Protocol):
    """A consent source that notifies listeners of changes."""

    def subscribe(self, listener: ConsentListener) -> Callable[[], None]: ...


class ConsentState:
    """Observable optional-consent flag."""

    def __init__(self, granted: bool = False) -> None:
        self._granted = granted
        self._listeners: List[ConsentListener] = []

    def has_optional_consent(self) -> bool:
        """Whether the user has accepted optional (analytics) cookies."""
        return self._granted

    def set(self, granted: bool) -> None:
        """Update consent and notify listeners when it changes."""
        if granted == self._granted:
            return
        self._granted = granted
        logger.debug("Optional consent %s", "granted" if granted else "revoked")
        for listener in list(self._listeners):
            listener(granted)

    def grant(self) -> None:
        """Record that the user accepted optional cookies."""
        self.set(True)

    def revoke(self) -> None:
        """Record that the user withdrew optional consent."""
        self.set(False)

    def subscribe(self, listener: ConsentListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
