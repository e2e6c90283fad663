"""
Identity providers.

A provider reports the current user id (None when anonymous) and calls
subscribers with the new id on every transition.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from storefront.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

IdentityCallback = Callable[[Optional[str]], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """Source of the signed-in user id."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """Current user id, or None when nobody is signed in."""

    @abstractmethod
    def subscribe(self, callback: IdentityCallback) -> Unsubscribe:
        """Call ``callback(user_id)`` on every identity change; returns an unsubscribe function."""


class StaticIdentityProvider(IdentityProvider):
    """In-process identity, switched explicitly with sign_in / sign_out."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id or None
        self._subscribers: List[IdentityCallback] = []

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, callback: IdentityCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        for callback in list(self._subscribers):
            callback(self._user_id)

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("user_id must be a non-empty string")
        self._user_id = user_id
        self._publish()

    def sign_out(self) -> None:
        self._user_id = None
        self._publish()


def _user_id_from_session(session: Any) -> Optional[str]:
    user = getattr(session, "user", None) if session is not None else None
    user_id = getattr(user, "id", None) if user is not None else None
    return str(user_id) if user_id else None


class SupabaseIdentityProvider(IdentityProvider):
    """
    Identity from a supabase-py client's auth state.

    Every auth event is forwarded, including token refreshes that keep the
    same user; the cart protocol is idempotent for a repeated identity.
    """

    def __init__(self, client: Any):
        self.client = client

    def current_user_id(self) -> Optional[str]:
        session = self.client.auth.get_session()
        return _user_id_from_session(session)

    def subscribe(self, callback: IdentityCallback) -> Unsubscribe:
        def on_change(event: Any, session: Any) -> None:
            user_id = _user_id_from_session(session)
            logger.debug(f"Auth event {event}: user {sanitize_id_for_logging(user_id)}")
            callback(user_id)

        subscription = self.client.auth.on_auth_state_change(on_change)
        return subscription.unsubscribe
