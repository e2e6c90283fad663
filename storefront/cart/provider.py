"""
Scoped access to a CartStore.

    store = CartStore(storage, notifier, cues)
    with CartProvider(store, identity):
        cart = use_cart()
        cart.add_to_cart(product)

The provider keeps the store in step with the identity provider for as long
as the scope is open.
"""
from contextvars import ContextVar, Token
from typing import Optional

from storefront.errors import CartProviderError
from storefront.logging import get_logger
from .identity import IdentityProvider, Unsubscribe
from .service import CartStore

logger = get_logger(__name__)

_current_store: ContextVar[Optional[CartStore]] = ContextVar("_current_store", default=None)


class CartProvider:
    """Context manager that mounts a CartStore for an identity provider."""

    def __init__(self, store: CartStore, identity: IdentityProvider):
        self.store = store
        self.identity = identity
        self._unsubscribe: Optional[Unsubscribe] = None
        self._token: Optional[Token] = None

    @property
    def active(self) -> bool:
        return self._token is not None

    def __enter__(self) -> CartStore:
        if self.active:
            raise CartProviderError("CartProvider is already active")
        # Subscribe before the initial load so no transition is missed
        self._unsubscribe = self.identity.subscribe(self.store.set_identity)
        try:
            self.store.set_identity(self.identity.current_user_id())
        except Exception:
            self._unsubscribe()
            self._unsubscribe = None
            raise
        self._token = _current_store.set(self.store)
        return self.store

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._token is not None:
            _current_store.reset(self._token)
            self._token = None


def use_cart() -> CartStore:
    """The store of the innermost active CartProvider."""
    store = _current_store.get()
    if store is None:
        raise CartProviderError()
    return store
