"""Cart store: the shopper's cart for the active identity, kept in durable storage."""
import json
import threading
from dataclasses import replace
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Union

from storefront.logging import get_logger, sanitize_id_for_logging
from storefront.services.audio import Cue, CueEmitter, NullCueEmitter
from storefront.services.notifications import LoggingNotificationSink, NotificationSink
from .models import Cart, CartItem
from .storage import KeyValueStorage, StorageKeys

logger = get_logger(__name__)

SIGN_IN_PROMPT = "Please sign in to continue with your order"

TITLE_ADDED = "🎉 Added to Cart!"
TITLE_UPDATED = "✅ Cart Updated!"
TITLE_REMOVED = "Removed from cart"
TITLE_CLEARED = "Cart cleared"
DESCRIPTION_CLEARED = "All items removed from cart"


class CartStore:
    """
    Owns the cart for the current identity.

    - Loads from storage whenever the identity changes and merges the
      anonymous cart into a user's cart on first sign-in
    - Writes the items to the active key after every change (best effort)
    - Emits a notification and an audio cue for shopper actions; neither can
      fail or undo a mutation

    All mutations run under one lock as read-modify-write on the latest state.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        notifier: Optional[NotificationSink] = None,
        cues: Optional[CueEmitter] = None,
    ):
        self.storage = storage
        self.notifier = notifier or LoggingNotificationSink()
        self.cues = cues or NullCueEmitter()
        self._cart = Cart()
        self._user_id: Optional[str] = None
        self._loaded = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    @property
    def storage_key(self) -> str:
        """Key the cart is currently written to."""
        return StorageKeys.for_identity(self._user_id)

    @property
    def items(self) -> List[CartItem]:
        """Copies of the cart lines, in insertion order."""
        with self._lock:
            return [replace(item) for item in self._cart.items]

    @property
    def total_items(self) -> int:
        with self._lock:
            return self._cart.total_items

    @property
    def total_price(self) -> Decimal:
        with self._lock:
            return self._cart.total_price

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._cart.is_empty

    def get(self, item_id: str) -> Optional[CartItem]:
        with self._lock:
            item = self._cart.find(item_id)
            return replace(item) if item else None

    def snapshot(self) -> Cart:
        """Independent copy of the current cart."""
        return Cart(items=self.items)

    def summary(self) -> dict:
        """Cart summary for UI and AI context."""
        with self._lock:
            data = self._cart.to_dict()
        data["authenticated"] = self.is_authenticated
        return data

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _read(self, key: str) -> Optional[Cart]:
        """Stored cart under key; None when absent, unreadable or malformed."""
        try:
            raw = self.storage.get(key)
        except Exception as e:
            logger.warning(f"Failed to read cart {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return Cart.from_json(raw)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Corrupted cart record {key}, ignoring it: {e}")
            return None

    def _discard(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except Exception as e:
            logger.warning(f"Failed to delete cart {key}: {e}")

    def _persist(self) -> None:
        key = self.storage_key
        try:
            self.storage.set(key, self._cart.to_json())
        except Exception as e:
            logger.warning(f"Failed to save cart {key}: {e}")

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def set_identity(self, user_id: Optional[str]) -> None:
        """
        Switch the cart to a new identity.

        Signed in: the user's stored cart wins; without one, the anonymous
        cart is adopted whole and its record removed; otherwise empty.
        Signed out: the anonymous cart, or empty. The user's record is kept
        for their next sign-in.

        A repeated identity (e.g. a token refresh) keeps the in-memory cart.
        """
        user_id = user_id or None
        with self._lock:
            if self._loaded and user_id == self._user_id:
                return

            if user_id is not None:
                cart = self._read(StorageKeys.cart_key(user_id))
                if cart is None:
                    cart = self._read(StorageKeys.CART_ANONYMOUS)
                    if cart is not None:
                        logger.info(
                            f"Moving anonymous cart ({cart.total_items} items) "
                            f"to user {sanitize_id_for_logging(user_id)}"
                        )
                        self._discard(StorageKeys.CART_ANONYMOUS)
            else:
                cart = self._read(StorageKeys.CART_ANONYMOUS)

            self._user_id = user_id
            self._cart = cart if cart is not None else Cart()
            self._loaded = True
            self._persist()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _feedback(self, action: Callable[..., Any], *args: Any) -> None:
        try:
            action(*args)
        except Exception as e:
            logger.warning(f"Cart feedback failed: {e}")

    def add_to_cart(self, product: Union[CartItem, Mapping[str, Any]]) -> None:
        """Add one unit of product; an existing line gets its quantity bumped."""
        if isinstance(product, CartItem):
            new_item = replace(product, quantity=1)
        else:
            new_item = CartItem.from_product(product)

        with self._lock:
            existing = self._cart.find(new_item.id)
            if existing:
                existing.quantity += 1
                quantity = existing.quantity
            else:
                self._cart.items.append(new_item)
                quantity = 1
            self._persist()
            authenticated = self.is_authenticated

        self._feedback(self.cues.emit, Cue.ADD_TO_CART)

        if quantity > 1:
            if authenticated:
                description = f"{new_item.name} quantity increased to {quantity}"
            else:
                description = f"{new_item.name} quantity increased! {SIGN_IN_PROMPT}"
            self._feedback(self.notifier.success, TITLE_UPDATED, description)
        else:
            if authenticated:
                description = f"{new_item.name} added successfully!"
            else:
                description = f"{new_item.name} added successfully! {SIGN_IN_PROMPT}"
            self._feedback(self.notifier.success, TITLE_ADDED, description)

    def remove_from_cart(self, item_id: str) -> None:
        """Remove the line for item_id; unknown ids are ignored."""
        with self._lock:
            item = self._cart.find(item_id)
            if item is None:
                return
            self._cart.items = [i for i in self._cart.items if i.id != item_id]
            self._persist()

        self._feedback(self.notifier.success, TITLE_REMOVED, f"{item.name} removed from cart")

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError("quantity must be an integer")

        if quantity <= 0:
            self.remove_from_cart(item_id)
            return

        with self._lock:
            item = self._cart.find(item_id)
            if item is None:
                return
            item.quantity = quantity
            self._persist()

    def clear_cart(self) -> None:
        """Empty the cart. Always notifies, even when already empty."""
        with self._lock:
            self._cart = Cart()
            self._persist()

        self._feedback(self.notifier.success, TITLE_CLEARED, DESCRIPTION_CLEARED)
