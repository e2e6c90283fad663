"""Cart package: models, storage, store, identity and provider."""
from typing import Optional

from storefront.config import Settings, get_settings
from storefront.services.audio import Player, create_cue_emitter
from storefront.services.notifications import NotificationSink
from .checkout import Quote, ShippingZone, Voucher, VoucherRepository, apply_voucher, build_quote
from .identity import IdentityProvider, StaticIdentityProvider, SupabaseIdentityProvider
from .models import Cart, CartItem
from .provider import CartProvider, use_cart
from .service import CartStore
from .storage import FileStorage, KeyValueStorage, MemoryStorage, RedisStorage, StorageKeys, create_storage


def create_cart_store(
    settings: Optional[Settings] = None,
    notifier: Optional[NotificationSink] = None,
    player: Optional[Player] = None,
) -> CartStore:
    """Build a CartStore wired from configuration."""
    settings = settings or get_settings()
    return CartStore(
        storage=create_storage(settings),
        notifier=notifier,
        cues=create_cue_emitter(player, volume=settings.sound_volume, enabled=settings.sound_enabled),
    )


def create_identity_provider(settings: Optional[Settings] = None) -> SupabaseIdentityProvider:
    """Identity from the project's Supabase auth session."""
    from storefront.db import get_supabase_sync

    return SupabaseIdentityProvider(get_supabase_sync(settings))


__all__ = [
    "Cart",
    "CartItem",
    "CartProvider",
    "CartStore",
    "FileStorage",
    "IdentityProvider",
    "KeyValueStorage",
    "MemoryStorage",
    "Quote",
    "RedisStorage",
    "ShippingZone",
    "StaticIdentityProvider",
    "StorageKeys",
    "SupabaseIdentityProvider",
    "Voucher",
    "VoucherRepository",
    "apply_voucher",
    "build_quote",
    "create_cart_store",
    "create_identity_provider",
    "create_storage",
    "use_cart",
]
