"""
Remote client accessors.

Provides lazily created singleton instances of:
- Sync Upstash Redis client, used as durable cart storage
- Sync Supabase client, used for auth state and voucher lookups
"""

from typing import Optional

from supabase import Client, create_client
from upstash_redis import Redis

from storefront.config import Settings, get_settings
from storefront.errors import StorageUnavailableError

_redis_client: Optional[Redis] = None
_supabase_client: Optional[Client] = None


def get_redis_sync(settings: Optional[Settings] = None) -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Uses the standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        settings = settings or get_settings()
        if not settings.redis_url or not settings.redis_token:
            raise StorageUnavailableError(
                "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set"
            )
        _redis_client = Redis(url=settings.redis_url, token=settings.redis_token)

    return _redis_client


def get_supabase_sync(settings: Optional[Settings] = None) -> Client:
    """
    Get sync Supabase client (singleton).

    The storefront runs with the public anon key; row-level security on the
    project decides what the signed-in shopper may read.
    """
    global _supabase_client

    if _supabase_client is None:
        settings = settings or get_settings()
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, settings.supabase_anon_key)

    return _supabase_client
