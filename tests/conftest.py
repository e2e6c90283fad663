"""Pytest configuration and fixtures"""
import os
import pytest
from unittest.mock import Mock

# Set test environment variables
os.environ.setdefault("CART_STORAGE_BACKEND", "memory")
os.environ.setdefault("CART_SOUND_ENABLED", "false")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test_key")

from storefront.cart import CartStore, MemoryStorage, StaticIdentityProvider
from storefront.services.audio import RecordingCueEmitter
from storefront.services.notifications import RecordingNotificationSink


@pytest.fixture
def storage():
    """Empty in-memory storage"""
    return MemoryStorage()


@pytest.fixture
def notifier():
    return RecordingNotificationSink()


@pytest.fixture
def cues():
    return RecordingCueEmitter()


@pytest.fixture
def store(storage, notifier, cues):
    """Anonymous cart store on empty storage"""
    cart_store = CartStore(storage, notifier=notifier, cues=cues)
    cart_store.set_identity(None)
    notifier.drain()
    return cart_store


@pytest.fixture
def identity():
    return StaticIdentityProvider()


@pytest.fixture
def sample_product():
    """Sample product as the catalog returns it"""
    return {
        "id": "p1",
        "name": "Wireless Earbuds",
        "price": 2500,
        "image": "https://cdn.example.com/earbuds.jpg",
    }


@pytest.fixture
def other_product():
    return {
        "id": "p2",
        "name": "Phone Case",
        "price": 799.5,
        "image": "",
    }


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client"""
    client = Mock()

    table_mock = Mock()
    table_mock.select.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.limit.return_value = table_mock

    client.table.return_value = table_mock
    return client
