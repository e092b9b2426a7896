"""Pytest fixtures for toolrent tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from toolrent.cart_store import CartStore
from toolrent.models import CustomerInfo, DeliveryInfo
from toolrent.order_store import OrderStore
from toolrent.storage import JsonFileStorage, MemoryStorage

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def file_storage(temp_dir):
    return JsonFileStorage(temp_dir)


@pytest.fixture
def cart(storage):
    return CartStore(storage)


@pytest.fixture
def orders(storage):
    return OrderStore(storage, clock=lambda: FIXED_NOW)


@pytest.fixture
def drill():
    return {
        "id": 1,
        "name": "Cordless Drill",
        "brand": "Makita",
        "image": "/images/drill.jpg",
        "price": 1500,
    }


@pytest.fixture
def saw():
    return {
        "id": 2,
        "name": "Circular Saw",
        "brand": "Bosch",
        "image": "/images/saw.jpg",
        "price": 800,
    }


@pytest.fixture
def customer():
    return CustomerInfo(name="Somchai Jaidee", email="somchai@example.com", phone="0812345678")


@pytest.fixture
def delivery():
    return DeliveryInfo(address="99 Sukhumvit Rd", city="Bangkok", postal_code="10110")
