"""Pytest fixtures for the bakery cart and checkout."""

import random
from datetime import datetime, timezone

import pytest

from bakery_cart.cart import CartStore
from bakery_cart.checkout import CheckoutFlow
from bakery_cart.config import Settings
from bakery_cart.models import CheckoutForm
from bakery_cart.storage import MemoryBlobStore

NOW = datetime(2026, 10, 17, 10, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(processing_delay=0, submission_timeout=1.0, submission_attempts=3, storage_dir=None)


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def store(settings, blobs) -> CartStore:
    return CartStore(settings, blobs, clock=fixed_clock)


def seed(store: CartStore) -> CartStore:
    store.add_item("1", "Sourdough Loaf", unit_price=150, image_ref="img/sourdough.jpg", quantity=2)
    store.add_item("2", "Chocolate Cake", unit_price=200, image_ref="img/cake.jpg")
    store.add_item("3", "Croissant Box", unit_price=130, image_ref="img/croissant.jpg")
    return store


@pytest.fixture
def seeded_store(store) -> CartStore:
    return seed(store)


@pytest.fixture
def make_store(settings):
    """Build independent stores on their own memory blobs."""

    def _make(seeded: bool = True) -> CartStore:
        store = CartStore(settings, MemoryBlobStore(), clock=fixed_clock)
        return seed(store) if seeded else store

    return _make


@pytest.fixture
def flow(seeded_store) -> CheckoutFlow:
    return CheckoutFlow(seeded_store, clock=fixed_clock, rng=random.Random(7))


@pytest.fixture
def valid_form() -> CheckoutForm:
    return CheckoutForm(
        first_name="Abebe",
        last_name="Kebede",
        email="abebe@example.com",
        phone="0911 22 33 44",
        address="Bole Road 12",
        subcity="Bole",
        delivery_date="2026-10-20",
        delivery_time="9-12",
        payment_method="cash",
        terms_accepted=True,
    )
