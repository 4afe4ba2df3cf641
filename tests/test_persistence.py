"""Tests for saving and restoring the cart blob."""
import json

import pytest

from bakery_cart.cart import CartStore
from bakery_cart.errors import PersistenceCorrupt
from bakery_cart.models import CampaignConfig, CouponKind, LineItem
from bakery_cart.schemas import decode_cart, encode_cart
from bakery_cart.storage import JsonFileBlobStore, MemoryBlobStore


def test_round_trip_restores_items_and_coupon(seeded_store, settings, blobs):
    seeded_store.apply_coupon("SEASONAL20")

    restored = CartStore(settings, blobs).load()

    assert restored.items == seeded_store.cart.items
    assert restored.coupon == seeded_store.coupon


def test_persist_overwrites_previous_blob(seeded_store, settings, blobs):
    other = CartStore(settings, blobs)
    other.add_item("9", "Muffin", unit_price=40)

    assert [item.id for item in CartStore(settings, blobs).load().items] == ["9"]


def test_missing_blob_gives_empty_cart(store):
    cart = store.load()
    assert cart.items == []
    assert cart.coupon is None
    assert store.logs[-1] == "[cart] no saved cart, starting empty"


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all {",
        "[]",
        "42",
        '{"items": "abc"}',
        '{"items": {"id": 1}}',
        '{"coupon": null}',
        '{"items": [{"id": "1", "name": "Loaf", "price": 10, "quantity": 0}]}',
        '{"items": [{"id": "1", "name": "Loaf", "price": -5, "quantity": 1}]}',
        '{"items": [], "coupon": {"type": "bogo", "value": 1}}',
    ],
)
def test_corrupt_blob_gives_empty_cart(store, blobs, settings, raw):
    blobs.set(settings.storage_key, raw)

    cart = store.load()

    assert cart.items == []
    assert cart.coupon is None
    assert store.logs[-1] == "[cart] saved cart unreadable, starting empty"


def test_deeply_nested_blob_gives_empty_cart(store, blobs, settings):
    blobs.set(settings.storage_key, "[" * 200000)

    assert store.load().items == []
    assert store.logs[-1] == "[cart] saved cart unreadable, starting empty"


def test_unreadable_file_gives_empty_cart(tmp_path, settings):
    """Bytes that are not UTF-8 are treated like any other corrupt blob."""
    (tmp_path / f"{settings.storage_key}.json").write_bytes(b'{"items": [\xff\xfe]}')
    store = CartStore(settings, JsonFileBlobStore(tmp_path))

    cart = store.load()

    assert cart.items == []
    assert store.logs[-1] == "[cart] saved cart unreadable, starting empty"


def test_blob_path_that_cannot_be_read_gives_empty_cart(tmp_path, settings):
    (tmp_path / f"{settings.storage_key}.json").mkdir()
    store = CartStore(settings, JsonFileBlobStore(tmp_path))

    assert store.load().items == []
    assert store.logs[-1] == "[cart] saved cart unreadable, starting empty"


def test_decode_raises_persistence_corrupt():
    with pytest.raises(PersistenceCorrupt):
        decode_cart('{"items": null}', CampaignConfig())


def test_storefront_blob_with_numeric_ids_loads(store, blobs, settings):
    blobs.set(
        settings.storage_key,
        json.dumps(
            {
                "items": [
                    {"id": 3, "name": "Injera Bread", "price": 45, "quantity": 2,
                     "image": "img/injera.jpg", "addedAt": "2026-10-01T08:30:00.000Z"},
                ],
                "coupon": {"type": "percentage", "value": 15, "message": "15% discount for loyal customers!"},
                "campaign": {"freeDeliveryThreshold": 500, "freeCookieThreshold": 500,
                             "active": True, "code": "FRESHBAKE24"},
            }
        ),
    )

    cart = store.load()

    assert cart.items[0].id == "3"
    assert cart.items[0].unit_price == 45
    assert cart.items[0].added_at.year == 2026
    assert cart.coupon.kind is CouponKind.PERCENTAGE
    assert store.totals().discount == 14  # 15% of 90 = 13.5


def test_numeric_id_stays_one_line_across_reload(settings, blobs):
    """The storefront passes numeric ids; they must match what a reload brings back."""
    CartStore(settings, blobs).add_item(3, "Croissant Box", unit_price=130)

    store = CartStore(settings, blobs)
    store.load()
    store.add_item(3, "Croissant Box", unit_price=130)
    store.increment(3)

    assert [(item.id, item.quantity) for item in store.items] == [("3", 3)]


class FailingBlobStore(MemoryBlobStore):
    def set(self, key, value):
        raise OSError("disk full")


def test_failed_save_rolls_back_memory(settings):
    """If the blob cannot be written, memory goes back to what storage holds."""
    blobs = FailingBlobStore()
    store = CartStore(settings, blobs)
    store.cart.items.append(LineItem(id="1", name="Loaf", unit_price=150, quantity=2))
    events = []
    store.subscribe(events.append)

    with pytest.raises(OSError):
        store.add_item("1", "Loaf", unit_price=150)
    with pytest.raises(OSError):
        store.add_item("2", "Cake", unit_price=200)
    with pytest.raises(OSError):
        store.clear()
    with pytest.raises(OSError):
        store.apply_coupon("WELCOME10")

    assert [(item.id, item.quantity) for item in store.items] == [("1", 2)]
    assert store.coupon is None
    assert events == []
    assert blobs.get(settings.storage_key) is None


def test_duplicate_ids_are_merged_on_load(store, blobs, settings):
    blobs.set(
        settings.storage_key,
        '{"items": [{"id": "1", "name": "Loaf", "price": 10, "quantity": 2},'
        ' {"id": "2", "name": "Bun", "price": 5, "quantity": 1},'
        ' {"id": "1", "name": "Loaf", "price": 10, "quantity": 3}]}',
    )

    cart = store.load()

    assert [(item.id, item.quantity) for item in cart.items] == [("1", 5), ("2", 1)]


def test_campaign_comes_from_settings_not_blob(store, blobs, settings):
    blobs.set(settings.storage_key, '{"items": [], "campaign": {"freeDeliveryThreshold": 1}}')

    cart = store.load()

    assert cart.campaign.free_delivery_threshold == settings.free_delivery_threshold


def test_encoded_blob_uses_storefront_keys(seeded_store):
    seeded_store.apply_coupon("FREEDELIVERY")

    data = json.loads(encode_cart(seeded_store.cart))

    assert set(data) == {"items", "coupon", "campaign"}
    assert set(data["items"][0]) == {"id", "name", "price", "quantity", "image", "addedAt"}
    assert data["coupon"]["type"] == "fixed"
    assert data["campaign"]["freeDeliveryThreshold"] == 500


def test_file_store_round_trip(tmp_path, settings):
    blobs = JsonFileBlobStore(tmp_path / "carts")
    store = CartStore(settings, blobs)
    store.add_item("1", "Loaf", unit_price=150, quantity=2)
    store.apply_coupon("welcome10")

    restored = CartStore(settings, JsonFileBlobStore(tmp_path / "carts")).load()

    assert (tmp_path / "carts" / f"{settings.storage_key}.json").exists()
    assert [(item.id, item.quantity) for item in restored.items] == [("1", 2)]
    assert restored.coupon.code == "WELCOME10"


def test_file_store_missing_and_delete(tmp_path):
    blobs = JsonFileBlobStore(tmp_path)
    assert blobs.get("cart") is None

    blobs.set("cart", "{}")
    blobs.delete("cart")

    assert blobs.get("cart") is None
    assert list(tmp_path.iterdir()) == []


@pytest.mark.parametrize("key", ["", "../escape", ".hidden", "a/b"])
def test_file_store_rejects_unsafe_keys(tmp_path, key):
    with pytest.raises(ValueError):
        JsonFileBlobStore(tmp_path).get(key)


def test_memory_store_delete():
    blobs = MemoryBlobStore()
    blobs.set("k", "v")
    blobs.delete("k")
    blobs.delete("k")
    assert blobs.get("k") is None
