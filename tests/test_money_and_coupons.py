"""Tests for currency helpers, the coupon catalog and settings."""
import pytest

from bakery_cart.config import Settings
from bakery_cart.coupons import DEFAULT_COUPONS, CouponCatalog, normalize_code
from bakery_cart.models import Coupon, CouponKind
from bakery_cart.money import format_currency, format_delivery_fee, round_amount


@pytest.mark.parametrize(
    "amount, text",
    [(630, "Birr 630"), (1250, "Birr 1,250"), (0, "Birr 0"), (56.5, "Birr 56.5"), (12.345, "Birr 12.35")],
)
def test_format_currency(amount, text):
    assert format_currency(amount) == text


def test_format_delivery_fee():
    assert format_delivery_fee(0) == "FREE"
    assert format_delivery_fee(50) == "Birr 50"


def test_round_amount_half_up():
    assert round_amount(94.5) == 95
    assert round_amount(63.49) == 63


def test_catalog_has_the_store_coupons():
    catalog = CouponCatalog()

    assert len(catalog) == len(DEFAULT_COUPONS) == 5
    assert catalog.lookup("FREEDELIVERY").kind is CouponKind.FIXED_AMOUNT
    assert catalog.lookup("SEASONAL20").value == 20


def test_catalog_lookup_does_not_normalize():
    catalog = CouponCatalog()

    assert catalog.lookup("freshbake24") is None
    assert catalog.lookup(normalize_code("  freshbake24\t")).code == "FRESHBAKE24"
    assert "WELCOME10" in catalog


def test_normalize_code_handles_none():
    assert normalize_code(None) == ""


def test_catalog_is_read_only():
    catalog = CouponCatalog()
    with pytest.raises(TypeError):
        catalog._coupons["HACK"] = Coupon("HACK", CouponKind.PERCENTAGE, 100, "")


@pytest.mark.parametrize(
    "coupon",
    [Coupon("BAD", CouponKind.PERCENTAGE, 120, ""), Coupon("NEG", CouponKind.FIXED_AMOUNT, -1, "")],
)
def test_catalog_rejects_invalid_rules(coupon):
    with pytest.raises(ValueError):
        CouponCatalog([coupon])


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("BAKERY_FREE_DELIVERY_THRESHOLD", "750")
    monkeypatch.setenv("BAKERY_CAMPAIGN_ACTIVE", "false")

    campaign = Settings().campaign()

    assert campaign.free_delivery_threshold == 750
    assert campaign.active is False
    assert campaign.code == "FRESHBAKE24"
