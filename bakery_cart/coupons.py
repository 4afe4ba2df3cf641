from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from bakery_cart.models import Coupon, CouponKind

DEFAULT_COUPONS = (
    Coupon("FRESHBAKE24", CouponKind.PERCENTAGE, 10, "10% off your entire order!"),
    Coupon("WELCOME10", CouponKind.PERCENTAGE, 10, "Welcome discount applied!"),
    Coupon("FREEDELIVERY", CouponKind.FIXED_AMOUNT, 50, "Free delivery applied!"),
    Coupon("BAKERYLOVE", CouponKind.PERCENTAGE, 15, "15% discount for loyal customers!"),
    Coupon("SEASONAL20", CouponKind.PERCENTAGE, 20, "Seasonal special - 20% off!"),
)


def normalize_code(raw: Optional[str]) -> str:
    return (raw or "").strip().upper()


class CouponCatalog:
    """
    Read-only registry of coupon codes.

    Keys are stored exactly as given; callers normalize with `normalize_code`
    before calling `lookup`.
    """

    def __init__(self, coupons: Iterable[Coupon] = DEFAULT_COUPONS) -> None:
        table: Dict[str, Coupon] = {}
        for coupon in coupons:
            if coupon.kind is CouponKind.PERCENTAGE and not 0 <= coupon.value <= 100:
                raise ValueError(f"Coupon {coupon.code}: percentage must be 0-100")
            if coupon.value < 0:
                raise ValueError(f"Coupon {coupon.code}: value must be >= 0")
            table[coupon.code] = coupon
        self._coupons: Mapping[str, Coupon] = MappingProxyType(table)

    def lookup(self, code: str) -> Optional[Coupon]:
        return self._coupons.get(code)

    def __contains__(self, code: object) -> bool:
        return code in self._coupons

    def __len__(self) -> int:
        return len(self._coupons)
