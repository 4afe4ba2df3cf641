from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from bakery_cart.models import CampaignConfig, CampaignProgress, Coupon, CouponKind, LineItem, TotalsBreakdown
from bakery_cart.money import round_amount

DEFAULT_DELIVERY_FEE = 50


def subtotal_of(items: Iterable[LineItem]) -> int:
    return sum(item.unit_price * item.quantity for item in items)


def item_count(items: Iterable[LineItem]) -> int:
    return sum(item.quantity for item in items)


def qualifies_for_free_delivery(subtotal: int, campaign: CampaignConfig) -> bool:
    return campaign.active and subtotal >= campaign.free_delivery_threshold


def delivery_fee(subtotal: int, campaign: CampaignConfig, flat_fee: int = DEFAULT_DELIVERY_FEE) -> int:
    return 0 if qualifies_for_free_delivery(subtotal, campaign) else flat_fee


def calculate_discount(coupon: Optional[Coupon], subtotal: int) -> int:
    if coupon is None:
        return 0
    if coupon.kind is CouponKind.PERCENTAGE:
        discount = round_amount(Decimal(subtotal) * Decimal(coupon.value) / Decimal(100))
    else:
        discount = int(coupon.value)
    # A fixed coupon larger than the basket only zeroes the goods; delivery is still owed.
    return min(discount, subtotal)


def compute_totals(
    items: Iterable[LineItem],
    coupon: Optional[Coupon],
    campaign: CampaignConfig,
    flat_fee: int = DEFAULT_DELIVERY_FEE,
) -> TotalsBreakdown:
    subtotal = subtotal_of(items)
    discount = calculate_discount(coupon, subtotal)
    fee = delivery_fee(subtotal, campaign, flat_fee)
    return TotalsBreakdown(
        subtotal=subtotal,
        discount=discount,
        delivery_fee=fee,
        grand_total=subtotal - discount + fee,
    )


def campaign_progress(subtotal: int, campaign: CampaignConfig) -> CampaignProgress:
    """
    Progress toward the free-delivery threshold.

    `qualified` is true exactly when `delivery_fee` waives the fee, so an
    inactive campaign never reports a reward even with a full bar.
    """
    threshold = campaign.free_delivery_threshold
    qualified = qualifies_for_free_delivery(subtotal, campaign)
    if threshold <= 0:
        return CampaignProgress(percent=100.0, remaining=0, qualified=qualified)
    return CampaignProgress(
        percent=min(100.0, subtotal * 100 / threshold),
        remaining=max(0, threshold - subtotal),
        qualified=qualified,
    )
