"""
Shape of the persisted cart blob.

The JSON keys follow what the storefront has always written
(`price`, `image`, `addedAt`, coupon `type`, campaign `freeDeliveryThreshold`),
so carts saved by older pages still load.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bakery_cart.errors import PersistenceCorrupt
from bakery_cart.models import CampaignConfig, Cart, Coupon, CouponKind, LineItem


class _Blob(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LineItemBlob(_Blob):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    image: str = ""
    added_at: Optional[datetime] = Field(None, alias="addedAt")


class CouponBlob(_Blob):
    code: str = ""
    type: CouponKind
    value: int = Field(..., ge=0)
    message: str = ""


class CampaignBlob(_Blob):
    free_delivery_threshold: int = Field(500, alias="freeDeliveryThreshold")
    free_cookie_threshold: int = Field(500, alias="freeCookieThreshold")
    active: bool = True
    code: str = ""


class CartBlob(_Blob):
    items: List[LineItemBlob]
    coupon: Optional[CouponBlob] = None
    campaign: Optional[CampaignBlob] = None


def encode_cart(cart: Cart) -> str:
    blob = CartBlob(
        items=[
            LineItemBlob(
                id=item.id,
                name=item.name,
                price=item.unit_price,
                quantity=item.quantity,
                image=item.image_ref,
                added_at=item.added_at,
            )
            for item in cart.items
        ],
        coupon=(
            CouponBlob(
                code=cart.coupon.code,
                type=cart.coupon.kind,
                value=cart.coupon.value,
                message=cart.coupon.message,
            )
            if cart.coupon
            else None
        ),
        campaign=CampaignBlob(
            free_delivery_threshold=cart.campaign.free_delivery_threshold,
            free_cookie_threshold=cart.campaign.free_cookie_threshold,
            active=cart.campaign.active,
            code=cart.campaign.code,
        ),
    )
    return blob.model_dump_json(by_alias=True)


def decode_cart(raw: str, campaign: CampaignConfig) -> Cart:
    """
    Parse a stored blob into a Cart using the given live campaign.

    Raises PersistenceCorrupt for anything that is not a well-formed cart.
    Repeated ids are folded into one line so the one-entry-per-id rule holds.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PersistenceCorrupt(f"cart blob is not JSON: {e}") from e
    except RecursionError as e:
        raise PersistenceCorrupt("cart blob is nested too deeply") from e
    if not isinstance(data, dict):
        raise PersistenceCorrupt("cart blob is not an object")

    try:
        blob = CartBlob.model_validate(data)
    except ValidationError as e:
        raise PersistenceCorrupt(f"cart blob has wrong shape: {e.error_count()} error(s)") from e
    except RecursionError as e:
        raise PersistenceCorrupt("cart blob is nested too deeply") from e

    cart = Cart(campaign=campaign)
    for entry in blob.items:
        existing = cart.find(entry.id)
        if existing:
            existing.quantity += entry.quantity
            continue
        cart.items.append(
            LineItem(
                id=entry.id,
                name=entry.name,
                unit_price=entry.price,
                quantity=entry.quantity,
                image_ref=entry.image,
                added_at=entry.added_at,
            )
        )
    if blob.coupon:
        cart.coupon = Coupon(
            code=blob.coupon.code,
            kind=blob.coupon.type,
            value=blob.coupon.value,
            message=blob.coupon.message,
        )
    return cart
