from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from bakery_cart.errors import ValidationFailed


class CouponKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed"


@dataclass(frozen=True, slots=True)
class Coupon:
    code: str
    kind: CouponKind
    value: int
    message: str


@dataclass(frozen=True, slots=True)
class CampaignConfig:
    """
    Store-wide promotion settings.

    Built once from configuration; user actions never change it.
    `free_cookie_threshold` is informational and not used in pricing.
    """

    free_delivery_threshold: int = 500
    free_cookie_threshold: int = 500
    active: bool = True
    code: str = "FRESHBAKE24"


@dataclass(slots=True)
class LineItem:
    id: str
    name: str
    unit_price: int
    quantity: int
    image_ref: str = ""
    added_at: Optional[datetime] = None

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(slots=True)
class Cart:
    """Items keep insertion order. At most one LineItem per id."""

    items: List[LineItem] = field(default_factory=list)
    coupon: Optional[Coupon] = None
    campaign: CampaignConfig = field(default_factory=CampaignConfig)

    def find(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True, slots=True)
class TotalsBreakdown:
    subtotal: int
    discount: int
    delivery_fee: int
    grand_total: int


@dataclass(frozen=True, slots=True)
class CampaignProgress:
    percent: float
    remaining: int
    qualified: bool


class EventKind(str, Enum):
    LOADED = "loaded"
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    QUANTITY_CHANGED = "quantity_changed"
    CLEARED = "cleared"
    COUPON_APPLIED = "coupon_applied"
    COUPON_REJECTED = "coupon_rejected"
    ORDER_CONFIRMED = "order_confirmed"
    CHECKOUT_REJECTED = "checkout_rejected"


@dataclass(frozen=True, slots=True)
class CartEvent:
    """Change notification handed to display collaborators (badge, tables, toasts)."""

    kind: EventKind
    message: str = ""
    level: str = "info"


@dataclass(frozen=True, slots=True)
class CheckoutForm:
    """Raw field values as typed by the shopper."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    subcity: str = ""
    delivery_date: str = ""
    delivery_time: str = ""
    payment_method: str = "cash"
    terms_accepted: bool = False
    same_as_billing: bool = True
    delivery_address: str = ""
    delivery_subcity: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()

    def shipping_address(self) -> Tuple[str, str]:
        if self.same_as_billing:
            return self.address.strip(), self.subcity.strip()
        return self.delivery_address.strip(), self.delivery_subcity.strip()


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    field: Optional[str] = None
    rule: Optional[str] = None
    message: str = ""

    def raise_for_failure(self) -> None:
        if not self.ok:
            raise ValidationFailed(self.field or "", self.rule or "", self.message)


@dataclass(frozen=True, slots=True)
class Order:
    """
    Checkout snapshot of a cart.

    `items` are deep copies, so later cart edits never reach a placed order.
    The dataclass is frozen: the checkout flow swaps in a new Order when the
    form is attached instead of mutating this one.
    """

    items: Tuple[LineItem, ...]
    campaign: CampaignConfig
    totals: TotalsBreakdown
    coupon: Optional[Coupon] = None
    form: Optional[CheckoutForm] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Confirmation:
    order_number: str
    delivery_estimate: str
    order: Order

    @property
    def totals(self) -> TotalsBreakdown:
        return self.order.totals


class CheckoutState(str, Enum):
    IDLE = "idle"
    FORM_VALID = "form_valid"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
