from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator, List, Optional

from bakery_cart.config import Settings, get_settings
from bakery_cart.coupons import CouponCatalog, normalize_code
from bakery_cart.errors import CouponError, CouponNotFound, CouponRequired, PersistenceCorrupt, errmsg
from bakery_cart.models import CampaignProgress, Cart, CartEvent, Coupon, EventKind, LineItem, TotalsBreakdown
from bakery_cart.pricing import campaign_progress, compute_totals, item_count
from bakery_cart.schemas import decode_cart, encode_cart
from bakery_cart.storage import BlobStore, MemoryBlobStore

logger = logging.getLogger(__name__)

Listener = Callable[[CartEvent], None]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CouponResult:
    ok: bool
    message: str
    coupon: Optional[Coupon] = None
    error: Optional[CouponError] = None


class CartStore:
    """
    Owner of the shopper's cart.

    Every mutator runs mutate -> persist -> notify under one lock, so the
    stored blob always matches memory by the time listeners are told.
    Listeners are the rendering side (badge, cart table, totals, toasts);
    the store never renders anything itself.

    Besides the module logger, the store keeps a `logs` journal of what it
    did, which the CLI prints and tests inspect.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        blobs: Optional[BlobStore] = None,
        catalog: Optional[CouponCatalog] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.blobs = blobs if blobs is not None else MemoryBlobStore()
        self.catalog = catalog if catalog is not None else CouponCatalog()
        self.clock = clock

        self.cart = Cart(campaign=self.settings.campaign())
        self.logs: List[str] = []

        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    def log(self, message: str) -> None:
        self.logs.append(message)
        logger.info(message)

    # Listeners
    def subscribe(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: CartEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken renderer must not undo a mutation that is already persisted.
                logger.exception("cart listener %r failed on %s", listener, event.kind.value)

    # Persistence
    def load(self) -> Cart:
        with self._lock:
            campaign = self.settings.campaign()
            try:
                raw = self.blobs.get(self.settings.storage_key)
                cart = decode_cart(raw, campaign) if raw is not None else None
            except (OSError, UnicodeDecodeError, PersistenceCorrupt) as e:
                logger.warning("discarding saved cart: %s", e)
                self.cart = Cart(campaign=campaign)
                self.log("[cart] saved cart unreadable, starting empty")
            else:
                if cart is None:
                    self.cart = Cart(campaign=campaign)
                    self.log("[cart] no saved cart, starting empty")
                else:
                    self.cart = cart
                    self.log(f"[cart] restored {len(cart.items)} line(s) coupon={self._coupon_code()}")
            self._notify(CartEvent(EventKind.LOADED))
            return self.cart

    def persist(self, cart: Optional[Cart] = None) -> None:
        with self._lock:
            if cart is not None:
                self.cart = cart
            self.blobs.set(self.settings.storage_key, encode_cart(self.cart))

    @contextmanager
    def _saving(self) -> Iterator[None]:
        """Run a mutation and persist it; if saving fails, put memory back."""
        items, coupon = copy.deepcopy(self.cart.items), self.cart.coupon
        try:
            yield
            self.persist()
        except Exception:
            self.cart.items, self.cart.coupon = items, coupon
            raise

    # Mutators
    def add_item(self, item_id: str, name: str, unit_price: int, image_ref: str = "", quantity: int = 1) -> LineItem:
        _require_int("quantity", quantity)
        _require_int("unit_price", unit_price)
        if quantity < 1:
            raise ValueError("quantity must be >= 1")
        if unit_price < 0:
            raise ValueError("unit_price must be >= 0")
        item_id = str(item_id)

        with self._lock:
            with self._saving():
                item = self.cart.find(item_id)
                if item:
                    item.quantity += quantity
                else:
                    item = LineItem(
                        id=item_id,
                        name=name,
                        unit_price=unit_price,
                        quantity=quantity,
                        image_ref=image_ref,
                        added_at=self.clock(),
                    )
                    self.cart.items.append(item)
            self.log(f"[cart] added {item_id} qty={quantity} (now {item.quantity})")
            self._notify(CartEvent(EventKind.ITEM_ADDED, errmsg.ITEM_ADDED.format(name=name), "success"))
            return item

    def remove_item(self, item_id: str) -> None:
        item_id = str(item_id)
        with self._lock:
            before = len(self.cart.items)
            with self._saving():
                self.cart.items = [item for item in self.cart.items if item.id != item_id]
            if len(self.cart.items) != before:
                self.log(f"[cart] removed {item_id}")
            self._notify(CartEvent(EventKind.ITEM_REMOVED))

    def set_quantity(self, item_id: str, new_quantity: int) -> None:
        _require_int("quantity", new_quantity)
        item_id = str(item_id)
        with self._lock:
            item = self.cart.find(item_id)
            if item is None:
                return
            if new_quantity <= 0:
                self.remove_item(item_id)
                return
            with self._saving():
                item.quantity = new_quantity
            self.log(f"[cart] set {item_id} qty={new_quantity}")
            self._notify(CartEvent(EventKind.QUANTITY_CHANGED))

    def increment(self, item_id: str) -> None:
        item_id = str(item_id)
        with self._lock:
            item = self.cart.find(item_id)
            if item:
                self.set_quantity(item_id, item.quantity + 1)

    def decrement(self, item_id: str) -> None:
        """Step down by one, stopping at 1; removal is an explicit action."""
        item_id = str(item_id)
        with self._lock:
            item = self.cart.find(item_id)
            if item and item.quantity > 1:
                self.set_quantity(item_id, item.quantity - 1)

    def clear(self) -> None:
        """
        Empty the item list.

        An already empty cart is left alone: nothing is saved and no event
        goes out. The applied coupon stays on the cart. Asking the shopper
        for confirmation is the caller's job.
        """
        with self._lock:
            if self.cart.is_empty:
                return
            with self._saving():
                self.cart.items = []
            self.log(f"[cart] cleared (coupon={self._coupon_code()})")
            self._notify(CartEvent(EventKind.CLEARED, errmsg.CART_CLEARED, "info"))

    def apply_coupon(self, code: Optional[str]) -> CouponResult:
        normalized = normalize_code(code)
        with self._lock:
            coupon = self.catalog.lookup(normalized) if normalized else None
            if coupon is None:
                error: CouponError = CouponNotFound(normalized) if normalized else CouponRequired()
                with self._saving():
                    self.cart.coupon = None
                self.log(f"[cart] coupon rejected: {normalized or '<empty>'}")
                self._notify(CartEvent(EventKind.COUPON_REJECTED, error.message, "danger"))
                return CouponResult(ok=False, message=error.message, error=error)

            with self._saving():
                self.cart.coupon = coupon
            self.log(f"[cart] coupon applied: {coupon.code}")
            self._notify(CartEvent(EventKind.COUPON_APPLIED, coupon.message, "success"))
            return CouponResult(ok=True, message=coupon.message, coupon=coupon)

    # Reads
    @property
    def items(self) -> List[LineItem]:
        return [copy.copy(item) for item in self.cart.items]

    @property
    def coupon(self) -> Optional[Coupon]:
        return self.cart.coupon

    @property
    def item_count(self) -> int:
        return item_count(self.cart.items)

    def totals(self) -> TotalsBreakdown:
        return compute_totals(self.cart.items, self.cart.coupon, self.cart.campaign, self.settings.delivery_fee)

    def progress(self) -> CampaignProgress:
        return campaign_progress(self.totals().subtotal, self.cart.campaign)

    def snapshot(self) -> Cart:
        with self._lock:
            return copy.deepcopy(self.cart)

    def _coupon_code(self) -> str:
        return self.cart.coupon.code if self.cart.coupon else "none"


def _require_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be a whole number, got {value!r}")
