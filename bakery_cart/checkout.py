from __future__ import annotations

import asyncio
import copy
import logging
import random
import re
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Optional

from bakery_cart.cart import CartStore, Clock, Listener, utc_now
from bakery_cart.config import Settings
from bakery_cart.errors import CheckoutStateError, ReentrantSubmission, SubmissionError, errmsg
from bakery_cart.models import (
    CartEvent,
    CheckoutForm,
    CheckoutState,
    Confirmation,
    EventKind,
    Order,
    TotalsBreakdown,
    ValidationResult,
)
from bakery_cart.pricing import compute_totals

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("first_name", "last_name", "email", "phone", "address", "subcity")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

TIME_SLOTS = {
    "9-12": "9:00 AM - 12:00 PM",
    "12-3": "12:00 PM - 3:00 PM",
    "3-6": "3:00 PM - 6:00 PM",
    "6-8": "6:00 PM - 8:00 PM",
}
UNKNOWN_SLOT = "your selected time"
UNKNOWN_DATE = "your selected date"


# Form helpers

def field_label(name: str) -> str:
    return name.replace("_", " ")


def normalize_phone(raw: str) -> str:
    """Local Ethiopian numbers (09..., 9...) become +2519...; blank stays blank."""
    digits = re.sub(r"\D", "", raw or "")
    if not digits:
        return ""
    if not digits.startswith("251"):
        digits = "251" + (digits[1:] if digits.startswith("0") else digits)
    return "+" + digits


def min_delivery_date(clock: Clock = utc_now) -> date:
    return clock().date() + timedelta(days=1)


def parse_delivery_date(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None


def delivery_estimate(delivery_date: Optional[str], time_slot: str) -> str:
    day = parse_delivery_date(delivery_date)
    when = f"{day:%A}, {day:%B} {day.day}, {day.year}" if day else UNKNOWN_DATE
    return f"{when}, {TIME_SLOTS.get(time_slot, UNKNOWN_SLOT)}"


def generate_order_number(prefix: str, clock: Clock = utc_now, rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{prefix}{clock().year}-{rng.randrange(1000):03d}"


def validate_form(form: CheckoutForm, clock: Clock = utc_now) -> ValidationResult:
    """Check the form field by field and stop at the first problem."""
    for name in REQUIRED_FIELDS:
        if not str(getattr(form, name) or "").strip():
            return ValidationResult(
                ok=False,
                field=name,
                rule="required",
                message=errmsg.FIELD_REQUIRED.format(label=field_label(name)),
            )

    if not EMAIL_RE.match(form.email):
        return ValidationResult(ok=False, field="email", rule="format", message=errmsg.EMAIL_INVALID)

    if (form.delivery_date or "").strip():
        day = parse_delivery_date(form.delivery_date)
        if day is None:
            return ValidationResult(
                ok=False, field="delivery_date", rule="format", message=errmsg.DELIVERY_DATE_INVALID
            )
        if day < min_delivery_date(clock):
            return ValidationResult(
                ok=False, field="delivery_date", rule="min", message=errmsg.DELIVERY_DATE_TOO_EARLY
            )

    if not form.terms_accepted:
        return ValidationResult(ok=False, field="terms", rule="accepted", message=errmsg.TERMS_REQUIRED)

    return ValidationResult(ok=True)


# Order placement

class OrderGateway(ABC):
    @abstractmethod
    async def place(self, order: Order) -> str:
        """Place the order and return its order number."""


class SimulatedOrderGateway(OrderGateway):
    """Stands in for the order backend: waits, then issues a number."""

    def __init__(self, settings: Settings, clock: Clock = utc_now, rng: Optional[random.Random] = None):
        self.settings = settings
        self.clock = clock
        self.rng = rng or random.Random()

    async def place(self, order: Order) -> str:
        await asyncio.sleep(self.settings.processing_delay)
        return generate_order_number(self.settings.order_number_prefix, self.clock, self.rng)


class CheckoutStep(ABC):
    def __init__(self, flow: "CheckoutFlow"):
        self.flow = flow

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def execute(self) -> None: ...

    async def run(self) -> None:
        self.flow.log(f"STEP {self.name()}")
        await self.execute()
        self.flow.log(f"STEP {self.name()} OK")


class PlaceOrder(CheckoutStep):
    def name(self) -> str:
        return "PlaceOrder"

    async def execute(self) -> None:
        settings = self.flow.settings
        last_error: Optional[BaseException] = None
        for attempt in range(1, settings.submission_attempts + 1):
            try:
                self.flow.order_number = await asyncio.wait_for(
                    self.flow.gateway.place(self.flow.order), timeout=settings.submission_timeout
                )
                return
            except (asyncio.TimeoutError, SubmissionError) as e:
                last_error = e
                self.flow.log(f"attempt {attempt}/{settings.submission_attempts} failed: {e!r}")
        raise SubmissionError(f"order placement failed after {settings.submission_attempts} attempt(s)") from last_error


class ClearCart(CheckoutStep):
    def name(self) -> str:
        return "ClearCart"

    async def execute(self) -> None:
        self.flow.cart_store.clear()


class CheckoutFlow:
    """
    Turns the current cart into a confirmed order.

    IDLE --validate ok--> FORM_VALID --submit--> SUBMITTING --> CONFIRMED
    A failed validation moves to REJECTED; validating again is allowed from
    there. A failed or cancelled submission falls back to FORM_VALID so the
    shopper can retry. The cart is cleared once, on reaching CONFIRMED.
    """

    def __init__(
        self,
        cart_store: CartStore,
        gateway: Optional[OrderGateway] = None,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.cart_store = cart_store
        self.settings = cart_store.settings
        self.clock = clock
        self.gateway = gateway or SimulatedOrderGateway(self.settings, clock, rng)

        self.state = CheckoutState.IDLE
        self.order: Optional[Order] = None
        self.order_number: Optional[str] = None
        self.confirmation: Optional[Confirmation] = None
        self.logs: List[str] = []

        self._listeners: List[Listener] = []
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False

    def log(self, message: str) -> None:
        tag = self.order_number or "pending"
        line = f"[order={tag}] {message}"
        self.logs.append(line)
        logger.info(line)

    def subscribe(self, listener: Listener) -> Listener:
        self._listeners.append(listener)
        return listener

    def _notify(self, event: CartEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("checkout listener %r failed on %s", listener, event.kind.value)

    def _require_order(self) -> Order:
        if self.order is None:
            raise CheckoutStateError("checkout has not begun")
        return self.order

    def _compute(self, order: Order) -> TotalsBreakdown:
        return compute_totals(order.items, order.coupon, order.campaign, self.settings.delivery_fee)

    def begin_checkout(self) -> Order:
        if self.state is CheckoutState.SUBMITTING:
            raise ReentrantSubmission("an order is already being placed")
        cart = self.cart_store.snapshot()
        items = tuple(cart.items)
        self.order = Order(
            items=items,
            campaign=cart.campaign,
            coupon=cart.coupon,
            totals=compute_totals(items, cart.coupon, cart.campaign, self.settings.delivery_fee),
            created_at=self.clock(),
        )
        self.state = CheckoutState.IDLE
        self.order_number = None
        self.confirmation = None
        self.log(f"CHECKOUT BEGIN lines={len(items)} total={self.order.totals.grand_total}")
        return self.order

    @property
    def totals(self) -> TotalsBreakdown:
        order = self._require_order()
        if self.state in (CheckoutState.SUBMITTING, CheckoutState.CONFIRMED):
            return order.totals
        return self._compute(order)

    def validate(self, form: CheckoutForm) -> ValidationResult:
        order = self._require_order()
        if self.state in (CheckoutState.SUBMITTING, CheckoutState.CONFIRMED):
            raise CheckoutStateError(f"cannot validate while {self.state.value}")

        if not order.items:
            result = ValidationResult(ok=False, field="cart", rule="not_empty", message=errmsg.CART_EMPTY)
        else:
            result = validate_form(form, self.clock)

        if not result.ok:
            self.state = CheckoutState.REJECTED
            self.log(f"VALIDATION FAILED field={result.field} rule={result.rule}")
            self._notify(CartEvent(EventKind.CHECKOUT_REJECTED, result.message, "danger"))
            return result

        self.order = replace(order, form=replace(form, phone=normalize_phone(form.phone)))
        self.state = CheckoutState.FORM_VALID
        self.log("VALIDATION OK")
        return result

    async def submit(self) -> Confirmation:
        if self._in_flight or self.state is CheckoutState.SUBMITTING:
            self.log("SUBMIT IGNORED (already submitting)")
            raise ReentrantSubmission("an order is already being placed")
        if self.state is not CheckoutState.FORM_VALID:
            raise CheckoutStateError(f"cannot submit while {self.state.value}")

        order = self._require_order()
        self._in_flight = True
        self.order = replace(order, items=tuple(copy.deepcopy(order.items)), totals=self._compute(order))
        self.state = CheckoutState.SUBMITTING
        self.log("CHECKOUT SUBMIT")
        self._task = asyncio.ensure_future(PlaceOrder(self).run())
        try:
            await self._task
        except asyncio.CancelledError:
            self.state = CheckoutState.FORM_VALID
            self.order_number = None
            self.log("CHECKOUT CANCELLED")
            raise
        except Exception as e:
            self.state = CheckoutState.FORM_VALID
            self.order_number = None
            self.log(f"CHECKOUT FAILED: {e}")
            raise
        finally:
            self._in_flight = False
            self._task = None

        self.state = CheckoutState.CONFIRMED
        await ClearCart(self).run()

        form = self.order.form or CheckoutForm()
        estimate = delivery_estimate(form.delivery_date, form.delivery_time)
        self.confirmation = Confirmation(order_number=self.order_number, delivery_estimate=estimate, order=self.order)
        self.log("CHECKOUT OK")
        self._notify(
            CartEvent(
                EventKind.ORDER_CONFIRMED,
                errmsg.ORDER_CONFIRMED.format(order_number=self.order_number, estimate=estimate),
                "success",
            )
        )
        return self.confirmation

    def cancel(self) -> bool:
        """Cancel an in-flight submission. Returns False when nothing is running."""
        if self._task is None or self._task.done():
            return False
        self._task.cancel()
        return True
