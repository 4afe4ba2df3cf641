from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, timedelta

from bakery_cart.cart import CartStore
from bakery_cart.checkout import CheckoutFlow, TIME_SLOTS
from bakery_cart.config import Settings
from bakery_cart.models import CheckoutForm
from bakery_cart.money import format_currency, format_delivery_fee
from bakery_cart.storage import JsonFileBlobStore, MemoryBlobStore


def seed(store: CartStore) -> None:
    store.add_item("1", "Sourdough Loaf", unit_price=150, image_ref="img/sourdough.jpg", quantity=2)
    store.add_item("2", "Chocolate Cake", unit_price=200, image_ref="img/cake.jpg")
    store.add_item("3", "Croissant Box", unit_price=130, image_ref="img/croissant.jpg")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    p = argparse.ArgumentParser(description="Fill a bakery cart, check it out and print what happened.")
    p.add_argument("--coupon", type=str, default=None)
    p.add_argument("--delivery-date", type=str, default=(date.today() + timedelta(days=1)).isoformat())
    p.add_argument("--slot", type=str, default="9-12", help=f"One of {', '.join(TIME_SLOTS)}")
    p.add_argument("--storage-dir", type=str, default=None, help="Keep the cart in JSON files under this directory")
    p.add_argument("--delay", type=float, default=None, help="Seconds the simulated order placement takes")
    p.add_argument("--skip-terms", action="store_true", help="Leave the terms box unticked to see a rejection")
    args = p.parse_args()

    overrides = {}
    if args.storage_dir:
        overrides["storage_dir"] = args.storage_dir
    if args.delay is not None:
        overrides["processing_delay"] = args.delay
    settings = Settings(**overrides)

    blobs = JsonFileBlobStore(settings.storage_dir) if settings.storage_dir else MemoryBlobStore()
    store = CartStore(settings, blobs)
    store.load()
    if store.cart.is_empty:
        seed(store)
    if args.coupon is not None:
        print("coupon:", store.apply_coupon(args.coupon).message)

    totals = store.totals()
    progress = store.progress()
    print("\n=== CART ===")
    for item in store.items:
        print(f"{item.name} x{item.quantity}: {format_currency(item.line_total)}")
    print("subtotal:", format_currency(totals.subtotal))
    print("discount:", format_currency(totals.discount))
    print("delivery:", format_delivery_fee(totals.delivery_fee))
    print("total:", format_currency(totals.grand_total))
    print(f"free delivery progress: {progress.percent:.0f}% (remaining {format_currency(progress.remaining)})")

    flow = CheckoutFlow(store)
    flow.begin_checkout()
    result = flow.validate(
        CheckoutForm(
            first_name="Abebe",
            last_name="Kebede",
            email="abebe@example.com",
            phone="0911223344",
            address="Bole Road 12",
            subcity="Bole",
            delivery_date=args.delivery_date,
            delivery_time=args.slot,
            terms_accepted=not args.skip_terms,
        )
    )

    print("\n=== RESULT ===")
    if not result.ok:
        print("rejected:", result.message)
    else:
        confirmation = asyncio.run(flow.submit())
        form = confirmation.order.form
        print("order:", confirmation.order_number)
        print("ship to:", form.full_name, "-", ", ".join(form.shipping_address()))
        print("delivery:", confirmation.delivery_estimate)
        print("items left in cart:", store.item_count)

    print("\n=== LOG ===")
    for line in store.logs + flow.logs:
        print(line)


if __name__ == "__main__":
    main()
