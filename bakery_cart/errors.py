"""Error taxonomy and user-facing message constants."""


class errmsg:
    """Messages shown to the shopper."""

    COUPON_REQUIRED = "Please enter a coupon code"
    COUPON_NOT_FOUND = "Invalid coupon code"
    CART_EMPTY = "Your cart is empty"
    FIELD_REQUIRED = "Please fill in {label}"
    EMAIL_INVALID = "Please enter a valid email address"
    DELIVERY_DATE_INVALID = "Please choose a valid delivery date"
    DELIVERY_DATE_TOO_EARLY = "Delivery date must be tomorrow or later"
    TERMS_REQUIRED = "Please accept the Terms & Conditions"
    ITEM_ADDED = "{name} added to cart!"
    CART_CLEARED = "Cart cleared successfully"
    ORDER_CONFIRMED = "Order #{order_number} confirmed! Delivery scheduled for {estimate}"


class CartError(Exception):
    pass


class PersistenceCorrupt(CartError):
    """Stored cart blob could not be decoded. Recovered as an empty cart."""


class CouponError(CartError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class CouponRequired(CouponError):
    def __init__(self) -> None:
        super().__init__("", errmsg.COUPON_REQUIRED)


class CouponNotFound(CouponError):
    def __init__(self, code: str) -> None:
        super().__init__(code, errmsg.COUPON_NOT_FOUND)


class ValidationFailed(CartError):
    def __init__(self, field: str, rule: str, message: str = ""):
        super().__init__(message or f"{field}: {rule}")
        self.field = field
        self.rule = rule
        self.message = message


class CheckoutStateError(CartError):
    pass


class ReentrantSubmission(CheckoutStateError):
    pass


class SubmissionError(CartError):
    pass
