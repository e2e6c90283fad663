"""
Common errors and error messages.

Message constants are shared by the exceptions below and by callers that
surface them to the shopper.
"""

# Wiring errors
ERROR_NO_CART_PROVIDER = "use_cart must be used within a CartProvider"

# Checkout errors
ERROR_CART_EMPTY = "Your cart is empty"
ERROR_VOUCHER_CODE_REQUIRED = "Please enter a voucher code"
ERROR_VOUCHER_INVALID = "Invalid voucher code"
ERROR_VOUCHER_LIMIT_EXCEEDED = "Voucher usage limit exceeded"
ERROR_VOUCHER_NOT_ACTIVE = "Voucher is not yet active"
ERROR_VOUCHER_EXPIRED = "Voucher has expired"


class StorefrontError(Exception):
    """Base class for storefront errors."""


class CartProviderError(StorefrontError, RuntimeError):
    """Cart accessed outside of an active CartProvider."""

    def __init__(self, message: str = ERROR_NO_CART_PROVIDER):
        super().__init__(message)


class StorageUnavailableError(StorefrontError):
    """Durable storage could not be reached or is misconfigured."""


class VoucherError(StorefrontError, ValueError):
    """Voucher rejected; the message is shown to the shopper as-is."""


class EmptyCartError(StorefrontError, ValueError):
    """Checkout attempted with nothing in the cart."""

    def __init__(self, message: str = ERROR_CART_EMPTY):
        super().__init__(message)
