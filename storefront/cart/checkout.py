"""
Checkout quote: shipping, vouchers and per-item order lines.

Amounts are KES. One order row is created per cart line, so shipping and
voucher discount are spread over the lines in proportion to their totals.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional

from storefront.errors import (
    ERROR_VOUCHER_CODE_REQUIRED,
    ERROR_VOUCHER_EXPIRED,
    ERROR_VOUCHER_INVALID,
    ERROR_VOUCHER_LIMIT_EXCEEDED,
    ERROR_VOUCHER_NOT_ACTIVE,
    EmptyCartError,
    VoucherError,
)
from storefront.logging import get_logger, sanitize_for_logging
from storefront.services.money import divide, format_money, multiply, percent, round_money, to_decimal
from .models import Cart

logger = get_logger(__name__)


class ShippingZone(str, Enum):
    """Delivery area with a flat fee."""
    NAIROBI = "nairobi"
    KENYA = "kenya"

    @property
    def fee(self) -> Decimal:
        return SHIPPING_FEES[self]


SHIPPING_FEES = {
    ShippingZone.NAIROBI: Decimal("500"),
    ShippingZone.KENYA: Decimal("700"),
}


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Voucher:
    """Row of the ``vouchers`` table."""
    code: str
    discount_percentage: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    max_uses: Optional[int] = None
    used_count: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: bool = True
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Voucher":
        def optional_decimal(key: str) -> Optional[Decimal]:
            value = row.get(key)
            return None if value is None else to_decimal(value)

        return cls(
            id=row.get("id"),
            code=str(row["code"]).upper(),
            discount_percentage=optional_decimal("discount_percentage"),
            discount_amount=optional_decimal("discount_amount"),
            min_order_amount=optional_decimal("min_order_amount"),
            max_uses=row.get("max_uses"),
            used_count=int(row.get("used_count") or 0),
            start_date=_parse_datetime(row.get("start_date")),
            end_date=_parse_datetime(row.get("end_date")),
            active=bool(row.get("active", True)),
        )


def apply_voucher(voucher: Voucher, subtotal: Decimal, now: Optional[datetime] = None) -> Decimal:
    """
    Validate voucher against the subtotal and return the discount.

    Checks run in order: active, minimum order, usage limit, start, end.
    Percentage vouchers take precedence over fixed amounts; a fixed amount
    never exceeds the subtotal.
    """
    now = now or datetime.now(timezone.utc)
    subtotal = to_decimal(subtotal)

    if not voucher.active:
        raise VoucherError(ERROR_VOUCHER_INVALID)
    if voucher.min_order_amount and subtotal < voucher.min_order_amount:
        raise VoucherError(f"Minimum purchase amount of {format_money(voucher.min_order_amount)} required")
    if voucher.max_uses and voucher.used_count >= voucher.max_uses:
        raise VoucherError(ERROR_VOUCHER_LIMIT_EXCEEDED)
    if voucher.start_date and voucher.start_date > now:
        raise VoucherError(ERROR_VOUCHER_NOT_ACTIVE)
    if voucher.end_date and voucher.end_date < now:
        raise VoucherError(ERROR_VOUCHER_EXPIRED)

    if voucher.discount_percentage:
        return round_money(percent(subtotal, voucher.discount_percentage))
    if voucher.discount_amount:
        return round_money(min(voucher.discount_amount, subtotal))
    return Decimal("0.00")


@dataclass(frozen=True)
class OrderLine:
    """One order row: a cart line with its share of shipping and discount."""
    product_id: str
    quantity: int
    item_total: Decimal
    shipping_fee: Decimal
    voucher_discount: Decimal

    @property
    def total_amount(self) -> Decimal:
        return self.item_total + self.shipping_fee - self.voucher_discount


def _allocate(amount: Decimal, weights: List[Decimal]) -> List[Decimal]:
    """Split amount by weights in cents; the last share absorbs rounding."""
    if not weights:
        return []
    total_weight = sum(weights, Decimal("0"))
    shares: List[Decimal] = []
    for weight in weights[:-1]:
        if total_weight > 0:
            share = multiply(amount, divide(weight, total_weight))
        else:
            share = divide(amount, len(weights))
        shares.append(round_money(share))
    shares.append(round_money(amount) - sum(shares, Decimal("0")))
    return shares


@dataclass
class Quote:
    """Price breakdown of a cart at checkout."""
    cart: Cart
    zone: ShippingZone = ShippingZone.NAIROBI
    voucher: Optional[Voucher] = None
    voucher_discount: Decimal = field(default_factory=lambda: Decimal("0.00"))

    @property
    def subtotal(self) -> Decimal:
        return round_money(self.cart.total_price)

    @property
    def shipping_fee(self) -> Decimal:
        return self.zone.fee

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.shipping_fee - self.voucher_discount

    def order_lines(self) -> List[OrderLine]:
        weights = [item.line_total for item in self.cart.items]
        shipping = _allocate(self.shipping_fee, weights)
        discounts = _allocate(self.voucher_discount, weights)
        return [
            OrderLine(
                product_id=item.id,
                quantity=item.quantity,
                item_total=round_money(item.line_total),
                shipping_fee=ship,
                voucher_discount=discount,
            )
            for item, ship, discount in zip(self.cart.items, shipping, discounts)
        ]

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "shipping_fee": str(self.shipping_fee),
            "shipping_zone": self.zone.value,
            "voucher_code": self.voucher.code if self.voucher else None,
            "voucher_discount": str(self.voucher_discount),
            "total": str(self.total),
        }


def build_quote(
    cart: Cart,
    zone: ShippingZone = ShippingZone.NAIROBI,
    voucher: Optional[Voucher] = None,
    now: Optional[datetime] = None,
) -> Quote:
    """Quote a non-empty cart; raises EmptyCartError or VoucherError."""
    if cart.is_empty:
        raise EmptyCartError()
    discount = Decimal("0.00")
    if voucher is not None:
        discount = apply_voucher(voucher, round_money(cart.total_price), now)
    return Quote(cart=cart, zone=ShippingZone(zone), voucher=voucher, voucher_discount=discount)


class VoucherRepository:
    """Voucher lookups through a supabase-py client."""

    def __init__(self, client: Any):
        self.client = client

    def get_active(self, code: str) -> Voucher:
        """Active voucher by code (case-insensitive); raises VoucherError if none."""
        code = (code or "").strip().upper()
        if not code:
            raise VoucherError(ERROR_VOUCHER_CODE_REQUIRED)

        result = (
            self.client.table("vouchers")
            .select("*")
            .eq("code", code)
            .eq("active", True)
            .limit(1)
            .execute()
        )
        if not result.data:
            logger.info(f"Voucher lookup miss: {sanitize_for_logging(code, 20)}")
            raise VoucherError(ERROR_VOUCHER_INVALID)
        return Voucher.from_row(result.data[0])
