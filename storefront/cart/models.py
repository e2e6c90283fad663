"""Cart models with Decimal-based pricing."""
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from storefront.services.money import multiply, parse_money, round_money, to_float


@dataclass
class CartItem:
    """Single product line in the cart."""
    id: str
    name: str
    price: Decimal
    image: str = ""
    quantity: int = 1

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("id must be a non-empty string")
        if not self.name or not isinstance(self.name, str):
            raise ValueError("name must be a non-empty string")
        self.price = parse_money(self.price)
        if self.price < 0:
            raise ValueError("price must be a non-negative number")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("quantity must be a positive integer")
        self.image = self.image or ""

    @property
    def line_total(self) -> Decimal:
        """Price for all units of this line."""
        return multiply(self.price, self.quantity)

    @classmethod
    def from_product(cls, product: Mapping[str, Any]) -> "CartItem":
        """
        Build a quantity-1 line from a product record.

        Any ``quantity`` on the product is ignored: adding a product always
        means one more unit.
        """
        product_id = product.get("id")
        if not product_id:
            raise ValueError("product id is required")
        return cls(
            id=str(product_id),
            name=product.get("name", ""),
            price=product.get("price"),
            image=product.get("image") or "",
            quantity=1,
        )

    def to_dict(self) -> dict:
        """Convert to the JSON shape the web client stores."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(self.price),
            "image": self.image,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartItem":
        """Create from a stored record; raises KeyError/ValueError/TypeError if malformed."""
        price = data["price"]
        if isinstance(price, bool) or not isinstance(price, (int, float, str)):
            raise TypeError(f"price must be numeric, got {type(price).__name__}")
        return cls(
            id=data["id"],
            name=data["name"],
            price=price,
            image=data.get("image") or "",
            quantity=data.get("quantity", 1),
        )


@dataclass
class Cart:
    """Ordered cart lines, unique by product id."""
    items: List[CartItem] = field(default_factory=list)

    def __post_init__(self):
        seen = set()
        for item in self.items:
            if item.id in seen:
                raise ValueError(f"duplicate cart item id: {item.id}")
            seen.add(item.id)

    @property
    def total_items(self) -> int:
        """Total number of units in the cart."""
        return sum(item.quantity for item in self.items)

    @property
    def total_price(self) -> Decimal:
        """Sum of price * quantity over all lines, computed fresh."""
        return sum((item.line_total for item in self.items), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def to_dict(self) -> dict:
        """Summary used by UI and AI context."""
        return {
            "is_empty": self.is_empty,
            "total_items": self.total_items,
            "items": [
                {**item.to_dict(), "total": to_float(round_money(item.line_total))}
                for item in self.items
            ],
            "total_price": to_float(round_money(self.total_price)),
        }

    def to_json(self) -> str:
        """Serialize the items array only; totals are always derived."""
        return json.dumps([item.to_dict() for item in self.items])

    @classmethod
    def from_json(cls, raw: str) -> "Cart":
        """
        Parse a stored items array.

        Raises json.JSONDecodeError, KeyError, TypeError or ValueError on a
        malformed record.
        """
        data = json.loads(raw)
        if not isinstance(data, list):
            raise TypeError(f"cart record must be a list, got {type(data).__name__}")
        return cls(items=[CartItem.from_dict(entry) for entry in data])
