"""Order aggregate entities."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any

from orderly.core.errors import InvariantViolationError
from orderly.orders.status import OrderStatus


@dataclass(frozen=True, slots=True)
class Address:
    """Shipping address attached to an order."""

    full_name: str = ""
    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    phone: str = ""

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Address:
        if not data:
            return cls()
        return cls(**{f.name: str(data.get(f.name) or "") for f in fields(cls)})


@dataclass
class OrderItem:
    """A line item. Never mutated once the order is created."""

    product_id: str
    product_name: str
    quantity: int
    unit_price_cents: int
    seller_id: str
    variant_id: str = ""
    variant_name: str = ""
    sku: str = ""
    image_url: str = ""
    id: str = ""
    order_id: str = ""
    total_cents: int = 0


@dataclass
class SellerOrder:
    """The part of an order sold and fulfilled by one seller."""

    id: str
    order_id: str
    seller_id: str
    status: OrderStatus
    subtotal_cents: int
    created_at: datetime
    updated_at: datetime
    items: list[OrderItem] = field(default_factory=list)
    version: int = 1


@dataclass
class Order:
    """Buyer-facing aggregate for one checkout, possibly spanning sellers."""

    id: str
    order_number: str
    buyer_id: str
    status: OrderStatus
    subtotal_cents: int
    total_cents: int
    currency: str
    shipping_address: Address
    created_at: datetime
    updated_at: datetime
    shipping_cents: int = 0
    tax_cents: int = 0
    discount_cents: int = 0
    items: list[OrderItem] = field(default_factory=list)
    seller_orders: list[SellerOrder] = field(default_factory=list)
    version: int = 1

    def expected_total_cents(self) -> int:
        return (
            self.subtotal_cents
            + self.shipping_cents
            + self.tax_cents
            - self.discount_cents
        )

    def verify_totals(self) -> None:
        """Check the pricing and partition invariants.

        Raises:
            InvariantViolationError: If any total disagrees with its parts.
        """
        if self.total_cents != self.expected_total_cents():
            raise InvariantViolationError(
                f"order {self.id}: total {self.total_cents} != "
                f"subtotal + shipping + tax - discount ({self.expected_total_cents()})"
            )

        items_total = sum(item.total_cents for item in self.items)
        if self.items and items_total != self.subtotal_cents:
            raise InvariantViolationError(
                f"order {self.id}: subtotal {self.subtotal_cents} != "
                f"sum of item totals ({items_total})"
            )

        for item in self.items:
            if item.order_id != self.id:
                raise InvariantViolationError(
                    f"item {item.id} belongs to order {item.order_id}, not {self.id}"
                )

        if self.seller_orders:
            seller_total = sum(so.subtotal_cents for so in self.seller_orders)
            if seller_total != self.subtotal_cents:
                raise InvariantViolationError(
                    f"order {self.id}: subtotal {self.subtotal_cents} != "
                    f"sum of seller order subtotals ({seller_total})"
                )
            for so in self.seller_orders:
                if so.order_id != self.id:
                    raise InvariantViolationError(
                        f"seller order {so.id} belongs to order {so.order_id}, "
                        f"not {self.id}"
                    )

    def seller_order_for(self, seller_id: str) -> SellerOrder | None:
        for so in self.seller_orders:
            if so.seller_id == seller_id:
                return so
        return None
