"""Input and result types for lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass, field

from orderly.orders.entities import Address, Order


@dataclass(frozen=True, slots=True)
class CreateOrderItemInput:
    product_id: str
    product_name: str
    quantity: int
    unit_price_cents: int
    seller_id: str
    variant_id: str = ""
    variant_name: str = ""
    sku: str = ""
    image_url: str = ""


@dataclass(frozen=True, slots=True)
class CreateOrderInput:
    """Everything a buyer supplies to place an order.

    Callers build this DTO and hand it to ``OrderLifecycleService.create``.
    """

    buyer_id: str
    items: tuple[CreateOrderItemInput, ...]
    shipping_address: Address = field(default_factory=Address)
    currency: str = ""


@dataclass(frozen=True, slots=True)
class CascadeFailure:
    seller_order_id: str
    error: str


@dataclass(frozen=True, slots=True)
class CascadeResult:
    """How far an order cancellation reached into its seller orders."""

    cancelled: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    failed: tuple[CascadeFailure, ...] = ()
    # Set when the seller orders could not even be listed.
    listing_error: str | None = None

    @property
    def complete(self) -> bool:
        return not self.failed and self.listing_error is None


@dataclass(frozen=True, slots=True)
class CancelResult:
    """Outcome of ``OrderLifecycleService.cancel``."""

    order: Order
    cascade: CascadeResult
