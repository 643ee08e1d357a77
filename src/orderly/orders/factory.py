"""Builds new order aggregates and splits them into seller orders."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
import random
import string
import uuid

from orderly.core.errors import ValidationError
from orderly.orders.entities import Address, Order, OrderItem, SellerOrder
from orderly.orders.status import OrderStatus

DEFAULT_CURRENCY = "USD"
ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
ORDER_NUMBER_SUFFIX_LENGTH = 4

_system_random = random.SystemRandom()


def new_id() -> str:
    return str(uuid.uuid4())


def generate_order_number(
    created_at: datetime, rng: random.Random | None = None
) -> str:
    """Build a human-readable order number like ``ORD-20240101-AB12``.

    The suffix is drawn uniformly from ``[A-Z0-9]``. Uniqueness is enforced
    by the repository, not here.
    """
    chooser = rng or _system_random
    suffix = "".join(
        chooser.choice(ORDER_NUMBER_ALPHABET)
        for _ in range(ORDER_NUMBER_SUFFIX_LENGTH)
    )
    return f"ORD-{created_at:%Y%m%d}-{suffix}"


def new_order(
    buyer_id: str,
    currency: str,
    shipping_address: Address,
    items: Sequence[OrderItem],
    *,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> Order:
    """Create a pending order with ids, totals, and seller orders filled in.

    Item quantities and prices are assumed to be validated by the caller.
    The input items are copied, never mutated.

    Args:
        buyer_id: Buyer placing the order
        currency: ISO currency code; defaults to USD when empty
        shipping_address: Address to ship to
        items: Line items, at least one
        now: Creation timestamp (defaults to the current UTC time)
        rng: Random source for the order number suffix

    Returns:
        The new Order with one SellerOrder per distinct seller

    Raises:
        ValidationError: If buyer_id or items is empty
    """
    if not buyer_id:
        raise ValidationError("buyer_id is required")
    if not items:
        raise ValidationError("at least one item is required")

    created_at = now or datetime.now(UTC)
    order_id = new_id()

    order_items: list[OrderItem] = []
    subtotal = 0
    for item in items:
        line_total = item.unit_price_cents * item.quantity
        order_items.append(
            replace(item, id=new_id(), order_id=order_id, total_cents=line_total)
        )
        subtotal += line_total

    order = Order(
        id=order_id,
        order_number=generate_order_number(created_at, rng),
        buyer_id=buyer_id,
        status=OrderStatus.PENDING,
        subtotal_cents=subtotal,
        shipping_cents=0,
        tax_cents=0,
        discount_cents=0,
        total_cents=subtotal,
        currency=currency or DEFAULT_CURRENCY,
        shipping_address=shipping_address,
        items=order_items,
        created_at=created_at,
        updated_at=created_at,
    )
    order.seller_orders = split_by_seller(order)
    order.verify_totals()
    return order


def split_by_seller(order: Order) -> list[SellerOrder]:
    """Group the order's items by seller, one SellerOrder per seller.

    Sellers keep the order in which they first appear among the items.
    """
    groups: dict[str, list[OrderItem]] = {}
    for item in order.items:
        groups.setdefault(item.seller_id, []).append(item)

    return [
        SellerOrder(
            id=new_id(),
            order_id=order.id,
            seller_id=seller_id,
            status=OrderStatus.PENDING,
            subtotal_cents=sum(item.total_cents for item in seller_items),
            items=seller_items,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
        for seller_id, seller_items in groups.items()
    ]
