"""Outbound integration events for order lifecycle changes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from orderly.orders.entities import Order
from orderly.orders.status import OrderStatus

ORDER_CREATED = "order.created"
ORDER_CONFIRMED = "order.confirmed"
ORDER_CANCELLED = "order.cancelled"
ORDER_SHIPPED = "order.shipped"
ORDER_DELIVERED = "order.delivered"
ORDER_COMPLETED = "order.completed"

_STATUS_SUBJECTS: dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: ORDER_CONFIRMED,
    OrderStatus.CANCELLED: ORDER_CANCELLED,
    OrderStatus.SHIPPED: ORDER_SHIPPED,
    OrderStatus.DELIVERED: ORDER_DELIVERED,
    OrderStatus.COMPLETED: ORDER_COMPLETED,
}


def subject_for(status: OrderStatus) -> str | None:
    """Return the event subject for a status, or None if it is not notable."""
    return _STATUS_SUBJECTS.get(status)


class ItemEvent(BaseModel):
    product_id: str
    variant_id: str
    quantity: int
    unit_price_cents: int
    seller_id: str


class OrderCreatedEvent(BaseModel):
    """Payload for ``order.created``."""

    order_id: str
    order_number: str
    buyer_id: str
    total_cents: int
    currency: str
    items: list[ItemEvent]

    @classmethod
    def from_order(cls, order: Order) -> OrderCreatedEvent:
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            total_cents=order.total_cents,
            currency=order.currency,
            items=[
                ItemEvent(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                    unit_price_cents=item.unit_price_cents,
                    seller_id=item.seller_id,
                )
                for item in order.items
            ],
        )


class OrderStatusEvent(BaseModel):
    """Payload for ``order.<status>`` subjects."""

    order_id: str
    order_number: str
    buyer_id: str
    status: OrderStatus

    @classmethod
    def from_order(cls, order: Order, status: OrderStatus) -> OrderStatusEvent:
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            status=status,
        )


@runtime_checkable
class EventPublisher(Protocol):
    """Outbound port for integration events.

    Implementations raise ``PublishError`` when delivery fails.
    """

    def publish(self, subject: str, payload: BaseModel) -> None: ...
