"""Order lifecycle engine: state machine, factory, events, and service."""

from __future__ import annotations

from orderly.orders.entities import Address, Order, OrderItem, SellerOrder
from orderly.orders.events import (
    EventPublisher,
    OrderCreatedEvent,
    OrderStatusEvent,
    subject_for,
)
from orderly.orders.factory import new_order, split_by_seller
from orderly.orders.ports import (
    OrderFilter,
    OrderPage,
    OrderRepository,
    Page,
    SellerOrderPage,
    SellerOrderRepository,
    TransactionScope,
)
from orderly.orders.service import OrderLifecycleService
from orderly.orders.status import (
    ORDER_TRANSITIONS,
    SELLER_ORDER_TRANSITIONS,
    OrderStatus,
    TransitionTable,
)
from orderly.orders.types import (
    CancelResult,
    CascadeFailure,
    CascadeResult,
    CreateOrderInput,
    CreateOrderItemInput,
)

__all__ = [
    "ORDER_TRANSITIONS",
    "SELLER_ORDER_TRANSITIONS",
    "Address",
    "CancelResult",
    "CascadeFailure",
    "CascadeResult",
    "CreateOrderInput",
    "CreateOrderItemInput",
    "EventPublisher",
    "Order",
    "OrderCreatedEvent",
    "OrderFilter",
    "OrderItem",
    "OrderPage",
    "OrderLifecycleService",
    "OrderRepository",
    "OrderStatus",
    "OrderStatusEvent",
    "Page",
    "SellerOrder",
    "SellerOrderPage",
    "SellerOrderRepository",
    "TransactionScope",
    "TransitionTable",
    "new_order",
    "split_by_seller",
    "subject_for",
]
