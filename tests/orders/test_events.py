from __future__ import annotations

import json

import pytest

from orderly.adapters.events.publishers import RecordingPublisher
from orderly.orders.entities import Address, OrderItem
from orderly.orders.events import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_CONFIRMED,
    ORDER_DELIVERED,
    ORDER_SHIPPED,
    EventPublisher,
    OrderCreatedEvent,
    OrderStatusEvent,
    subject_for,
)
from orderly.orders.factory import new_order
from orderly.orders.status import OrderStatus


@pytest.fixture
def order():
    return new_order(
        "B1",
        "USD",
        Address(),
        [
            OrderItem("p1", "One", 2, 1000, "S1", variant_id="v1"),
            OrderItem("p2", "Two", 1, 500, "S2"),
        ],
    )


@pytest.mark.parametrize(
    ("status", "subject"),
    [
        (OrderStatus.CONFIRMED, ORDER_CONFIRMED),
        (OrderStatus.CANCELLED, ORDER_CANCELLED),
        (OrderStatus.SHIPPED, ORDER_SHIPPED),
        (OrderStatus.DELIVERED, ORDER_DELIVERED),
        (OrderStatus.COMPLETED, ORDER_COMPLETED),
    ],
)
def test_notable_statuses_have_subjects(status: OrderStatus, subject: str) -> None:
    assert subject_for(status) == subject
    assert subject == f"order.{status.value}"


@pytest.mark.parametrize(
    "status", [OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.REFUNDED]
)
def test_quiet_statuses_have_no_subject(status: OrderStatus) -> None:
    assert subject_for(status) is None


def test_created_payload_shape(order) -> None:
    body = json.loads(OrderCreatedEvent.from_order(order).model_dump_json())

    assert body == {
        "order_id": order.id,
        "order_number": order.order_number,
        "buyer_id": "B1",
        "total_cents": 2500,
        "currency": "USD",
        "items": [
            {
                "product_id": "p1",
                "variant_id": "v1",
                "quantity": 2,
                "unit_price_cents": 1000,
                "seller_id": "S1",
            },
            {
                "product_id": "p2",
                "variant_id": "",
                "quantity": 1,
                "unit_price_cents": 500,
                "seller_id": "S2",
            },
        ],
    }


def test_status_payload_shape(order) -> None:
    event = OrderStatusEvent.from_order(order, OrderStatus.SHIPPED)

    assert json.loads(event.model_dump_json()) == {
        "order_id": order.id,
        "order_number": order.order_number,
        "buyer_id": "B1",
        "status": "shipped",
    }


def test_recording_publisher_satisfies_port() -> None:
    assert isinstance(RecordingPublisher(), EventPublisher)
