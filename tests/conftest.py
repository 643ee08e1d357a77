"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

from loguru import logger
import pytest

from orderly.adapters.db.facade import DB
from orderly.adapters.db.repositories import (
    SqlOrderRepository,
    SqlSellerOrderRepository,
)
from orderly.adapters.events.publishers import RecordingPublisher
from orderly.adapters.memory import (
    InMemoryOrderRepository,
    InMemorySellerOrderRepository,
    InMemoryStore,
)
from orderly.orders.entities import Address
from orderly.orders.service import OrderLifecycleService
from orderly.orders.types import CreateOrderInput, CreateOrderItemInput


def make_item(
    seller_id: str,
    *,
    product_id: str = "prod-1",
    quantity: int = 1,
    unit_price_cents: int = 1000,
    variant_id: str = "",
) -> CreateOrderItemInput:
    """Create a valid item input for ``seller_id``."""
    return CreateOrderItemInput(
        product_id=product_id,
        product_name=f"Product {product_id}",
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        seller_id=seller_id,
        variant_id=variant_id,
    )


def two_seller_request(buyer_id: str = "B1") -> CreateOrderInput:
    """Three items across sellers S1 and S2, subtotal 4000 cents."""
    return CreateOrderInput(
        buyer_id=buyer_id,
        items=(
            make_item("S1", product_id="p1", quantity=2, unit_price_cents=1000),
            make_item("S2", product_id="p2", quantity=1, unit_price_cents=500),
            make_item("S1", product_id="p3", quantity=1, unit_price_cents=1500),
        ),
        shipping_address=Address(full_name="Ada Buyer", city="Berlin"),
    )


@pytest.fixture(autouse=True)
def _quiet_logger() -> None:
    """Keep loguru's default stderr sink out of test output."""
    logger.remove()


@pytest.fixture
def item_factory() -> Callable[..., CreateOrderItemInput]:
    return make_item


@pytest.fixture
def order_request() -> CreateOrderInput:
    return two_seller_request()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def service(
    store: InMemoryStore, publisher: RecordingPublisher
) -> OrderLifecycleService:
    return OrderLifecycleService(
        orders=InMemoryOrderRepository(store),
        seller_orders=InMemorySellerOrderRepository(store),
        publisher=publisher,
        transactions=store,
    )


@pytest.fixture
def db(tmp_path: Path) -> Iterator[DB]:
    """File-backed SQLite database with the schema created."""
    database = DB(f"sqlite:///{tmp_path / 'orderly.db'}")
    database.create_schema()
    yield database
    database.dispose()


@pytest.fixture
def sql_service(db: DB, publisher: RecordingPublisher) -> OrderLifecycleService:
    return OrderLifecycleService(
        orders=SqlOrderRepository(db),
        seller_orders=SqlSellerOrderRepository(db),
        publisher=publisher,
        transactions=db,
    )
