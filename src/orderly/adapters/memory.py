"""Dict-backed repositories for tests and local runs."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import copy
from dataclasses import replace
from datetime import UTC, datetime

from orderly.core.errors import (
    ConcurrentModificationError,
    DuplicateOrderNumberError,
    OrderNotFoundError,
    PersistenceError,
    SellerOrderNotFoundError,
)
from orderly.orders.entities import Order, SellerOrder
from orderly.orders.ports import OrderFilter
from orderly.orders.status import OrderStatus


class InMemoryStore:
    """Shared state for the in-memory repositories.

    ``transaction()`` snapshots every table and restores the snapshot if the
    block raises. Nested blocks join the outermost one.
    """

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        # order_number -> order id
        self.order_numbers: dict[str, str] = {}
        self.seller_orders: dict[str, SellerOrder] = {}
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = copy.deepcopy(
            (self.orders, self.order_numbers, self.seller_orders)
        )
        self._depth = 1
        try:
            yield
        except BaseException:
            self.orders, self.order_numbers, self.seller_orders = snapshot
            raise
        finally:
            self._depth = 0

    def seller_orders_of(self, order_id: str) -> list[SellerOrder]:
        return [
            so for so in self.seller_orders.values() if so.order_id == order_id
        ]


class InMemoryOrderRepository:
    """OrderRepository over an ``InMemoryStore``. Returns copies, never live rows."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def create(self, order: Order) -> None:
        if order.id in self._store.orders:
            raise PersistenceError(
                "create order", ValueError(f"duplicate order id {order.id}")
            )
        if order.order_number in self._store.order_numbers:
            raise DuplicateOrderNumberError(
                "create order",
                ValueError(f"order_number {order.order_number} already exists"),
            )
        stored = copy.deepcopy(order)
        stored.seller_orders = []
        self._store.orders[order.id] = stored
        self._store.order_numbers[order.order_number] = order.id

    def get_by_id(self, order_id: str) -> Order:
        stored = self._store.orders.get(order_id)
        if stored is None:
            raise OrderNotFoundError(order_id)
        return self._assemble(stored)

    def get_by_order_number(self, order_number: str) -> Order:
        order_id = self._store.order_numbers.get(order_number)
        if order_id is None:
            raise OrderNotFoundError(order_number)
        return self.get_by_id(order_id)

    def list(self, order_filter: OrderFilter) -> tuple[list[Order], int]:
        matches = [
            order
            for order in self._store.orders.values()
            if (not order_filter.buyer_id or order.buyer_id == order_filter.buyer_id)
            and (order_filter.status is None or order.status is order_filter.status)
        ]
        matches.sort(key=lambda o: o.id)
        matches.sort(key=lambda o: o.created_at, reverse=True)
        start = order_filter.offset
        window = matches[start : start + order_filter.page_size]
        return [self._assemble(order) for order in window], len(matches)

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        stored = self._store.orders.get(order_id)
        if stored is None:
            raise OrderNotFoundError(order_id)
        if expected_version is not None and stored.version != expected_version:
            raise ConcurrentModificationError("order", order_id, expected_version)
        stored.status = status
        stored.version += 1
        stored.updated_at = datetime.now(UTC)
        return stored.version

    def update(self, order: Order) -> int:
        order.verify_totals()
        stored = self._store.orders.get(order.id)
        if stored is None:
            raise OrderNotFoundError(order.id)
        if stored.version != order.version:
            raise ConcurrentModificationError("order", order.id, order.version)
        stored.status = order.status
        stored.subtotal_cents = order.subtotal_cents
        stored.shipping_cents = order.shipping_cents
        stored.tax_cents = order.tax_cents
        stored.discount_cents = order.discount_cents
        stored.total_cents = order.total_cents
        stored.currency = order.currency
        stored.version += 1
        stored.updated_at = datetime.now(UTC)
        return stored.version

    def _assemble(self, stored: Order) -> Order:
        order = copy.deepcopy(stored)
        order.seller_orders = copy.deepcopy(self._store.seller_orders_of(order.id))
        return order


class InMemorySellerOrderRepository:
    """SellerOrderRepository over an ``InMemoryStore``."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def create(self, seller_order: SellerOrder) -> None:
        if seller_order.id in self._store.seller_orders:
            raise PersistenceError(
                "create seller order",
                ValueError(f"duplicate seller order id {seller_order.id}"),
            )
        if any(
            so.seller_id == seller_order.seller_id
            for so in self._store.seller_orders_of(seller_order.order_id)
        ):
            raise PersistenceError(
                "create seller order",
                ValueError(
                    f"order {seller_order.order_id} already has a seller order "
                    f"for {seller_order.seller_id}"
                ),
            )
        self._store.seller_orders[seller_order.id] = copy.deepcopy(seller_order)

    def get_by_id(self, seller_order_id: str) -> SellerOrder:
        stored = self._store.seller_orders.get(seller_order_id)
        if stored is None:
            raise SellerOrderNotFoundError(seller_order_id)
        return copy.deepcopy(stored)

    def list_by_order(self, order_id: str) -> list[SellerOrder]:
        return copy.deepcopy(self._store.seller_orders_of(order_id))

    def list_by_seller(
        self, seller_id: str, page: int, page_size: int
    ) -> tuple[list[SellerOrder], int]:
        matches = [
            so for so in self._store.seller_orders.values() if so.seller_id == seller_id
        ]
        matches.sort(key=lambda so: so.id)
        matches.sort(key=lambda so: so.created_at, reverse=True)
        start = (page - 1) * page_size
        window = matches[start : start + page_size]
        return [replace(so, items=[]) for so in copy.deepcopy(window)], len(matches)

    def update_status(
        self,
        seller_order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        stored = self._store.seller_orders.get(seller_order_id)
        if stored is None:
            raise SellerOrderNotFoundError(seller_order_id)
        if expected_version is not None and stored.version != expected_version:
            raise ConcurrentModificationError(
                "seller order", seller_order_id, expected_version
            )
        stored.status = status
        stored.version += 1
        stored.updated_at = datetime.now(UTC)
        return stored.version
