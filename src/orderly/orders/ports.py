"""Repository and transaction ports consumed by the lifecycle service.

Repositories raise ``OrderNotFoundError`` / ``SellerOrderNotFoundError`` for
missing rows and ``PersistenceError`` for everything else they cannot do.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar, runtime_checkable

from orderly.orders.entities import Order, SellerOrder
from orderly.orders.status import OrderStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")


def normalize_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp pagination to page >= 1 and 1 <= page_size <= 100."""
    if page <= 0:
        page = 1
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    if page_size > MAX_PAGE_SIZE:
        page_size = MAX_PAGE_SIZE
    return page, page_size


@dataclass(frozen=True, slots=True)
class OrderFilter:
    buyer_id: str | None = None
    status: OrderStatus | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def normalized(self) -> OrderFilter:
        page, page_size = normalize_page(self.page, self.page_size)
        return OrderFilter(
            buyer_id=self.buyer_id or None,
            status=self.status,
            page=page,
            page_size=page_size,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    """One page of a listing plus the unpaginated total."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


OrderPage = Page[Order]
SellerOrderPage = Page[SellerOrder]


class OrderRepository(Protocol):
    def create(self, order: Order) -> None: ...

    def get_by_id(self, order_id: str) -> Order: ...

    def get_by_order_number(self, order_number: str) -> Order: ...

    def list(self, order_filter: OrderFilter) -> tuple[list[Order], int]: ...

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Write a new status and return the new version."""
        ...

    def update(self, order: Order) -> int:
        """Persist pricing fields of an existing order and return the new version."""
        ...


class SellerOrderRepository(Protocol):
    def create(self, seller_order: SellerOrder) -> None: ...

    def get_by_id(self, seller_order_id: str) -> SellerOrder: ...

    def list_by_order(self, order_id: str) -> list[SellerOrder]: ...

    def list_by_seller(
        self, seller_id: str, page: int, page_size: int
    ) -> tuple[list[SellerOrder], int]: ...

    def update_status(
        self,
        seller_order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Write a new status and return the new version."""
        ...


@runtime_checkable
class TransactionScope(Protocol):
    """Groups repository calls so they commit or roll back together."""

    def transaction(self) -> AbstractContextManager[None]: ...
