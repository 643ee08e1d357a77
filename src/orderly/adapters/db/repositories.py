"""SQLAlchemy implementations of the order and seller order repositories."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from orderly.adapters.db.facade import DB
from orderly.adapters.db.models import OrderDB, OrderItemDB, SellerOrderDB
from orderly.core.errors import (
    ConcurrentModificationError,
    DuplicateOrderNumberError,
    OrderNotFoundError,
    PersistenceError,
    SellerOrderNotFoundError,
)
from orderly.orders.entities import Address, Order, OrderItem, SellerOrder
from orderly.orders.ports import OrderFilter
from orderly.orders.status import OrderStatus


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as PersistenceError."""
    try:
        yield
    except IntegrityError as exc:
        if "order_number" in str(exc.orig):
            raise DuplicateOrderNumberError(operation, exc.orig) from exc
        raise PersistenceError(operation, exc.orig) from exc
    except SQLAlchemyError as exc:
        raise PersistenceError(operation, exc) from exc


class SqlOrderRepository:
    """Order repository backed by the ``orders`` and ``order_items`` tables."""

    def __init__(self, db: DB) -> None:
        self._db = db

    def create(self, order: Order) -> None:
        with _translate_errors("create order"), self._db.session() as session:
            session.add(_order_to_row(order))
            session.flush()

    def get_by_id(self, order_id: str) -> Order:
        with _translate_errors("get order"), self._db.session() as session:
            row = session.scalars(
                _order_query().where(OrderDB.id == order_id)
            ).one_or_none()
            if row is None:
                raise OrderNotFoundError(order_id)
            return _order_from_row(row)

    def get_by_order_number(self, order_number: str) -> Order:
        with _translate_errors("get order by number"), self._db.session() as session:
            row = session.scalars(
                _order_query().where(OrderDB.order_number == order_number)
            ).one_or_none()
            if row is None:
                raise OrderNotFoundError(order_number)
            return _order_from_row(row)

    def list(self, order_filter: OrderFilter) -> tuple[list[Order], int]:
        conditions = []
        if order_filter.buyer_id:
            conditions.append(OrderDB.buyer_id == order_filter.buyer_id)
        if order_filter.status is not None:
            conditions.append(OrderDB.status == order_filter.status.value)

        with _translate_errors("list orders"), self._db.session() as session:
            total = session.scalar(
                select(func.count()).select_from(OrderDB).where(*conditions)
            )
            rows = session.scalars(
                _order_query()
                .where(*conditions)
                .order_by(OrderDB.created_at.desc(), OrderDB.id)
                .offset(order_filter.offset)
                .limit(order_filter.page_size)
            ).all()
            return [_order_from_row(row) for row in rows], int(total or 0)

    def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        with _translate_errors("update order status"), self._db.session() as session:
            return _versioned_status_update(
                session,
                OrderDB,
                order_id,
                status,
                expected_version,
                entity="order",
                not_found=OrderNotFoundError,
            )

    def update(self, order: Order) -> int:
        """Persist pricing fields and status of an existing order.

        Items and seller orders are immutable and are not touched.

        Raises:
            InvariantViolationError: If the order's totals are inconsistent.
            OrderNotFoundError: If the order does not exist.
            ConcurrentModificationError: If the stored version moved on.
        """
        order.verify_totals()
        with _translate_errors("update order"), self._db.session() as session:
            row = session.get(OrderDB, order.id)
            if row is None:
                raise OrderNotFoundError(order.id)
            if row.version != order.version:
                raise ConcurrentModificationError("order", order.id, order.version)
            row.status = order.status.value
            row.subtotal_cents = order.subtotal_cents
            row.shipping_cents = order.shipping_cents
            row.tax_cents = order.tax_cents
            row.discount_cents = order.discount_cents
            row.total_cents = order.total_cents
            row.currency = order.currency
            row.version = row.version + 1
            row.updated_at = datetime.now(UTC)
            session.flush()
            return row.version


class SqlSellerOrderRepository:
    """Seller order repository backed by the ``seller_orders`` table."""

    def __init__(self, db: DB) -> None:
        self._db = db

    def create(self, seller_order: SellerOrder) -> None:
        with _translate_errors("create seller order"), self._db.session() as session:
            position = session.scalar(
                select(func.count())
                .select_from(SellerOrderDB)
                .where(SellerOrderDB.order_id == seller_order.order_id)
            )
            session.add(
                SellerOrderDB(
                    id=seller_order.id,
                    order_id=seller_order.order_id,
                    position=int(position or 0),
                    seller_id=seller_order.seller_id,
                    status=seller_order.status.value,
                    subtotal_cents=seller_order.subtotal_cents,
                    version=seller_order.version,
                    created_at=seller_order.created_at,
                    updated_at=seller_order.updated_at,
                )
            )
            session.flush()

    def get_by_id(self, seller_order_id: str) -> SellerOrder:
        with _translate_errors("get seller order"), self._db.session() as session:
            row = session.get(SellerOrderDB, seller_order_id)
            if row is None:
                raise SellerOrderNotFoundError(seller_order_id)
            items = session.scalars(
                select(OrderItemDB)
                .where(
                    OrderItemDB.order_id == row.order_id,
                    OrderItemDB.seller_id == row.seller_id,
                )
                .order_by(OrderItemDB.position)
            ).all()
            return _seller_order_from_row(row, [_item_from_row(i) for i in items])

    def list_by_order(self, order_id: str) -> list[SellerOrder]:
        with _translate_errors("list seller orders"), self._db.session() as session:
            rows = session.scalars(
                select(SellerOrderDB)
                .where(SellerOrderDB.order_id == order_id)
                .order_by(SellerOrderDB.position)
            ).all()
            items = session.scalars(
                select(OrderItemDB)
                .where(OrderItemDB.order_id == order_id)
                .order_by(OrderItemDB.position)
            ).all()
            by_seller: dict[str, list[OrderItem]] = {}
            for item in items:
                by_seller.setdefault(item.seller_id, []).append(_item_from_row(item))
            return [
                _seller_order_from_row(row, by_seller.get(row.seller_id, []))
                for row in rows
            ]

    def list_by_seller(
        self, seller_id: str, page: int, page_size: int
    ) -> tuple[list[SellerOrder], int]:
        condition = SellerOrderDB.seller_id == seller_id
        with _translate_errors("list seller orders"), self._db.session() as session:
            total = session.scalar(
                select(func.count()).select_from(SellerOrderDB).where(condition)
            )
            rows = session.scalars(
                select(SellerOrderDB)
                .where(condition)
                .order_by(SellerOrderDB.created_at.desc(), SellerOrderDB.id)
                .offset((page - 1) * page_size)
                .limit(page_size)
            ).all()
            return [_seller_order_from_row(row, []) for row in rows], int(total or 0)

    def update_status(
        self,
        seller_order_id: str,
        status: OrderStatus,
        *,
        expected_version: int | None = None,
    ) -> int:
        with (
            _translate_errors("update seller order status"),
            self._db.session() as session,
        ):
            return _versioned_status_update(
                session,
                SellerOrderDB,
                seller_order_id,
                status,
                expected_version,
                entity="seller order",
                not_found=SellerOrderNotFoundError,
            )


def _versioned_status_update(
    session: Session,
    model: type[OrderDB] | type[SellerOrderDB],
    key: str,
    status: OrderStatus,
    expected_version: int | None,
    *,
    entity: str,
    not_found: type[OrderNotFoundError] | type[SellerOrderNotFoundError],
) -> int:
    """Write a status, bumping the version only if it still matches."""
    stmt = update(model).where(model.id == key)
    if expected_version is not None:
        stmt = stmt.where(model.version == expected_version)
    result = session.execute(
        stmt.values(
            status=status.value,
            version=model.version + 1,
            updated_at=datetime.now(UTC),
        )
    )
    if result.rowcount == 0:
        if session.get(model, key) is None:
            raise not_found(key)
        raise ConcurrentModificationError(entity, key, expected_version or 0)
    version = session.scalar(select(model.version).where(model.id == key))
    return int(version)


def _order_query() -> Select[tuple[OrderDB]]:
    return select(OrderDB).options(
        selectinload(OrderDB.items), selectinload(OrderDB.seller_orders)
    )


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _order_to_row(order: Order) -> OrderDB:
    return OrderDB(
        id=order.id,
        order_number=order.order_number,
        buyer_id=order.buyer_id,
        status=order.status.value,
        subtotal_cents=order.subtotal_cents,
        shipping_cents=order.shipping_cents,
        tax_cents=order.tax_cents,
        discount_cents=order.discount_cents,
        total_cents=order.total_cents,
        currency=order.currency,
        shipping_address=order.shipping_address.to_dict(),
        version=order.version,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=[
            OrderItemDB(
                id=item.id,
                order_id=order.id,
                position=position,
                product_id=item.product_id,
                variant_id=item.variant_id or None,
                product_name=item.product_name,
                variant_name=item.variant_name or None,
                sku=item.sku or None,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                total_cents=item.total_cents,
                seller_id=item.seller_id,
                image_url=item.image_url or None,
            )
            for position, item in enumerate(order.items)
        ],
    )


def _item_from_row(row: OrderItemDB) -> OrderItem:
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        variant_id=row.variant_id or "",
        product_name=row.product_name,
        variant_name=row.variant_name or "",
        sku=row.sku or "",
        quantity=row.quantity,
        unit_price_cents=row.unit_price_cents,
        total_cents=row.total_cents,
        seller_id=row.seller_id,
        image_url=row.image_url or "",
    )


def _seller_order_from_row(
    row: SellerOrderDB, items: list[OrderItem]
) -> SellerOrder:
    return SellerOrder(
        id=row.id,
        order_id=row.order_id,
        seller_id=row.seller_id,
        status=OrderStatus(row.status),
        subtotal_cents=row.subtotal_cents,
        items=items,
        version=row.version,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _order_from_row(row: OrderDB) -> Order:
    items = [_item_from_row(item) for item in row.items]
    by_seller: dict[str, list[OrderItem]] = {}
    for item in items:
        by_seller.setdefault(item.seller_id, []).append(item)
    return Order(
        id=row.id,
        order_number=row.order_number,
        buyer_id=row.buyer_id,
        status=OrderStatus(row.status),
        subtotal_cents=row.subtotal_cents,
        shipping_cents=row.shipping_cents,
        tax_cents=row.tax_cents,
        discount_cents=row.discount_cents,
        total_cents=row.total_cents,
        currency=row.currency,
        shipping_address=Address.from_dict(row.shipping_address),
        items=items,
        seller_orders=[
            _seller_order_from_row(so, by_seller.get(so.seller_id, []))
            for so in row.seller_orders
        ],
        version=row.version,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )
