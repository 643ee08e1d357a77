"""Order lifecycle orchestration: create, read, transition, cancel."""

from __future__ import annotations

from contextlib import AbstractContextManager, nullcontext
from dataclasses import replace
from datetime import UTC, datetime

from pydantic import BaseModel

from orderly.core.errors import (
    AuthorizationError,
    DuplicateOrderNumberError,
    InvalidTransitionError,
    NotFoundError,
    OrderlyError,
    PersistenceError,
    ValidationError,
)
from orderly.orders.entities import Order, OrderItem, SellerOrder
from orderly.orders.events import (
    ORDER_CANCELLED,
    ORDER_CREATED,
    EventPublisher,
    OrderCreatedEvent,
    OrderStatusEvent,
    subject_for,
)
from orderly.orders.factory import DEFAULT_CURRENCY, new_order
from orderly.orders.logger import OrderLifecycleLogger
from orderly.orders.ports import (
    OrderFilter,
    OrderPage,
    OrderRepository,
    Page,
    SellerOrderPage,
    SellerOrderRepository,
    TransactionScope,
    normalize_page,
)
from orderly.orders.status import (
    ORDER_TRANSITIONS,
    SELLER_ORDER_TRANSITIONS,
    OrderStatus,
)
from orderly.orders.types import (
    CancelResult,
    CascadeFailure,
    CascadeResult,
    CreateOrderInput,
)


class OrderLifecycleService:
    """Creates orders and moves orders and seller orders through their lifecycle.

    Construct once with the repository and publisher ports, then call the
    operation methods per request. The service keeps no per-request state.
    """

    def __init__(
        self,
        *,
        orders: OrderRepository,
        seller_orders: SellerOrderRepository,
        publisher: EventPublisher,
        transactions: TransactionScope | None = None,
        order_number_attempts: int = 3,
        default_currency: str = DEFAULT_CURRENCY,
        lifecycle_logger: OrderLifecycleLogger | None = None,
    ) -> None:
        if order_number_attempts < 1:
            raise ValueError("order_number_attempts must be at least 1")
        self._orders = orders
        self._seller_orders = seller_orders
        self._publisher = publisher
        self._transactions = transactions
        self._order_number_attempts = order_number_attempts
        self._default_currency = default_currency
        self._log = lifecycle_logger or OrderLifecycleLogger()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: CreateOrderInput) -> Order:
        """Validate, build, persist, and announce a new order.

        The order and its seller orders are written inside one transaction
        scope. When the generated order number collides with an existing one,
        the attempt is rolled back and retried with a fresh number.

        Raises:
            ValidationError: If the request is incomplete or malformed.
            DuplicateOrderNumberError: If every attempt collided.
            PersistenceError: If the repository rejects a write.
        """
        items = _items_from_request(request)
        currency = request.currency or self._default_currency

        attempt = 1
        while True:
            order = new_order(
                request.buyer_id, currency, request.shipping_address, items
            )
            try:
                with self._transaction():
                    self._orders.create(order)
                    for seller_order in order.seller_orders:
                        self._seller_orders.create(seller_order)
                    self._publish(
                        ORDER_CREATED, OrderCreatedEvent.from_order(order), order.id
                    )
            except DuplicateOrderNumberError:
                if attempt >= self._order_number_attempts:
                    raise
                self._log.order_number_collision(order.order_number, attempt)
                attempt += 1
                continue

            self._log.order_created(order)
            return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        if not order_id:
            raise ValidationError("order id is required")
        return self._orders.get_by_id(order_id)

    def get_order_by_number(self, order_number: str) -> Order:
        if not order_number:
            raise ValidationError("order number is required")
        return self._orders.get_by_order_number(order_number)

    def list_orders(self, order_filter: OrderFilter | None = None) -> OrderPage:
        normalized = (order_filter or OrderFilter()).normalized()
        orders, total = self._orders.list(normalized)
        return Page(
            items=orders,
            total=total,
            page=normalized.page,
            page_size=normalized.page_size,
        )

    def get_seller_order(self, seller_order_id: str) -> SellerOrder:
        if not seller_order_id:
            raise ValidationError("seller order id is required")
        return self._seller_orders.get_by_id(seller_order_id)

    def list_seller_orders(
        self, seller_id: str, page: int = 1, page_size: int = 20
    ) -> SellerOrderPage:
        if not seller_id:
            raise ValidationError("seller id is required")
        page, page_size = normalize_page(page, page_size)
        seller_orders, total = self._seller_orders.list_by_seller(
            seller_id, page, page_size
        )
        return Page(items=seller_orders, total=total, page=page, page_size=page_size)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def update_seller_order_status(
        self, seller_order_id: str, new_status: OrderStatus | str
    ) -> SellerOrder:
        """Move one seller's portion of an order to ``new_status``.

        Raises:
            SellerOrderNotFoundError: If the seller order does not exist.
            InvalidTransitionError: If the status is unknown or not reachable.
            ConcurrentModificationError: If another writer got there first.
        """
        seller_order = self._seller_orders.get_by_id(seller_order_id)
        target = self._checked_target(
            "seller order", seller_order.id, seller_order.status, new_status
        )
        if not SELLER_ORDER_TRANSITIONS.can_transition(seller_order.status, target):
            self._log.transition_rejected(
                "seller order", seller_order.id, seller_order.status, target
            )
            raise InvalidTransitionError(seller_order.status, target)

        with self._transaction():
            version = self._seller_orders.update_status(
                seller_order.id, target, expected_version=seller_order.version
            )
            updated = replace(
                seller_order, status=target, version=version, updated_at=_now()
            )
            self._publish_for_seller_order(updated, target)

        self._log.seller_order_status_changed(updated, seller_order.status, target)
        return updated

    def update_order_status(
        self, order_id: str, new_status: OrderStatus | str
    ) -> Order:
        """Move an order directly to ``new_status``.

        Used for administrative and inter-service transitions, such as a
        payment collaborator confirming an order.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the status is unknown or not reachable.
            ConcurrentModificationError: If another writer got there first.
        """
        order = self._orders.get_by_id(order_id)
        target = self._checked_target("order", order.id, order.status, new_status)
        if not ORDER_TRANSITIONS.can_transition(order.status, target):
            self._log.transition_rejected("order", order.id, order.status, target)
            raise InvalidTransitionError(order.status, target)

        with self._transaction():
            version = self._orders.update_status(
                order.id, target, expected_version=order.version
            )
            updated = replace(order, status=target, version=version, updated_at=_now())
            subject = subject_for(target)
            if subject is not None:
                self._publish(
                    subject, OrderStatusEvent.from_order(updated, target), updated.id
                )

        self._log.order_status_changed(updated, order.status, target)
        return updated

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    def cancel(self, order_id: str, buyer_id: str) -> CancelResult:
        """Cancel a buyer's order and every seller order that can follow.

        The order's own cancellation and ``order.cancelled`` commit first.
        Each seller order is then cancelled in its own transaction, so a
        failing seller order cannot undo the order or its siblings. Seller
        orders that have already moved past a cancellable state are left
        alone, and individual failures are reported in the result instead of
        raised.

        Raises:
            OrderNotFoundError: If the order does not exist.
            AuthorizationError: If ``buyer_id`` does not own the order.
            InvalidTransitionError: If the order can no longer be cancelled.
        """
        order = self._orders.get_by_id(order_id)
        if order.buyer_id != buyer_id:
            self._log.cancel_denied(order.id, buyer_id)
            raise AuthorizationError(
                f"order {order.id} does not belong to buyer {buyer_id}"
            )
        cancelled = OrderStatus.CANCELLED
        if not ORDER_TRANSITIONS.can_transition(order.status, cancelled):
            self._log.transition_rejected("order", order.id, order.status, cancelled)
            raise InvalidTransitionError(order.status, cancelled)

        with self._transaction():
            version = self._orders.update_status(
                order.id, cancelled, expected_version=order.version
            )
            updated = replace(
                order, status=cancelled, version=version, updated_at=_now()
            )
            self._publish(
                ORDER_CANCELLED,
                OrderStatusEvent.from_order(updated, cancelled),
                updated.id,
            )
        self._log.order_status_changed(updated, order.status, cancelled)

        cascade, seller_orders = self._cascade_cancel(updated)
        if seller_orders is not None:
            updated.seller_orders = seller_orders
        self._log.cascade_finished(updated, cascade)
        return CancelResult(order=updated, cascade=cascade)

    def _cascade_cancel(
        self, order: Order
    ) -> tuple[CascadeResult, list[SellerOrder] | None]:
        try:
            seller_orders = self._seller_orders.list_by_order(order.id)
        except PersistenceError as exc:
            self._log.cascade_listing_failed(order.id, exc)
            return CascadeResult(listing_error=str(exc)), None

        cancelled: list[str] = []
        skipped: list[str] = []
        failed: list[CascadeFailure] = []
        current: list[SellerOrder] = []

        for seller_order in seller_orders:
            if not SELLER_ORDER_TRANSITIONS.can_transition(
                seller_order.status, OrderStatus.CANCELLED
            ):
                skipped.append(seller_order.id)
                current.append(seller_order)
                continue
            try:
                with self._transaction():
                    version = self._seller_orders.update_status(
                        seller_order.id,
                        OrderStatus.CANCELLED,
                        expected_version=seller_order.version,
                    )
            except OrderlyError as exc:
                failed.append(CascadeFailure(seller_order.id, str(exc)))
                current.append(seller_order)
                continue
            cancelled.append(seller_order.id)
            current.append(
                replace(
                    seller_order,
                    status=OrderStatus.CANCELLED,
                    version=version,
                    updated_at=order.updated_at,
                )
            )

        result = CascadeResult(
            cancelled=tuple(cancelled), skipped=tuple(skipped), failed=tuple(failed)
        )
        return result, current

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transaction(self) -> AbstractContextManager[None]:
        if self._transactions is None:
            return nullcontext()
        return self._transactions.transaction()

    def _checked_target(
        self,
        entity: str,
        entity_id: str,
        current: OrderStatus,
        requested: OrderStatus | str,
    ) -> OrderStatus:
        try:
            return OrderStatus.parse(requested)
        except ValueError:
            self._log.transition_rejected(entity, entity_id, current, requested)
            raise InvalidTransitionError(current, requested) from None

    def _publish_for_seller_order(
        self, seller_order: SellerOrder, status: OrderStatus
    ) -> None:
        subject = subject_for(status)
        if subject is None:
            return
        try:
            order = self._orders.get_by_id(seller_order.order_id)
        except (NotFoundError, PersistenceError) as exc:
            self._log.event_context_missing(seller_order.id, exc)
            return
        self._publish(subject, OrderStatusEvent.from_order(order, status), order.id)

    def _publish(self, subject: str, payload: BaseModel, order_id: str) -> None:
        # Never let a publisher failure roll back the write it announces.
        try:
            self._publisher.publish(subject, payload)
        except Exception as exc:
            self._log.publish_failed(subject, order_id, exc)
            return
        self._log.event_published(subject, order_id)


def _items_from_request(request: CreateOrderInput) -> list[OrderItem]:
    if not request.buyer_id:
        raise ValidationError("buyer_id is required")
    if not request.items:
        raise ValidationError("at least one item is required")

    items: list[OrderItem] = []
    for index, item in enumerate(request.items):
        if item.quantity <= 0:
            raise ValidationError(
                f"item {index}: quantity must be greater than 0"
            )
        if item.unit_price_cents <= 0:
            raise ValidationError(
                f"item {index}: unit price must be greater than 0"
            )
        if not item.seller_id:
            raise ValidationError(f"item {index}: seller_id is required")
        items.append(
            OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                seller_id=item.seller_id,
                variant_id=item.variant_id,
                variant_name=item.variant_name,
                sku=item.sku,
                image_url=item.image_url,
            )
        )
    return items


def _now() -> datetime:
    return datetime.now(UTC)
