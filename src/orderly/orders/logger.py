"""Logging for the order lifecycle service.

Keeps log wording and bound context out of the service's business logic.
"""

from __future__ import annotations

import loguru
from loguru import logger

from orderly.orders.entities import Order, SellerOrder
from orderly.orders.status import OrderStatus
from orderly.orders.types import CascadeResult


class OrderLifecycleLogger:
    """Handles all logging for OrderLifecycleService."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def order_created(self, order: Order) -> None:
        self._logger.bind(
            order_id=order.id, order_number=order.order_number
        ).info(
            "Created order {} for buyer {} ({} seller orders, total {} {})",
            order.order_number,
            order.buyer_id,
            len(order.seller_orders),
            order.total_cents,
            order.currency,
        )

    def order_number_collision(self, order_number: str, attempt: int) -> None:
        self._logger.bind(order_number=order_number, attempt=attempt).warning(
            "Order number {} already taken, regenerating (attempt {})",
            order_number,
            attempt,
        )

    def order_status_changed(
        self, order: Order, previous: OrderStatus, current: OrderStatus
    ) -> None:
        self._logger.bind(order_id=order.id).info(
            "Order {} moved {} -> {}", order.order_number, previous, current
        )

    def seller_order_status_changed(
        self, seller_order: SellerOrder, previous: OrderStatus, current: OrderStatus
    ) -> None:
        self._logger.bind(
            seller_order_id=seller_order.id, order_id=seller_order.order_id
        ).info(
            "Seller order {} (seller {}) moved {} -> {}",
            seller_order.id,
            seller_order.seller_id,
            previous,
            current,
        )

    def transition_rejected(
        self, entity: str, entity_id: str, current: object, requested: object
    ) -> None:
        self._logger.bind(entity_id=entity_id).warning(
            "Rejected {} transition {} -> {} for {}",
            entity,
            current,
            requested,
            entity_id,
        )

    def cancel_denied(self, order_id: str, buyer_id: str) -> None:
        self._logger.bind(order_id=order_id).warning(
            "Buyer {} tried to cancel order {} they do not own", buyer_id, order_id
        )

    def cascade_finished(self, order: Order, cascade: CascadeResult) -> None:
        bound = self._logger.bind(order_id=order.id)
        bound.info(
            "Cancel cascade for {}: {} cancelled, {} skipped, {} failed",
            order.order_number,
            len(cascade.cancelled),
            len(cascade.skipped),
            len(cascade.failed),
        )
        for failure in cascade.failed:
            bound.warning(
                "Seller order {} was not cancelled: {}",
                failure.seller_order_id,
                failure.error,
            )

    def cascade_listing_failed(self, order_id: str, error: Exception) -> None:
        self._logger.bind(order_id=order_id).error(
            "Could not list seller orders for cancel cascade: {}", error
        )

    def event_context_missing(self, seller_order_id: str, error: Exception) -> None:
        self._logger.bind(seller_order_id=seller_order_id).warning(
            "Skipping status event; parent order could not be loaded: {}", error
        )

    def event_published(self, subject: str, order_id: str) -> None:
        self._logger.bind(subject=subject, order_id=order_id).debug(
            "Published {} for order {}", subject, order_id
        )

    def publish_failed(self, subject: str, order_id: str, error: Exception) -> None:
        self._logger.bind(subject=subject, order_id=order_id).error(
            "Failed to publish {} for order {}: {}", subject, order_id, error
        )
