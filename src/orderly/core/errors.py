"""Error hierarchy for the order lifecycle engine."""

from __future__ import annotations

from typing import Any


class OrderlyError(Exception):
    """Base error for order lifecycle failures."""


class ConfigError(OrderlyError):
    """Missing or invalid configuration."""


class ValidationError(OrderlyError):
    """Invalid input detected before any persistence call."""


class NotFoundError(OrderlyError):
    """A repository could not find the requested entity."""

    entity = "entity"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"{self.entity} not found: {key}")


class OrderNotFoundError(NotFoundError):
    entity = "order"


class SellerOrderNotFoundError(NotFoundError):
    entity = "seller order"


class InvalidTransitionError(OrderlyError):
    """The state machine rejected a status change."""

    def __init__(self, current: Any, requested: Any) -> None:
        self.current = _status_text(current)
        self.requested = _status_text(requested)
        super().__init__(
            f"invalid status transition from {self.current} to {self.requested}"
        )


class AuthorizationError(OrderlyError):
    """The caller does not own the order it is acting on."""


class InvariantViolationError(OrderlyError):
    """Order totals no longer satisfy the pricing invariant."""


class PersistenceError(OrderlyError):
    """A repository write or read failed."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DuplicateOrderNumberError(PersistenceError):
    """The generated order number is already taken."""


class ConcurrentModificationError(OrderlyError):
    """A status write lost a race against another writer."""

    def __init__(self, entity: str, key: str, expected_version: int) -> None:
        self.entity = entity
        self.key = key
        self.expected_version = expected_version
        super().__init__(
            f"{entity} {key} was modified concurrently "
            f"(expected version {expected_version})"
        )


class PublishError(OrderlyError):
    """An outbound event could not be published."""


def _status_text(value: Any) -> str:
    return str(getattr(value, "value", value))
