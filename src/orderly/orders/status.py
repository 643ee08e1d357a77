"""Order status vocabulary and the transition tables that guard it.

Orders and seller orders share one status vocabulary but are checked against
separate tables, so one seller's portion can be cancelled or shipped without
forcing the whole order along with it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import enum
from typing import Any


class OrderStatus(enum.Enum):
    """Lifecycle status shared by orders and seller orders."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: OrderStatus | str) -> OrderStatus:
        """Return the member for ``value``.

        Matching is exact and case-sensitive.

        Raises:
            ValueError: If ``value`` is not a known status.
        """
        if isinstance(value, cls):
            return value
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class TransitionTable:
    """Adjacency table for one status state machine.

    Every ``OrderStatus`` member must appear as a key. Terminal states map to
    an empty set.
    """

    name: str
    edges: Mapping[OrderStatus, frozenset[OrderStatus]]

    def __post_init__(self) -> None:
        missing = [status.value for status in OrderStatus if status not in self.edges]
        if missing:
            raise ValueError(
                f"{self.name} transition table is missing: {', '.join(missing)}"
            )
        for source, targets in self.edges.items():
            if source in targets:
                raise ValueError(
                    f"{self.name} transition table has a self loop on {source.value}"
                )

    def can_transition(self, from_: Any, to: Any) -> bool:
        """Return True if ``from_ -> to`` is an edge of this table.

        Unknown values on either side are denied.
        """
        if not isinstance(from_, OrderStatus) or not isinstance(to, OrderStatus):
            return False
        return to in self.edges.get(from_, frozenset())

    def allowed_from(self, status: OrderStatus) -> frozenset[OrderStatus]:
        return self.edges.get(status, frozenset())

    def is_terminal(self, status: OrderStatus) -> bool:
        return not self.allowed_from(status)


def _lifecycle_edges() -> dict[OrderStatus, frozenset[OrderStatus]]:
    s = OrderStatus
    return {
        s.PENDING: frozenset({s.CONFIRMED, s.CANCELLED}),
        s.CONFIRMED: frozenset({s.PROCESSING, s.CANCELLED}),
        s.PROCESSING: frozenset({s.SHIPPED, s.CANCELLED}),
        s.SHIPPED: frozenset({s.DELIVERED}),
        s.DELIVERED: frozenset({s.COMPLETED, s.REFUNDED}),
        s.COMPLETED: frozenset({s.REFUNDED}),
        s.CANCELLED: frozenset(),
        s.REFUNDED: frozenset(),
    }


ORDER_TRANSITIONS = TransitionTable(name="order", edges=_lifecycle_edges())
SELLER_ORDER_TRANSITIONS = TransitionTable(
    name="seller order", edges=_lifecycle_edges()
)
