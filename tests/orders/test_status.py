from __future__ import annotations

import pytest

from orderly.orders.status import (
    ORDER_TRANSITIONS,
    SELLER_ORDER_TRANSITIONS,
    OrderStatus,
    TransitionTable,
)

TABLES = [ORDER_TRANSITIONS, SELLER_ORDER_TRANSITIONS]


class TestOrderStatus:
    def test_parse_accepts_values_and_members(self) -> None:
        assert OrderStatus.parse("shipped") is OrderStatus.SHIPPED
        assert OrderStatus.parse(OrderStatus.REFUNDED) is OrderStatus.REFUNDED

    def test_parse_is_case_sensitive(self) -> None:
        with pytest.raises(ValueError):
            OrderStatus.parse("Shipped")

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError):
            OrderStatus.parse("lost")

    def test_str_is_wire_value(self) -> None:
        assert str(OrderStatus.CANCELLED) == "cancelled"


class TestTransitionTables:
    @pytest.mark.parametrize("table", TABLES, ids=lambda t: t.name)
    def test_every_status_is_a_key(self, table: TransitionTable) -> None:
        assert set(table.edges) == set(OrderStatus)

    @pytest.mark.parametrize("table", TABLES, ids=lambda t: t.name)
    def test_no_self_transitions(self, table: TransitionTable) -> None:
        for status in OrderStatus:
            assert not table.can_transition(status, status)

    @pytest.mark.parametrize("table", TABLES, ids=lambda t: t.name)
    def test_terminal_states(self, table: TransitionTable) -> None:
        assert table.is_terminal(OrderStatus.CANCELLED)
        assert table.is_terminal(OrderStatus.REFUNDED)
        assert not table.is_terminal(OrderStatus.COMPLETED)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.COMPLETED),
            (OrderStatus.DELIVERED, OrderStatus.REFUNDED),
            (OrderStatus.COMPLETED, OrderStatus.REFUNDED),
        ],
    )
    def test_allowed_edges(self, source: OrderStatus, target: OrderStatus) -> None:
        assert ORDER_TRANSITIONS.can_transition(source, target)
        assert SELLER_ORDER_TRANSITIONS.can_transition(source, target)

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.PENDING),
            (OrderStatus.REFUNDED, OrderStatus.COMPLETED),
            (OrderStatus.COMPLETED, OrderStatus.DELIVERED),
        ],
    )
    def test_denied_edges(self, source: OrderStatus, target: OrderStatus) -> None:
        for table in TABLES:
            assert not table.can_transition(source, target)

    def test_unknown_values_are_denied(self) -> None:
        assert not ORDER_TRANSITIONS.can_transition("pending", OrderStatus.CONFIRMED)
        assert not ORDER_TRANSITIONS.can_transition(OrderStatus.PENDING, "confirmed")
        assert not ORDER_TRANSITIONS.can_transition(None, None)

    def test_incomplete_table_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="missing"):
            TransitionTable(
                name="broken",
                edges={OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED})},
            )

    def test_self_loop_is_rejected(self) -> None:
        edges = {status: frozenset() for status in OrderStatus}
        edges[OrderStatus.PENDING] = frozenset({OrderStatus.PENDING})
        with pytest.raises(ValueError, match="self loop"):
            TransitionTable(name="loopy", edges=edges)
