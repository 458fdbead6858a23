"""
Test suite for OrderStateMachine and the order status enums.

Tests cover the lifecycle graph, terminal statuses, same-status requests,
error context and status string parsing.
"""

from uuid import uuid4

import pytest

from expresskart.services.orders.enums import (
    CUSTOMER_CANCELLABLE_STATUSES,
    ORDER_STATUS_TRANSITIONS,
    TERMINAL_STATUSES,
    OrderStatus,
    get_allowed_order_transitions,
)
from expresskart.services.orders.exceptions import (
    InvalidTransitionError,
    OrderValidationError,
)
from expresskart.services.orders.state_machine import (
    OrderStateMachine,
    get_order_state_machine,
)


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def state_machine() -> OrderStateMachine:
    return get_order_state_machine()


FORWARD_EDGES = [
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
]

CANCEL_EDGES = [
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
]


# ============================================================================
# Transition Graph Tests
# ============================================================================


class TestTransitionGraph:
    """Test the shape of the lifecycle graph."""

    def test_graph_covers_every_status(self) -> None:
        assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)

    def test_terminal_statuses(self) -> None:
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
        assert OrderStatus.DELIVERED.is_terminal()
        assert not OrderStatus.SHIPPED.is_terminal()

    def test_customer_cancellable_statuses(self) -> None:
        assert CUSTOMER_CANCELLABLE_STATUSES == {
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
        }
        assert not OrderStatus.PROCESSING.customer_can_cancel()

    def test_allowed_transitions_returns_copy(self) -> None:
        allowed = get_allowed_order_transitions(OrderStatus.PENDING)
        allowed.add(OrderStatus.DELIVERED)

        assert OrderStatus.DELIVERED not in ORDER_STATUS_TRANSITIONS[OrderStatus.PENDING]


# ============================================================================
# Validation Tests
# ============================================================================


class TestValidateTransition:
    """Test OrderStateMachine.validate_transition."""

    @pytest.mark.parametrize("current,target", FORWARD_EDGES + CANCEL_EDGES)
    def test_valid_edges_accepted(
        self,
        state_machine: OrderStateMachine,
        current: OrderStatus,
        target: OrderStatus,
    ) -> None:
        assert state_machine.validate_transition(current, target) is True

    def test_every_pair_matches_graph(self, state_machine: OrderStateMachine) -> None:
        """Exactly the graph edges pass; everything else is rejected."""
        for current in OrderStatus:
            for target in OrderStatus:
                expected = target in ORDER_STATUS_TRANSITIONS[current]
                assert state_machine.can_transition(current, target) is expected, (
                    current,
                    target,
                )

    def test_skipping_a_step_rejected(self, state_machine: OrderStateMachine) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(OrderStatus.PENDING, OrderStatus.SHIPPED)

        error = exc_info.value
        assert error.current_status == OrderStatus.PENDING
        assert error.target_status == OrderStatus.SHIPPED
        assert error.context["allowed_transitions"] == ["cancelled", "confirmed"]

    def test_backward_transition_rejected(
        self, state_machine: OrderStateMachine
    ) -> None:
        with pytest.raises(InvalidTransitionError):
            state_machine.validate_transition(
                OrderStatus.SHIPPED, OrderStatus.PROCESSING
            )

    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_same_status_rejected(
        self, state_machine: OrderStateMachine, status: OrderStatus
    ) -> None:
        with pytest.raises(InvalidTransitionError, match="already"):
            state_machine.validate_transition(status, status)

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_status_cannot_change(
        self, state_machine: OrderStateMachine, terminal: OrderStatus
    ) -> None:
        for target in OrderStatus:
            if target == terminal:
                continue
            with pytest.raises(InvalidTransitionError, match="no longer"):
                state_machine.validate_transition(terminal, target)

    def test_error_carries_order_id(self, state_machine: OrderStateMachine) -> None:
        order_id = uuid4()

        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(
                OrderStatus.CANCELLED, OrderStatus.PENDING, order_id=order_id
            )

        assert exc_info.value.context["order_id"] == str(order_id)
        assert exc_info.value.context["allowed_transitions"] == []


class TestAllowedTransitions:
    """Test OrderStateMachine.allowed_transitions."""

    def test_pending(self, state_machine: OrderStateMachine) -> None:
        assert state_machine.allowed_transitions(OrderStatus.PENDING) == {
            OrderStatus.CONFIRMED,
            OrderStatus.CANCELLED,
        }

    def test_terminal_has_none(self, state_machine: OrderStateMachine) -> None:
        assert state_machine.allowed_transitions(OrderStatus.DELIVERED) == set()


# ============================================================================
# Status Parsing Tests
# ============================================================================


class TestOrderStatusFromString:
    """Test OrderStatus.from_string."""

    @pytest.mark.parametrize("raw", ["shipped", "SHIPPED", " Shipped "])
    def test_parses_case_insensitively(self, raw: str) -> None:
        assert OrderStatus.from_string(raw) == OrderStatus.SHIPPED

    def test_unknown_status_raises_validation_error(self) -> None:
        with pytest.raises(OrderValidationError) as exc_info:
            OrderStatus.from_string("returned")

        assert exc_info.value.context == {"field": "status", "value": "returned"}

    def test_display_name(self) -> None:
        assert OrderStatus.PROCESSING.display_name == "Processing"
