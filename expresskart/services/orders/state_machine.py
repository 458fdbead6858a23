"""Order state machine with transition validation.

This module implements the OrderStateMachine class that decides whether an
order may move from one status to another. It holds no storage handle: the
service loads the order, asks the machine, and persists the change with a
conditional update.
"""

from typing import Any, Optional, Set

from expresskart.core.logging import get_logger
from expresskart.services.orders.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from expresskart.services.orders.exceptions import InvalidTransitionError

logger = get_logger(__name__)


class OrderStateMachine:
    """State machine for the order lifecycle.

    Rejects three kinds of request with ``InvalidTransitionError``:
    a change to the status the order already has, any change out of a
    terminal status, and any edge missing from the transition graph.
    """

    def validate_transition(
        self,
        current_status: OrderStatus,
        target_status: OrderStatus,
        order_id: Optional[Any] = None,
    ) -> bool:
        """Validate a ``current_status -> target_status`` change.

        Args:
            current_status: Status the order has now
            target_status: Requested status
            order_id: Order identifier, for error context only

        Returns:
            True if the transition is allowed

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        context = {"order_id": str(order_id)} if order_id else {}
        allowed = sorted(s.value for s in get_allowed_order_transitions(current_status))

        if current_status == target_status:
            raise InvalidTransitionError(
                f"Order is already {current_status.value}",
                current_status=current_status,
                target_status=target_status,
                allowed_transitions=allowed,
                **context,
            )

        if current_status.is_terminal():
            raise InvalidTransitionError(
                f"Order is {current_status.value} and can no longer change status",
                current_status=current_status,
                target_status=target_status,
                allowed_transitions=allowed,
                **context,
            )

        if not validate_order_status_transition(current_status, target_status):
            raise InvalidTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_status=current_status,
                target_status=target_status,
                allowed_transitions=allowed,
                **context,
            )

        logger.debug(
            "State transition validated",
            transition=f"{current_status.value}->{target_status.value}",
            **context,
        )

        return True

    def allowed_transitions(self, status: OrderStatus) -> Set[OrderStatus]:
        """Get the statuses reachable in one step from ``status``."""
        return get_allowed_order_transitions(status)

    def can_transition(
        self, current_status: OrderStatus, target_status: OrderStatus
    ) -> bool:
        try:
            self.validate_transition(current_status, target_status)
        except InvalidTransitionError:
            return False
        return True


def get_order_state_machine() -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance."""
    return OrderStateMachine()
