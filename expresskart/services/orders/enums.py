"""Order status enums and the order lifecycle transition graph.

This module defines the closed set of order statuses, the payment-related
enums captured at checkout, and the transition table the state machine
enforces.
"""

from enum import Enum
from typing import Dict, Set

from expresskart.services.orders.exceptions import OrderValidationError


class OrderStatus(str, Enum):
    """Order lifecycle status.

    Valid transitions:
    - PENDING -> CONFIRMED, CANCELLED
    - CONFIRMED -> PROCESSING, CANCELLED
    - PROCESSING -> SHIPPED, CANCELLED
    - SHIPPED -> DELIVERED, CANCELLED
    - DELIVERED -> (terminal state)
    - CANCELLED -> (terminal state)
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert an external string to an OrderStatus.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            OrderValidationError: If value is not a valid status
        """
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid_values = ", ".join(s.value for s in cls)
            raise OrderValidationError(
                f"Invalid order status: {value}. Valid values are: {valid_values}",
                field="status",
                value=value,
            ) from None

    def is_terminal(self) -> bool:
        """Check if no further transitions are possible from this status."""
        return self in TERMINAL_STATUSES

    def customer_can_cancel(self) -> bool:
        """Check if the owning customer may still request cancellation."""
        return self in CUSTOMER_CANCELLABLE_STATUSES

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()


class PaymentStatus(str, Enum):
    """Payment status captured on the order at checkout."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment method chosen at checkout."""

    COD = "cod"
    CARD = "card"
    UPI = "upi"
    NETBANKING = "netbanking"


class DeliveryOption(str, Enum):
    """Delivery speed chosen at checkout; determines the shipping charge."""

    STANDARD = "standard"
    EXPRESS = "express"


ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PROCESSING: {
        OrderStatus.SHIPPED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_STATUS_TRANSITIONS.items() if not targets
)

CUSTOMER_CANCELLABLE_STATUSES = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED}
)


def validate_order_status_transition(
    current: OrderStatus,
    new: OrderStatus
) -> bool:
    """Check whether ``current -> new`` is an edge of the lifecycle graph."""
    return new in ORDER_STATUS_TRANSITIONS[current]


def get_allowed_order_transitions(
    current: OrderStatus
) -> Set[OrderStatus]:
    """Get all allowed next statuses from ``current`` (a copy)."""
    return set(ORDER_STATUS_TRANSITIONS[current])
