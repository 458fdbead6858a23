"""
Order service package initialization.

Exposes the status enums, change events and error types. The service and
repository live in ``service`` and ``repository`` and are imported from
there, since they depend on the ORM models which in turn use these enums.
"""

from expresskart.services.orders.enums import OrderStatus
from expresskart.services.orders.events import (
    OrderEventDispatcher,
    OrderStatusChangedEvent,
    get_order_event_dispatcher,
)
from expresskart.services.orders.exceptions import (
    InvalidTransitionError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    OrderNumberTakenError,
    OrderRepositoryError,
    OrderServiceError,
    OrderStatusConflictError,
    OrderValidationError,
)

__all__ = [
    "OrderStatus",
    "OrderEventDispatcher",
    "OrderStatusChangedEvent",
    "get_order_event_dispatcher",
    "InvalidTransitionError",
    "OrderAccessDeniedError",
    "OrderNotFoundError",
    "OrderNumberTakenError",
    "OrderRepositoryError",
    "OrderServiceError",
    "OrderStatusConflictError",
    "OrderValidationError",
]
