"""
Order status change notifications.

The dispatcher fans a committed status change out to registered handlers,
per target status and catch-all. Delivery is best-effort: a failing handler
is logged and skipped, and the transition it reports stays committed.
"""

import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from expresskart.core.logging import get_logger
from expresskart.database.base import utcnow
from expresskart.services.orders.enums import OrderStatus

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderStatusChangedEvent:
    """A committed order status change."""

    order_id: uuid.UUID
    order_number: str
    customer_id: uuid.UUID
    vendor_id: uuid.UUID
    from_status: OrderStatus
    to_status: OrderStatus
    changed_by: Optional[uuid.UUID] = None
    actor_role: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": str(self.order_id),
            "order_number": self.order_number,
            "customer_id": str(self.customer_id),
            "vendor_id": str(self.vendor_id),
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "changed_by": str(self.changed_by) if self.changed_by else None,
            "actor_role": self.actor_role,
            "reason": self.reason,
            "occurred_at": self.occurred_at.isoformat(),
        }


OrderEventHandler = Callable[
    [OrderStatusChangedEvent], Union[None, Awaitable[None]]
]


def log_status_change(event: OrderStatusChangedEvent) -> None:
    """Default handler: emit a structured ``order_status_changed`` log entry."""
    logger.info("order_status_changed", **event.to_dict())


class OrderEventDispatcher:
    """
    Registry of status change handlers.

    Handlers may be plain functions or coroutine functions. Handlers
    registered for a specific status run before catch-all handlers, each
    group in registration order.
    """

    def __init__(self, include_default_handlers: bool = True) -> None:
        self._status_handlers: dict[OrderStatus, list[OrderEventHandler]] = {}
        self._catch_all_handlers: list[OrderEventHandler] = []

        if include_default_handlers:
            self.register(log_status_change)

    def register(
        self,
        handler: OrderEventHandler,
        status: Optional[OrderStatus] = None,
    ) -> OrderEventHandler:
        """
        Register a handler.

        Args:
            handler: Callable receiving the event
            status: Only call the handler for changes into this status;
                None registers a catch-all handler

        Returns:
            The handler, so this can be used as a decorator
        """
        if status is None:
            self._catch_all_handlers.append(handler)
        else:
            self._status_handlers.setdefault(status, []).append(handler)
        return handler

    def handlers_for(self, status: OrderStatus) -> list[OrderEventHandler]:
        return [*self._status_handlers.get(status, []), *self._catch_all_handlers]

    async def dispatch(self, event: OrderStatusChangedEvent) -> dict[str, str]:
        """
        Deliver an event to every matching handler.

        Never raises for handler failures.

        Returns:
            Mapping of handler name to "delivered" or "failed"
        """
        results: dict[str, str] = {}

        for handler in self.handlers_for(event.to_status):
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    await outcome
                results[name] = "delivered"
            except Exception as e:
                logger.error(
                    "Order event handler failed",
                    handler=name,
                    order_id=str(event.order_id),
                    to_status=event.to_status.value,
                    error=str(e),
                    exc_info=True,
                )
                results[name] = "failed"

        return results


_dispatcher: Optional[OrderEventDispatcher] = None


def get_order_event_dispatcher() -> OrderEventDispatcher:
    """Get the process-wide dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = OrderEventDispatcher()
    return _dispatcher
