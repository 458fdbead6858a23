"""
Who may read and who may change an order.

Viewing follows ownership: the customer who placed the order, the vendor
fulfilling it, or an admin. Changing status is narrower: customers never
set status directly, vendors only on their own orders, admins on any.
"""

import uuid
from typing import Optional

from expresskart.core.logging import get_logger
from expresskart.database.models.order import Order
from expresskart.database.models.user import User
from expresskart.services.orders.exceptions import OrderAccessDeniedError

logger = get_logger(__name__)


def actor_vendor_id(actor: User) -> Optional[uuid.UUID]:
    """Vendor profile id the actor operates through, if any."""
    if not actor.is_vendor or actor.vendor_profile is None:
        return None
    return actor.vendor_profile.id


class OrderAccessPolicy:
    """Ownership and role checks for order reads and status changes."""

    def can_view(self, order: Order, actor: User) -> bool:
        if actor.is_admin:
            return True
        if actor.is_customer:
            return order.customer_id == actor.id
        if actor.is_vendor:
            vendor_id = actor_vendor_id(actor)
            return vendor_id is not None and order.vendor_id == vendor_id
        return False

    def ensure_can_view(self, order: Order, actor: User) -> None:
        """
        Raises:
            OrderAccessDeniedError: If the actor may not see the order
        """
        if not self.can_view(order, actor):
            logger.warning(
                "Order view denied",
                order_id=str(order.id),
                user_id=str(actor.id),
                role=actor.role.value,
            )
            raise OrderAccessDeniedError(
                "Not authorized to view this order",
                order_id=str(order.id),
                user_id=str(actor.id),
            )

    def ensure_can_transition(self, order: Order, actor: User) -> None:
        """
        Check that the actor may change the order's status.

        Raises:
            OrderAccessDeniedError: If the actor is a customer, or a vendor
                that does not own the order
        """
        if actor.is_admin:
            return

        if actor.is_vendor:
            vendor_id = actor_vendor_id(actor)
            if vendor_id is not None and order.vendor_id == vendor_id:
                return
            reason = "Not authorized to update this order"
        else:
            reason = "Customers cannot update order status"

        logger.warning(
            "Order status change denied",
            order_id=str(order.id),
            user_id=str(actor.id),
            role=actor.role.value,
        )
        raise OrderAccessDeniedError(
            reason,
            order_id=str(order.id),
            user_id=str(actor.id),
            role=actor.role.value,
        )

    def ensure_can_request_cancellation(self, order: Order, actor: User) -> None:
        """
        Raises:
            OrderAccessDeniedError: If the actor is not the owning customer
        """
        if actor.is_customer and order.customer_id == actor.id:
            return

        raise OrderAccessDeniedError(
            "Only the customer who placed the order can request cancellation",
            order_id=str(order.id),
            user_id=str(actor.id),
            role=actor.role.value,
        )
