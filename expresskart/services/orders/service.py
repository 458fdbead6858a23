"""
Order service orchestrating business logic.

This module implements the OrderService class for order operations:
checkout, role-scoped listing, ownership-checked reads, and status changes.
A status change is loaded, authorized, validated against the lifecycle
graph, written with a conditional update, committed, and only then
reported to the event dispatcher.
"""

import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from expresskart.core.config import Settings, get_settings
from expresskart.core.logging import get_logger, log_performance
from expresskart.database.base import utcnow
from expresskart.database.models.order import Order, OrderStatusHistory
from expresskart.database.models.user import User
from expresskart.services.orders.access import OrderAccessPolicy, actor_vendor_id
from expresskart.services.orders.enums import (
    DeliveryOption,
    OrderStatus,
    PaymentMethod,
)
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
    OrderStatusConflictError,
    OrderValidationError,
)
from expresskart.services.orders.repository import OrderRepository
from expresskart.services.orders.state_machine import OrderStateMachine

logger = get_logger(__name__)

CENT = Decimal("0.01")
MAX_PAGE_SIZE = 100
ORDER_NUMBER_ATTEMPTS = 3
REQUIRED_ADDRESS_FIELDS = ("line1", "city", "state", "postal_code")


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderService:
    """
    Order service orchestrating business logic.

    Attributes:
        session: Database session; the service commits its own writes
        repository: Order repository for data access
        state_machine: Lifecycle graph validation
        access_policy: Ownership and role checks
        dispatcher: Receives committed status changes
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: Optional[OrderEventDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize order service.

        Args:
            session: Async database session
            dispatcher: Event dispatcher (defaults to the shared instance)
            settings: Application settings (defaults to cached settings)
        """
        self.session = session
        self.repository = OrderRepository(session)
        self.state_machine = OrderStateMachine()
        self.access_policy = OrderAccessPolicy()
        self.dispatcher = dispatcher or get_order_event_dispatcher()
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def create_order(
        self,
        actor: User,
        items: Sequence[dict[str, Any]],
        delivery_address: dict[str, Any],
        payment_method: Union[PaymentMethod, str],
        delivery_option: Union[DeliveryOption, str] = DeliveryOption.STANDARD,
        discount: Union[Decimal, int, str] = 0,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Place an order for a single vendor's products.

        Args:
            actor: Customer placing the order
            items: Dicts with product_id and quantity
            delivery_address: Address with line1, line2, city, state,
                postal_code and country
            payment_method: Chosen payment method
            delivery_option: "standard" or "express"
            discount: Discount amount applied at checkout
            notes: Optional customer note

        Returns:
            The created order in ``pending`` status

        Raises:
            OrderAccessDeniedError: If the actor is not a customer
            OrderValidationError: If the cart or checkout data is invalid
            OrderNumberTakenError: If no free order number was found
        """
        if not actor.is_customer:
            raise OrderAccessDeniedError(
                "Only customers can place orders",
                user_id=str(actor.id),
                role=actor.role.value,
            )

        payment_method = self._parse_enum(PaymentMethod, payment_method, "payment_method")
        delivery_option = self._parse_enum(DeliveryOption, delivery_option, "delivery_option")
        self._validate_delivery_address(delivery_address)
        quantities = self._validate_items(items)

        with log_performance(logger, "create_order", customer_id=str(actor.id)):
            products = await self.repository.get_products(list(quantities))

            missing = [str(pid) for pid in quantities if pid not in products]
            if missing:
                raise OrderValidationError(
                    "Some products do not exist",
                    product_ids=missing,
                )

            inactive = [str(pid) for pid, p in products.items() if not p.is_active]
            if inactive:
                raise OrderValidationError(
                    "Some products are not available",
                    product_ids=inactive,
                )

            vendor_ids = {product.vendor_id for product in products.values()}
            if len(vendor_ids) != 1:
                raise OrderValidationError(
                    "All items in an order must come from the same vendor",
                    vendor_ids=sorted(str(v) for v in vendor_ids),
                )
            vendor_id = vendor_ids.pop()

            vendor = await self.repository.get_vendor(vendor_id)
            if vendor is None or not vendor.is_approved:
                raise OrderValidationError(
                    "Vendor is not accepting orders",
                    vendor_id=str(vendor_id),
                )

            lines = []
            for item in items:
                product = products[uuid.UUID(str(item["product_id"]))]
                quantity = int(item["quantity"])
                unit_price = _money(product.price)
                lines.append(
                    {
                        "product_id": product.id,
                        "product_title": product.title,
                        "quantity": quantity,
                        "unit_price": unit_price,
                        "total": _money(unit_price * quantity),
                    }
                )

            pricing = self._calculate_order_pricing(lines, delivery_option, discount)
            customer_id = actor.id
            customer_snapshot = {
                "name": actor.name,
                "email": actor.email,
                "phone": actor.phone,
            }
            address = self._normalize_address(delivery_address)

            # A taken number rolls the session back, so only plain values
            # captured above are used from here on.
            for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
                order_number = await self.repository.next_order_number(utcnow())
                try:
                    order = await self.repository.create_order_with_items(
                        order_number=order_number,
                        customer_id=customer_id,
                        vendor_id=vendor_id,
                        items=lines,
                        subtotal=pricing["subtotal"],
                        shipping=pricing["shipping"],
                        discount=pricing["discount"],
                        total=pricing["total"],
                        payment_method=payment_method,
                        delivery_address=address,
                        customer_snapshot=customer_snapshot,
                        notes=notes,
                    )
                except OrderNumberTakenError:
                    if attempt == ORDER_NUMBER_ATTEMPTS:
                        raise
                    logger.warning(
                        "Retrying checkout with a new order number",
                        order_number=order_number,
                        attempt=attempt,
                    )
                    continue
                break

            await self.session.commit()

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(customer_id),
            vendor_id=str(vendor_id),
            total=str(order.total),
        )

        return order

    # ------------------------------------------------------------------
    # Role-scoped queries
    # ------------------------------------------------------------------

    async def list_orders_for_customer(
        self,
        actor: User,
        status: Optional[Union[OrderStatus, str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """List the actor's own orders, newest first."""
        status = self._parse_status_filter(status)
        self._validate_pagination(skip, limit)

        return await self.repository.list_orders(
            customer_id=actor.id, status=status, skip=skip, limit=limit
        )

    async def list_orders_for_vendor(
        self,
        actor: User,
        status: Optional[Union[OrderStatus, str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders fulfilled by the actor's vendor profile, newest first.

        Raises:
            OrderAccessDeniedError: If the actor has no vendor profile
        """
        vendor_id = actor_vendor_id(actor)
        if vendor_id is None:
            raise OrderAccessDeniedError(
                "Vendor profile required",
                user_id=str(actor.id),
                role=actor.role.value,
            )

        status = self._parse_status_filter(status)
        self._validate_pagination(skip, limit)

        return await self.repository.list_orders(
            vendor_id=vendor_id, status=status, skip=skip, limit=limit
        )

    async def list_all_orders(
        self,
        actor: User,
        status: Optional[Union[OrderStatus, str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List every order, newest first.

        Raises:
            OrderAccessDeniedError: If the actor is not an admin
        """
        self._require_admin(actor)
        status = self._parse_status_filter(status)
        self._validate_pagination(skip, limit)

        return await self.repository.list_orders(status=status, skip=skip, limit=limit)

    async def get_order(self, order_id: uuid.UUID, actor: User) -> Order:
        """
        Get one order the actor is entitled to see.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderAccessDeniedError: If the actor may not see it
        """
        order = await self._load_order(order_id)
        self.access_policy.ensure_can_view(order, actor)
        return order

    async def get_order_history(
        self, order_id: uuid.UUID, actor: User
    ) -> Sequence[OrderStatusHistory]:
        """Status history of a visible order, oldest first."""
        await self.get_order(order_id, actor)
        return await self.repository.get_status_history(order_id)

    async def get_allowed_transitions(
        self, order_id: uuid.UUID, actor: User
    ) -> tuple[Order, list[OrderStatus]]:
        """
        Statuses the actor could move a visible order to right now.

        Vendors and admins get the lifecycle next-set. The owning customer
        gets ``cancelled`` while cancellation can still be requested.
        """
        order = await self.get_order(order_id, actor)

        if actor.is_customer:
            allowed = (
                {OrderStatus.CANCELLED} if order.status.customer_can_cancel() else set()
            )
        else:
            allowed = self.state_machine.allowed_transitions(order.status)

        return order, sorted(allowed, key=lambda s: list(OrderStatus).index(s))

    async def get_order_statistics(self, actor: User) -> dict[str, Any]:
        """
        Order counts and totals per status, plus delivered revenue.

        Raises:
            OrderAccessDeniedError: If the actor is not an admin
        """
        self._require_admin(actor)
        return await self.repository.get_order_statistics()

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: Union[OrderStatus, str],
        actor: User,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Move an order to ``new_status`` on behalf of a vendor or admin.

        Checks run in a fixed order: the order must exist, the actor must
        be allowed to change it, and the transition must be an edge of the
        lifecycle graph.

        Raises:
            OrderValidationError: If new_status is not a known status
            OrderNotFoundError: If the order does not exist
            OrderAccessDeniedError: If the actor may not change the order
            InvalidTransitionError: If the transition is not allowed
            OrderStatusConflictError: If the status changed concurrently
        """
        if not isinstance(new_status, OrderStatus):
            new_status = OrderStatus.from_string(new_status)

        logger.info(
            "Updating order status",
            order_id=str(order_id),
            new_status=new_status.value,
            user_id=str(actor.id),
        )

        order = await self._load_order(order_id)
        self.access_policy.ensure_can_transition(order, actor)
        self.state_machine.validate_transition(order.status, new_status, order_id=order.id)

        return await self._apply_transition(order, new_status, actor, reason)

    async def request_cancellation(
        self,
        order_id: uuid.UUID,
        actor: User,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Cancel an order on behalf of the customer who placed it.

        Only possible while the order is ``pending`` or ``confirmed``.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderAccessDeniedError: If the actor is not the owning customer
            InvalidTransitionError: If the order is past the cancellable window
            OrderStatusConflictError: If the status changed concurrently
        """
        order = await self._load_order(order_id)
        self.access_policy.ensure_can_request_cancellation(order, actor)

        if not order.status.customer_can_cancel():
            raise InvalidTransitionError(
                f"Order cannot be cancelled once it is {order.status.value}",
                current_status=order.status,
                target_status=OrderStatus.CANCELLED,
                order_id=str(order.id),
            )

        return await self._apply_transition(
            order,
            OrderStatus.CANCELLED,
            actor,
            reason or "Cancelled by customer",
        )

    async def _apply_transition(
        self,
        order: Order,
        new_status: OrderStatus,
        actor: User,
        reason: Optional[str],
    ) -> Order:
        order_id = order.id
        old_status = order.status
        actor_id = actor.id
        actor_role = actor.role.value

        # On a lost race the session is left as is; the caller's session
        # scope rolls it back.
        updated = await self.repository.compare_and_set_status(
            order_id,
            expected_status=old_status,
            new_status=new_status,
            changed_by=actor_id,
            actor_role=actor_role,
            reason=reason,
        )
        if not updated:
            raise OrderStatusConflictError(
                "Order status was changed by another request; reload and retry",
                current_status=old_status,
                target_status=new_status,
                order_id=str(order_id),
            )

        await self.session.commit()

        order = await self.repository.get_order_by_id(order_id, refresh=True)

        logger.info(
            "Order status updated successfully",
            order_id=str(order_id),
            old_status=old_status.value,
            new_status=new_status.value,
            user_id=str(actor_id),
        )

        await self.dispatcher.dispatch(
            OrderStatusChangedEvent(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                vendor_id=order.vendor_id,
                from_status=old_status,
                to_status=new_status,
                changed_by=actor_id,
                actor_role=actor_role,
                reason=reason,
            )
        )

        return order

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_order(self, order_id: uuid.UUID) -> Order:
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    def _require_admin(self, actor: User) -> None:
        if not actor.is_admin:
            raise OrderAccessDeniedError(
                "Admin access required",
                user_id=str(actor.id),
                role=actor.role.value,
            )

    def _parse_status_filter(
        self, status: Optional[Union[OrderStatus, str]]
    ) -> Optional[OrderStatus]:
        if status is None or isinstance(status, OrderStatus):
            return status
        return OrderStatus.from_string(status)

    def _parse_enum(self, enum_cls, value, field):
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).lower())
        except ValueError:
            raise OrderValidationError(
                f"Invalid {field}: {value}",
                field=field,
                value=value,
            ) from None

    def _validate_pagination(self, skip: int, limit: int) -> None:
        if skip < 0:
            raise OrderValidationError("skip cannot be negative", field="skip", value=skip)
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise OrderValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}",
                field="limit",
                value=limit,
            )

    def _validate_items(self, items: Sequence[dict[str, Any]]) -> dict[uuid.UUID, int]:
        """
        Validate cart lines.

        Returns:
            Mapping of product id to total requested quantity

        Raises:
            OrderValidationError: If validation fails
        """
        if not items:
            raise OrderValidationError(
                "Order must contain at least one item",
                item_count=0,
            )

        quantities: dict[uuid.UUID, int] = {}
        for item in items:
            if "product_id" not in item:
                raise OrderValidationError("Item missing product_id", item=item)
            try:
                product_id = uuid.UUID(str(item["product_id"]))
            except ValueError:
                raise OrderValidationError(
                    "Item product_id is not a valid id",
                    product_id=str(item["product_id"]),
                ) from None

            quantity = item.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                raise OrderValidationError(
                    "Item quantity must be a positive integer",
                    product_id=str(product_id),
                    quantity=quantity,
                )
            quantities[product_id] = quantities.get(product_id, 0) + quantity

        return quantities

    def _validate_delivery_address(self, delivery_address: dict[str, Any]) -> None:
        for field in REQUIRED_ADDRESS_FIELDS:
            if not delivery_address.get(field):
                raise OrderValidationError(
                    f"Delivery address missing required field: {field}",
                    field=field,
                )

    def _normalize_address(self, delivery_address: dict[str, Any]) -> dict[str, Any]:
        return {
            "line1": delivery_address["line1"],
            "line2": delivery_address.get("line2"),
            "city": delivery_address["city"],
            "state": delivery_address["state"],
            "postal_code": delivery_address["postal_code"],
            "country": delivery_address.get("country") or "IN",
        }

    def _calculate_order_pricing(
        self,
        lines: Sequence[dict[str, Any]],
        delivery_option: DeliveryOption,
        discount: Union[Decimal, int, str],
    ) -> dict[str, Decimal]:
        """
        Calculate order pricing.

        Returns:
            Dictionary with subtotal, shipping, discount and total

        Raises:
            OrderValidationError: If the discount is out of range
        """
        subtotal = sum((line["total"] for line in lines), Decimal("0.00"))

        if delivery_option == DeliveryOption.EXPRESS:
            shipping = _money(self.settings.express_shipping)
        else:
            shipping = _money(self.settings.standard_shipping)

        try:
            discount = _money(discount)
        except InvalidOperation:
            raise OrderValidationError(
                f"Invalid discount: {discount}", field="discount"
            ) from None

        if discount < 0 or discount > subtotal + shipping:
            raise OrderValidationError(
                "Discount must be between 0 and the order amount",
                discount=str(discount),
                subtotal=str(subtotal),
                shipping=str(shipping),
            )

        return {
            "subtotal": subtotal,
            "shipping": shipping,
            "discount": discount,
            "total": subtotal + shipping - discount,
        }
