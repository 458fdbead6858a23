"""
Order data access repository with transaction support.

This module implements the OrderRepository class providing async methods for
creating orders with items, listing orders by owner, reading status history,
and changing order status through a single conditional UPDATE. Storage
failures are wrapped in ``OrderRepositoryError`` with structured context.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from expresskart.core.logging import get_logger
from expresskart.database.base import utcnow
from expresskart.database.models.order import Order, OrderItem, OrderStatusHistory
from expresskart.database.models.product import Product
from expresskart.database.models.vendor import Vendor
from expresskart.services.orders.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from expresskart.services.orders.exceptions import (
    OrderNumberTakenError,
    OrderRepositoryError,
)

logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "EK"


class OrderRepository:
    """
    Repository for order data access operations.

    Reads always go to the database; the repository keeps no cache of
    order rows between calls.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def create_order_with_items(
        self,
        order_number: str,
        customer_id: uuid.UUID,
        vendor_id: uuid.UUID,
        items: Sequence[dict[str, Any]],
        subtotal: Decimal,
        shipping: Decimal,
        discount: Decimal,
        total: Decimal,
        payment_method: PaymentMethod,
        delivery_address: dict[str, Any],
        customer_snapshot: dict[str, Any],
        notes: Optional[str] = None,
    ) -> Order:
        """
        Create order with items and the initial history row atomically.

        Args:
            order_number: Human-readable order number
            customer_id: Customer placing the order
            vendor_id: Vendor fulfilling the order
            items: Line dicts with product_id, product_title, quantity,
                unit_price and total
            subtotal: Sum of line totals
            shipping: Delivery charge
            discount: Discount amount
            total: Order total
            payment_method: Chosen payment method
            delivery_address: Address snapshot
            customer_snapshot: Customer contact snapshot
            notes: Optional customer note

        Returns:
            Created order with items loaded

        Raises:
            OrderNumberTakenError: If order_number is already in use
            OrderRepositoryError: If order creation fails
        """
        try:
            logger.info(
                "Creating order with items",
                customer_id=str(customer_id),
                vendor_id=str(vendor_id),
                order_number=order_number,
                item_count=len(items),
            )

            order = Order(
                order_number=order_number,
                customer_id=customer_id,
                vendor_id=vendor_id,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                payment_method=payment_method,
                subtotal=subtotal,
                shipping=shipping,
                discount=discount,
                total=total,
                delivery_address=delivery_address,
                customer_snapshot=customer_snapshot,
                notes=notes,
            )
            order.items = [
                OrderItem(
                    position=position,
                    product_id=item_data["product_id"],
                    vendor_id=vendor_id,
                    product_title=item_data["product_title"],
                    quantity=item_data["quantity"],
                    unit_price=item_data["unit_price"],
                    total=item_data["total"],
                )
                for position, item_data in enumerate(items)
            ]
            self.session.add(order)
            await self.session.flush()

            self.session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    from_status=OrderStatus.PENDING,
                    to_status=OrderStatus.PENDING,
                    changed_by=customer_id,
                    actor_role="customer",
                    reason="Order created",
                )
            )
            await self.session.flush()

            logger.info(
                "Order created successfully",
                order_id=str(order.id),
                order_number=order_number,
                item_count=len(order.items),
            )

            return order

        except IntegrityError as e:
            await self.session.rollback()
            if "order_number" in str(e.orig):
                logger.warning(
                    "Order number already taken",
                    order_number=order_number,
                )
                raise OrderNumberTakenError(
                    "Order number already in use",
                    order_number=order_number,
                ) from e
            logger.error(
                "Order creation failed - integrity error",
                error=str(e),
                order_number=order_number,
            )
            raise OrderRepositoryError(
                "Order creation failed due to data integrity violation",
                order_number=order_number,
                error=str(e),
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Order creation failed - database error",
                error=str(e),
                order_number=order_number,
            )
            raise OrderRepositoryError(
                "Order creation failed due to database error",
                order_number=order_number,
                error=str(e),
            ) from e

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        refresh: bool = False,
    ) -> Optional[Order]:
        """
        Get order by ID with its items.

        Args:
            order_id: Order identifier
            refresh: Overwrite any copy already held by the session

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            logger.debug("Fetching order by ID", order_id=str(order_id))

            stmt = select(Order).where(Order.id == order_id)
            if refresh:
                stmt = stmt.execution_options(populate_existing=True)

            result = await self.session.execute(stmt)
            order = result.scalar_one_or_none()

            if order:
                logger.debug("Order found", order_id=str(order_id))
            else:
                logger.debug("Order not found", order_id=str(order_id))

            return order

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        """
        Get order by order number.

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            logger.debug("Fetching order by number", order_number=order_number)

            result = await self.session.execute(
                select(Order).where(Order.order_number == order_number)
            )
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order by number",
                order_number=order_number,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order by number",
                order_number=order_number,
                error=str(e),
            ) from e

    async def list_orders(
        self,
        customer_id: Optional[uuid.UUID] = None,
        vendor_id: Optional[uuid.UUID] = None,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List orders newest first with pagination.

        Args:
            customer_id: Only orders placed by this customer
            vendor_id: Only orders fulfilled by this vendor
            status: Optional status filter
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            logger.debug(
                "Fetching orders",
                customer_id=str(customer_id) if customer_id else None,
                vendor_id=str(vendor_id) if vendor_id else None,
                status=status.value if status else None,
                skip=skip,
                limit=limit,
            )

            conditions = []
            if customer_id is not None:
                conditions.append(Order.customer_id == customer_id)
            if vendor_id is not None:
                conditions.append(Order.vendor_id == vendor_id)
            if status is not None:
                conditions.append(Order.status == status)

            stmt = (
                select(Order)
                .where(*conditions)
                .order_by(Order.created_at.desc(), Order.order_number.desc())
                .offset(skip)
                .limit(limit)
            )

            count_stmt = (
                select(func.count())
                .select_from(Order)
                .where(*conditions)
            )

            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)

            orders = result.scalars().all()
            total_count = count_result.scalar_one()

            logger.debug("Orders fetched", count=len(orders), total=total_count)

            return orders, total_count

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch orders",
                customer_id=str(customer_id) if customer_id else None,
                vendor_id=str(vendor_id) if vendor_id else None,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch orders",
                error=str(e),
            ) from e

    async def compare_and_set_status(
        self,
        order_id: uuid.UUID,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        changed_by: Optional[uuid.UUID] = None,
        actor_role: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Move an order from ``expected_status`` to ``new_status`` in one statement.

        The UPDATE only matches while the row still has ``expected_status``,
        so of several concurrent callers that observed the same status at
        most one succeeds. On success a history row is added in the same
        transaction. Only ``status`` and ``updated_at`` are written.

        Returns:
            True if the row was updated, False if its status had moved on

        Raises:
            OrderRepositoryError: If the update fails
        """
        try:
            logger.info(
                "Updating order status",
                order_id=str(order_id),
                expected_status=expected_status.value,
                new_status=new_status.value,
            )

            stmt = (
                update(Order)
                .where(Order.id == order_id, Order.status == expected_status)
                .values(status=new_status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)

            if result.rowcount != 1:
                logger.warning(
                    "Order status changed concurrently",
                    order_id=str(order_id),
                    expected_status=expected_status.value,
                    new_status=new_status.value,
                )
                return False

            self.session.add(
                OrderStatusHistory(
                    order_id=order_id,
                    from_status=expected_status,
                    to_status=new_status,
                    changed_by=changed_by,
                    actor_role=actor_role,
                    reason=reason,
                )
            )
            await self.session.flush()

            logger.info(
                "Order status updated",
                order_id=str(order_id),
                old_status=expected_status.value,
                new_status=new_status.value,
            )

            return True

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to update order status",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def get_status_history(
        self, order_id: uuid.UUID
    ) -> Sequence[OrderStatusHistory]:
        """
        Get status history for an order, oldest first.

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            result = await self.session.execute(
                select(OrderStatusHistory)
                .where(OrderStatusHistory.order_id == order_id)
                .order_by(OrderStatusHistory.created_at.asc())
            )
            return result.scalars().all()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order status history",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order status history",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def next_order_number(self, now: Optional[datetime] = None) -> str:
        """
        Generate the next order number for the day of ``now``.

        Format is ``EK`` + ``YYMMDD`` + a 4-digit sequence that restarts
        every day, e.g. ``EK2610180001``.

        Raises:
            OrderRepositoryError: If query fails
        """
        now = now or utcnow()
        prefix = f"{ORDER_NUMBER_PREFIX}{now.strftime('%y%m%d')}"

        try:
            result = await self.session.execute(
                select(func.max(Order.order_number)).where(
                    Order.order_number.like(f"{prefix}%")
                )
            )
            latest = result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to generate order number",
                prefix=prefix,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to generate order number",
                prefix=prefix,
                error=str(e),
            ) from e

        sequence = int(latest[len(prefix):]) + 1 if latest else 1
        return f"{prefix}{sequence:04d}"

    async def get_order_statistics(self) -> dict[str, Any]:
        """
        Get order counts and amounts per status.

        Returns:
            Dictionary with total_orders, status_breakdown and
            total_revenue (sum of delivered order totals)

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            logger.debug("Fetching order statistics")

            status_stmt = select(
                Order.status,
                func.count(Order.id),
                func.sum(Order.total),
            ).group_by(Order.status)

            status_result = await self.session.execute(status_stmt)

            status_breakdown: dict[str, dict[str, Any]] = {}
            total_orders = 0
            total_revenue = Decimal("0.00")

            for status, count, amount in status_result.all():
                amount = Decimal(str(amount)) if amount is not None else Decimal("0.00")
                status_breakdown[status.value] = {"count": count, "total": amount}
                total_orders += count
                if status == OrderStatus.DELIVERED:
                    total_revenue += amount

            statistics = {
                "total_orders": total_orders,
                "status_breakdown": status_breakdown,
                "total_revenue": total_revenue,
            }

            logger.debug(
                "Order statistics fetched",
                total_orders=total_orders,
                total_revenue=str(total_revenue),
            )

            return statistics

        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch order statistics",
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to fetch order statistics",
                error=str(e),
            ) from e

    async def get_products(self, product_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, Product]:
        """
        Load products by id.

        Returns:
            Mapping of product id to product for the ids that exist

        Raises:
            OrderRepositoryError: If query fails
        """
        try:
            result = await self.session.execute(
                select(Product).where(Product.id.in_(list(product_ids)))
            )
            return {product.id: product for product in result.scalars().all()}

        except SQLAlchemyError as e:
            logger.error("Failed to fetch products", error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch products",
                error=str(e),
            ) from e

    async def get_vendor(self, vendor_id: uuid.UUID) -> Optional[Vendor]:
        try:
            return await self.session.get(Vendor, vendor_id)
        except SQLAlchemyError as e:
            logger.error("Failed to fetch vendor", vendor_id=str(vendor_id), error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch vendor",
                vendor_id=str(vendor_id),
                error=str(e),
            ) from e
