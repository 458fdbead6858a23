"""
Order models for purchase records, line items and status audit trail.

An order is a point-in-time record of a customer's purchase from a single
vendor. Money fields, the delivery address and the customer snapshot are
fixed at checkout; afterwards only the lifecycle status changes, and every
change is appended to ``order_status_history``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expresskart.database.base import (
    Base,
    BaseModel,
    JSONDocument,
    UUIDMixin,
    enum_values,
    utcnow,
)
from expresskart.services.orders.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

if TYPE_CHECKING:
    from expresskart.database.models.user import User

MONEY = Numeric(precision=10, scale=2)
AMOUNT_TOLERANCE = Decimal("0.01")


def _order_status_column_type() -> SQLEnum:
    return SQLEnum(
        OrderStatus,
        name="order_status",
        values_callable=enum_values,
    )


class Order(BaseModel):
    """
    Customer order placed with a single vendor.

    Attributes:
        id: Unique order identifier (UUID)
        order_number: Human-readable order number, unique and immutable
        customer_id: User who placed the order
        vendor_id: Vendor fulfilling every line of the order
        status: Current lifecycle status
        payment_status: Payment status captured at checkout
        payment_method: Payment method chosen at checkout
        subtotal: Sum of line totals
        shipping: Delivery charge
        discount: Discount applied at checkout
        total: subtotal + shipping - discount
        delivery_address: Address snapshot taken at checkout
        customer_snapshot: Customer name/email/phone taken at checkout
        notes: Optional customer note
        created_at: Placement timestamp (from BaseModel)
        updated_at: Last status change timestamp (from BaseModel)
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="User who placed the order",
    )

    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Vendor fulfilling the order",
    )

    status: Mapped[OrderStatus] = mapped_column(
        _order_status_column_type(),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current order status",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            values_callable=enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Payment status captured at checkout",
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(
            PaymentMethod,
            name="payment_method",
            values_callable=enum_values,
        ),
        nullable=False,
        comment="Payment method chosen at checkout",
    )

    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    shipping: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0.00")
    )
    discount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0.00")
    )
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    delivery_address: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Delivery address snapshot",
    )

    customer_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Customer name, email and phone at checkout",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
        comment="Customer note",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        lazy="raise",
        cascade="all, delete-orphan",
    )

    customer: Mapped["User"] = relationship(
        "User",
        back_populates="orders",
        foreign_keys=[customer_id],
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_orders_customer_created", "customer_id", "created_at"),
        Index("ix_orders_vendor_created", "vendor_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("shipping >= 0", name="ck_orders_shipping_non_negative"),
        CheckConstraint("discount >= 0", name="ck_orders_discount_non_negative"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
        {"comment": "Customer orders with lifecycle status"},
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"status={self.status.value}, total={self.total})>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def calculate_total(self) -> Decimal:
        """Total implied by the money components."""
        return self.subtotal + self.shipping - self.discount

    def validate_amounts(self) -> tuple[bool, list[str]]:
        """
        Check the money invariants of the order and its lines.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        for field_name in ("subtotal", "shipping", "discount", "total"):
            if getattr(self, field_name) < 0:
                errors.append(f"{field_name} cannot be negative")

        line_sum = sum((item.total for item in self.items), Decimal("0.00"))
        if abs(line_sum - self.subtotal) > AMOUNT_TOLERANCE:
            errors.append(
                f"Subtotal mismatch: lines sum to {line_sum}, got {self.subtotal}"
            )

        for item in self.items:
            if abs(item.unit_price * item.quantity - item.total) > AMOUNT_TOLERANCE:
                errors.append(f"Line total mismatch for product {item.product_id}")

        calculated_total = self.calculate_total()
        if abs(self.total - calculated_total) > AMOUNT_TOLERANCE:
            errors.append(
                f"Total amount mismatch: expected {calculated_total}, got {self.total}"
            )

        return len(errors) == 0, errors

    def to_dict(self, include_items: bool = True) -> dict[str, Any]:
        """
        Convert order to a JSON-friendly dictionary.

        Args:
            include_items: Whether to include line items
        """
        data = {
            "id": str(self.id),
            "order_number": self.order_number,
            "customer_id": str(self.customer_id),
            "vendor_id": str(self.vendor_id),
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method.value,
            "subtotal": str(self.subtotal),
            "shipping": str(self.shipping),
            "discount": str(self.discount),
            "total": str(self.total),
            "delivery_address": dict(self.delivery_address),
            "customer": dict(self.customer_snapshot),
            "notes": self.notes,
            "is_terminal": self.is_terminal,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_items:
            data["items"] = [item.to_dict() for item in self.items]

        return data


class OrderItem(Base, UUIDMixin):
    """
    Single order line.

    Attributes:
        id: Unique order item identifier (UUID)
        order_id: Parent order
        position: Line position within the order
        product_id: Ordered product
        vendor_id: Vendor of the product at checkout
        product_title: Product title at checkout
        quantity: Units ordered
        unit_price: Price per unit at checkout
        total: unit_price * quantity
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Vendor of the product at checkout",
    )

    product_title: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="items",
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
        CheckConstraint("total >= 0", name="ck_order_items_total_non_negative"),
        {"comment": "Individual lines of an order"},
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "product_id": str(self.product_id),
            "vendor_id": str(self.vendor_id),
            "product_title": self.product_title,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total": str(self.total),
        }


class OrderStatusHistory(Base, UUIDMixin):
    """
    Append-only record of one status change.

    Attributes:
        order_id: Order whose status changed
        from_status: Status before the change
        to_status: Status after the change
        changed_by: User who made the change
        actor_role: Role the user acted in
        reason: Optional free-text reason
        created_at: When the change was committed
    """

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_status: Mapped[OrderStatus] = mapped_column(
        _order_status_column_type(), nullable=False
    )

    to_status: Mapped[OrderStatus] = mapped_column(
        _order_status_column_type(), nullable=False
    )

    changed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    actor_role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    order: Mapped["Order"] = relationship(
        "Order",
        back_populates="status_history",
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_order_status_history_order_created", "order_id", "created_at"),
        {"comment": "Order status change history for audit trail"},
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "order_id": str(self.order_id),
            "from_status": self.from_status.value,
            "to_status": self.to_status.value,
            "changed_by": str(self.changed_by) if self.changed_by else None,
            "actor_role": self.actor_role,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
