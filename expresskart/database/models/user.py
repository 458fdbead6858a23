"""
User model with role management.

Users are created by the ExpressKart account service; this service reads
them to resolve the caller's identity and role and to snapshot customer
contact details onto new orders.
"""

import enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expresskart.database.base import BaseModel, enum_values

if TYPE_CHECKING:
    from expresskart.database.models.order import Order
    from expresskart.database.models.vendor import Vendor


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"


class User(BaseModel):
    """
    Marketplace account.

    Attributes:
        id: Unique user identifier (UUID)
        name: Display name
        email: Email address (unique)
        phone: Contact phone number
        role: Role used for access control
        is_active: Whether the account may use the API
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Display name",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="User email address",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Contact phone number",
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            values_callable=enum_values,
        ),
        nullable=False,
        default=UserRole.CUSTOMER,
        index=True,
        comment="User role for access control",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Account active status",
    )

    vendor_profile: Mapped[Optional["Vendor"]] = relationship(
        "Vendor",
        back_populates="owner",
        uselist=False,
        lazy="selectin",
    )

    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="customer",
        lazy="raise",
    )

    __table_args__ = ({"comment": "Marketplace user accounts"},)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == UserRole.VENDOR

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER
