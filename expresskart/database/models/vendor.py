"""
Vendor model: a local business selling through the marketplace.

A vendor profile is owned by exactly one user with the ``vendor`` role;
vendor users act on orders through the profile they own.
"""

import enum
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Enum as SQLEnum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from expresskart.database.base import BaseModel, enum_values

if TYPE_CHECKING:
    from expresskart.database.models.user import User


class VendorStatus(str, enum.Enum):
    """Vendor onboarding status managed by admins."""

    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class Vendor(BaseModel):
    """
    Vendor profile.

    Attributes:
        id: Unique vendor identifier (UUID)
        owner_user_id: User who owns and operates this vendor
        business_name: Public business name
        status: Onboarding status; only approved vendors receive orders
    """

    __tablename__ = "vendors"

    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
        comment="User who owns the vendor profile",
    )

    business_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Public business name",
    )

    status: Mapped[VendorStatus] = mapped_column(
        SQLEnum(
            VendorStatus,
            name="vendor_status",
            values_callable=enum_values,
        ),
        nullable=False,
        default=VendorStatus.PENDING,
        index=True,
        comment="Onboarding status",
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="vendor_profile",
        foreign_keys=[owner_user_id],
        lazy="raise",
    )

    __table_args__ = ({"comment": "Vendor profiles owned by vendor users"},)

    @property
    def is_approved(self) -> bool:
        return self.status == VendorStatus.APPROVED
