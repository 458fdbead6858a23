"""
Product model (catalog subset needed to price and attribute order lines).
"""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from expresskart.database.base import BaseModel


class Product(BaseModel):
    """
    Catalog product sold by a single vendor.

    Attributes:
        id: Unique product identifier (UUID)
        vendor_id: Vendor selling the product
        title: Product title shown to customers
        price: Current selling price
        is_active: Whether the product can be ordered
    """

    __tablename__ = "products"

    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Vendor selling the product",
    )

    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Product title",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Current selling price",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the product can be ordered",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        {"comment": "Catalog products"},
    )
