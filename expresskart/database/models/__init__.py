"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic auto-generation.
Models are imported here to ensure they are registered with the Base metadata
for proper migration generation and relationship resolution.
"""

from expresskart.database.base import (
    Base,
    BaseModel,
    TimestampMixin,
    UUIDMixin,
)
from expresskart.database.models.user import User, UserRole
from expresskart.database.models.vendor import Vendor, VendorStatus
from expresskart.database.models.product import Product
from expresskart.database.models.order import Order, OrderItem, OrderStatusHistory

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "User",
    "UserRole",
    "Vendor",
    "VendorStatus",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
]
