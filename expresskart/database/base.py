"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase with async attribute
support, mixins for UUID primary keys and timestamps, and shared column
types. Column types are kept portable (generic ``Uuid`` and JSON with a
PostgreSQL JSONB variant) so the same models run on PostgreSQL in
production and on SQLite in the test suite.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from expresskart.core.logging import get_logger

logger = get_logger(__name__)

# JSON document column, stored as JSONB on PostgreSQL
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides dictionary conversion and a primary-key based ``repr``.
    """

    __abstract__ = True

    def to_dict(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Convert model columns to a JSON-friendly dictionary.

        Args:
            exclude: Set of column names to leave out

        Returns:
            Dictionary representation of the model's columns
        """
        exclude = exclude or set()
        result: Dict[str, Any] = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, datetime):
                result[column.name] = value.isoformat()
            elif isinstance(value, uuid.UUID):
                result[column.name] = str(value)
            elif isinstance(value, Decimal):
                result[column.name] = str(value)
            elif isinstance(value, Enum):
                result[column.name] = value.value
            else:
                result[column.name] = value

        return result

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.name, None)
            if value is not None:
                pk_values.append(f"{column.name}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class UUIDMixin:
    """Mixin for a UUID primary key generated on the client side."""

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(as_uuid=True),
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
            comment="Unique identifier for the record",
        )


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Timestamps are set from Python so that they carry microsecond
    precision on every backend; the server default only covers rows
    inserted outside the ORM.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was created",
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
            comment="Timestamp when record was last updated",
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and timestamps.

    Example:
        class Vendor(BaseModel):
            __tablename__ = "vendors"

            business_name: Mapped[str] = mapped_column(String(200))
    """

    __abstract__ = True


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """
    Column value list for ``sqlalchemy.Enum(values_callable=...)``.

    Stores enum members by their string value instead of their name.
    """
    return [member.value for member in enum_cls]
