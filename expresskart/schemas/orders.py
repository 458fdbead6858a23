"""
Order management Pydantic schemas for API request/response validation.

This module defines the schemas for checkout, status changes, customer
cancellation requests, and the order, history and statistics responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from expresskart.services.orders.enums import (
    DeliveryOption,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)


class DeliveryAddressRequest(BaseModel):
    """Delivery address information."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    line1: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Street address",
    )
    line2: Optional[str] = Field(
        None,
        max_length=255,
        description="Apartment, floor or landmark",
    )
    city: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="City",
    )
    state: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="State",
    )
    postal_code: str = Field(
        ...,
        min_length=4,
        max_length=10,
        description="Postal code",
    )
    country: str = Field(
        default="IN",
        min_length=2,
        max_length=2,
        description="Country code (2 letters)",
    )

    @field_validator("country")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Validate country code format."""
        return v.upper()

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v: str) -> str:
        """Validate postal code format."""
        if not v.replace(" ", "").isalnum():
            raise ValueError("Postal code must be alphanumeric")
        return v


class OrderItemRequest(BaseModel):
    """Cart line for checkout; the price comes from the catalog."""

    model_config = ConfigDict(validate_assignment=True)

    product_id: UUID = Field(
        ...,
        description="Product ID",
    )
    quantity: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Quantity",
    )


class OrderCreateRequest(BaseModel):
    """Request schema for creating a new order."""

    model_config = ConfigDict(validate_assignment=True)

    items: list[OrderItemRequest] = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Order items",
    )
    delivery_address: DeliveryAddressRequest = Field(
        ...,
        description="Delivery address",
    )
    payment_method: PaymentMethod = Field(
        ...,
        description="Payment method",
    )
    delivery_option: DeliveryOption = Field(
        default=DeliveryOption.STANDARD,
        description="Delivery speed",
    )
    discount: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        decimal_places=2,
        description="Discount amount",
    )
    notes: Optional[str] = Field(
        None,
        max_length=1000,
        description="Order notes",
    )


class OrderStatusUpdateRequest(BaseModel):
    """Request schema for updating order status."""

    status: OrderStatus = Field(
        ...,
        description="New order status",
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Status change reason",
    )


class OrderCancelRequest(BaseModel):
    """Request schema for a customer cancellation."""

    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Cancellation reason",
    )


class CustomerSnapshotResponse(BaseModel):
    """Customer contact details captured at checkout."""

    name: str
    email: str
    phone: Optional[str] = None


class DeliveryAddressResponse(BaseModel):
    """Delivery address response."""

    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class OrderItemResponse(BaseModel):
    """Order item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    vendor_id: UUID
    product_title: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class OrderResponse(BaseModel):
    """Complete order response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_id: UUID
    vendor_id: UUID
    customer: CustomerSnapshotResponse = Field(validation_alias="customer_snapshot")
    delivery_address: DeliveryAddressResponse
    items: list[OrderItemResponse]
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    subtotal: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    """Paginated order list response."""

    items: list[OrderResponse]
    total: int
    skip: int
    limit: int


class StatusHistoryResponse(BaseModel):
    """One status change."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    from_status: OrderStatus
    to_status: OrderStatus
    changed_by: Optional[UUID] = None
    actor_role: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class AllowedTransitionsResponse(BaseModel):
    """Statuses the caller could move the order to."""

    order_id: UUID
    current_status: OrderStatus
    allowed_transitions: list[OrderStatus]


class StatusBreakdownEntry(BaseModel):
    count: int
    total: Decimal


class OrderStatisticsResponse(BaseModel):
    """Order counts and amounts per status."""

    total_orders: int
    status_breakdown: dict[str, StatusBreakdownEntry]
    total_revenue: Decimal
