"""
Order management API endpoints for ExpressKart.

This module implements the FastAPI router for the order lifecycle: checkout,
role-scoped listings, ownership-checked reads, vendor/admin status changes,
and customer cancellation requests. Service errors map to HTTP statuses:
not found 404, access denied 403, invalid or conflicting transition 409,
invalid input 400, storage failure 500.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.encoders import jsonable_encoder

from expresskart.api.deps import (
    CurrentAdmin,
    CurrentCustomer,
    CurrentUser,
    CurrentVendor,
    OrderServiceDep,
)
from expresskart.core.logging import get_logger
from expresskart.schemas.orders import (
    AllowedTransitionsResponse,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    OrderStatusUpdateRequest,
    StatusHistoryResponse,
)
from expresskart.services.orders.enums import OrderStatus
from expresskart.services.orders.exceptions import (
    InvalidTransitionError,
    OrderAccessDeniedError,
    OrderNotFoundError,
    OrderRepositoryError,
    OrderServiceError,
    OrderStatusConflictError,
    OrderValidationError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

ERROR_STATUS_CODES: list[tuple[type[OrderServiceError], int, str]] = [
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND, "ORDER_NOT_FOUND"),
    (OrderAccessDeniedError, status.HTTP_403_FORBIDDEN, "FORBIDDEN"),
    (OrderStatusConflictError, status.HTTP_409_CONFLICT, "STATUS_CONFLICT"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    (OrderValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
    (OrderRepositoryError, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR"),
]


def to_http_exception(error: OrderServiceError) -> HTTPException:
    """Translate an order service error into an HTTPException."""
    for error_type, status_code, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            break
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        code = "ORDER_SERVICE_ERROR"

    if status_code >= 500:
        detail = {"code": code, "message": "Internal server error"}
    else:
        detail = {"code": code, "message": error.message, **error.context}
        if isinstance(error, InvalidTransitionError):
            if error.current_status is not None:
                detail["current_status"] = error.current_status
            if error.target_status is not None:
                detail["target_status"] = error.target_status

    return HTTPException(status_code=status_code, detail=jsonable_encoder(detail))


def _log_failure(operation: str, error: OrderServiceError, **context) -> None:
    event = {
        **error.context,
        **context,
        "error": error.message,
        "error_type": type(error).__name__,
    }
    if isinstance(error, OrderRepositoryError):
        logger.error(f"{operation} failed", **event)
    else:
        logger.warning(f"{operation} rejected", **event)


def _list_response(orders, total: int, skip: int, limit: int) -> OrderListResponse:
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
    description="Place an order for products of a single vendor",
)
async def create_order(
    request: OrderCreateRequest,
    current_user: CurrentCustomer,
    order_service: OrderServiceDep,
) -> OrderResponse:
    """
    Create new order from the customer's cart.

    Raises:
        HTTPException: 400 if validation fails, 500 if creation fails
    """
    user_id = str(current_user.id)

    logger.info(
        "Creating order",
        user_id=user_id,
        item_count=len(request.items),
    )

    try:
        order = await order_service.create_order(
            actor=current_user,
            items=[item.model_dump() for item in request.items],
            delivery_address=request.delivery_address.model_dump(),
            payment_method=request.payment_method,
            delivery_option=request.delivery_option,
            discount=request.discount,
            notes=request.notes,
        )
    except OrderServiceError as e:
        _log_failure("Order creation", e, user_id=user_id)
        raise to_http_exception(e) from e

    return OrderResponse.model_validate(order)


@router.get(
    "/my",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Orders placed by the authenticated user, newest first",
)
async def list_my_orders(
    current_user: CurrentUser,
    order_service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    user_id = str(current_user.id)

    try:
        orders, total = await order_service.list_orders_for_customer(
            current_user, status=status_filter, skip=skip, limit=limit
        )
    except OrderServiceError as e:
        _log_failure("Customer order listing", e, user_id=user_id)
        raise to_http_exception(e) from e

    return _list_response(orders, total, skip, limit)


@router.get(
    "/vendor",
    response_model=OrderListResponse,
    summary="List vendor orders",
    description="Orders fulfilled by the authenticated vendor, newest first",
)
async def list_vendor_orders(
    current_user: CurrentVendor,
    order_service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    user_id = str(current_user.id)

    try:
        orders, total = await order_service.list_orders_for_vendor(
            current_user, status=status_filter, skip=skip, limit=limit
        )
    except OrderServiceError as e:
        _log_failure("Vendor order listing", e, user_id=user_id)
        raise to_http_exception(e) from e

    return _list_response(orders, total, skip, limit)


@router.get(
    "/",
    response_model=OrderListResponse,
    summary="List all orders",
    description="Every order in the marketplace, newest first (admin only)",
)
async def list_all_orders(
    current_user: CurrentAdmin,
    order_service: OrderServiceDep,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    user_id = str(current_user.id)

    try:
        orders, total = await order_service.list_all_orders(
            current_user, status=status_filter, skip=skip, limit=limit
        )
    except OrderServiceError as e:
        _log_failure("Order listing", e, user_id=user_id)
        raise to_http_exception(e) from e

    return _list_response(orders, total, skip, limit)


@router.get(
    "/stats",
    response_model=OrderStatisticsResponse,
    summary="Order statistics",
    description="Order counts and totals per status (admin only)",
)
async def get_order_statistics(
    current_user: CurrentAdmin,
    order_service: OrderServiceDep,
) -> OrderStatisticsResponse:
    user_id = str(current_user.id)

    try:
        statistics = await order_service.get_order_statistics(current_user)
    except OrderServiceError as e:
        _log_failure("Order statistics", e, user_id=user_id)
        raise to_http_exception(e) from e

    return OrderStatisticsResponse.model_validate(statistics)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order details",
    description="Retrieve an order the caller owns, fulfils, or administers",
)
async def get_order(
    order_id: UUID,
    current_user: CurrentUser,
    order_service: OrderServiceDep,
) -> OrderResponse:
    """
    Get order details.

    Raises:
        HTTPException: 404 if order not found, 403 if not authorized
    """
    user_id = str(current_user.id)

    try:
        order = await order_service.get_order(order_id, current_user)
    except OrderServiceError as e:
        _log_failure(
            "Order retrieval", e, order_id=str(order_id), user_id=user_id
        )
        raise to_http_exception(e) from e

    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/history",
    response_model=list[StatusHistoryResponse],
    summary="Get order status history",
)
async def get_order_history(
    order_id: UUID,
    current_user: CurrentUser,
    order_service: OrderServiceDep,
) -> list[StatusHistoryResponse]:
    user_id = str(current_user.id)

    try:
        history = await order_service.get_order_history(order_id, current_user)
    except OrderServiceError as e:
        _log_failure(
            "Order history retrieval",
            e,
            order_id=str(order_id),
            user_id=user_id,
        )
        raise to_http_exception(e) from e

    return [StatusHistoryResponse.model_validate(entry) for entry in history]


@router.get(
    "/{order_id}/transitions",
    response_model=AllowedTransitionsResponse,
    summary="Get allowed status changes",
)
async def get_allowed_transitions(
    order_id: UUID,
    current_user: CurrentUser,
    order_service: OrderServiceDep,
) -> AllowedTransitionsResponse:
    user_id = str(current_user.id)

    try:
        order, allowed = await order_service.get_allowed_transitions(
            order_id, current_user
        )
    except OrderServiceError as e:
        _log_failure(
            "Allowed transition lookup",
            e,
            order_id=str(order_id),
            user_id=user_id,
        )
        raise to_http_exception(e) from e

    return AllowedTransitionsResponse(
        order_id=order.id,
        current_status=order.status,
        allowed_transitions=allowed,
    )


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Move an order along its lifecycle (owning vendor or admin)",
)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdateRequest,
    current_user: CurrentUser,
    order_service: OrderServiceDep,
) -> OrderResponse:
    """
    Update order status.

    Raises:
        HTTPException: 404 if order not found, 403 if not authorized,
            409 if the transition is not allowed or lost a race
    """
    user_id = str(current_user.id)

    logger.info(
        "Updating order status",
        order_id=str(order_id),
        new_status=request.status.value,
        user_id=user_id,
    )

    try:
        order = await order_service.update_order_status(
            order_id,
            request.status,
            current_user,
            reason=request.reason,
        )
    except OrderServiceError as e:
        _log_failure(
            "Order status update",
            e,
            order_id=str(order_id),
            user_id=user_id,
        )
        raise to_http_exception(e) from e

    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancel a pending or confirmed order (owning customer only)",
)
async def cancel_order(
    order_id: UUID,
    current_user: CurrentUser,
    order_service: OrderServiceDep,
    request: Optional[OrderCancelRequest] = None,
) -> OrderResponse:
    """
    Cancel an order on behalf of the customer who placed it.

    Raises:
        HTTPException: 404 if order not found, 403 if not the owner,
            409 if the order can no longer be cancelled
    """
    user_id = str(current_user.id)

    try:
        order = await order_service.request_cancellation(
            order_id,
            current_user,
            reason=request.reason if request else None,
        )
    except OrderServiceError as e:
        _log_failure(
            "Order cancellation",
            e,
            order_id=str(order_id),
            user_id=user_id,
        )
        raise to_http_exception(e) from e

    return OrderResponse.model_validate(order)
