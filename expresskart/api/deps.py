"""
FastAPI dependencies for authentication and authorization.

This module provides dependency functions for JWT authentication, role-based
access control, database session management, and the order service.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from expresskart.core.logging import get_logger, set_user_id
from expresskart.core.security import TokenError, get_token_user_id
from expresskart.database.connection import get_db
from expresskart.database.models.user import User, UserRole
from expresskart.services.orders.service import OrderService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Validate JWT token and retrieve current authenticated user.

    Args:
        credentials: HTTP Bearer token from Authorization header
        db: Database session

    Returns:
        User: Authenticated user object

    Raises:
        HTTPException: 401 if token is invalid, expired, or user not found;
            403 if the account is inactive
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        user_id = get_token_user_id(credentials.credentials)
    except TokenError as e:
        logger.warning(
            "Authentication failed: JWT validation error",
            code=e.code,
        )
        raise credentials_exception

    try:
        user = await db.get(User, user_id)
    except SQLAlchemyError as e:
        logger.error(
            "Database error during user retrieval",
            user_id=str(user_id),
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    if user is None:
        logger.warning(
            "Authentication failed: User not found",
            user_id=str(user_id),
        )
        raise credentials_exception

    if not user.is_active:
        logger.warning(
            "Authentication failed: User account is inactive",
            user_id=str(user.id),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )

    set_user_id(str(user.id))
    logger.debug(
        "User authenticated successfully",
        user_id=str(user.id),
        role=user.role.value,
    )

    return user


def require_role(*allowed_roles: UserRole):
    """
    Create a dependency that requires specific user roles.

    Args:
        *allowed_roles: Variable number of UserRole values that are allowed

    Returns:
        Callable: Dependency function that validates user role

    Example:
        @router.get("/stats", dependencies=[Depends(require_role(UserRole.ADMIN))])
        async def order_stats():
            ...
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in allowed_roles:
            logger.warning(
                "Access denied: Insufficient permissions",
                user_id=str(current_user.id),
                user_role=current_user.role.value,
                required_roles=[role.value for role in allowed_roles],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        return current_user

    return role_checker


async def get_current_admin(
    current_user: Annotated[User, Depends(require_role(UserRole.ADMIN))],
) -> User:
    """Dependency for endpoints requiring admin access."""
    return current_user


async def get_current_vendor(
    current_user: Annotated[User, Depends(require_role(UserRole.VENDOR))],
) -> User:
    """
    Dependency for endpoints requiring a vendor with a vendor profile.

    Raises:
        HTTPException: 403 if the vendor user has no vendor profile
    """
    if current_user.vendor_profile is None:
        logger.warning(
            "Access denied: Vendor profile missing",
            user_id=str(current_user.id),
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor profile required",
        )
    return current_user


async def get_current_customer(
    current_user: Annotated[User, Depends(require_role(UserRole.CUSTOMER))],
) -> User:
    """Dependency for endpoints requiring a customer."""
    return current_user


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> OrderService:
    """Order service bound to the request's database session."""
    return OrderService(db)


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
CurrentVendor = Annotated[User, Depends(get_current_vendor)]
CurrentCustomer = Annotated[User, Depends(get_current_customer)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
