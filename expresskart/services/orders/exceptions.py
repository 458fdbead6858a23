"""
Order subsystem error taxonomy.

Every error carries a human readable message plus structured context that
is logged and, for client errors, returned to the caller. None of these
are retryable; storage connectivity problems surface as
``OrderRepositoryError``.
"""

from typing import Any


class OrderServiceError(Exception):
    """Base exception for order subsystem errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class OrderNotFoundError(OrderServiceError):
    """Raised when an order id does not exist."""

    pass


class OrderAccessDeniedError(OrderServiceError):
    """Raised when the caller is not entitled to view or mutate an order."""

    pass


class InvalidTransitionError(OrderServiceError):
    """Raised when a requested status change is not allowed.

    Covers edges missing from the lifecycle graph, changes out of a
    terminal status, and requests for the status the order already has.
    """

    def __init__(
        self,
        message: str,
        current_status: Any = None,
        target_status: Any = None,
        **context: Any,
    ):
        super().__init__(message, **context)
        self.current_status = current_status
        self.target_status = target_status


class OrderStatusConflictError(InvalidTransitionError):
    """Raised when the order's status changed between read and update."""

    pass


class OrderValidationError(OrderServiceError):
    """Raised for malformed input such as an unknown status value."""

    pass


class OrderRepositoryError(OrderServiceError):
    """Raised when the underlying store fails."""

    pass


class OrderNumberTakenError(OrderRepositoryError):
    """Raised when a generated order number is already in use."""

    pass
