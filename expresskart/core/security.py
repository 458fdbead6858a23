"""
JWT access token utilities.

Tokens are issued by the ExpressKart authentication service; this service
only needs to verify them and, for tooling and tests, to mint tokens with
the same claims layout (``sub``, ``role``, ``exp``, ``iat``, ``type``).
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from expresskart.core.config import get_settings
from expresskart.core.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class SecurityError(Exception):
    """Base exception for security-related errors."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    """Raised when a token cannot be created or verified."""

    pass


def create_access_token(
    subject: UUID | str,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        subject: User identifier stored in the ``sub`` claim
        role: Optional role claim, informational only; the role stored on
            the user record is authoritative
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string

    Raises:
        TokenError: If token creation fails
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )

    claims: Dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
        "type": ACCESS_TOKEN_TYPE,
    }
    if role:
        claims["role"] = role

    try:
        token = jwt.encode(
            claims, settings.secret_key, algorithm=settings.jwt_algorithm
        )
    except JWTError as e:
        logger.error(
            "Failed to create access token",
            subject=str(subject),
            error=str(e),
        )
        raise TokenError(
            "Failed to create access token",
            code="TOKEN_CREATE_FAILED",
            original_error=str(e),
        ) from e

    logger.debug(
        "Access token created",
        subject=str(subject),
        expires_at=expire.isoformat(),
    )
    return token


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode

    Returns:
        Dictionary of decoded token claims

    Raises:
        TokenError: If token is empty, expired, malformed or not an
            access token
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError as e:
        logger.warning("Token has expired")
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning(
            "Invalid token",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise TokenError(
            "Invalid token",
            code="TOKEN_INVALID",
            original_error=str(e),
        ) from e

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        logger.warning(
            "Token type mismatch",
            expected=ACCESS_TOKEN_TYPE,
            actual=payload.get("type"),
        )
        raise TokenError("Not an access token", code="TOKEN_TYPE_INVALID")

    return payload


def get_token_user_id(token: str) -> UUID:
    """
    Extract the user ID from a token's ``sub`` claim.

    Raises:
        TokenError: If the token is invalid or the subject is not a UUID
    """
    payload = decode_token(token)
    subject = payload.get("sub")
    try:
        return UUID(str(subject))
    except (TypeError, ValueError) as e:
        raise TokenError(
            "Token subject is not a valid user id",
            code="TOKEN_SUBJECT_INVALID",
        ) from e
