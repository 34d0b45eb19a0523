"""
Session JWT utilities.

Sessions are issued by the identity provider; this service only verifies
them. create_access_token exists for local tooling and tests.
"""
from datetime import datetime, timedelta, timezone
from uuid import UUID
from jose import JWTError, jwt
from lessonguard.config import settings
from lessonguard.schemas.auth import TokenData


def create_access_token(user_id: UUID, email: str, expires_delta: timedelta | None = None) -> str:
    """
    Create a session JWT.

    Args:
        user_id: User's UUID
        email: User's email address
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_DAYS

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": datetime.now(timezone.utc) + expires_delta,
        "type": "access"
    }

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_token(token: str, expected_type: str = "access") -> TokenData:
    """
    Verify and decode a session JWT.

    Args:
        token: JWT token string to verify
        expected_type: Expected token type

    Returns:
        TokenData object with decoded token information

    Raises:
        JWTError: If token is invalid, expired, or type doesn't match
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )

        user_id_str: str | None = payload.get("sub")
        email: str | None = payload.get("email")
        token_type: str = payload.get("type", "access")

        if user_id_str is None or email is None:
            raise JWTError("Invalid token payload")

        if token_type != expected_type:
            raise JWTError(f"Invalid token type: expected {expected_type}, got {token_type}")

        return TokenData(
            user_id=UUID(user_id_str),
            email=email,
            token_type=token_type
        )

    except (JWTError, ValueError) as e:
        raise JWTError(f"Token verification failed: {str(e)}")
