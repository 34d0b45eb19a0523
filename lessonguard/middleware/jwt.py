"""
Session authentication dependency.

Identity is opaque to content protection: a bearer JWT from the identity
provider resolves to a User row, whose subscription columns feed the
entitlement oracle.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from jose import JWTError

from lessonguard.database import get_db
from lessonguard.models.user import User
from lessonguard.services.database import db_service
from lessonguard.utils.jwt import verify_token
from lessonguard.utils.logger import get_logger

logger = get_logger("jwt_middleware")

security = HTTPBearer()

_UNAUTHORIZED = {
    "status_code": status.HTTP_401_UNAUTHORIZED,
    "headers": {"WWW-Authenticate": "Bearer"},
}


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from the session JWT.

    Raises:
        HTTPException: 401 if the token is invalid or the user is unknown,
            403 if the account is deactivated
    """
    try:
        token_data = verify_token(credentials.credentials, expected_type="access")
    except JWTError as e:
        logger.warning("JWT verification failed", error=str(e))
        raise HTTPException(detail="Could not validate credentials", **_UNAUTHORIZED)

    user = await db_service.get_user_by_id(db, token_data.user_id)

    if not user:
        logger.warning("User not found for valid token", user_id=str(token_data.user_id))
        raise HTTPException(detail="User not found", **_UNAUTHORIZED)

    if not user.is_active:
        logger.warning("Inactive user attempted access", user_id=str(user.id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    logger.debug("User authenticated", user_id=str(user.id))
    return user
