"""
Pydantic schemas for the session identity consumed from the identity provider.
"""
from uuid import UUID
from pydantic import BaseModel, EmailStr


class TokenData(BaseModel):
    """
    Schema for data encoded in a session JWT.
    """
    user_id: UUID | None = None
    email: EmailStr | None = None
    token_type: str = "access"
