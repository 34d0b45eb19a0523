"""
Pydantic schemas for playback token issuance.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire schemas serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlaybackTokenResponse(CamelModel):
    """
    Schema for a successful playback token request.
    """
    playback_url: str = Field(..., description="Tokenised media URL")
    token: str = Field(..., description="Playback token bound to this content")
    expires_at: datetime = Field(..., description="Hard expiry; request a new token afterwards")


class ErrorResponse(BaseModel):
    """
    Schema for machine-readable errors.

    Codes: subscription_required, device_limit_exceeded, not_found,
    token_invalid, content_error
    """
    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable message")
