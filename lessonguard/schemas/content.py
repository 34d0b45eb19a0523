"""
Pydantic schemas for text lesson content delivery.
"""
from typing import Literal
from pydantic import Field

from lessonguard.schemas.playback import CamelModel


class ContentResponse(CamelModel):
    """
    Schema for a granted text lesson.

    access_token only correlates audit records; it grants nothing.
    """
    content: str = Field(..., description="Lesson body (markdown)")
    access_granted: Literal[True] = True
    access_token: str = Field(..., description="Opaque audit correlation token")


class ContentDeniedResponse(CamelModel):
    """
    Schema for a refused text lesson request.
    """
    access_granted: Literal[False] = False
    access_reason: str = Field(..., description="subscription_required, device_limit_exceeded or not_found")
    message: str | None = None
