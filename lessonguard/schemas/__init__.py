"""
Pydantic schemas for API request/response models.
"""
from lessonguard.schemas.auth import TokenData
from lessonguard.schemas.content import ContentDeniedResponse, ContentResponse
from lessonguard.schemas.health import HealthResponse
from lessonguard.schemas.playback import CamelModel, ErrorResponse, PlaybackTokenResponse
from lessonguard.schemas.security import (
    DevtoolsDetected,
    FocusLost,
    OtherActivity,
    ScreenRecordingDetected,
    ScreenshotAttempt,
    SuspiciousActivityEvent,
    SuspiciousActivityReport,
    SuspiciousActivityResponse,
)

__all__ = [
    "TokenData",
    "ContentDeniedResponse",
    "ContentResponse",
    "HealthResponse",
    "CamelModel",
    "ErrorResponse",
    "PlaybackTokenResponse",
    "DevtoolsDetected",
    "FocusLost",
    "OtherActivity",
    "ScreenRecordingDetected",
    "ScreenshotAttempt",
    "SuspiciousActivityEvent",
    "SuspiciousActivityReport",
    "SuspiciousActivityResponse",
]
