"""
Pydantic schemas for suspicious activity reports.

Events are a tagged union on activityType with a fixed schema per type;
unknown types are rejected before they reach the audit log. Type-specific
fields are optional so a bare {contentId, activityType, timestamp} report
is still recorded.
"""
from datetime import datetime
from typing import Annotated, Any, Dict, Literal, Optional, Union
from uuid import UUID
from pydantic import Field, RootModel

from lessonguard.schemas.playback import CamelModel


class ActivityEventBase(CamelModel):
    content_id: UUID = Field(..., description="Lesson being viewed")
    timestamp: datetime = Field(..., description="Client clock at detection (unverified)")
    client_context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Best-effort, unverified client details"
    )

    def details(self) -> Dict[str, Any]:
        """Type-specific fields, for the audit row."""
        common = set(ActivityEventBase.model_fields) | {"activity_type"}
        return self.model_dump(mode="json", by_alias=True, exclude=common, exclude_none=True)


class ScreenshotAttempt(ActivityEventBase):
    activity_type: Literal["screenshot_attempt"] = "screenshot_attempt"
    shortcut: Optional[str] = Field(None, max_length=64, description="Key combination that was intercepted")


class ScreenRecordingDetected(ActivityEventBase):
    activity_type: Literal["screen_recording_detected"] = "screen_recording_detected"
    api: Optional[str] = Field(None, max_length=64, description="Capture API that was invoked")


class DevtoolsDetected(ActivityEventBase):
    activity_type: Literal["devtools_detected"] = "devtools_detected"
    width_delta: Optional[int] = Field(None, description="outer minus inner width in px")
    height_delta: Optional[int] = Field(None, description="outer minus inner height in px")


class FocusLost(ActivityEventBase):
    activity_type: Literal["focus_lost"] = "focus_lost"


class OtherActivity(ActivityEventBase):
    activity_type: Literal["other"] = "other"
    detail: str = Field("", max_length=500)


SuspiciousActivityEvent = Annotated[
    Union[ScreenshotAttempt, ScreenRecordingDetected, DevtoolsDetected, FocusLost, OtherActivity],
    Field(discriminator="activity_type"),
]


class SuspiciousActivityReport(RootModel[SuspiciousActivityEvent]):
    """
    Request body for POST /security/log-suspicious.
    """
    pass


class SuspiciousActivityResponse(CamelModel):
    """
    Schema for the audit sink acknowledgement.
    """
    success: bool
    message: str
