"""
Content endpoints: playback token issuance and text lesson delivery.
"""
from typing import Union
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from lessonguard.middleware.jwt import get_current_user
from lessonguard.models.lesson import LessonType
from lessonguard.models.user import User
from lessonguard.schemas.content import ContentDeniedResponse, ContentResponse
from lessonguard.schemas.playback import ErrorResponse, PlaybackTokenResponse
from lessonguard.services.content_gateway import ContentAccessGateway, get_content_gateway
from lessonguard.services.device_fingerprint import DeviceFingerprintService
from lessonguard.services.entitlement import AccessDeniedError, DenialReason
from lessonguard.utils.logger import get_logger

logger = get_logger("content")
router = APIRouter()


def public_reason(reason: DenialReason) -> str:
    """Wire code for a denial reason."""
    if reason == DenialReason.CONTENT_NOT_FOUND:
        return "not_found"
    return reason.value


def denial_status(reason: DenialReason) -> int:
    if reason == DenialReason.CONTENT_NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_403_FORBIDDEN


@router.post(
    "/content/{content_id}/playback-token",
    response_model=PlaybackTokenResponse,
    summary="Request a playback token",
    description="Check entitlement and device limits, then issue a short-lived token and media URL",
    responses={
        403: {"model": ErrorResponse, "description": "subscription_required or device_limit_exceeded"},
        404: {"model": ErrorResponse, "description": "not_found"},
    }
)
async def create_playback_token(
    content_id: UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    gateway: ContentAccessGateway = Depends(get_content_gateway),
) -> PlaybackTokenResponse:
    """
    Issue a playback token for a video lesson.

    The token and the media URL are returned together; the URL is useless
    without the token and the token is bound to this lesson only.
    """
    fingerprint = DeviceFingerprintService.fingerprint_request(request)
    issued = await gateway.issue_playback(current_user.id, content_id, fingerprint)

    return PlaybackTokenResponse(
        playback_url=issued.playback_url,
        token=issued.token,
        expires_at=issued.expires_at,
    )


@router.get(
    "/content/{content_id}",
    response_model=Union[ContentResponse, PlaybackTokenResponse],
    summary="Get lesson content",
    description="Return a text lesson body, or a playback grant for video lessons",
    responses={
        403: {"model": ContentDeniedResponse, "description": "Access denied"},
        404: {"model": ContentDeniedResponse, "description": "Lesson not found"},
    }
)
async def get_content(
    content_id: UUID,
    request: Request,
    current_user: User = Depends(get_current_user),
    gateway: ContentAccessGateway = Depends(get_content_gateway),
):
    fingerprint = DeviceFingerprintService.fingerprint_request(request)

    try:
        result = await gateway.get_content(current_user.id, content_id, fingerprint)
    except AccessDeniedError as e:
        logger.info(
            "Content access denied",
            user_id=str(current_user.id),
            content_id=str(content_id),
            reason=e.reason.value,
        )
        body = ContentDeniedResponse(access_reason=public_reason(e.reason), message=e.message)
        return JSONResponse(
            status_code=denial_status(e.reason),
            content=body.model_dump(mode="json", by_alias=True),
        )

    if result.lesson_type == LessonType.VIDEO:
        return PlaybackTokenResponse(
            playback_url=result.playback.playback_url,
            token=result.playback.token,
            expires_at=result.playback.expires_at,
        )

    return ContentResponse(content=result.content, access_token=result.access_token)
