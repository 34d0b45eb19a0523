"""
Media streaming endpoint.

Every request, including each byte-range request of a single viewing
session, must carry a valid playback token for this exact lesson.
"""
import mimetypes
from pathlib import Path
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.config import settings
from lessonguard.database import get_db
from lessonguard.services.database import db_service
from lessonguard.services.device_fingerprint import DeviceFingerprintService
from lessonguard.services.playback_token import PlaybackTokenService, get_token_service
from lessonguard.schemas.playback import ErrorResponse
from lessonguard.utils.logger import get_logger

logger = get_logger("media")
router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "private, no-store",
    "Accept-Ranges": "bytes",
    "X-Content-Type-Options": "nosniff",
}


def resolve_media_path(video_path: str, storage_root: str | None = None) -> Path:
    """
    Resolve a lesson's video path inside the media storage root.

    Raises:
        HTTPException: 404 if the path escapes the root or the file is missing
    """
    root = Path(storage_root or settings.MEDIA_STORAGE_PATH).resolve()
    candidate = (root / video_path).resolve()

    if not candidate.is_relative_to(root) or not candidate.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")

    return candidate


@router.get(
    "/media/{content_id}/stream",
    summary="Stream lesson media",
    description="Serve a lesson video (byte ranges supported) to a holder of a valid playback token",
    responses={
        200: {"description": "Full media file"},
        206: {"description": "Requested byte range"},
        401: {"model": ErrorResponse, "description": "token_invalid"},
        404: {"description": "Media not found"},
    }
)
async def stream_media(
    content_id: UUID,
    request: Request,
    token: str | None = None,
    tokens: PlaybackTokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    """
    Validate the playback token, then serve the file.

    Raises:
        TokenInvalidError: Translated to 401 token_invalid
    """
    fingerprint = DeviceFingerprintService.fingerprint_request(request)
    await tokens.require_valid(token, content_id, fingerprint)

    lesson = await db_service.get_lesson_by_id(db, content_id)
    if lesson is None or not lesson.video_path:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Media not found")

    path = resolve_media_path(lesson.video_path)
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    return FileResponse(path, media_type=media_type, headers=STREAM_HEADERS)
