"""
Suspicious activity audit endpoint.

Best-effort sink: the viewer fires and forgets, so the response only
acknowledges receipt.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lessonguard.database import get_db
from lessonguard.middleware.jwt import get_current_user
from lessonguard.models.user import User
from lessonguard.schemas.security import SuspiciousActivityReport, SuspiciousActivityResponse
from lessonguard.services.activity_audit import ActivityAuditService, get_activity_audit_service

router = APIRouter()


@router.post(
    "/security/log-suspicious",
    response_model=SuspiciousActivityResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Log suspicious viewer activity",
    description="Append a client-reported tamper signal to the audit log",
    responses={
        202: {"description": "Event appended"},
        422: {"description": "Unknown activityType or malformed event"},
    }
)
async def log_suspicious_activity(
    report: SuspiciousActivityReport,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    audit: ActivityAuditService = Depends(get_activity_audit_service),
) -> SuspiciousActivityResponse:
    await audit.record(db, current_user.id, report.root, request.headers.get("user-agent"))
    return SuspiciousActivityResponse(success=True, message="Activity logged")
