"""
Unit tests for suspicious activity schemas and the audit service.
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from lessonguard.schemas.security import (
    DevtoolsDetected,
    FocusLost,
    ScreenshotAttempt,
    SuspiciousActivityReport,
)
from lessonguard.services.activity_audit import ActivityAuditService


def event_payload(**overrides):
    payload = {
        "activityType": "devtools_detected",
        "contentId": str(uuid.uuid4()),
        "timestamp": "2026-02-01T10:00:00Z",
        "clientContext": {"screen": "1920x1080"},
        "widthDelta": 310,
        "heightDelta": 0,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Report schema
# =============================================================================


class TestSuspiciousActivityReport:
    def test_devtools_event(self):
        report = SuspiciousActivityReport.model_validate(event_payload())

        assert isinstance(report.root, DevtoolsDetected)
        assert report.root.width_delta == 310
        assert report.root.details() == {"widthDelta": 310, "heightDelta": 0}

    def test_screenshot_event(self):
        report = SuspiciousActivityReport.model_validate({
            "activityType": "screenshot_attempt",
            "contentId": str(uuid.uuid4()),
            "timestamp": "2026-02-01T10:00:00Z",
            "shortcut": "PrintScreen",
        })

        assert isinstance(report.root, ScreenshotAttempt)
        assert report.root.client_context == {}

    def test_focus_lost_has_no_details(self):
        report = SuspiciousActivityReport.model_validate({
            "activityType": "focus_lost",
            "contentId": str(uuid.uuid4()),
            "timestamp": "2026-02-01T10:00:00Z",
        })

        assert isinstance(report.root, FocusLost)
        assert report.root.details() == {}

    def test_unknown_activity_type(self):
        with pytest.raises(ValidationError):
            SuspiciousActivityReport.model_validate(event_payload(activityType="keylogger"))

    def test_type_specific_fields_optional(self):
        report = SuspiciousActivityReport.model_validate({
            "activityType": "screenshot_attempt",
            "contentId": str(uuid.uuid4()),
            "timestamp": "2026-02-01T10:00:00Z",
        })

        assert isinstance(report.root, ScreenshotAttempt)
        assert report.root.shortcut is None
        assert report.root.details() == {}

    def test_oversized_shortcut(self):
        with pytest.raises(ValidationError):
            SuspiciousActivityReport.model_validate({
                "activityType": "screenshot_attempt",
                "contentId": str(uuid.uuid4()),
                "timestamp": "2026-02-01T10:00:00Z",
                "shortcut": "x" * 65,
            })

    def test_serialises_camel_case(self):
        event = ScreenshotAttempt(
            content_id=uuid.uuid4(),
            timestamp=datetime(2026, 2, 1, tzinfo=timezone.utc),
            shortcut="Meta+Shift+4",
        )

        dumped = event.model_dump(mode="json", by_alias=True)

        assert dumped["activityType"] == "screenshot_attempt"
        assert "contentId" in dumped


# =============================================================================
# Audit service
# =============================================================================


class TestActivityAuditService:
    @pytest.mark.asyncio
    async def test_record_appends_row(self, fake_db, db_session, active_user):
        service = ActivityAuditService(alert_threshold=3)
        event = SuspiciousActivityReport.model_validate(event_payload()).root

        outcome = await service.record(db_session, active_user.id, event, user_agent="Mozilla/5.0")

        assert outcome.recent_count == 1
        assert not outcome.flagged_for_review

        row = fake_db.activities[0]
        assert row.user_id == active_user.id
        assert row.content_id == event.content_id
        assert row.activity_type == "devtools_detected"
        assert row.details == {"widthDelta": 310, "heightDelta": 0}
        assert row.client_context == {"screen": "1920x1080"}
        assert row.user_agent == "Mozilla/5.0"
        assert row.client_timestamp == event.timestamp

    @pytest.mark.asyncio
    async def test_flags_at_threshold(self, fake_db, db_session, active_user):
        service = ActivityAuditService(alert_threshold=3)
        event = SuspiciousActivityReport.model_validate(event_payload()).root

        outcomes = [await service.record(db_session, active_user.id, event) for _ in range(3)]

        assert [o.flagged_for_review for o in outcomes] == [False, False, True]
        assert len(fake_db.activities) == 3

    @pytest.mark.asyncio
    async def test_old_events_outside_window(self, fake_db, db_session, active_user):
        service = ActivityAuditService(alert_threshold=2, window_hours=24)
        event = SuspiciousActivityReport.model_validate(event_payload()).root

        await service.record(db_session, active_user.id, event)
        fake_db.activities[0].received_at -= timedelta(hours=25)

        outcome = await service.record(db_session, active_user.id, event)

        assert outcome.recent_count == 1
        assert not outcome.flagged_for_review

    @pytest.mark.asyncio
    async def test_user_agent_truncated(self, fake_db, db_session, active_user):
        service = ActivityAuditService()
        event = SuspiciousActivityReport.model_validate(event_payload()).root

        await service.record(db_session, active_user.id, event, user_agent="a" * 900)

        assert len(fake_db.activities[0].user_agent) == 500
