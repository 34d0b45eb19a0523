"""
Integration tests for the suspicious activity audit endpoint.
"""
import uuid

import pytest


def devtools_event(**overrides):
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


class TestLogSuspicious:
    @pytest.mark.asyncio
    async def test_event_appended(self, client, fake_db, active_user):
        response = await client.post(
            "/security/log-suspicious",
            json=devtools_event(),
            headers={"User-Agent": "Mozilla/5.0 (X11; Linux x86_64)"},
        )

        assert response.status_code == 202
        assert response.json() == {"success": True, "message": "Activity logged"}

        assert len(fake_db.activities) == 1
        row = fake_db.activities[0]
        assert row.user_id == active_user.id
        assert row.activity_type == "devtools_detected"
        assert row.user_agent == "Mozilla/5.0 (X11; Linux x86_64)"

    @pytest.mark.asyncio
    async def test_repeated_events_all_kept(self, client, fake_db):
        for _ in range(4):
            response = await client.post("/security/log-suspicious", json=devtools_event())
            assert response.status_code == 202

        assert len(fake_db.activities) == 4

    @pytest.mark.asyncio
    async def test_unknown_activity_type(self, client, fake_db):
        response = await client.post("/security/log-suspicious", json=devtools_event(activityType="keylogger"))

        assert response.status_code == 422
        assert fake_db.activities == []

    @pytest.mark.asyncio
    async def test_minimal_body_accepted(self, client, fake_db):
        payload = {
            "contentId": str(uuid.uuid4()),
            "activityType": "screenshot_attempt",
            "timestamp": "2026-02-01T10:00:00Z",
        }

        response = await client.post("/security/log-suspicious", json=payload)

        assert response.status_code == 202
        assert len(fake_db.activities) == 1
        assert fake_db.activities[0].activity_type == "screenshot_attempt"
        assert fake_db.activities[0].details is None

    @pytest.mark.asyncio
    async def test_missing_content_id(self, client):
        payload = devtools_event()
        del payload["contentId"]

        response = await client.post("/security/log-suspicious", json=payload)

        assert response.status_code == 422
