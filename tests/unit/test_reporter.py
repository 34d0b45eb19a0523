"""
Unit tests for the fire-and-forget activity reporter.
"""
import asyncio
import uuid
from datetime import datetime, timezone

import httpx
import pytest

from lessonguard.schemas.security import DevtoolsDetected
from lessonguard.viewer.reporter import SuspiciousActivityReporter


def make_event():
    return DevtoolsDetected(
        content_id=uuid.uuid4(),
        timestamp=datetime(2026, 2, 1, tzinfo=timezone.utc),
        width_delta=300,
        height_delta=0,
    )


def make_reporter(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return SuspiciousActivityReporter(client)


class TestSuspiciousActivityReporter:
    @pytest.mark.asyncio
    async def test_posts_camel_case_payload(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202, json={"success": True, "message": "Activity logged"})

        reporter = make_reporter(handler)
        reporter.report(make_event())
        await reporter.drain()

        assert reporter.sent == 1
        assert requests[0].url.path == "/security/log-suspicious"
        body = requests[0].read()
        assert b'"activityType":"devtools_detected"' in body.replace(b" ", b"")
        assert b'"widthDelta":300' in body.replace(b" ", b"")
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_report_does_not_wait_for_delivery(self):
        gate = asyncio.Event()

        async def handler(request):
            await gate.wait()
            return httpx.Response(202)

        reporter = make_reporter(handler)
        reporter.report(make_event())

        assert reporter.pending == 1
        assert reporter.sent == 0

        gate.set()
        await reporter.drain()
        assert reporter.pending == 0
        assert reporter.sent == 1
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        reporter = make_reporter(handler)
        reporter.report(make_event())
        await reporter.drain()

        assert reporter.dropped == 1
        assert reporter.sent == 0
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_error_status_swallowed(self):
        reporter = make_reporter(lambda request: httpx.Response(500))
        reporter.report(make_event())
        await reporter.drain()

        assert reporter.dropped == 1
        await reporter.aclose()

    def test_no_event_loop_drops(self):
        reporter = SuspiciousActivityReporter(httpx.AsyncClient(base_url="http://test"))

        reporter.report(make_event())

        assert reporter.dropped == 1
        assert reporter.pending == 0
