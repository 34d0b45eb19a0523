"""
Fire-and-forget delivery of suspicious activity events.

report() returns immediately. Delivery runs as a background task; transport
errors and error statuses are logged locally and dropped. There is no retry:
losing an occasional event is acceptable, stalling the viewer is not.
"""
import asyncio
from typing import Optional, Set

import httpx
from pydantic import BaseModel

from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.reporter")

DEFAULT_ENDPOINT = "/security/log-suspicious"


class SuspiciousActivityReporter:
    """
    Args:
        client: HTTP client with base URL and session auth configured
        endpoint: Audit sink path
    """

    def __init__(self, client: httpx.AsyncClient, endpoint: str = DEFAULT_ENDPOINT):
        self.client = client
        self.endpoint = endpoint
        self._tasks: Set[asyncio.Task] = set()
        self.sent = 0
        self.dropped = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def report(self, event: BaseModel) -> None:
        """Schedule delivery of one event. Never blocks, never raises."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.dropped += 1
            logger.warning("No running event loop, activity report dropped")
            return

        task = loop.create_task(self._send(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send(self, event: BaseModel) -> None:
        payload = event.model_dump(mode="json", by_alias=True)
        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            self.dropped += 1
            logger.warning(
                "Failed to deliver activity report",
                activity_type=payload.get("activityType"),
                error=type(e).__name__,
            )
            return

        if response.is_error:
            self.dropped += 1
            logger.warning(
                "Activity report rejected",
                activity_type=payload.get("activityType"),
                status_code=response.status_code,
            )
            return

        self.sent += 1

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight reports (shutdown and tests)."""
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)

    async def aclose(self) -> None:
        await self.drain()
        await self.client.aclose()
