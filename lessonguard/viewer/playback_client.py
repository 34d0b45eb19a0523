"""
Viewer-side client for the content endpoints.

Maps wire responses onto the client error taxonomy so the UI can keep the
failure paths apart: upsell, log-out-elsewhere, retry, content error.

Retry policy:
- entitlement and content errors are never retried
- an invalid playback token is re-requested once, silently
- network errors surface with a retry affordance
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar
from uuid import UUID

import httpx

from lessonguard.utils.logger import get_logger

logger = get_logger("viewer.playback_client")

T = TypeVar("T")


class PlaybackError(Exception):
    """Base for viewer-side content failures."""
    pass


class AccessDeniedError(PlaybackError):
    """Entitlement refused; reason is the wire code."""

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


class TokenInvalidError(PlaybackError):
    pass


class ContentError(PlaybackError):
    """Server could not produce the content (integrity or server failure)."""
    pass


class NetworkError(PlaybackError):
    pass


@dataclass(frozen=True)
class PlaybackGrant:
    playback_url: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TextLesson:
    content: str
    access_token: str


@dataclass(frozen=True)
class PlaybackFailure:
    kind: str
    message: str
    can_retry: bool


def _body(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def error_for_response(response: httpx.Response) -> PlaybackError:
    body = _body(response)
    code = body.get("code") or body.get("accessReason")
    message = body.get("message") or ""

    if response.status_code in (403, 404) and code:
        return AccessDeniedError(code, message)
    if response.status_code == 401 and code == "token_invalid":
        return TokenInvalidError(message or "Playback token is invalid or expired")
    if response.status_code == 401:
        return AccessDeniedError("unauthenticated", "Please sign in again.")
    return ContentError(message or f"Unexpected response status {response.status_code}")


class PlaybackClient:
    """
    Args:
        client: HTTP client with base URL and session auth configured
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Content request failed", url=httpx.URL(url).path, error=type(e).__name__)
            raise NetworkError(str(e)) from e

    async def request_playback(self, content_id: UUID) -> PlaybackGrant:
        """
        Obtain a playback token and media URL.

        Raises:
            AccessDeniedError, ContentError, NetworkError
        """
        response = await self._request("POST", f"/content/{content_id}/playback-token")
        if response.status_code != 200:
            raise error_for_response(response)

        data = response.json()
        return PlaybackGrant(
            playback_url=data["playbackUrl"],
            token=data["token"],
            expires_at=datetime.fromisoformat(data["expiresAt"].replace("Z", "+00:00")),
        )

    async def fetch_text_lesson(self, content_id: UUID) -> TextLesson:
        response = await self._request("GET", f"/content/{content_id}")
        if response.status_code != 200:
            raise error_for_response(response)

        data = response.json()
        if "content" not in data:
            raise ContentError("Lesson is not a text lesson")
        return TextLesson(content=data["content"], access_token=data["accessToken"])

    async def fetch_media(self, grant: PlaybackGrant, byte_range: Optional[Tuple[int, int]] = None) -> bytes:
        """
        Fetch media bytes with the grant's tokenised URL.

        Raises:
            TokenInvalidError: The server refused the token
        """
        headers = {}
        if byte_range is not None:
            headers["Range"] = f"bytes={byte_range[0]}-{byte_range[1]}"

        response = await self._request("GET", grant.playback_url, headers=headers)
        if response.status_code not in (200, 206):
            raise error_for_response(response)
        return response.content

    async def with_token_retry(
        self,
        content_id: UUID,
        grant: PlaybackGrant,
        operation: Callable[[PlaybackGrant], Awaitable[T]],
    ) -> Tuple[PlaybackGrant, T]:
        """
        Run operation with grant; on TokenInvalidError request a fresh
        grant once and run it again.

        Returns:
            The grant that succeeded and the operation's result
        """
        try:
            return grant, await operation(grant)
        except TokenInvalidError:
            logger.info("Playback token rejected, requesting a fresh one", content_id=str(content_id))

        fresh = await self.request_playback(content_id)
        return fresh, await operation(fresh)


def describe_failure(exc: Exception) -> PlaybackFailure:
    """User-facing failure for an error raised by the playback client."""
    if isinstance(exc, AccessDeniedError):
        if exc.reason == "subscription_required":
            return PlaybackFailure(
                "upsell", "Upgrade your subscription to access this lesson.", can_retry=False
            )
        if exc.reason == "device_limit_exceeded":
            return PlaybackFailure(
                "device_limit",
                "You are signed in on too many devices. Log out from another device to watch here.",
                can_retry=False,
            )
        if exc.reason == "not_found":
            return PlaybackFailure("not_found", "This lesson is not available.", can_retry=False)
        if exc.reason == "unauthenticated":
            return PlaybackFailure("sign_in", "Please sign in again.", can_retry=False)
    if isinstance(exc, TokenInvalidError):
        return PlaybackFailure("expired", "Your viewing session expired. Retry to continue.", can_retry=True)
    if isinstance(exc, NetworkError):
        return PlaybackFailure("network", "Connection problem. Check your network and retry.", can_retry=True)
    if isinstance(exc, ContentError):
        return PlaybackFailure("content_error", "This lesson could not be loaded.", can_retry=True)
    return PlaybackFailure("error", "Something went wrong. Please retry.", can_retry=True)
