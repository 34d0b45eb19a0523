"""
Storage for playback token records.

Tokens are short-lived (minutes), so an ephemeral in-process store is
acceptable: a restart simply forces viewers to request a fresh token, which
re-runs the entitlement check. Records are keyed by the SHA-256 of the token;
the raw token is never held server side after issuance.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Optional
from uuid import UUID


@dataclass(frozen=True)
class PlaybackTokenRecord:
    """Server-side record of an issued playback token."""
    token_hash: str
    content_id: UUID
    user_id: UUID
    issued_at: datetime
    expires_at: datetime
    device_fingerprint: Optional[str] = None
    revoked: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class TokenStore(ABC):
    """Persistence interface for playback token records."""

    @abstractmethod
    async def put(self, record: PlaybackTokenRecord) -> None:
        pass

    @abstractmethod
    async def get(self, token_hash: str) -> Optional[PlaybackTokenRecord]:
        pass

    @abstractmethod
    async def revoke(self, token_hash: str) -> bool:
        """Mark one record revoked. Returns False if unknown."""
        pass

    @abstractmethod
    async def revoke_user(self, user_id: UUID) -> int:
        """Mark every record of a user revoked. Returns the number revoked."""
        pass

    @abstractmethod
    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        pass


class InMemoryTokenStore(TokenStore):
    """
    Dict-backed token store guarded by an asyncio lock.

    Expired records are purged lazily on every write.
    """

    def __init__(self):
        self._records: Dict[str, PlaybackTokenRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def put(self, record: PlaybackTokenRecord) -> None:
        async with self._lock:
            self._purge_locked(datetime.now(timezone.utc))
            self._records[record.token_hash] = record

    async def get(self, token_hash: str) -> Optional[PlaybackTokenRecord]:
        return self._records.get(token_hash)

    async def revoke(self, token_hash: str) -> bool:
        async with self._lock:
            record = self._records.get(token_hash)
            if record is None:
                return False
            self._records[token_hash] = replace(record, revoked=True)
            return True

    async def revoke_user(self, user_id: UUID) -> int:
        async with self._lock:
            revoked = 0
            for token_hash, record in self._records.items():
                if record.user_id == user_id and not record.revoked:
                    self._records[token_hash] = replace(record, revoked=True)
                    revoked += 1
            return revoked

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        async with self._lock:
            return self._purge_locked(now or datetime.now(timezone.utc))

    def _purge_locked(self, now: datetime) -> int:
        expired = [h for h, record in self._records.items() if record.is_expired(now)]
        for token_hash in expired:
            del self._records[token_hash]
        return len(expired)
