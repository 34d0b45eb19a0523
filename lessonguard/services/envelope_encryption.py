"""
Envelope Encryption Service for premium lesson content.

Implements the envelope encryption pattern where:
- Each encryption generates a fresh random content key (256-bit)
- The lesson body is encrypted with AES-256-GCM under that key with a fresh
  random 96-bit IV; the lesson id is bound as associated data
- The content key is wrapped by a KeyProvider under a versioned master key
- Only the wrapped key, IV, tag, ciphertext, key version and a SHA-256 of the
  plaintext are stored

Failure semantics:
- Every cryptographic failure (bad tag, malformed field, hash mismatch)
  raises IntegrityError; unknown key versions raise
  UnsupportedKeyVersionError before any decryption is attempted
- No partial plaintext is ever returned
- Content keys exist only inside encrypt()/decrypt()

Usage:
    service = create_envelope_encryption_service(provider="local")

    encrypted = await service.encrypt(markdown, content_id=lesson.id)
    plaintext = await service.decrypt(encrypted)
"""

import hashlib
import hmac
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Union
from uuid import UUID

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import Request

from lessonguard.services.encryption_providers.base import KeyProvider, KeyProviderClosedError
from lessonguard.utils.logger import get_logger

if TYPE_CHECKING:
    from lessonguard.models.lesson import Lesson

logger = get_logger("encryption.envelope")

# Constants
CONTENT_KEY_LENGTH = 32  # AES-256
NONCE_LENGTH = 12  # 96 bits for GCM
TAG_LENGTH = 16  # 128-bit GCM tag
AAD_PREFIX = b"lessonguard-content:"


class EncryptionError(Exception):
    """Base exception for encryption errors."""
    pass


class IntegrityError(EncryptionError):
    """Raised when ciphertext, tag, wrapped key or content hash fails verification."""
    pass


class UnsupportedKeyVersionError(EncryptionError):
    """Raised when content was wrapped under a key version this process cannot unwrap."""

    def __init__(self, key_version: Optional[str]):
        self.key_version = key_version
        super().__init__(f"Unsupported encryption key version: {key_version!r}")


@dataclass(frozen=True)
class EncryptedContent:
    """
    Stored envelope for one lesson body.

    Attributes:
        content_id: Lesson id the ciphertext is bound to
        cipher_text: AES-GCM ciphertext (tag stripped)
        iv: 96-bit nonce used for this encryption only
        auth_tag: 128-bit GCM tag
        wrapped_key: Content key wrapped under the master key
        key_version: Master key version that produced wrapped_key
        content_hash: Hex SHA-256 of the plaintext
    """
    content_id: UUID
    cipher_text: bytes
    iv: bytes
    auth_tag: bytes
    wrapped_key: bytes
    key_version: str
    content_hash: str

    def to_columns(self) -> Dict[str, Any]:
        """Column values for the parent Lesson record."""
        return {
            "encrypted_content": self.cipher_text,
            "encryption_iv": self.iv,
            "encryption_tag": self.auth_tag,
            "wrapped_key": self.wrapped_key,
            "key_version": self.key_version,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_lesson(cls, lesson: "Lesson") -> "EncryptedContent":
        """
        Rebuild the envelope from a Lesson row.

        Raises:
            IntegrityError: If any envelope column is missing
        """
        if (
            lesson.encrypted_content is None
            or lesson.encryption_iv is None
            or lesson.encryption_tag is None
            or lesson.wrapped_key is None
            or lesson.content_hash is None
        ):
            raise IntegrityError(f"Lesson {lesson.id} has an incomplete encryption envelope")

        return cls(
            content_id=lesson.id,
            cipher_text=lesson.encrypted_content,
            iv=lesson.encryption_iv,
            auth_tag=lesson.encryption_tag,
            wrapped_key=lesson.wrapped_key,
            key_version=lesson.key_version,
            content_hash=lesson.content_hash,
        )


def hash_content(plaintext: Union[str, bytes]) -> str:
    """Hex SHA-256 digest of a lesson body."""
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    return hashlib.sha256(plaintext).hexdigest()


def verify_content_hash(plaintext: Union[str, bytes], expected_hash: str) -> bool:
    """Constant-time comparison of a body against its stored hash."""
    # Compare bytes: compare_digest rejects non-ASCII str
    return hmac.compare_digest(
        hash_content(plaintext).encode("utf-8"),
        expected_hash.lower().encode("utf-8"),
    )


def _associated_data(content_id: UUID) -> bytes:
    return AAD_PREFIX + str(content_id).encode("utf-8")


class EnvelopeEncryptionService:
    """
    Envelope encryption service for lesson bodies.

    Stateless apart from the injected KeyProvider; safe to share across
    requests.

    Example:
        >>> service = EnvelopeEncryptionService(LocalKeyProvider.init({"v1": secret}, "v1"))
        >>> encrypted = await service.encrypt("# Two pointers", content_id=lesson_id)
        >>> await service.decrypt(encrypted)
        '# Two pointers'
    """

    def __init__(self, key_provider: KeyProvider):
        """
        Initialize with a key provider.

        Args:
            key_provider: Provider for wrapping/unwrapping content keys
        """
        self.key_provider = key_provider
        logger.info(
            "EnvelopeEncryptionService initialized",
            key_version=key_provider.current_version,
        )

    hash_content = staticmethod(hash_content)
    verify_content_hash = staticmethod(verify_content_hash)

    async def encrypt(self, plaintext: str, content_id: UUID) -> EncryptedContent:
        """
        Encrypt a lesson body under a fresh content key and IV.

        Args:
            plaintext: Lesson body (markdown)
            content_id: Lesson id, authenticated as associated data

        Returns:
            EncryptedContent envelope ready for storage

        Raises:
            ValueError: If plaintext is empty
            EncryptionError: If encryption or key wrapping fails
        """
        if not plaintext:
            raise ValueError("Plaintext cannot be empty")

        data = plaintext.encode("utf-8")

        try:
            content_key = AESGCM.generate_key(bit_length=CONTENT_KEY_LENGTH * 8)
            iv = os.urandom(NONCE_LENGTH)
            sealed = AESGCM(content_key).encrypt(iv, data, _associated_data(content_id))
            wrapped_key, key_version = await self.key_provider.wrap_key(content_key)
        except Exception as e:
            logger.error(
                "Failed to encrypt content",
                content_id=str(content_id),
                error=type(e).__name__,
            )
            raise EncryptionError(f"Failed to encrypt content: {type(e).__name__}") from e

        logger.debug("Encrypted content", content_id=str(content_id), key_version=key_version)

        return EncryptedContent(
            content_id=content_id,
            cipher_text=sealed[:-TAG_LENGTH],
            iv=iv,
            auth_tag=sealed[-TAG_LENGTH:],
            wrapped_key=wrapped_key,
            key_version=key_version,
            content_hash=hash_content(data),
        )

    async def decrypt(self, encrypted: EncryptedContent) -> str:
        """
        Decrypt a stored envelope.

        Args:
            encrypted: Envelope as produced by encrypt()

        Returns:
            The lesson body

        Raises:
            KeyProviderClosedError: If the key provider was torn down
            UnsupportedKeyVersionError: If the key version is unknown
            IntegrityError: If any verification step fails
        """
        content_id = encrypted.content_id

        if self.key_provider.closed:
            raise KeyProviderClosedError("Key provider has been torn down")

        if not encrypted.key_version or not self.key_provider.supports(encrypted.key_version):
            logger.warning(
                "Refusing to decrypt content with unknown key version",
                content_id=str(content_id),
                key_version=encrypted.key_version,
            )
            raise UnsupportedKeyVersionError(encrypted.key_version)

        if len(encrypted.iv) != NONCE_LENGTH or len(encrypted.auth_tag) != TAG_LENGTH:
            logger.error("Malformed encryption envelope", content_id=str(content_id))
            raise IntegrityError("Malformed encryption envelope")

        content_key = await self.key_provider.unwrap_key(
            encrypted.wrapped_key, encrypted.key_version
        )

        try:
            data = AESGCM(content_key).decrypt(
                encrypted.iv,
                encrypted.cipher_text + encrypted.auth_tag,
                _associated_data(content_id),
            )
        except InvalidTag as e:
            logger.error("Content failed authentication", content_id=str(content_id))
            raise IntegrityError("Content failed authentication") from e

        if not verify_content_hash(data, encrypted.content_hash):
            logger.error("Content hash mismatch after decryption", content_id=str(content_id))
            raise IntegrityError("Content hash mismatch")

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError("Decrypted content is not valid UTF-8") from e


# =============================================================================
# Factory Function
# =============================================================================


def create_envelope_encryption_service(
    provider: str = "local",
) -> EnvelopeEncryptionService:
    """
    Factory function to create envelope encryption service.

    Args:
        provider: Provider type ("local" or future "aws-kms", "gcp-kms")

    Returns:
        Configured EnvelopeEncryptionService

    Raises:
        ValueError: If provider is not supported
    """
    from lessonguard.config import settings

    if provider == "local":
        from lessonguard.services.encryption_providers.local_key import LocalKeyProvider

        key_provider = LocalKeyProvider.init(
            settings.content_master_keys,
            current_version=settings.CONTENT_KEY_VERSION,
        )
        return EnvelopeEncryptionService(key_provider)

    raise ValueError(f"Unsupported encryption provider: {provider}")


# =============================================================================
# Dependency Injection Helper
# =============================================================================


def get_encryption_service(request: Request) -> EnvelopeEncryptionService:
    """
    Dependency to get the encryption service from app state.

    Raises:
        RuntimeError: If the service was not initialized at startup
    """
    service = getattr(request.app.state, "encryption_service", None)
    if service is None:
        raise RuntimeError("Encryption service is not initialized")
    return service
