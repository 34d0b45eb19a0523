"""
Local master key provider.

Derives one AES-256 key per master key version from configured secrets with
PBKDF2 and wraps content keys with AES-256-GCM.

Security properties:
- 100,000 PBKDF2 iterations, salt bound to the key version
- AES-256-GCM wrap with a fresh 96-bit random nonce per wrap
- The key version is authenticated as associated data, so a wrapped key
  cannot be replayed under a different version tag
- Derived keys are held in memory only and dropped on teardown()
"""

import os
from typing import Dict, Mapping, Optional, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lessonguard.services.encryption_providers.base import KeyProvider, KeyProviderClosedError
from lessonguard.services.envelope_encryption import (
    IntegrityError,
    UnsupportedKeyVersionError,
    NONCE_LENGTH,
    TAG_LENGTH,
)
from lessonguard.utils.logger import get_logger

logger = get_logger("encryption.local_key")


class LocalKeyProvider(KeyProvider):
    """
    Key provider backed by master secrets from application settings.

    Key derivation:
        master_key[v] = PBKDF2(secret[v], salt="lessonguard-content:" + v,
                               iterations=100000, hash=SHA256)

    Wrap:
        wrapped = nonce (12 bytes) || AES-256-GCM(master_key[v], nonce, key, aad=v)

    Example:
        >>> provider = LocalKeyProvider.init(settings.content_master_keys,
        ...                                  current_version=settings.CONTENT_KEY_VERSION)
    """

    PROVIDER_NAME = "local"
    PBKDF2_ITERATIONS = 100000
    KEY_LENGTH = 32  # AES-256
    MIN_SECRET_LENGTH = 16

    def __init__(self, keyring: Dict[str, bytes], current_version: str):
        if current_version not in keyring:
            raise ValueError(f"Current key version {current_version!r} has no master key")
        self._keyring: Optional[Dict[str, bytes]] = dict(keyring)
        self._current_version = current_version

    @classmethod
    def init(
        cls,
        master_key_source: Mapping[str, str],
        current_version: str,
    ) -> "LocalKeyProvider":
        """
        Build a provider from master secrets.

        Args:
            master_key_source: Mapping of version tag -> master secret
            current_version: Version used for new wraps

        Raises:
            ValueError: If a secret is shorter than 16 characters or the
                current version is missing
        """
        keyring = {}
        for version, secret in master_key_source.items():
            if not secret or len(secret) < cls.MIN_SECRET_LENGTH:
                raise ValueError(
                    f"Master key for version {version!r} must be at least "
                    f"{cls.MIN_SECRET_LENGTH} characters"
                )
            keyring[version] = cls._derive(secret, version)

        provider = cls(keyring, current_version)
        logger.info(
            "LocalKeyProvider initialized",
            current_version=current_version,
            versions=",".join(sorted(keyring)),
        )
        return provider

    @classmethod
    def _derive(cls, secret: str, version: str) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.KEY_LENGTH,
            salt=f"lessonguard-content:{version}".encode("utf-8"),
            iterations=cls.PBKDF2_ITERATIONS,
        )
        return kdf.derive(secret.encode("utf-8"))

    @property
    def current_version(self) -> str:
        return self._current_version

    @property
    def closed(self) -> bool:
        return self._keyring is None

    def supports(self, key_version: str) -> bool:
        return self._keyring is not None and key_version in self._keyring

    def _key_for(self, key_version: str) -> bytes:
        if self._keyring is None:
            raise KeyProviderClosedError("Key provider has been torn down")
        try:
            return self._keyring[key_version]
        except KeyError:
            raise UnsupportedKeyVersionError(key_version) from None

    async def wrap_key(self, content_key: bytes) -> Tuple[bytes, str]:
        if not content_key:
            raise ValueError("Content key cannot be empty")

        version = self._current_version
        aesgcm = AESGCM(self._key_for(version))
        nonce = os.urandom(NONCE_LENGTH)
        return nonce + aesgcm.encrypt(nonce, content_key, version.encode("utf-8")), version

    async def unwrap_key(self, wrapped_key: bytes, key_version: str) -> bytes:
        master_key = self._key_for(key_version)

        # nonce (12) + key (>=1) + tag (16)
        if not wrapped_key or len(wrapped_key) < NONCE_LENGTH + 1 + TAG_LENGTH:
            raise IntegrityError("Wrapped key is malformed")

        aesgcm = AESGCM(master_key)
        try:
            return aesgcm.decrypt(
                wrapped_key[:NONCE_LENGTH],
                wrapped_key[NONCE_LENGTH:],
                key_version.encode("utf-8"),
            )
        except InvalidTag as e:
            logger.error("Content key unwrap failed authentication", key_version=key_version)
            raise IntegrityError("Wrapped key failed authentication") from e

    def teardown(self) -> None:
        self._keyring = None
        logger.info("LocalKeyProvider torn down")
