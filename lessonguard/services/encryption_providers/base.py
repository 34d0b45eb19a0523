"""
Abstract base class for master key providers.

Key providers wrap and unwrap per-content keys as part of the envelope
encryption pattern:
1. Each premium lesson body gets its own random content key
2. The content key encrypts the lesson body (AES-256-GCM)
3. The provider's master key encrypts ("wraps") the content key
4. Only the wrapped content key is stored next to the ciphertext

The master key material never leaves the provider. Providers are created
once per process, injected into EnvelopeEncryptionService and torn down on
shutdown.
"""

from abc import ABC, abstractmethod
from typing import Tuple


class KeyProviderClosedError(Exception):
    """Raised when a provider is used after teardown()."""
    pass


class KeyProvider(ABC):
    """
    Abstract base class for master key providers.

    Implementations hold one or more master keys, each identified by a
    version tag. New wraps always use current_version; older versions stay
    available for unwrapping until their content has been re-encrypted.

    Example:
        >>> provider = LocalKeyProvider.init({"v1": "..."}, current_version="v1")
        >>> wrapped, version = await provider.wrap_key(os.urandom(32))
        >>> content_key = await provider.unwrap_key(wrapped, version)
        >>> provider.teardown()
    """

    @property
    @abstractmethod
    def current_version(self) -> str:
        """Version tag used for new wraps (e.g. "v1")."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether teardown() has discarded the key material."""
        pass

    @abstractmethod
    def supports(self, key_version: str) -> bool:
        """Whether this provider can unwrap keys produced under key_version."""
        pass

    @abstractmethod
    async def wrap_key(self, content_key: bytes) -> Tuple[bytes, str]:
        """
        Encrypt a content key under the current master key.

        Args:
            content_key: Raw content key bytes (32 bytes for AES-256)

        Returns:
            Tuple of (wrapped key bytes, key version tag)

        Raises:
            ValueError: If content_key is empty
            KeyProviderClosedError: If the provider was torn down
        """
        pass

    @abstractmethod
    async def unwrap_key(self, wrapped_key: bytes, key_version: str) -> bytes:
        """
        Decrypt a wrapped content key.

        Args:
            wrapped_key: Bytes returned by wrap_key
            key_version: Version tag returned by wrap_key

        Returns:
            Raw content key bytes

        Raises:
            UnsupportedKeyVersionError: If key_version is unknown
            IntegrityError: If the wrapped key fails authentication
            KeyProviderClosedError: If the provider was torn down
        """
        pass

    @abstractmethod
    def teardown(self) -> None:
        """Discard key material. Further wrap/unwrap calls must fail."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} version={self.current_version}>"
