"""
Encryption providers package.

Provides master key providers for envelope encryption of lesson content.
Each provider implements the KeyProvider ABC for wrapping/unwrapping
per-content keys.

Available providers:
- LocalKeyProvider: Versioned master secrets from settings, PBKDF2-derived
- (Future) AWSKMSProvider: Uses AWS KMS for key management
"""

from lessonguard.services.encryption_providers.base import KeyProvider, KeyProviderClosedError

__all__ = ["KeyProvider", "KeyProviderClosedError"]
