"""Private key encryption at rest.

Uses Fernet (AES-128-CBC with HMAC) for symmetric encryption.
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from forgebot.config import Settings

logger = logging.getLogger(__name__)


def generate_encryption_key() -> str:
    """Generate a new Fernet key (base64, 32 bytes)."""
    return Fernet.generate_key().decode()


class KeyEncryptor:
    """Encrypts and decrypts wallet private keys.

    Usage:
        encryptor = KeyEncryptor(encryption_key)
        encrypted = encryptor.encrypt("0x...")
        decrypted = encryptor.decrypt(encrypted)
    """

    def __init__(self, encryption_key: str):
        """Initialize with a Fernet key.

        Raises:
            ValueError: if the key is not a valid Fernet key
        """
        try:
            self._fernet = Fernet(encryption_key.encode())
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid wallet encryption key: {e}") from e

    def encrypt(self, private_key: str) -> str:
        return self._fernet.encrypt(private_key.encode()).decode()

    def decrypt(self, encrypted: str) -> str:
        """Decrypt a stored key.

        Raises:
            ValueError: if the ciphertext was not produced with this key
        """
        try:
            return self._fernet.decrypt(encrypted.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Stored key cannot be decrypted with the configured key") from e

    def verify(self) -> bool:
        """Round-trip a probe value."""
        probe = "forgebot-key-check"
        try:
            return self.decrypt(self.encrypt(probe)) == probe
        except ValueError:
            return False


def create_key_encryptor(settings: Settings, key: Optional[str] = None) -> KeyEncryptor:
    """Build the encryptor from configuration.

    Outside production an ephemeral key is generated when none is configured;
    wallets created with it are unreadable after restart.
    """
    key = key or settings.wallet_encryption_key
    if not key:
        if settings.is_production:
            raise ValueError("WALLET_ENCRYPTION_KEY must be set in production")
        logger.warning("WALLET_ENCRYPTION_KEY not set - using an ephemeral key")
        key = generate_encryption_key()
    return KeyEncryptor(key)
