"""
Symmetric encryption for stored tenant credentials.

Uses Fernet from the cryptography library. The key comes from
SecurityConfig and is passed in explicitly by the composition root; this
module never reads the environment.
"""

import base64
import binascii

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import SecurityConfig
from ..domain.errors import ConfigurationError, DecryptionFailedError
from ..utils.logging import get_module_logger

logger = get_module_logger()


def _derive_key(passphrase: str, salt: str, iterations: int) -> bytes:
    """Stretch a passphrase into a urlsafe-base64 Fernet key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class SecretCipher:
    """
    Encrypts and decrypts credential secrets.

    The configured key is used as-is when it is already a Fernet key;
    anything else is treated as a passphrase and run through PBKDF2-HMAC-SHA256.

    Usage:
        cipher = SecretCipher.from_config(settings.security)
        password = cipher.decrypt(credential.password_encrypted)
    """

    def __init__(self, fernet: Fernet):
        self._fernet = fernet

    @classmethod
    def from_config(cls, config: SecurityConfig) -> "SecretCipher":
        """
        Raises:
            ConfigurationError: If the key is empty
        """
        if not config.encryption_key:
            raise ConfigurationError("encryption key is not configured")

        try:
            fernet = Fernet(config.encryption_key.encode("utf-8"))
            logger.info("Secret cipher initialized", key_source="fernet_key")
        except (ValueError, binascii.Error):
            fernet = Fernet(_derive_key(
                config.encryption_key,
                config.key_derivation_salt,
                config.key_derivation_iterations,
            ))
            logger.info("Secret cipher initialized", key_source="passphrase")

        return cls(fernet)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored secret.

        Raises:
            DecryptionFailedError: If the token is malformed, was produced with
                another key, or does not decode as UTF-8
        """
        if not ciphertext:
            raise DecryptionFailedError("stored credential secret is empty")

        try:
            return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except (InvalidToken, UnicodeDecodeError) as e:
            # Never log the ciphertext or any part of the key
            logger.error("Credential decryption failed", error_type=type(e).__name__)
            raise DecryptionFailedError("failed to decrypt database credentials") from e
