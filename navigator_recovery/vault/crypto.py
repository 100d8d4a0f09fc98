"""
Vault Crypto Core — Key derivation and authenticated encryption of settings.

Settings marked as encrypted are stored as:
    scrypt(secret, fixed salt) → AES-256-GCM → "<nonce>:<tag>:<ciphertext>" (hex)

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 128-bit; collision probability negligible under normal usage.
"""
import os
import re
import logging

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import DecryptionError
from .config import CipherConfig, DEFAULT_SCRYPT_COST

logger = logging.getLogger("navigator.recovery.vault")

NONCE_SIZE = 16  # 128-bit nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_LENGTH = 32  # AES-256

SCRYPT_BLOCK_SIZE = 8
SCRYPT_PARALLELISM = 1

# Fixed salt: the same secret must always yield the same key.
KDF_SALT = b"navigator-recovery-settings-salt"
# Binds every ciphertext to the settings domain.
ASSOCIATED_DATA = b"navigator-recovery-settings"

_SELF_TEST_VALUE = "navigator-recovery-cipher-self-test"
# bytes.fromhex tolerates whitespace; stored values must not contain any
_HEX_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2})*\Z")


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(secret: str, cost: int = DEFAULT_SCRYPT_COST) -> bytes:
    """Derive a 32-byte encryption key using scrypt.

    Args:
        secret: Operator supplied secret.
        cost: scrypt CPU/memory cost parameter (power of two).

    Returns:
        32-byte derived key.
    """
    kdf = Scrypt(
        salt=KDF_SALT,
        length=KEY_LENGTH,
        n=cost,
        r=SCRYPT_BLOCK_SIZE,
        p=SCRYPT_PARALLELISM,
    )
    return kdf.derive(secret.encode("utf-8"))


def is_well_formed(value: str) -> bool:
    """Check whether a string has the shape of a settings ciphertext.

    Only the shape is checked (three parts, 32 hex chars of nonce and tag);
    nothing is decrypted.
    """
    if not isinstance(value, str):
        return False
    parts = value.split(":")
    return (
        len(parts) == 3
        and len(parts[0]) == NONCE_SIZE * 2
        and len(parts[1]) == TAG_SIZE * 2
    )


# ---------------------------------------------------------------------------
# Cipher
# ---------------------------------------------------------------------------

class Cipher:
    """AES-256-GCM cipher for setting values.

    The key is derived once, when the instance is built. Rotating the
    secret means building a new Cipher from the new configuration.
    """

    def __init__(self, secret: str, cost: int = DEFAULT_SCRYPT_COST):
        self._aead = AESGCM(derive_key(secret, cost))

    @classmethod
    def from_config(cls, config: CipherConfig) -> "Cipher":
        if config.is_development:
            logger.warning(
                "Cipher built from the development secret; do not use in production"
            )
        return cls(config.secret, config.scrypt_cost)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string.

        Args:
            plaintext: Value to protect.

        Returns:
            ``hex(nonce):hex(tag):hex(ciphertext)``.
        """
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(
            nonce, plaintext.encode("utf-8"), ASSOCIATED_DATA,
        )
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value produced by :meth:`encrypt`.

        Args:
            ciphertext: ``hex(nonce):hex(tag):hex(ciphertext)``.

        Returns:
            Decrypted plaintext.

        Raises:
            DecryptionError: If the value is malformed, was tampered with,
                or was encrypted under a different secret.
        """
        parts = ciphertext.split(":") if isinstance(ciphertext, str) else []
        if len(parts) != 3:
            raise DecryptionError(
                "Invalid encrypted data format, expected nonce:tag:ciphertext"
            )
        if not all(_HEX_PATTERN.match(part) for part in parts):
            raise DecryptionError("Invalid encrypted data format, expected hex encoding")
        try:
            nonce = bytes.fromhex(parts[0])
            tag = bytes.fromhex(parts[1])
            body = bytes.fromhex(parts[2])
            if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
                raise ValueError("nonce or tag has the wrong size")
            plaintext = self._aead.decrypt(nonce, body + tag, ASSOCIATED_DATA)
            return plaintext.decode("utf-8")
        except (ValueError, InvalidTag) as err:
            raise DecryptionError("Decryption failed") from err

    def is_well_formed(self, value: str) -> bool:
        return is_well_formed(value)

    def self_test(self) -> bool:
        """Round-trip a fixed value; used by health checks."""
        try:
            return self.decrypt(self.encrypt(_SELF_TEST_VALUE)) == _SELF_TEST_VALUE
        except Exception as err:  # health check must never raise
            logger.error("Cipher self-test failed: %s", type(err).__name__)
            return False
