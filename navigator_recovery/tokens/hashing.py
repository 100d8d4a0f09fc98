"""
Secret generation and Argon2id hashing.

Recovery secrets and user passwords are hashed with the same fixed cost
parameters; hashing and verification must agree on them.

Security Note:
    Never log secrets or their hashes.
"""
import asyncio
import secrets
import string

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError

ARGON2_MEMORY_COST = 19456  # KiB
ARGON2_TIME_COST = 2
ARGON2_PARALLELISM = 1
ARGON2_HASH_LENGTH = 32

SECRET_LENGTH = 32
TOKEN_ID_LENGTH = 15

_ALPHABET = string.ascii_lowercase + string.digits


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """Random string of lowercase letters and digits from ``secrets``."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class SecretHasher:
    """Argon2id hasher; blocking work runs in a worker thread."""

    def __init__(
        self,
        memory_cost: int = ARGON2_MEMORY_COST,
        time_cost: int = ARGON2_TIME_COST,
        parallelism: int = ARGON2_PARALLELISM,
        hash_len: int = ARGON2_HASH_LENGTH,
    ):
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            type=Type.ID,
        )

    def _verify(self, secret: str, encoded: str) -> bool:
        try:
            return self._hasher.verify(encoded, secret)
        except (VerificationError, InvalidHashError):
            return False

    async def hash(self, secret: str) -> str:
        """Return the Argon2id encoded hash of ``secret``."""
        return await asyncio.to_thread(self._hasher.hash, secret)

    async def verify(self, secret: str, encoded: str) -> bool:
        """True if ``secret`` matches ``encoded``; malformed hashes never match."""
        return await asyncio.to_thread(self._verify, secret, encoded)
