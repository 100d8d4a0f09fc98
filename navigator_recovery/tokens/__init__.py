"""Recovery tokens — hashed, single-use, time-limited secrets."""

from .hashing import SecretHasher, generate_secret
from .manager import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    TokenKind,
    TokenLifecycleManager,
    TokenRecord,
)

__all__ = [
    "SecretHasher",
    "generate_secret",
    "EMAIL_VERIFICATION",
    "PASSWORD_RESET",
    "TokenKind",
    "TokenLifecycleManager",
    "TokenRecord",
]
