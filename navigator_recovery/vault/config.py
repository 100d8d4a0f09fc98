"""
Vault Configuration — Encryption secret loading and validated settings.

Reads the operator secret from the environment:
    NAVIGATOR_ENCRYPTION_SECRET = <any high-entropy string>
    NAVIGATOR_SCRYPT_COST = <power of two, optional>

Security Note:
    Never log the secret itself. When the variable is missing a well-known
    development secret is used and a warning is logged; anything encrypted
    under it is readable by anyone with this source code.
"""
import os
import secrets
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.recovery.vault")

ENCRYPTION_SECRET_ENV = "NAVIGATOR_ENCRYPTION_SECRET"
SCRYPT_COST_ENV = "NAVIGATOR_SCRYPT_COST"

# Insecure: for local development only, never for deployed instances.
DEVELOPMENT_ENCRYPTION_SECRET = "navigator-development-secret-change-in-production"

DEFAULT_SCRYPT_COST = 2 ** 14


def load_encryption_secret() -> str:
    """Read the encryption secret from NAVIGATOR_ENCRYPTION_SECRET.

    Returns:
        The configured secret, or DEVELOPMENT_ENCRYPTION_SECRET if unset.
    """
    secret = os.environ.get(ENCRYPTION_SECRET_ENV)
    if not secret:
        logger.warning(
            "%s is not set; falling back to the insecure development secret. "
            "Encrypted settings are NOT protected.",
            ENCRYPTION_SECRET_ENV,
        )
        return DEVELOPMENT_ENCRYPTION_SECRET
    return secret


def generate_encryption_secret() -> str:
    """Generate a random secret suitable for NAVIGATOR_ENCRYPTION_SECRET.

    This is a utility for operators to generate new secrets.

    Returns:
        URL-safe random string (48 bytes of entropy).
    """
    return secrets.token_urlsafe(48)


class CipherConfig(BaseModel):
    """Validated cipher configuration."""

    secret: str = Field(min_length=1)
    scrypt_cost: int = Field(default=DEFAULT_SCRYPT_COST, ge=2 ** 10, le=2 ** 20)

    model_config = {"frozen": True}

    @field_validator("scrypt_cost")
    @classmethod
    def validate_scrypt_cost(cls, v: int) -> int:
        """scrypt requires the CPU/memory cost to be a power of two."""
        if v & (v - 1):
            raise ValueError(f"scrypt_cost must be a power of two, got {v}")
        return v

    @property
    def is_development(self) -> bool:
        return self.secret == DEVELOPMENT_ENCRYPTION_SECRET

    @classmethod
    def from_env(cls) -> "CipherConfig":
        """Create CipherConfig by loading values from environment.

        Returns:
            Populated CipherConfig instance.
        """
        secret = load_encryption_secret()
        cost = int(os.environ.get(SCRYPT_COST_ENV, DEFAULT_SCRYPT_COST))
        return cls(secret=secret, scrypt_cost=cost)
