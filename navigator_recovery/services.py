"""
RecoveryServices — builds the recovery components from their dependencies.

One instance per application; tests build as many independent ones as
they need. Nothing is cached at class level.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .conf import utc_now
from .flows import EmailVerificationFlow, Notifier, PasswordResetFlow, SessionStore, UserStore
from .tokens import EMAIL_VERIFICATION, PASSWORD_RESET, SecretHasher, TokenLifecycleManager
from .vault import (
    Cipher,
    CipherConfig,
    GlobalSettings,
    SettingsStore,
    initialize_settings,
)
from .vault.definitions import InitializationResult

logger = logging.getLogger("navigator.recovery")


class RecoveryServices:
    """Cipher, settings, token managers and flows sharing one pool."""

    def __init__(
        self,
        db_pool: Any,
        users: UserStore,
        sessions: SessionStore,
        notifier: Notifier,
        config: Optional[CipherConfig] = None,
        hasher: Optional[SecretHasher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._db = db_pool
        self._users = users
        self._sessions = sessions
        self._notifier = notifier
        self._clock = clock
        self._hasher = hasher or SecretHasher()
        self.verification_tokens = TokenLifecycleManager(
            EMAIL_VERIFICATION, db_pool, hasher=self._hasher, clock=clock,
        )
        self.reset_tokens = TokenLifecycleManager(
            PASSWORD_RESET, db_pool, hasher=self._hasher, clock=clock,
        )
        self._build(config or CipherConfig.from_env())

    def _build(self, config: CipherConfig) -> None:
        self.config = config
        self.cipher = Cipher.from_config(config)
        self.settings_store = SettingsStore(self._db, self.cipher, clock=self._clock)
        self.settings = GlobalSettings(self.settings_store)
        self.email_verification = EmailVerificationFlow(
            self.verification_tokens, self.settings, self._users, self._notifier,
        )
        self.password_reset = PasswordResetFlow(
            self.reset_tokens,
            self.settings,
            self._users,
            self._notifier,
            self._sessions,
            password_hasher=self._hasher,
        )

    def refresh(self, config: Optional[CipherConfig] = None) -> None:
        """Rebuild everything that depends on the cipher.

        Without an explicit config the environment is read again, so a
        new NAVIGATOR_ENCRYPTION_SECRET takes effect here.
        """
        self._build(config or CipherConfig.from_env())
        logger.info("Recovery services refreshed")

    def self_test(self) -> bool:
        return self.cipher.self_test()

    async def initialize(self) -> InitializationResult:
        """Seed the built-in setting modules (never overwrites)."""
        return await initialize_settings(self.settings_store)

    async def close(self) -> None:
        await self.verification_tokens.close()
        await self.reset_tokens.close()
