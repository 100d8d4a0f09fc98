"""Navigator Recovery.

Email verification and password reset tokens, backed by an encrypted
global settings store.
"""
from .version import __version__
from .exceptions import (
    DecryptionError,
    FeatureDisabled,
    IneligibleUser,
    InvalidOrExpiredToken,
    NotConfigured,
    RecoveryError,
    StorageError,
    ValidationError,
)
from .vault import Cipher, CipherConfig, GlobalSettings, Setting, SettingsStore
from .tokens import EMAIL_VERIFICATION, PASSWORD_RESET, TokenKind, TokenLifecycleManager
from .flows import EmailVerificationFlow, FlowResult, Outcome, PasswordResetFlow
from .services import RecoveryServices

__all__ = [
    "__version__",
    "DecryptionError",
    "FeatureDisabled",
    "IneligibleUser",
    "InvalidOrExpiredToken",
    "NotConfigured",
    "RecoveryError",
    "StorageError",
    "ValidationError",
    "Cipher",
    "CipherConfig",
    "GlobalSettings",
    "Setting",
    "SettingsStore",
    "EMAIL_VERIFICATION",
    "PASSWORD_RESET",
    "TokenKind",
    "TokenLifecycleManager",
    "EmailVerificationFlow",
    "FlowResult",
    "Outcome",
    "PasswordResetFlow",
    "RecoveryServices",
]
