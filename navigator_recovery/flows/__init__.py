"""Recovery flows — email verification and password reset."""

from .interfaces import (
    EmailMessage,
    FlowResult,
    Notifier,
    Outcome,
    SendResult,
    SessionStore,
    UserRecord,
    UserStore,
)
from .base import RecoveryFlow
from .email_verification import EmailVerificationFlow
from .password_reset import PasswordResetFlow, validate_new_password

__all__ = [
    "EmailMessage",
    "FlowResult",
    "Notifier",
    "Outcome",
    "SendResult",
    "SessionStore",
    "UserRecord",
    "UserStore",
    "RecoveryFlow",
    "EmailVerificationFlow",
    "PasswordResetFlow",
    "validate_new_password",
]
