"""
PasswordResetFlow — let a password user choose a new password.

The reset link (``/reset-password?token=...``) is valid for 10 minutes.
Requests never reveal whether an address belongs to an account: the
caller sees the same success result either way, only the logs differ,
and only for real failures.

After a successful reset every session of the user is deleted, so a
session opened with a stolen link does not survive the owner's reset.
"""
import logging
from typing import Optional

from ..conf import PASSWORD_AUTH_TYPE, PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH, describe_ttl
from ..exceptions import (
    FeatureDisabled,
    IneligibleUser,
    InvalidOrExpiredToken,
    ValidationError,
)
from ..tokens.hashing import SecretHasher
from ..tokens.manager import TokenLifecycleManager
from ..vault.helpers import GlobalSettings
from .base import RecoveryFlow
from .interfaces import (
    EmailMessage,
    FlowResult,
    Notifier,
    Outcome,
    SessionStore,
    UserId,
    UserRecord,
    UserStore,
)

logger = logging.getLogger("navigator.recovery")

REQUEST_ACCEPTED = (
    "If the email address is associated with an account, "
    "a password reset link has been sent."
)


def validate_new_password(password: str) -> None:
    """Raises ValidationError unless the password has an acceptable length."""
    if not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {PASSWORD_MIN_LENGTH} characters long"
        )
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(
            f"Password must be at most {PASSWORD_MAX_LENGTH} characters long"
        )


class PasswordResetFlow(RecoveryFlow):
    """Sends reset links and applies password changes."""

    disabled_message = (
        "Password reset is currently disabled. Email functionality is not enabled."
    )
    invalid_token_message = "Invalid or expired reset token."
    ineligible_message = "This user is not eligible for password reset."
    error_message = "An error occurred during password reset."

    subject = "Reset Your Password"
    template = "password-reset"
    link_path = "reset-password"

    def __init__(
        self,
        tokens: TokenLifecycleManager,
        settings: GlobalSettings,
        users: UserStore,
        notifier: Notifier,
        sessions: SessionStore,
        password_hasher: Optional[SecretHasher] = None,
    ):
        super().__init__(tokens, settings, users, notifier)
        self._sessions = sessions
        self._password_hasher = password_hasher or SecretHasher()

    async def send_reset_email(self, email: str) -> FlowResult:
        """Email a reset link if ``email`` belongs to a password user."""
        try:
            await self.ensure_enabled()
        except FeatureDisabled:
            return self.disabled()
        accepted = self._result(Outcome.SUCCESS, REQUEST_ACCEPTED)
        try:
            user = await self._users.find_by_email(
                email.strip().lower(), PASSWORD_AUTH_TYPE,
            )
        except Exception:
            logger.exception("Error looking up user for password reset")
            return self.error()
        if user is None:
            return accepted
        await self._deliver_reset_link(user)
        return accepted

    async def _deliver_reset_link(self, user: UserRecord) -> None:
        # failures are logged only: the caller's answer must not depend on them
        try:
            secret = await self.tokens.issue(user.id)
            sent = await self._notifier.send(
                EmailMessage(
                    to=user.email,
                    subject=self.subject,
                    template=self.template,
                    variables={
                        "user_name": user.username or user.email,
                        "user_email": user.email,
                        "reset_url": await self.build_link(self.link_path, secret),
                        "expiration_time": describe_ttl(self.tokens.ttl),
                        "support_email": await self.support_email(),
                    },
                )
            )
        except Exception:
            logger.exception("Error sending password reset email to user=%s", user.id)
            return
        if not sent.success:
            logger.error(
                "Password reset email for user=%s was not delivered: %s",
                user.id, sent.error,
            )
        else:
            logger.info("Password reset email sent to user=%s", user.id)

    async def validate_and_reset_password(
        self, secret: str, new_password: str,
    ) -> FlowResult:
        """Redeem a reset token and replace the owner's password."""
        try:
            await self.ensure_enabled()
        except FeatureDisabled:
            return self.disabled()
        try:
            validate_new_password(new_password)
        except ValidationError as err:
            return self._result(Outcome.INVALID_INPUT, str(err))

        try:
            user_id = await self.tokens.redeem(secret)
        except InvalidOrExpiredToken:
            return self.invalid_token()
        except Exception:
            logger.exception("Error redeeming password reset token")
            return self.error()

        try:
            await self._ensure_eligible(user_id)
            password_hash = await self._password_hasher.hash(new_password)
            await self._users.update_password_hash(user_id, password_hash)
        except IneligibleUser:
            logger.warning("Password reset refused for ineligible user=%s", user_id)
            return self.ineligible()
        except Exception:
            logger.exception("Error resetting password of user=%s", user_id)
            return self.error()

        await self.invalidate_all_sessions(user_id)
        self.tokens.schedule_cleanup()
        logger.info("Password reset for user=%s", user_id)
        return self._result(
            Outcome.SUCCESS,
            "Password has been reset successfully. All sessions have been "
            "invalidated. Please log in with your new password.",
            user_id=user_id,
        )

    async def _ensure_eligible(self, user_id: UserId) -> UserRecord:
        """The token owner must still exist and sign in with a password."""
        user = await self._users.get_user(user_id)
        if user is None or user.auth_type != PASSWORD_AUTH_TYPE:
            raise IneligibleUser(self.ineligible_message)
        return user

    async def invalidate_all_sessions(self, user_id: UserId) -> None:
        """Delete every session of the user; failures are logged only."""
        try:
            await self._sessions.delete_all_sessions_for_user(user_id)
        except Exception:
            logger.exception("Error invalidating sessions of user=%s", user_id)

    async def is_password_reset_available(self) -> bool:
        return await self.is_enabled()
