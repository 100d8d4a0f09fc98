"""
EmailVerificationFlow — confirm that a user owns their email address.

The user receives a ``/verify-email?token=...`` link valid for 24 hours.
Redeeming it marks the user as verified.
"""
import logging

from ..conf import PASSWORD_AUTH_TYPE, describe_ttl
from ..exceptions import FeatureDisabled, InvalidOrExpiredToken
from .base import RecoveryFlow
from .interfaces import EmailMessage, FlowResult, Outcome, UserId

logger = logging.getLogger("navigator.recovery")


class EmailVerificationFlow(RecoveryFlow):
    """Sends verification links and redeems them."""

    disabled_message = "Email verification is currently disabled."
    invalid_token_message = "Invalid or expired verification token."
    ineligible_message = "Email address is already verified."
    error_message = "An error occurred during email verification."

    subject = "Verify Your Email Address"
    template = "email-verification"
    link_path = "verify-email"

    async def send_verification_email(
        self, user_id: UserId, email: str, display_name: str,
    ) -> FlowResult:
        """Issue a token for ``user_id`` and email the verification link."""
        try:
            await self.ensure_enabled()
        except FeatureDisabled:
            return self.disabled()
        try:
            secret = await self.tokens.issue(user_id)
            message = EmailMessage(
                to=email,
                subject=self.subject,
                template=self.template,
                variables={
                    "user_name": display_name,
                    "user_email": email,
                    "verification_url": await self.build_link(self.link_path, secret),
                    "expiration_time": describe_ttl(self.tokens.ttl),
                    "support_email": await self.support_email(),
                },
            )
            sent = await self._notifier.send(message)
        except Exception:
            logger.exception("Error sending verification email to user=%s", user_id)
            return self.error()
        if not sent.success:
            logger.error(
                "Verification email for user=%s was not delivered: %s",
                user_id, sent.error,
            )
            return self.error()
        logger.info("Verification email sent to user=%s", user_id)
        return self._result(
            Outcome.SUCCESS, "Verification email sent.", user_id=user_id,
        )

    async def verify_token(self, secret: str) -> FlowResult:
        """Redeem a verification token and mark its owner verified.

        The token is consumed before the user is updated; if the update
        fails the link is spent and the user needs a fresh one from
        :meth:`resend_verification`.
        """
        try:
            user_id = await self.tokens.redeem(secret)
        except InvalidOrExpiredToken:
            return self.invalid_token()
        except Exception:
            logger.exception("Error redeeming verification token")
            return self.error()
        try:
            await self._users.mark_email_verified(user_id)
        except Exception:
            logger.exception("Error marking user=%s as verified", user_id)
            return self.error()
        self.tokens.schedule_cleanup()
        logger.info("Email verified for user=%s", user_id)
        return self._result(
            Outcome.SUCCESS, "Email verified successfully.", user_id=user_id,
        )

    async def resend_verification(self, email: str) -> FlowResult:
        """Send a fresh link to an unverified password user.

        Unknown addresses and users of other sign-in methods get the same
        success result without any email being sent.
        """
        try:
            await self.ensure_enabled()
        except FeatureDisabled:
            return self.disabled()
        try:
            user = await self._users.find_by_email(email.strip().lower())
        except Exception:
            logger.exception("Error looking up user for verification resend")
            return self.error()
        if user is None or user.auth_type != PASSWORD_AUTH_TYPE:
            return self._result(
                Outcome.SUCCESS,
                "If the email address exists and is not verified, "
                "a verification email has been sent.",
            )
        if user.email_verified:
            return self.ineligible()
        return await self.send_verification_email(
            user.id, user.email, user.username or user.email,
        )

    async def is_verification_required(self) -> bool:
        return await self.is_enabled()

    async def is_email_verified(self, user_id: UserId) -> bool:
        try:
            user = await self._users.get_user(user_id)
        except Exception:
            logger.exception("Error checking verification status of user=%s", user_id)
            return False
        return user is not None and user.email_verified
