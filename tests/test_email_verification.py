"""
Tests for EmailVerificationFlow.
"""
import pytest

from navigator_recovery.flows import Outcome, SendResult, UserRecord

from conftest import token_from


@pytest.fixture
def bob(users):
    return users.add(UserRecord(
        id=2,
        email="bob@example.com",
        username="bob",
        auth_type="email_signup",
        email_verified=True,
    ))


@pytest.fixture
def carol(users):
    return users.add(UserRecord(
        id=3, email="carol@example.com", auth_type="google",
    ))


class TestDisabled:
    """Without global.send_mail nothing is sent."""

    async def test_send(self, verification_flow, alice, notifier):
        """No verification email is sent while mail is off."""
        result = await verification_flow.send_verification_email(
            alice.id, alice.email, "Alice",
        )
        assert result.outcome is Outcome.DISABLED
        assert notifier.sent == []

    async def test_resend(self, verification_flow, alice, notifier):
        """Resends are refused while mail is off."""
        result = await verification_flow.resend_verification(alice.email)
        assert result.outcome is Outcome.DISABLED
        assert notifier.sent == []

    async def test_explicitly_off(self, verification_flow, db, alice):
        """An explicit off value disables verification."""
        db.put_setting("global.send_mail", "off")
        assert await verification_flow.is_verification_required() is False


@pytest.mark.usefixtures("mail_enabled")
class TestSendVerification:
    async def test_message(self, verification_flow, alice, notifier):
        """The email links to the frontend with a fresh token."""
        result = await verification_flow.send_verification_email(
            alice.id, alice.email, "Alice",
        )
        assert result.success
        assert result.user_id == alice.id

        (message,) = notifier.sent
        assert message.to == "alice@example.com"
        assert message.subject == "Verify Your Email Address"
        assert message.template == "email-verification"
        assert message.variables["user_name"] == "Alice"
        assert message.variables["user_email"] == "alice@example.com"
        assert message.variables["expiration_time"] == "24 hours"
        assert message.variables["support_email"] == "support@example.com"
        assert message.variables["verification_url"].startswith(
            "https://app.example.com/verify-email?token="
        )

    async def test_default_page_url(self, verification_flow, db, alice, notifier):
        """Without a page URL the local frontend address is used."""
        del db.settings["global.page_url"]
        await verification_flow.send_verification_email(alice.id, alice.email, "Alice")
        assert notifier.sent[0].variables["verification_url"].startswith(
            "http://localhost:5173/verify-email?token="
        )

    async def test_undelivered(self, verification_flow, alice, notifier, caplog):
        """Delivery errors are logged but not shown to the caller."""
        notifier.result = SendResult(success=False, error="mailbox full")
        result = await verification_flow.send_verification_email(
            alice.id, alice.email, "Alice",
        )
        assert result.outcome is Outcome.ERROR
        assert "mailbox full" in caplog.text
        assert "mailbox full" not in result.message

    async def test_notifier_raises(self, verification_flow, alice, notifier):
        """A notifier exception becomes the generic error."""
        notifier.broken = True
        result = await verification_flow.send_verification_email(
            alice.id, alice.email, "Alice",
        )
        assert result.outcome is Outcome.ERROR
        assert result.message == verification_flow.error_message

    async def test_is_required(self, verification_flow):
        """Verification is required once mail is on."""
        assert await verification_flow.is_verification_required() is True


@pytest.mark.usefixtures("mail_enabled")
class TestVerifyToken:
    async def test_marks_user_verified(self, verification_flow, alice, users, notifier, db):
        """A valid token verifies the user and is removed."""
        await verification_flow.send_verification_email(alice.id, alice.email, "Alice")
        secret = token_from(notifier.sent[0], "verification_url")

        result = await verification_flow.verify_token(secret)
        assert result.success
        assert result.user_id == alice.id
        assert users.users[alice.id].email_verified is True
        assert await verification_flow.is_email_verified(alice.id) is True
        await verification_flow.tokens.close()
        assert db.tokens[verification_flow.tokens.kind.table] == {}

    async def test_single_use(self, verification_flow, alice, notifier):
        """A token verifies only once."""
        await verification_flow.send_verification_email(alice.id, alice.email, "Alice")
        secret = token_from(notifier.sent[0], "verification_url")
        assert (await verification_flow.verify_token(secret)).success
        result = await verification_flow.verify_token(secret)
        assert result.outcome is Outcome.INVALID_TOKEN

    async def test_unknown_token(self, verification_flow):
        """Unknown tokens are reported as invalid or expired."""
        result = await verification_flow.verify_token("nosuchtoken")
        assert result.outcome is Outcome.INVALID_TOKEN
        assert result.message == "Invalid or expired verification token."

    async def test_user_update_fails(self, verification_flow, alice, users, notifier):
        """A failed user update is an error."""
        await verification_flow.send_verification_email(alice.id, alice.email, "Alice")
        secret = token_from(notifier.sent[0], "verification_url")
        users.broken = True
        result = await verification_flow.verify_token(secret)
        assert result.outcome is Outcome.ERROR

    async def test_storage_down(self, verification_flow, db):
        """Storage failures are errors, not invalid tokens."""
        db.unavailable = True
        result = await verification_flow.verify_token("sometoken")
        assert result.outcome is Outcome.ERROR


@pytest.mark.usefixtures("mail_enabled")
class TestResend:
    async def test_unverified_user(self, verification_flow, alice, notifier):
        """The address is normalized before lookup."""
        result = await verification_flow.resend_verification("  ALICE@example.com ")
        assert result.success
        assert notifier.sent[0].to == "alice@example.com"
        assert notifier.sent[0].variables["user_name"] == "alice"

    async def test_resend_supersedes(self, verification_flow, alice, notifier):
        """Only the latest link works."""
        await verification_flow.resend_verification(alice.email)
        await verification_flow.resend_verification(alice.email)
        first, second = (token_from(m, "verification_url") for m in notifier.sent)
        assert (await verification_flow.verify_token(first)).outcome is Outcome.INVALID_TOKEN
        assert (await verification_flow.verify_token(second)).success

    async def test_already_verified(self, verification_flow, bob, notifier):
        """Verified users are told so and get no email."""
        result = await verification_flow.resend_verification(bob.email)
        assert result.outcome is Outcome.INELIGIBLE
        assert notifier.sent == []

    async def test_unknown_address(self, verification_flow, notifier):
        """Unknown addresses get a success without an email."""
        result = await verification_flow.resend_verification("nobody@example.com")
        assert result.success
        assert notifier.sent == []

    async def test_other_sign_in_method(self, verification_flow, carol, notifier):
        """Accounts using another sign-in method get no email."""
        result = await verification_flow.resend_verification(carol.email)
        assert result.success
        assert notifier.sent == []

    async def test_lookup_fails(self, verification_flow, users):
        """A failed user lookup is an error."""
        users.broken = True
        result = await verification_flow.resend_verification("alice@example.com")
        assert result.outcome is Outcome.ERROR


class TestVerificationStatus:
    async def test_unknown_user(self, verification_flow):
        """Unknown users are not verified."""
        assert await verification_flow.is_email_verified(99) is False

    async def test_lookup_fails(self, verification_flow, users, alice):
        """A failed lookup reads as not verified."""
        users.broken = True
        assert await verification_flow.is_email_verified(alice.id) is False
