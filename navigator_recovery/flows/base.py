"""Shared plumbing of the recovery flows."""
import logging
from typing import Optional
from urllib.parse import urlencode

from ..conf import DEFAULT_PAGE_URL, PAGE_URL_KEY, SEND_MAIL_KEY, SUPPORT_EMAIL_KEY
from ..exceptions import FeatureDisabled
from ..tokens.manager import TokenLifecycleManager
from ..vault.helpers import GlobalSettings
from .interfaces import FlowResult, Notifier, Outcome, UserId, UserStore

logger = logging.getLogger("navigator.recovery")


class RecoveryFlow:
    """Base class: feature gating, link building and fixed results."""

    disabled_message = "Email functionality is not enabled."
    invalid_token_message = "Invalid or expired token."
    ineligible_message = "This user is not eligible for this operation."
    error_message = "An unexpected error occurred."

    def __init__(
        self,
        tokens: TokenLifecycleManager,
        settings: GlobalSettings,
        users: UserStore,
        notifier: Notifier,
    ):
        self.tokens = tokens
        self._settings = settings
        self._users = users
        self._notifier = notifier

    async def is_enabled(self) -> bool:
        """Recovery emails are gated by ``global.send_mail`` (default off)."""
        return bool(await self._settings.get_boolean(SEND_MAIL_KEY, False))

    async def ensure_enabled(self) -> None:
        """Raises FeatureDisabled when recovery emails are switched off."""
        if not await self.is_enabled():
            raise FeatureDisabled(self.disabled_message)

    async def build_link(self, path: str, secret: str) -> str:
        base_url = await self._settings.get(PAGE_URL_KEY, DEFAULT_PAGE_URL)
        return f"{base_url.rstrip('/')}/{path}?{urlencode({'token': secret})}"

    async def support_email(self) -> Optional[str]:
        return await self._settings.get(SUPPORT_EMAIL_KEY)

    def _result(
        self, outcome: Outcome, message: str, user_id: Optional[UserId] = None,
    ) -> FlowResult:
        return FlowResult(outcome=outcome, message=message, user_id=user_id)

    def disabled(self) -> FlowResult:
        return self._result(Outcome.DISABLED, self.disabled_message)

    def invalid_token(self) -> FlowResult:
        return self._result(Outcome.INVALID_TOKEN, self.invalid_token_message)

    def ineligible(self) -> FlowResult:
        return self._result(Outcome.INELIGIBLE, self.ineligible_message)

    def error(self) -> FlowResult:
        return self._result(Outcome.ERROR, self.error_message)
