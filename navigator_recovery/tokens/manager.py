"""
TokenLifecycleManager — Single-use recovery tokens.

Lifecycle of a token: NoToken -> Issued -> Redeemed | Expired.

- ``issue(user_id)`` — replace the user's token of this kind, return the secret
- ``redeem(secret)`` — verify against every live token, consume the match
- ``delete_all_for_user(user_id)`` / ``cleanup_expired()``
- ``schedule_cleanup()`` — fire-and-forget cleanup after a redemption

Only the Argon2id hash of a secret is stored. Because every hash is
salted, a secret cannot be looked up directly: redemption scans all live
tokens of the kind and verifies each one.

Issuing deletes the user's previous tokens and then inserts the new one in
two separate statements. Two concurrent issues for the same user can
therefore leave two live tokens; each stays valid until used or expired.

Security Note:
    Never log secrets or hashes. Only log user ids, token ids and counts.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel

from ..conf import RESET_TOKEN_TTL, VERIFICATION_TOKEN_TTL, utc_now
from ..exceptions import InvalidOrExpiredToken
from ..storage import affected_rows, connection
from .hashing import TOKEN_ID_LENGTH, SecretHasher, generate_secret

logger = logging.getLogger("navigator.recovery.tokens")

# ---------------------------------------------------------------------------
# SQL statements, formatted with the token kind's table
# ---------------------------------------------------------------------------

_INSERT_TOKEN = """
INSERT INTO {table} (id, user_id, token_hash, expires_at)
VALUES ($1, $2, $3, $4)
"""

_SELECT_LIVE_TOKENS = """
SELECT id, user_id, token_hash, expires_at
FROM {table}
WHERE expires_at > $1
"""

_DELETE_TOKEN = """
DELETE FROM {table}
WHERE id = $1
"""

_DELETE_USER_TOKENS = """
DELETE FROM {table}
WHERE user_id = $1
"""

_DELETE_EXPIRED_TOKENS = """
DELETE FROM {table}
WHERE expires_at <= $1
"""


class TokenKind(BaseModel):
    """A family of tokens sharing a table and a lifetime."""

    name: str
    table: str
    ttl: timedelta

    model_config = {"frozen": True}


EMAIL_VERIFICATION = TokenKind(
    name="email_verification",
    table="auth.email_verification_tokens",
    ttl=VERIFICATION_TOKEN_TTL,
)

PASSWORD_RESET = TokenKind(
    name="password_reset",
    table="auth.password_reset_tokens",
    ttl=RESET_TOKEN_TTL,
)


class TokenRecord(BaseModel):
    id: str
    user_id: Union[str, int]
    token_hash: str
    expires_at: datetime


class TokenLifecycleManager:
    """Issues and redeems the tokens of one :class:`TokenKind`."""

    def __init__(
        self,
        kind: TokenKind,
        db_pool: Any,
        hasher: Optional[SecretHasher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.kind = kind
        self._db = db_pool
        self._hasher = hasher or SecretHasher()
        self._clock = clock
        self._pending: set[asyncio.Task] = set()
        table = kind.table
        self._insert = _INSERT_TOKEN.format(table=table)
        self._select_live = _SELECT_LIVE_TOKENS.format(table=table)
        self._delete = _DELETE_TOKEN.format(table=table)
        self._delete_user = _DELETE_USER_TOKENS.format(table=table)
        self._delete_expired = _DELETE_EXPIRED_TOKENS.format(table=table)

    @property
    def ttl(self) -> timedelta:
        return self.kind.ttl

    async def issue(self, user_id: str) -> str:
        """Create a token for ``user_id``, superseding any previous one.

        Returns:
            The plaintext secret. It is not stored; the caller delivers it.
        """
        secret = generate_secret()
        token_hash = await self._hasher.hash(secret)
        expires_at = self._clock() + self.kind.ttl

        await self.delete_all_for_user(user_id)
        async with connection(self._db, f"insert {self.kind.name} token") as conn:
            await conn.execute(
                self._insert,
                generate_secret(TOKEN_ID_LENGTH), user_id, token_hash, expires_at,
            )
        logger.debug("Issued %s token for user=%s", self.kind.name, user_id)
        return secret

    async def redeem(self, secret: str) -> str:
        """Consume the live token matching ``secret``.

        Returns:
            The id of the user owning the token.

        Raises:
            InvalidOrExpiredToken: If no live token matches. Unknown,
                expired and already used secrets are not distinguished.
        """
        if not secret or not isinstance(secret, str):
            raise InvalidOrExpiredToken()

        async with connection(self._db, f"read {self.kind.name} tokens") as conn:
            rows = await conn.fetch(self._select_live, self._clock())

        match: Optional[TokenRecord] = None
        for row in rows:
            record = TokenRecord(**dict(row))
            if await self._hasher.verify(secret, record.token_hash):
                match = record
                break
        if match is None:
            raise InvalidOrExpiredToken()

        async with connection(self._db, f"consume {self.kind.name} token") as conn:
            status = await conn.execute(self._delete, match.id)
        if affected_rows(status) == 0:
            # consumed by a concurrent redemption
            raise InvalidOrExpiredToken()

        logger.debug(
            "Redeemed %s token id=%s for user=%s", self.kind.name, match.id, match.user_id,
        )
        return match.user_id

    async def delete_all_for_user(self, user_id: str) -> None:
        async with connection(self._db, f"delete {self.kind.name} tokens") as conn:
            await conn.execute(self._delete_user, user_id)

    async def cleanup_expired(self) -> int:
        """Delete tokens whose ``expires_at`` has passed.

        Returns:
            Number of deleted tokens.
        """
        async with connection(self._db, f"clean up {self.kind.name} tokens") as conn:
            status = await conn.execute(self._delete_expired, self._clock())
        count = affected_rows(status)
        if count:
            logger.info("Removed %d expired %s token(s)", count, self.kind.name)
        return count

    async def _cleanup_quietly(self) -> None:
        try:
            await self.cleanup_expired()
        except Exception as err:
            logger.error("Expired %s token cleanup failed: %s", self.kind.name, err)

    def schedule_cleanup(self) -> asyncio.Task:
        """Run :meth:`cleanup_expired` in the background; errors are only logged."""
        task = asyncio.create_task(self._cleanup_quietly())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def close(self) -> None:
        """Wait for background cleanups still running."""
        if self._pending:
            await asyncio.gather(*self._pending)
