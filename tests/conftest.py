"""
Shared fixtures: an in-memory asyncpg-compatible pool, a controllable
clock and fake user, session and mail collaborators.

The fake pool answers exactly the SQL statements the package issues, so a
changed statement shows up as an ``AssertionError`` rather than as silently
wrong data.
"""
import contextlib
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from navigator_recovery.flows import (
    EmailMessage,
    EmailVerificationFlow,
    PasswordResetFlow,
    SendResult,
    UserRecord,
)
from navigator_recovery.tokens import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    SecretHasher,
    TokenLifecycleManager,
)
from navigator_recovery.tokens import manager as token_sql
from navigator_recovery.vault import Cipher, GlobalSettings, SettingsStore
from navigator_recovery.vault import key_rotation as rotation_sql
from navigator_recovery.vault import settings_store as settings_sql

TEST_SECRET = "test-encryption-secret"
OTHER_SECRET = "another-encryption-secret"
TEST_SCRYPT_COST = 2 ** 10


# --- Fake database ---

class FakeTransaction:
    def __init__(self, db: "FakeDatabase"):
        self._db = db
        self._snapshot = None

    async def start(self):
        self._snapshot = self._db.snapshot()

    async def commit(self):
        self._snapshot = None

    async def rollback(self):
        self._db.restore(self._snapshot)


class FakeConnection:
    """Routes each statement to the FakeDatabase handler registered for it."""

    def __init__(self, db: "FakeDatabase"):
        self._db = db

    def _handler(self, sql: str):
        if sql in self._db.failing:
            raise RuntimeError("connection reset by peer")
        try:
            return self._db.handlers[sql]
        except KeyError:
            raise AssertionError(f"Unexpected statement: {sql}") from None

    async def fetch(self, sql: str, *args):
        return self._handler(sql)(*args)

    async def fetchrow(self, sql: str, *args):
        return self._handler(sql)(*args)

    async def fetchval(self, sql: str, *args):
        return self._handler(sql)(*args)

    async def execute(self, sql: str, *args):
        return self._handler(sql)(*args)

    def transaction(self):
        return FakeTransaction(self._db)


class FakeDatabase:
    """The three tables of the package, kept in dictionaries."""

    def __init__(self):
        self.settings: dict[str, dict] = {}
        self.groups: dict[str, dict] = {}
        self.tokens: dict[str, dict[str, dict]] = {
            EMAIL_VERIFICATION.table: {},
            PASSWORD_RESET.table: {},
        }
        self.failing: set[str] = set()
        self.unavailable = False
        self.handlers = {
            settings_sql._SELECT_SETTING: self._select_setting,
            settings_sql._SELECT_ALL: self._select_all,
            settings_sql._SELECT_BY_GROUP: self._select_by_group,
            settings_sql._SEARCH_SETTINGS: self._search,
            settings_sql._SELECT_CATEGORIES: self._categories,
            settings_sql._SETTING_EXISTS: self._exists,
            settings_sql._UPSERT_SETTING: self._upsert,
            settings_sql._UPDATE_SETTING: self._update,
            settings_sql._DELETE_SETTING: self._delete_setting,
            settings_sql._SELECT_GROUP: self._select_group,
            settings_sql._SELECT_ALL_GROUPS: self._select_all_groups,
            settings_sql._INSERT_GROUP: self._insert_group,
            rotation_sql._SELECT_BATCH: self._select_encrypted_batch,
            rotation_sql._UPDATE_VALUE: self._update_value,
        }
        for table in self.tokens:
            self._register_token_table(table)

    # pool interface
    @contextlib.asynccontextmanager
    async def acquire(self):
        if self.unavailable:
            raise ConnectionRefusedError("database is down")
        yield FakeConnection(self)

    def snapshot(self):
        return (
            {k: dict(v) for k, v in self.settings.items()},
            {t: {k: dict(v) for k, v in rows.items()} for t, rows in self.tokens.items()},
        )

    def restore(self, snapshot):
        self.settings, self.tokens = snapshot

    def put_setting(
        self,
        key: str,
        value: str,
        is_encrypted: bool = False,
        group_id: Optional[str] = None,
        description: Optional[str] = None,
    ):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.settings[key] = {
            "key": key,
            "value": value,
            "description": description,
            "is_encrypted": is_encrypted,
            "group_id": group_id,
            "created_at": now,
            "updated_at": now,
        }

    def fail(self, sql: str):
        self.failing.add(sql)

    # settings
    def _sorted(self, rows):
        return [dict(row) for row in sorted(rows, key=lambda r: r["key"])]

    def _select_setting(self, key):
        row = self.settings.get(key)
        return dict(row) if row else None

    def _select_all(self):
        return self._sorted(self.settings.values())

    def _select_by_group(self, group_id):
        return self._sorted(r for r in self.settings.values() if r["group_id"] == group_id)

    def _search(self, pattern):
        return self._sorted(r for r in self.settings.values() if pattern in r["key"])

    def _categories(self):
        groups = {r["group_id"] for r in self.settings.values() if r["group_id"] is not None}
        return [{"group_id": group} for group in sorted(groups)]

    def _exists(self, key):
        return key in self.settings

    def _upsert(self, key, value, description, is_encrypted, group_id, now):
        created_at = self.settings.get(key, {}).get("created_at", now)
        self.settings[key] = {
            "key": key,
            "value": value,
            "description": description,
            "is_encrypted": is_encrypted,
            "group_id": group_id,
            "created_at": created_at,
            "updated_at": now,
        }
        return dict(self.settings[key])

    def _update(self, key, value, description, is_encrypted, group_id, updated_at):
        row = self.settings.get(key)
        if row is None:
            return None
        row.update(
            value=value,
            description=description,
            is_encrypted=is_encrypted,
            group_id=group_id,
            updated_at=updated_at,
        )
        return dict(row)

    def _delete_setting(self, key):
        removed = self.settings.pop(key, None)
        return f"DELETE {1 if removed else 0}"

    def _select_encrypted_batch(self, limit, offset):
        rows = self._sorted(r for r in self.settings.values() if r["is_encrypted"])
        return [{"key": r["key"], "value": r["value"]} for r in rows[offset:offset + limit]]

    def _update_value(self, value, key):
        if key not in self.settings:
            return "UPDATE 0"
        self.settings[key]["value"] = value
        return "UPDATE 1"

    # groups
    def _select_group(self, group_id):
        row = self.groups.get(group_id)
        return dict(row) if row else None

    def _select_all_groups(self):
        ordered = sorted(self.groups.values(), key=lambda r: (r["sort_order"], r["name"]))
        return [dict(row) for row in ordered]

    def _insert_group(self, group_id, name, description, icon, sort_order, now):
        if group_id in self.groups:
            raise RuntimeError(f"duplicate key value violates unique constraint: {group_id}")
        self.groups[group_id] = {
            "id": group_id,
            "name": name,
            "description": description,
            "icon": icon,
            "sort_order": sort_order,
            "created_at": now,
            "updated_at": now,
        }
        return dict(self.groups[group_id])

    # tokens
    def _register_token_table(self, table: str):
        def insert(token_id, user_id, token_hash, expires_at):
            self.tokens[table][token_id] = {
                "id": token_id,
                "user_id": user_id,
                "token_hash": token_hash,
                "expires_at": expires_at,
            }
            return "INSERT 0 1"

        def select_live(now):
            return [dict(r) for r in self.tokens[table].values() if r["expires_at"] > now]

        def delete_where(predicate):
            doomed = [k for k, r in self.tokens[table].items() if predicate(r)]
            for k in doomed:
                del self.tokens[table][k]
            return f"DELETE {len(doomed)}"

        self.handlers.update({
            token_sql._INSERT_TOKEN.format(table=table): insert,
            token_sql._SELECT_LIVE_TOKENS.format(table=table): select_live,
            token_sql._DELETE_TOKEN.format(table=table):
                lambda token_id: delete_where(lambda r: r["id"] == token_id),
            token_sql._DELETE_USER_TOKENS.format(table=table):
                lambda user_id: delete_where(lambda r: r["user_id"] == user_id),
            token_sql._DELETE_EXPIRED_TOKENS.format(table=table):
                lambda now: delete_where(lambda r: r["expires_at"] <= now),
        })


# --- Clock ---

class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta):
        self.now += delta


# --- Collaborators ---

class FakeUserStore:
    def __init__(self):
        self.users: dict[Any, UserRecord] = {}
        self.password_hashes: dict[Any, str] = {}
        self.broken = False

    def add(self, user: UserRecord) -> UserRecord:
        self.users[user.id] = user
        return user

    def _check(self):
        if self.broken:
            raise RuntimeError("user directory unavailable")

    async def get_user(self, user_id):
        self._check()
        return self.users.get(user_id)

    async def find_by_email(self, email, auth_type=None):
        self._check()
        for user in self.users.values():
            if user.email.lower() == email and auth_type in (None, user.auth_type):
                return user
        return None

    async def mark_email_verified(self, user_id):
        self._check()
        self.users[user_id] = self.users[user_id].model_copy(
            update={"email_verified": True}
        )

    async def update_password_hash(self, user_id, password_hash):
        self._check()
        self.password_hashes[user_id] = password_hash


class FakeSessionStore:
    def __init__(self):
        self.invalidated: list = []
        self.broken = False

    async def delete_all_sessions_for_user(self, user_id):
        if self.broken:
            raise RuntimeError("session backend unavailable")
        self.invalidated.append(user_id)


class FakeNotifier:
    def __init__(self):
        self.sent: list[EmailMessage] = []
        self.result = SendResult(success=True)
        self.broken = False

    async def send(self, message: EmailMessage) -> SendResult:
        if self.broken:
            raise RuntimeError("mail relay unreachable")
        self.sent.append(message)
        return self.result


def token_from(message: EmailMessage, url_key: str) -> str:
    """The plaintext secret embedded in an emailed link."""
    return message.variables[url_key].split("token=", 1)[1]


# --- Fixtures ---

@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def cipher():
    return Cipher(TEST_SECRET, TEST_SCRYPT_COST)


@pytest.fixture(scope="session")
def other_cipher():
    return Cipher(OTHER_SECRET, TEST_SCRYPT_COST)


@pytest.fixture(scope="session")
def hasher():
    """Cheap Argon2id parameters keep the suite fast."""
    return SecretHasher(memory_cost=1024, time_cost=1)


@pytest.fixture
def store(db, cipher, clock):
    return SettingsStore(db, cipher, clock=clock)


@pytest.fixture
def settings(store):
    return GlobalSettings(store)


@pytest.fixture
def verification_tokens(db, hasher, clock):
    return TokenLifecycleManager(EMAIL_VERIFICATION, db, hasher=hasher, clock=clock)


@pytest.fixture
def reset_tokens(db, hasher, clock):
    return TokenLifecycleManager(PASSWORD_RESET, db, hasher=hasher, clock=clock)


@pytest.fixture
def users():
    return FakeUserStore()


@pytest.fixture
def sessions():
    return FakeSessionStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def mail_enabled(db):
    db.put_setting("global.send_mail", "true", group_id="global")
    db.put_setting("global.page_url", "https://app.example.com/", group_id="global")
    db.put_setting("smtp.from_email", "support@example.com", group_id="smtp")


@pytest.fixture
def alice(users):
    return users.add(UserRecord(
        id=1,
        email="alice@example.com",
        username="alice",
        auth_type="email_signup",
    ))


@pytest.fixture
def verification_flow(verification_tokens, settings, users, notifier):
    return EmailVerificationFlow(verification_tokens, settings, users, notifier)


@pytest.fixture
def reset_flow(reset_tokens, settings, users, notifier, sessions, hasher):
    return PasswordResetFlow(
        reset_tokens, settings, users, notifier, sessions, password_hasher=hasher,
    )
