"""
SettingsStore — Encrypted key/value configuration.

Provides the public API for global settings:
- ``get(key)`` — read one setting, decrypting it if needed
- ``set(key, value, ...)`` — upsert a setting, encrypting it on request
- ``update(key, ...)`` — change selected fields of an existing setting
- ``delete(key)`` / ``exists(key)``
- ``get_all()`` / ``get_by_group()`` / ``search()`` / ``get_categories()``
- ``create_group()`` / ``get_group()`` / ``get_all_group_metadata()`` /
  ``get_all_groups_with_settings()`` for the group metadata shown by admin UIs

Single-key reads propagate decryption failures. Bulk reads log them and
return ``DECRYPTION_FAILED`` for the affected row so listings keep working.

Security Note:
    Never log plaintext or ciphertext values. Only log keys and operations.
"""
import re
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..conf import SETTING_GROUPS_TABLE, SETTINGS_TABLE, utc_now
from ..exceptions import DecryptionError, ValidationError
from ..storage import affected_rows, connection
from .crypto import Cipher

logger = logging.getLogger("navigator.recovery.vault")

DECRYPTION_FAILED = "[DECRYPTION_FAILED]"

MAX_KEY_LENGTH = 255
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = "key, value, description, is_encrypted, group_id, created_at, updated_at"

_SELECT_SETTING = f"""
SELECT {_COLUMNS}
FROM {SETTINGS_TABLE}
WHERE key = $1
"""

_SELECT_ALL = f"""
SELECT {_COLUMNS}
FROM {SETTINGS_TABLE}
ORDER BY key
"""

_SELECT_BY_GROUP = f"""
SELECT {_COLUMNS}
FROM {SETTINGS_TABLE}
WHERE group_id = $1
ORDER BY key
"""

_SEARCH_SETTINGS = f"""
SELECT {_COLUMNS}
FROM {SETTINGS_TABLE}
WHERE strpos(key, $1) > 0
ORDER BY key
"""

_SELECT_CATEGORIES = f"""
SELECT DISTINCT group_id
FROM {SETTINGS_TABLE}
WHERE group_id IS NOT NULL
ORDER BY group_id
"""

_SETTING_EXISTS = f"""
SELECT EXISTS (SELECT 1 FROM {SETTINGS_TABLE} WHERE key = $1)
"""

_UPSERT_SETTING = f"""
INSERT INTO {SETTINGS_TABLE} ({_COLUMNS})
VALUES ($1, $2, $3, $4, $5, $6, $6)
ON CONFLICT (key)
DO UPDATE SET value = EXCLUDED.value,
             description = EXCLUDED.description,
             is_encrypted = EXCLUDED.is_encrypted,
             group_id = EXCLUDED.group_id,
             updated_at = EXCLUDED.updated_at
RETURNING {_COLUMNS}
"""

_UPDATE_SETTING = f"""
UPDATE {SETTINGS_TABLE}
SET value = $2, description = $3, is_encrypted = $4, group_id = $5, updated_at = $6
WHERE key = $1
RETURNING {_COLUMNS}
"""

_DELETE_SETTING = f"""
DELETE FROM {SETTINGS_TABLE}
WHERE key = $1
"""

_GROUP_COLUMNS = "id, name, description, icon, sort_order, created_at, updated_at"

_SELECT_GROUP = f"""
SELECT {_GROUP_COLUMNS}
FROM {SETTING_GROUPS_TABLE}
WHERE id = $1
"""

_SELECT_ALL_GROUPS = f"""
SELECT {_GROUP_COLUMNS}
FROM {SETTING_GROUPS_TABLE}
ORDER BY sort_order, name
"""

_INSERT_GROUP = f"""
INSERT INTO {SETTING_GROUPS_TABLE} ({_GROUP_COLUMNS})
VALUES ($1, $2, $3, $4, $5, $6, $6)
RETURNING {_GROUP_COLUMNS}
"""


class Setting(BaseModel):
    """A global setting as seen by callers (value always plaintext)."""

    key: str
    value: str
    description: Optional[str] = None
    is_encrypted: bool = False
    group_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SettingGroup(BaseModel):
    """Display metadata of a settings group (``smtp``, ``global``, ...)."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GroupWithSettings(SettingGroup):
    settings: list[Setting] = Field(default_factory=list)


def _validate_group_id(group_id: str) -> None:
    if not group_id or not isinstance(group_id, str):
        raise ValidationError("Group ID is required and must be a string")


def validate_key(key: str) -> None:
    """Validate a setting key.

    Raises:
        ValidationError: If key is empty, too long, or has characters other
            than letters, digits, dot, underscore and hyphen.
    """
    if not key or not isinstance(key, str):
        raise ValidationError("Setting key is required and must be a string")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(
            f"Setting key must be {MAX_KEY_LENGTH} characters or less"
        )
    if not _KEY_PATTERN.match(key):
        raise ValidationError(
            "Setting key can only contain letters, numbers, dots, "
            "underscores, and hyphens"
        )


def _validate_value(value: Any) -> None:
    if not isinstance(value, str):
        raise ValidationError("Setting value is required and must be a string")


class SettingsStore:
    """Global settings persisted in ``auth.global_settings``.

    Values flagged ``is_encrypted`` are encrypted with the injected
    :class:`Cipher` before they reach the database and decrypted on read.
    """

    def __init__(
        self,
        db_pool: Any,
        cipher: Cipher,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._db = db_pool
        self._cipher = cipher
        self._clock = clock

    @property
    def cipher(self) -> Cipher:
        return self._cipher

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _to_setting(self, row: Any) -> Setting:
        """Build a Setting from a row, decrypting its value (may raise)."""
        data = dict(row)
        if data["is_encrypted"] and data["value"]:
            data["value"] = self._cipher.decrypt(data["value"])
        return Setting(**data)

    def _to_listed_setting(self, row: Any) -> Setting:
        """Like _to_setting, but a decryption failure yields the sentinel."""
        try:
            return self._to_setting(row)
        except DecryptionError as err:
            logger.error("Failed to decrypt setting key=%s: %s", row["key"], err)
            data = dict(row)
            data["value"] = DECRYPTION_FAILED
            return Setting(**data)

    def _seal(self, value: str, encrypted: bool) -> str:
        return self._cipher.encrypt(value) if encrypted else value

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[Setting]:
        """Return a setting by key, decrypting encrypted values.

        Raises:
            ValidationError: If key is malformed.
            DecryptionError: If the stored value cannot be decrypted.
        """
        validate_key(key)
        async with connection(self._db, f"get setting '{key}'") as conn:
            row = await conn.fetchrow(_SELECT_SETTING, key)
        if row is None:
            return None
        return self._to_setting(row)

    async def get_all(self) -> list[Setting]:
        """Return every setting ordered by key."""
        async with connection(self._db, "get all settings") as conn:
            rows = await conn.fetch(_SELECT_ALL)
        return [self._to_listed_setting(row) for row in rows]

    async def get_by_group(self, group_id: str) -> list[Setting]:
        """Return the settings of a group ordered by key."""
        _validate_group_id(group_id)
        async with connection(self._db, f"get settings of group '{group_id}'") as conn:
            rows = await conn.fetch(_SELECT_BY_GROUP, group_id)
        return [self._to_listed_setting(row) for row in rows]

    async def search(self, pattern: str) -> list[Setting]:
        """Return settings whose key contains ``pattern`` (case-sensitive)."""
        if not pattern or not isinstance(pattern, str):
            raise ValidationError("Search pattern is required and must be a string")
        async with connection(self._db, "search settings") as conn:
            rows = await conn.fetch(_SEARCH_SETTINGS, pattern)
        return [self._to_listed_setting(row) for row in rows]

    async def get_categories(self) -> list[str]:
        """Return the distinct, non-null group ids."""
        async with connection(self._db, "get setting categories") as conn:
            rows = await conn.fetch(_SELECT_CATEGORIES)
        return [row["group_id"] for row in rows if row["group_id"] is not None]

    async def exists(self, key: str) -> bool:
        validate_key(key)
        async with connection(self._db, f"check setting '{key}'") as conn:
            found = await conn.fetchval(_SETTING_EXISTS, key)
        return bool(found)

    async def set(
        self,
        key: str,
        value: str,
        *,
        description: Optional[str] = None,
        encrypted: bool = False,
        group_id: Optional[str] = None,
    ) -> Setting:
        """Create or replace a setting.

        Args:
            key: Setting key.
            value: Plaintext value.
            description: Optional human readable description.
            encrypted: Encrypt the value at rest.
            group_id: Optional group (e.g. ``"smtp"``).

        Returns:
            The stored setting, with its plaintext value.
        """
        validate_key(key)
        _validate_value(value)
        stored = self._seal(value, encrypted)
        async with connection(self._db, f"set setting '{key}'") as conn:
            row = await conn.fetchrow(
                _UPSERT_SETTING,
                key, stored, description or None, encrypted, group_id or None,
                self._clock(),
            )
        logger.debug("Setting stored: key=%s encrypted=%s", key, encrypted)
        data = dict(row)
        data["value"] = value
        return Setting(**data)

    async def update(
        self,
        key: str,
        *,
        value: Optional[str] = None,
        description: Optional[str] = None,
        encrypted: Optional[bool] = None,
        group_id: Optional[str] = None,
    ) -> Optional[Setting]:
        """Change only the given fields of an existing setting.

        The value is re-encrypted whenever the resulting setting is
        encrypted, so flipping ``encrypted`` alone also re-seals the stored
        value.

        Returns:
            The updated setting, or None if ``key`` does not exist.
        """
        validate_key(key)
        if value is not None:
            _validate_value(value)
        current = await self.get(key)
        if current is None:
            return None

        new_value = current.value if value is None else value
        new_encrypted = current.is_encrypted if encrypted is None else encrypted
        new_description = current.description if description is None else description
        new_group = current.group_id if group_id is None else group_id

        async with connection(self._db, f"update setting '{key}'") as conn:
            row = await conn.fetchrow(
                _UPDATE_SETTING,
                key, self._seal(new_value, new_encrypted), new_description,
                new_encrypted, new_group, self._clock(),
            )
        if row is None:
            # deleted between the read and the write
            return None
        logger.debug("Setting updated: key=%s", key)
        data = dict(row)
        data["value"] = new_value
        return Setting(**data)

    async def delete(self, key: str) -> bool:
        """Delete a setting.

        Returns:
            True if a row was removed.
        """
        validate_key(key)
        async with connection(self._db, f"delete setting '{key}'") as conn:
            status = await conn.execute(_DELETE_SETTING, key)
        removed = affected_rows(status) > 0
        if removed:
            logger.debug("Setting deleted: key=%s", key)
        return removed

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def get_group(self, group_id: str) -> Optional[SettingGroup]:
        _validate_group_id(group_id)
        async with connection(self._db, f"get group '{group_id}'") as conn:
            row = await conn.fetchrow(_SELECT_GROUP, group_id)
        return SettingGroup(**dict(row)) if row is not None else None

    async def get_all_group_metadata(self) -> list[SettingGroup]:
        """Return every group ordered by ``sort_order``, then name."""
        async with connection(self._db, "get all group metadata") as conn:
            rows = await conn.fetch(_SELECT_ALL_GROUPS)
        return [SettingGroup(**dict(row)) for row in rows]

    async def get_all_groups_with_settings(self) -> list[GroupWithSettings]:
        """Every group, in display order, with the settings it holds."""
        groups = []
        for group in await self.get_all_group_metadata():
            settings = await self.get_by_group(group.id)
            groups.append(GroupWithSettings(**group.model_dump(), settings=settings))
        return groups

    async def create_group(self, group: SettingGroup) -> SettingGroup:
        """Insert a group; an existing id is a StorageError.

        Returns:
            The stored group, timestamps included.
        """
        async with connection(self._db, f"create group '{group.id}'") as conn:
            row = await conn.fetchrow(
                _INSERT_GROUP,
                group.id, group.name, group.description, group.icon,
                group.sort_order, self._clock(),
            )
        logger.debug("Setting group created: id=%s", group.id)
        return SettingGroup(**dict(row))
