"""
GlobalSettings — typed lookups over a SettingsStore.

Each getter returns ``default`` (None when omitted) when the setting is
missing, blank, unreadable or does not parse as the requested type. Such
failures are logged, never raised; use :meth:`GlobalSettings.get_required`
when a missing value must stop the caller.
"""
import re
import math
import asyncio
import logging
from typing import Any, Optional
from urllib.parse import urlparse

import orjson

from ..exceptions import NotConfigured, RecoveryError
from .settings_store import Setting, SettingsStore

logger = logging.getLogger("navigator.recovery.vault")

_TRUE_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def parse_boolean(value: str) -> Optional[bool]:
    """Parse the accepted boolean spellings, case-insensitive.

    Returns:
        True/False, or None if the value is not a recognised spelling.
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


class GlobalSettings:
    """Typed convenience layer used by the recovery flows."""

    def __init__(self, store: SettingsStore):
        self._store = store

    @property
    def store(self) -> SettingsStore:
        return self._store

    async def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the setting value, or ``default`` if absent or blank."""
        try:
            setting = await self._store.get(key)
        except RecoveryError as err:
            logger.error("Failed to get setting '%s': %s", key, err)
            return default
        if setting is None or not setting.value or not setting.value.strip():
            return default
        return setting.value

    async def get_string(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return await self.get(key, default)

    async def get_boolean(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        value = await self.get(key)
        if value is None:
            return default
        parsed = parse_boolean(value)
        if parsed is None:
            logger.warning("Setting '%s' has a value which cannot be parsed as boolean", key)
            return default
        return parsed

    async def get_number(self, key: str, default: Optional[float] = None) -> Optional[float]:
        value = await self.get(key)
        if value is None:
            return default
        try:
            number = float(value.strip())
        except ValueError:
            number = math.nan
        if math.isnan(number):
            logger.warning("Setting '%s' has a value which cannot be parsed as number", key)
            return default
        return number

    async def get_integer(self, key: str, default: Optional[int] = None) -> Optional[int]:
        number = await self.get_number(key)
        if number is None or math.isinf(number):
            return default
        return math.floor(number)

    async def get_url(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = await self.get(key)
        if value is None:
            return default
        parsed = urlparse(value.strip())
        if not parsed.scheme or not parsed.netloc:
            logger.warning("Setting '%s' has a value which is not a valid URL", key)
            return default
        return value.strip()

    async def get_email(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = await self.get(key)
        if value is None:
            return default
        if not _EMAIL_PATTERN.match(value):
            logger.warning(
                "Setting '%s' has a value which is not a valid email address", key,
            )
            return default
        return value

    async def get_json(self, key: str, default: Any = None) -> Any:
        value = await self.get(key)
        if value is None:
            return default
        try:
            return orjson.loads(value)
        except orjson.JSONDecodeError:
            logger.warning("Setting '%s' cannot be parsed as JSON", key)
            return default

    async def get_array(self, key: str, default: Optional[list[str]] = None) -> list[str]:
        """Split a comma separated setting, dropping empty items."""
        value = await self.get(key)
        if value is None:
            return list(default) if default is not None else []
        return [item.strip() for item in value.split(",") if item.strip()]

    async def get_multiple(self, keys: list[str]) -> dict[str, Optional[str]]:
        values = await asyncio.gather(*(self.get(key) for key in keys))
        return dict(zip(keys, values))

    async def get_group_values(self, group_id: str) -> dict[str, Optional[str]]:
        """Group values keyed without the group prefix.

        ``smtp.host`` becomes ``host``; ``api.openai.key`` becomes
        ``openai.key``.
        """
        settings = await self._group(group_id)
        return {
            setting.key.split(".", 1)[-1]: setting.value or None
            for setting in settings
        }

    async def get_group_values_with_full_keys(self, group_id: str) -> dict[str, Optional[str]]:
        settings = await self._group(group_id)
        return {setting.key: setting.value or None for setting in settings}

    async def _group(self, group_id: str) -> list[Setting]:
        try:
            return await self._store.get_by_group(group_id)
        except RecoveryError as err:
            logger.error("Failed to get group values for '%s': %s", group_id, err)
            return []

    async def is_set(self, key: str) -> bool:
        return await self.get(key) is not None

    async def is_empty(self, key: str) -> bool:
        return not await self.is_set(key)

    async def exists(self, key: str) -> bool:
        """True if the setting row exists, whatever its value."""
        try:
            return await self._store.exists(key)
        except RecoveryError as err:
            logger.error("Failed to check if setting exists '%s': %s", key, err)
            return False

    async def get_required(self, key: str) -> str:
        """Return a non-blank setting value.

        Raises:
            NotConfigured: If the setting is missing or blank.
        """
        value = await self.get(key)
        if value is None:
            raise NotConfigured(f"Required setting '{key}' is not configured or is empty")
        return value

    async def get_raw(self, key: str) -> Optional[Setting]:
        """The full Setting, metadata included. Errors propagate."""
        return await self._store.get(key)

    async def refresh(self) -> None:
        """Notify consumers that settings changed; these helpers cache nothing."""
        logger.debug("GlobalSettings refresh requested (no caches to clear)")
