"""Settings Vault — Encrypted global settings.

Security Note (Threat Model):
    Setting values flagged as encrypted are protected at rest only. The
    key is derived from NAVIGATOR_ENCRYPTION_SECRET and held in process
    memory; anyone who can read both the database and the secret can
    recover every value. The development fallback secret offers no
    protection at all.
"""

from .crypto import Cipher, derive_key, is_well_formed
from .config import CipherConfig, generate_encryption_secret, load_encryption_secret
from .settings_store import (
    DECRYPTION_FAILED,
    GroupWithSettings,
    Setting,
    SettingGroup,
    SettingsStore,
)
from .helpers import GlobalSettings, parse_boolean
from .definitions import (
    SETTINGS_MODULES,
    SettingDefinition,
    SettingsModule,
    SmtpConfig,
    initialize_settings,
    load_smtp_config,
    validate_required_settings,
)
from .key_rotation import rotate_encryption_secret

__all__ = [
    "Cipher",
    "derive_key",
    "is_well_formed",
    "CipherConfig",
    "generate_encryption_secret",
    "load_encryption_secret",
    "DECRYPTION_FAILED",
    "GroupWithSettings",
    "Setting",
    "SettingGroup",
    "SettingsStore",
    "GlobalSettings",
    "parse_boolean",
    "SETTINGS_MODULES",
    "SettingDefinition",
    "SettingsModule",
    "SmtpConfig",
    "initialize_settings",
    "load_smtp_config",
    "validate_required_settings",
    "rotate_encryption_secret",
]
