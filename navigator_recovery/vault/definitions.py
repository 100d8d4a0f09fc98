"""
Setting definitions — declarative setting modules and their initialization.

A module groups the settings one subsystem needs, with defaults. At
startup :func:`initialize_settings` creates whatever is missing without
touching values an operator already changed.
"""
import logging
from typing import Optional

from pydantic import BaseModel, Field

from ..conf import DEFAULT_PAGE_URL, PAGE_URL_KEY, SEND_MAIL_KEY, SUPPORT_EMAIL_KEY
from ..exceptions import NotConfigured, RecoveryError
from .helpers import GlobalSettings
from .settings_store import SettingGroup, SettingsStore

logger = logging.getLogger("navigator.recovery.vault")


class SettingDefinition(BaseModel):
    key: str
    default_value: str = ""
    description: str = ""
    encrypted: bool = False
    required: bool = False


class SettingsModule(BaseModel):
    group: SettingGroup
    settings: list[SettingDefinition]


class InitializationResult(BaseModel):
    total_modules: int = 0
    total_settings: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    created_settings: list[str] = Field(default_factory=list)
    skipped_settings: list[str] = Field(default_factory=list)
    created_groups: list[str] = Field(default_factory=list)
    skipped_groups: list[str] = Field(default_factory=list)
    failed_groups: list[str] = Field(default_factory=list)


class GroupValidation(BaseModel):
    total: int = 0
    missing: int = 0
    missing_keys: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    valid: bool = True
    missing: list[str] = Field(default_factory=list)
    groups: dict[str, GroupValidation] = Field(default_factory=dict)


class SmtpConfig(BaseModel):
    host: str
    port: int = Field(ge=1, le=65535)
    username: str
    password: str
    secure: bool = True
    from_name: str = "Navigator"
    from_email: Optional[str] = None


GLOBAL_SETTINGS = SettingsModule(
    group=SettingGroup(
        id="global",
        name="Global Settings",
        description="General application configuration settings",
        icon="settings",
        sort_order=0,
    ),
    settings=[
        SettingDefinition(
            key=PAGE_URL_KEY,
            default_value=DEFAULT_PAGE_URL,
            description="Base URL for the application frontend",
        ),
        SettingDefinition(
            key=SEND_MAIL_KEY,
            default_value="false",
            description="Enable or disable email sending functionality",
        ),
    ],
)

SMTP_SETTINGS = SettingsModule(
    group=SettingGroup(
        id="smtp",
        name="SMTP Mail Settings",
        description="Outgoing mail server used for recovery emails",
        icon="mail",
        sort_order=1,
    ),
    settings=[
        SettingDefinition(
            key="smtp.host",
            description="SMTP server hostname (e.g., smtp.gmail.com)",
            required=True,
        ),
        SettingDefinition(
            key="smtp.port",
            default_value="587",
            description="SMTP server port (587 for TLS, 465 for SSL, 25 for unencrypted)",
            required=True,
        ),
        SettingDefinition(
            key="smtp.username",
            description="SMTP authentication username",
            required=True,
        ),
        SettingDefinition(
            key="smtp.password",
            description="SMTP authentication password",
            encrypted=True,
            required=True,
        ),
        SettingDefinition(
            key="smtp.secure",
            default_value="true",
            description="Use SSL/TLS for SMTP connection (true/false)",
        ),
        SettingDefinition(
            key="smtp.from_name",
            default_value="Navigator",
            description="Default sender name for emails",
        ),
        SettingDefinition(
            key=SUPPORT_EMAIL_KEY,
            description="Default sender email address",
        ),
    ],
)

SETTINGS_MODULES = [GLOBAL_SETTINGS, SMTP_SETTINGS]


async def initialize_settings(
    store: SettingsStore,
    modules: Optional[list[SettingsModule]] = None,
) -> InitializationResult:
    """Create missing groups, then missing settings with their defaults.

    Existing groups and settings are left untouched. A group that cannot
    be created is logged and its settings are still attempted.

    Args:
        store: Settings store to seed.
        modules: Setting modules, the built-in ones by default.

    Returns:
        Counts and keys of created and skipped groups and settings.
    """
    modules = SETTINGS_MODULES if modules is None else modules
    definitions = [
        (module.group.id, setting) for module in modules for setting in module.settings
    ]
    result = InitializationResult(
        total_modules=len(modules), total_settings=len(definitions),
    )
    for module in modules:
        group = module.group
        try:
            if await store.get_group(group.id) is not None:
                result.skipped_groups.append(group.id)
                continue
            await store.create_group(group)
            result.created_groups.append(group.id)
        except RecoveryError as err:
            result.failed_groups.append(group.id)
            logger.error("Failed to create setting group %s: %s", group.id, err)

    for group_id, definition in definitions:
        try:
            if await store.exists(definition.key):
                result.skipped += 1
                result.skipped_settings.append(definition.key)
                continue
            await store.set(
                definition.key,
                definition.default_value,
                description=definition.description,
                encrypted=definition.encrypted,
                group_id=group_id,
            )
            result.created += 1
            result.created_settings.append(definition.key)
        except RecoveryError as err:
            result.failed += 1
            logger.error("Failed to initialize setting %s: %s", definition.key, err)
    logger.info(
        "Settings initialized: %d created, %d skipped, %d failed "
        "(groups: %d created, %d skipped)",
        result.created, result.skipped, result.failed,
        len(result.created_groups), len(result.skipped_groups),
    )
    return result


async def validate_required_settings(
    settings: GlobalSettings,
    modules: Optional[list[SettingsModule]] = None,
) -> ValidationResult:
    """Report required settings that are missing or blank, per group."""
    modules = SETTINGS_MODULES if modules is None else modules
    result = ValidationResult()
    for module in modules:
        required = [s.key for s in module.settings if s.required]
        group = GroupValidation(total=len(required))
        for key in required:
            if await settings.is_empty(key):
                group.missing += 1
                group.missing_keys.append(key)
                result.missing.append(key)
        result.groups[module.group.id] = group
    result.valid = not result.missing
    return result


async def load_smtp_config(settings: GlobalSettings) -> SmtpConfig:
    """Assemble the SMTP configuration from the ``smtp`` group.

    Raises:
        NotConfigured: If a required SMTP setting is missing or invalid.
    """
    host = await settings.get_required("smtp.host")
    username = await settings.get_required("smtp.username")
    password = await settings.get_required("smtp.password")
    port = await settings.get_integer("smtp.port")
    if port is None or not 1 <= port <= 65535:
        raise NotConfigured("Required setting 'smtp.port' is not a valid port")
    return SmtpConfig(
        host=host,
        port=port,
        username=username,
        password=password,
        secure=await settings.get_boolean("smtp.secure", True),
        from_name=await settings.get("smtp.from_name", "Navigator"),
        from_email=await settings.get_email(SUPPORT_EMAIL_KEY),
    )
