"""Shared constants for Navigator Recovery."""
from datetime import datetime, timedelta, timezone

# Setting keys consumed by the recovery flows
SEND_MAIL_KEY = "global.send_mail"
PAGE_URL_KEY = "global.page_url"
SUPPORT_EMAIL_KEY = "smtp.from_email"

DEFAULT_PAGE_URL = "http://localhost:5173"

# Token lifetimes are fixed, not read from settings
VERIFICATION_TOKEN_TTL = timedelta(hours=24)
RESET_TOKEN_TTL = timedelta(minutes=10)

# auth_type of users that sign in with a local password
PASSWORD_AUTH_TYPE = "email_signup"

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

SETTINGS_TABLE = "auth.global_settings"
SETTING_GROUPS_TABLE = "auth.global_setting_groups"


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def describe_ttl(ttl: timedelta) -> str:
    """Human readable lifetime used in email bodies ("24 hours")."""
    minutes = int(ttl.total_seconds() // 60)
    if minutes and minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{minutes} minute{'s' if minutes != 1 else ''}"
