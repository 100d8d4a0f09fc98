"""Navigator Recovery exceptions.

Every error raised by the package derives from ``RecoveryError``. Flows
convert these into ``FlowResult`` outcomes at their boundary; components
below the flows let them propagate.
"""


class RecoveryError(Exception):
    """Base class for Navigator Recovery errors."""


class ValidationError(RecoveryError, ValueError):
    """Malformed setting key, value or user input."""


class FeatureDisabled(RecoveryError):
    """Recovery emails are switched off (``global.send_mail``)."""


class InvalidOrExpiredToken(RecoveryError):
    """No live token matched.

    Raised alike for unknown, expired and already consumed tokens.
    """

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class IneligibleUser(RecoveryError):
    """Token was valid but its owner no longer qualifies."""


class DecryptionError(RecoveryError):
    """Ciphertext is malformed or failed authentication."""


class NotConfigured(RecoveryError):
    """A required setting is missing or blank."""


class StorageError(RecoveryError):
    """The underlying record store failed."""
