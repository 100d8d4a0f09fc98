"""
Settings Key Rotation — Batch re-encryption of settings under a new secret.

Re-encrypts every encrypted setting from the old cipher to the new one in
configurable batches. Each batch runs in its own transaction for
resumability. The operation is idempotent: values that already decrypt
under the new cipher are skipped.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any

from ..conf import SETTINGS_TABLE
from ..exceptions import DecryptionError
from .crypto import Cipher

logger = logging.getLogger("navigator.recovery.vault")

# SQL statements
_SELECT_BATCH = f"""
SELECT key, value
FROM {SETTINGS_TABLE}
WHERE is_encrypted = TRUE
ORDER BY key
LIMIT $1
OFFSET $2
"""

_UPDATE_VALUE = f"""
UPDATE {SETTINGS_TABLE}
SET value = $1
WHERE key = $2
"""


async def rotate_encryption_secret(
    db_pool: Any,
    old_cipher: Cipher,
    new_cipher: Cipher,
    batch_size: int = 100,
) -> dict:
    """Re-encrypt all encrypted settings from old_cipher to new_cipher.

    Args:
        db_pool: asyncpg-compatible connection pool.
        old_cipher: Cipher built from the secret being retired.
        new_cipher: Cipher built from the replacement secret.
        batch_size: Number of rows to process per batch/transaction.

    Returns:
        Stats dict with keys: total, rotated, errors, skipped.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}
    offset = 0

    logger.info("Starting settings key rotation (batch_size=%d)", batch_size)

    while True:
        async with db_pool.acquire() as conn:
            rows = await conn.fetch(_SELECT_BATCH, batch_size, offset)

        if not rows:
            break

        batch_num = (offset // batch_size) + 1
        logger.info("Processing batch %d (%d rows)", batch_num, len(rows))

        async with db_pool.acquire() as conn:
            tx = conn.transaction()
            await tx.start()
            try:
                for row in rows:
                    stats["total"] += 1
                    key = row["key"]
                    stored = row["value"]
                    try:
                        plaintext = old_cipher.decrypt(stored)
                    except DecryptionError:
                        try:
                            new_cipher.decrypt(stored)
                        except DecryptionError:
                            logger.error(
                                "Setting key=%s decrypts under neither secret", key,
                            )
                            stats["errors"] += 1
                        else:
                            stats["skipped"] += 1
                        continue

                    await conn.execute(
                        _UPDATE_VALUE, new_cipher.encrypt(plaintext), key,
                    )
                    stats["rotated"] += 1

                await tx.commit()
            except Exception:
                await tx.rollback()
                raise

        offset += len(rows)

    logger.info("Settings key rotation complete: %s", stats)
    return stats
