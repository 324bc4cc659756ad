"""
Backup (recovery) codes for 2FA.

Codes are only ever stored inside an encryption envelope; this module never
persists anything itself.
"""
import json
import secrets

from app.core import encryption
from app.core.config import settings
from app.core.errors import DecryptionError
from app.core.logging import get_logger

logger = get_logger(__name__)

CODE_BYTES = 4  # 8 hex chars


def generate(count: int | None = None) -> list[str]:
    count = settings.BACKUP_CODE_COUNT if count is None else count
    codes: list[str] = []
    while len(codes) < count:
        code = secrets.token_hex(CODE_BYTES).upper()
        if code not in codes:
            codes.append(code)
    return codes


def consume(codes: list[str], used_code: str) -> list[str]:
    """Copy of ``codes`` without the first exact match of ``used_code``."""
    remaining = list(codes)
    if used_code in remaining:
        remaining.remove(used_code)
    return remaining


def encrypt_codes(codes: list[str]) -> str:
    return encryption.encrypt(json.dumps(codes))


def decrypt_codes(blob: str | None) -> list[str]:
    """Fails safe: anything unreadable is treated as an empty set."""
    if not blob:
        return []
    try:
        data = json.loads(encryption.decrypt(blob))
    except (DecryptionError, ValueError) as e:
        logger.warning("backup_codes_decrypt_failed", error=type(e).__name__)
        return []
    if not isinstance(data, list) or not all(isinstance(c, str) for c in data):
        logger.warning("backup_codes_decrypt_failed", error="unexpected_payload")
        return []
    return data
