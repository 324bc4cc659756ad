"""
Authenticated encryption for secrets at rest.

Envelope format: ``IV_hex:AuthTag_hex:Ciphertext_hex`` (AES-256-GCM, fresh
random IV per call).
"""
import hashlib
import os
import threading

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.config import settings
from app.core.errors import ConfigurationError, DecryptionError
from app.core.logging import get_logger

logger = get_logger(__name__)

IV_BYTES = 12
TAG_BYTES = 16
KEY_BYTES = 32


def derive_key(raw: str) -> bytes:
    """64 hex chars are used as-is; anything else is stretched with SHA-256."""
    if len(raw) == KEY_BYTES * 2:
        try:
            return bytes.fromhex(raw)
        except ValueError:
            pass
    return hashlib.sha256(raw.encode("utf-8")).digest()


def generate_encryption_key() -> str:
    return os.urandom(KEY_BYTES).hex()


def hash_sensitive_data(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


class EnvelopeCipher:
    def __init__(self, key: bytes):
        if len(key) != KEY_BYTES:
            raise ConfigurationError("Encryption key must be 32 bytes")
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM devuelve ciphertext || tag
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> str:
        parts = envelope.split(":")
        if len(parts) != 3:
            raise DecryptionError("Invalid encrypted data format")
        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError as e:
            raise DecryptionError("Invalid encrypted data format") from e
        if len(iv) != IV_BYTES or len(tag) != TAG_BYTES:
            raise DecryptionError("Invalid encrypted data format")
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError("Failed to decrypt data") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Failed to decrypt data") from e


_cipher: EnvelopeCipher | None = None
_cipher_lock = threading.Lock()


def build_cipher() -> EnvelopeCipher:
    if settings.ENCRYPTION_KEY:
        return EnvelopeCipher(derive_key(settings.ENCRYPTION_KEY))
    if settings.is_production:
        raise ConfigurationError("ENCRYPTION_KEY must be set in production")
    # Clave efímera: lo cifrado no sobrevive a un reinicio
    logger.warning(
        "encryption_key_ephemeral",
        env=settings.ENV,
        detail="ENCRYPTION_KEY not set; data encrypted now cannot be decrypted after restart",
    )
    return EnvelopeCipher(os.urandom(KEY_BYTES))


def get_cipher() -> EnvelopeCipher:
    global _cipher
    if _cipher is None:
        with _cipher_lock:
            if _cipher is None:
                _cipher = build_cipher()
    return _cipher


def reset_cipher() -> None:
    global _cipher
    with _cipher_lock:
        _cipher = None


def encrypt(text: str) -> str:
    return get_cipher().encrypt(text)


def decrypt(envelope: str) -> str:
    return get_cipher().decrypt(envelope)


if __name__ == "__main__":
    print(generate_encryption_key())
