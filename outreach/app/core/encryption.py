"""
Symmetric encryption for secrets stored in the database (Gmail OAuth tokens).
Fernet key is derived from ENCRYPTION_KEY with PBKDF2.
"""
import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from outreach.app.core.config import settings
from outreach.app.core.logging_config import get_logger

logger = get_logger("core.encryption")

_SALT = b"outreach_token_salt"


class DecryptionError(Exception):
    """Stored ciphertext could not be decrypted (wrong key or corrupt value)."""


@lru_cache(maxsize=4)
def _cipher(master_key: str) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_SALT,
        iterations=100_000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(master_key.encode("utf-8")))
    return Fernet(key)


def encrypt(text: str) -> str:
    return _cipher(settings.encryption_key).encrypt(text.encode("utf-8")).decode("ascii")


def decrypt(token: str) -> str:
    try:
        return _cipher(settings.encryption_key).decrypt(token.encode("ascii")).decode("utf-8")
    except (InvalidToken, ValueError) as e:
        logger.error("Token decryption failed - likely encryption key mismatch: %s", type(e).__name__)
        raise DecryptionError("Failed to decrypt token - please reconnect Gmail") from e
