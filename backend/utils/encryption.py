import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from config import settings
from services.errors import InsightUnavailable

logger = logging.getLogger(__name__)

KEY_UNREADABLE_MESSAGE = "Stored API key can no longer be decrypted. Re-enter it in settings."


def _key_cipher() -> Fernet:
    # Fernet needs 32 url-safe base64 bytes; ENCRYPTION_KEY may be any passphrase.
    digest = hashlib.sha256(settings.ENCRYPTION_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_api_key(api_key: str) -> str:
    """Encrypt a provider API key for the user_settings row."""
    return _key_cipher().encrypt(api_key.encode()).decode()


def decrypt_api_key(stored: str) -> str:
    """Recover a provider API key.

    A key written under a previous ENCRYPTION_KEY (or a corrupted column) raises
    InsightUnavailable so the caller asks the user to configure the key again.
    """
    try:
        return _key_cipher().decrypt(stored.encode()).decode()
    except InvalidToken as exc:
        logger.warning("Stored API key could not be decrypted; ENCRYPTION_KEY may have changed")
        raise InsightUnavailable(KEY_UNREADABLE_MESSAGE) from exc
