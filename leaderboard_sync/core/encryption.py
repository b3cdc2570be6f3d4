import base64
import hashlib
import json
import logging

from cryptography.fernet import Fernet, MultiFernet

from leaderboard_sync.core.config import settings

logger = logging.getLogger(__name__)


def _derived_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


def _get_cipher() -> MultiFernet:
    """Cipher over ``ENCRYPTION_KEY``, a comma-separated list of Fernet keys.

    The first key encrypts; every listed key can decrypt, so a new key is
    rolled in by putting it first. Without any key, one is derived from
    ``SYNC_API_KEY``.
    """
    keys = [k.strip() for k in settings.ENCRYPTION_KEY.split(",") if k.strip()]
    if not keys:
        return MultiFernet([Fernet(_derived_key(settings.SYNC_API_KEY))])
    return MultiFernet([Fernet(k.encode()) for k in keys])


def encrypt_credentials(credentials: dict) -> str:
    """Encrypt the non-empty credential fields."""
    payload = {k: v for k, v in credentials.items() if v not in (None, "")}
    raw = json.dumps(payload, sort_keys=True).encode("utf-8")
    return _get_cipher().encrypt(raw).decode("utf-8")


def decrypt_credentials(encrypted: str | None) -> dict:
    if not encrypted:
        return {}
    raw = _get_cipher().decrypt(encrypted.encode("utf-8"))
    return json.loads(raw.decode("utf-8"))
