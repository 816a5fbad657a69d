"""
Gemini API key storage for the coach.

Keys are stored as Fernet tokens (key derived from COACH_ENCRYPTION_SECRET
with PBKDF2) on the user row.
"""
import base64
import logging
import re
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy.orm import Session

import crud
from config import Settings

logger = logging.getLogger(__name__)

KDF_SALT = b"hybrid_coach_salt_v1"
KDF_ITERATIONS = 100000

_API_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@lru_cache(maxsize=4)
def _get_fernet(secret: str) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return Fernet(base64.urlsafe_b64encode(kdf.derive(secret.encode())))


def encrypt_api_key(api_key: str, secret: Optional[str] = None) -> bytes:
    if not api_key:
        raise ValueError("API key cannot be empty")
    return _get_fernet(secret or Settings.COACH_ENCRYPTION_SECRET).encrypt(api_key.encode())


def decrypt_api_key(token: Optional[bytes], secret: Optional[str] = None) -> Optional[str]:
    """Plaintext key, or None when there is no token or it cannot be decrypted."""
    if not token:
        return None
    try:
        return _get_fernet(secret or Settings.COACH_ENCRYPTION_SECRET).decrypt(token).decode()
    except InvalidToken:
        logger.warning("Failed to decrypt stored API key (secret changed?)")
        return None


def validate_api_key_format(api_key: str) -> bool:
    """Gemini keys look like AIza... (39 chars); accept anything similar."""
    if not api_key or len(api_key) < 30:
        return False
    return bool(_API_KEY_RE.match(api_key))


def mask_api_key(api_key: Optional[str]) -> str:
    if not api_key or len(api_key) < 10:
        return "****"
    return f"{api_key[:4]}...{api_key[-4:]}"


def store_user_api_key(db: Session, user_id: str, api_key: str):
    user = crud.upsert_user(db, user_id)
    user.gemini_api_key_encrypted = encrypt_api_key(api_key)
    db.commit()
    return user


def resolve_api_key(db: Session, user_id: Optional[str], explicit_key: Optional[str] = None) -> Optional[str]:
    """Explicit key, then the user's stored key, then GEMINI_API_KEY."""
    if explicit_key:
        return explicit_key

    if user_id:
        user = crud.get_user(db, user_id)
        if user and user.gemini_api_key_encrypted:
            stored = decrypt_api_key(user.gemini_api_key_encrypted)
            if stored:
                return stored

    return Settings.GEMINI_API_KEY
