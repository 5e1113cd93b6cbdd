"""
Fernet encryption for provider tokens stored in the connections table.
"""

import base64
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings


KDF_SALT = b"social_connect_token_salt"


@lru_cache(maxsize=4)
def _fernet_for(key: str) -> Fernet:
    # Keys that are not exactly 32 bytes are stretched with PBKDF2.
    if len(key) != 32:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=KDF_SALT,
            iterations=100000,
        )
        derived = base64.urlsafe_b64encode(kdf.derive(key.encode()))
    else:
        derived = base64.urlsafe_b64encode(key.encode())
    return Fernet(derived)


def encrypt_token(token: str) -> str:
    """
    Encrypt a provider token for storage.

    Args:
        token: Plain text token

    Returns:
        Fernet ciphertext as text
    """
    return _fernet_for(settings.ENCRYPTION_KEY).encrypt(token.encode()).decode()


def encrypt_optional_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return encrypt_token(token)


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token; raises ValueError when the ciphertext is invalid."""
    try:
        return _fernet_for(settings.ENCRYPTION_KEY).decrypt(encrypted_token.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Stored token could not be decrypted.") from exc
