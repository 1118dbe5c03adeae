"""HMAC secret generation and Fernet encryption for storage."""

import secrets

import uuid_utils
from cryptography.fernet import Fernet

HMAC_SECRET_BYTES = 32


def generate_key_id() -> str:
    """Return a time-ordered unique key identifier (UUIDv7)."""
    return str(uuid_utils.uuid7())


def generate_hmac_secret() -> str:
    """Generate a 256-bit random secret, hex encoded."""
    return secrets.token_hex(HMAC_SECRET_BYTES)


def encrypt_secret(secret: str, fernet_key: str) -> str:
    """Encrypt a signing secret with Fernet for database storage."""
    cipher = Fernet(fernet_key.encode())
    return cipher.encrypt(secret.encode()).decode()


def decrypt_secret(encrypted: str, fernet_key: str) -> str:
    """Decrypt a Fernet-encrypted signing secret."""
    cipher = Fernet(fernet_key.encode())
    return cipher.decrypt(encrypted.encode()).decode()
