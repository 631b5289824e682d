# app/core/security/__init__.py

# Encryption
from app.core.security.encryption import encrypt_field, decrypt_field, seal_secret, open_secret

# Hashing
from app.core.security.hashing import hash_password, verify_password, sha256_hex, generate_token
# generate_password reste accessible via:
# from app.core.security.hashing import generate_password

# JWT
from app.core.security.jwt import (
    create_access_token,
    create_refresh_token,
    verify_token,
)

__all__ = [
    "encrypt_field", "decrypt_field", "seal_secret", "open_secret",
    "hash_password", "verify_password", "sha256_hex", "generate_token",
    "create_access_token", "create_refresh_token", "verify_token",
]
