"""
Tests des primitives de sécurité : mots de passe, jetons opaques, JWT, chiffrement.
"""

import base64
import os
from datetime import timedelta

import pytest
from jose import JWTError

from app.core.config import settings
from app.core.security import encryption
from app.core.security.encryption import ENCRYPTED_PREFIX, FieldEncryption, open_secret, seal_secret
from app.core.security.hashing import (
    generate_password,
    generate_token,
    hash_password,
    sha256_hex,
    verify_password,
)
from app.core.security.jwt import create_access_token, create_refresh_token, verify_token


def _random_key() -> str:
    return base64.b64encode(os.urandom(32)).decode()


class TestHashing:

    def test_verify_password(self):
        hashed = hash_password("MotDePasse123!")

        assert verify_password("MotDePasse123!", hashed)
        assert not verify_password("mauvais", hashed)

    def test_verify_password_with_garbage_hash(self):
        assert verify_password("MotDePasse123!", "pas-un-hash-bcrypt") is False

    def test_hash_is_salted(self):
        assert hash_password("secret") != hash_password("secret")

    def test_sha256_is_deterministic(self):
        assert sha256_hex("abc") == sha256_hex("abc")
        assert len(sha256_hex("abc")) == 64

    def test_generators(self):
        assert len(generate_token()) == 64
        assert generate_token() != generate_token()
        assert len(generate_password(12)) == 12


class TestJwt:

    def test_access_token_roundtrip(self):
        token = create_access_token({"sub": "42", "tenant_id": 3})
        payload = verify_token(token)

        assert payload["sub"] == "42"
        assert payload["tenant_id"] == 3
        assert payload["iss"] == settings.JWT_ISSUER

    def test_type_mismatch(self):
        refresh = create_refresh_token({"sub": "42"})

        with pytest.raises(JWTError):
            verify_token(refresh, token_type="access")
        assert verify_token(refresh, token_type="refresh")["sub"] == "42"

    def test_expired_token(self):
        token = create_access_token({"sub": "42"}, expires_delta=timedelta(seconds=-1))
        with pytest.raises(JWTError):
            verify_token(token)


class TestEncryption:

    def test_encrypt_decrypt(self):
        encryptor = FieldEncryption(_random_key())

        ciphertext = encryptor.encrypt("secret-smtp")

        assert ciphertext != "secret-smtp"
        assert encryptor.decrypt(ciphertext) == "secret-smtp"
        assert encryptor.encrypt("") == ""

    def test_tampered_ciphertext(self):
        encryptor = FieldEncryption(_random_key())
        raw = bytearray(base64.b64decode(encryptor.encrypt("secret")))
        raw[-1] ^= 0x01

        with pytest.raises(ValueError):
            encryptor.decrypt(base64.b64encode(bytes(raw)).decode())

    def test_key_must_be_256_bits(self):
        with pytest.raises(ValueError):
            FieldEncryption(base64.b64encode(b"trop-court").decode())

    def test_seal_without_key_keeps_plaintext(self, monkeypatch):
        monkeypatch.setattr(settings, "ENCRYPTION_KEY", None)

        assert seal_secret("whsec") == "whsec"
        assert open_secret("whsec") == "whsec"

    def test_seal_and_open(self, monkeypatch):
        monkeypatch.setattr(settings, "ENCRYPTION_KEY", _random_key())
        monkeypatch.setattr(encryption, "_encryptor", None)

        sealed = seal_secret("whsec")

        assert sealed.startswith(ENCRYPTED_PREFIX)
        assert open_secret(sealed) == "whsec"
