"""Chiffrement AES-256-GCM des secrets stockés (webhooks, SMTP)."""

import base64
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.config import settings

logger = logging.getLogger(__name__)

# Préfixe des valeurs chiffrées en base (permet de distinguer l'existant en clair)
ENCRYPTED_PREFIX = "enc:"


class FieldEncryption:
    """
    Chiffrement/déchiffrement de champs individuels avec AES-256-GCM.

    AES-256-GCM garantit la confidentialité et l'intégrité
    (toute altération est détectée au déchiffrement).
    """

    def __init__(self, key: Optional[str] = None):
        """Initialise le chiffreur avec la clé de configuration."""
        raw_key = key or settings.ENCRYPTION_KEY
        if not raw_key:
            raise ValueError("ENCRYPTION_KEY n'est pas configurée")

        self.key = base64.b64decode(raw_key)

        # Vérifier que c'est bien une clé 256 bits (32 bytes)
        if len(self.key) != 32:
            raise ValueError(
                "ENCRYPTION_KEY doit être une clé AES-256 (32 bytes en base64)."
            )

        self.aesgcm = AESGCM(self.key)

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """
        Chiffre une valeur avec AES-256-GCM.

        Returns:
            Valeur chiffrée encodée en base64 (format: nonce||ciphertext||tag)
            ou la valeur d'origine si elle est vide
        """
        if plaintext is None or plaintext == "":
            return plaintext

        # Nonce aléatoire de 96 bits (recommandé pour GCM)
        nonce = os.urandom(12)
        ciphertext = self.aesgcm.encrypt(nonce, plaintext.encode('utf-8'), None)
        return base64.b64encode(nonce + ciphertext).decode('utf-8')

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """
        Déchiffre une valeur chiffrée avec AES-256-GCM.

        Raises:
            ValueError: Si le tag d'authentification est invalide (données altérées)
        """
        if ciphertext is None or ciphertext == "":
            return ciphertext

        try:
            encrypted_data = base64.b64decode(ciphertext)
            nonce = encrypted_data[:12]
            plaintext_bytes = self.aesgcm.decrypt(nonce, encrypted_data[12:], None)
            return plaintext_bytes.decode('utf-8')
        except (InvalidTag, ValueError) as e:
            raise ValueError(f"Échec du déchiffrement (données altérées?) : {str(e)}")


# Instance singleton
_encryptor = None


def get_encryptor() -> FieldEncryption:
    """Retourne l'instance singleton du chiffreur."""
    global _encryptor
    if _encryptor is None:
        _encryptor = FieldEncryption()
    return _encryptor


def encrypt_field(value: Optional[str]) -> Optional[str]:
    """Chiffre un champ (la clé doit être configurée)."""
    return get_encryptor().encrypt(value)


def decrypt_field(value: Optional[str]) -> Optional[str]:
    """Déchiffre un champ (la clé doit être configurée)."""
    return get_encryptor().decrypt(value)


def seal_secret(value: Optional[str]) -> Optional[str]:
    """
    Prépare un secret pour le stockage.

    Chiffré et préfixé si ENCRYPTION_KEY est configurée,
    conservé tel quel sinon (environnement de développement).
    """
    if not value:
        return value
    if not settings.encryption_configured:
        logger.warning("⚠️ ENCRYPTION_KEY absente : secret stocké en clair")
        return value
    return f"{ENCRYPTED_PREFIX}{encrypt_field(value)}"


def open_secret(value: Optional[str]) -> Optional[str]:
    """Relit un secret stocké par seal_secret()."""
    if not value or not value.startswith(ENCRYPTED_PREFIX):
        return value
    return decrypt_field(value[len(ENCRYPTED_PREFIX):])
