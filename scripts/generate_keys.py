"""
Génère les secrets nécessaires à l'application.

Usage:
    python scripts/generate_keys.py

Génère:
    1. Clé AES-256 pour le chiffrement des secrets (webhooks, SMTP)
    2. Secret de signature des JWT (HS256)
    3. Secret partagé des tâches planifiées (/cron/daily)
"""

import base64
import os
import secrets

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


def generate_aes256_key() -> str:
    """Clé AES-256 encodée en base64 (variable ENCRYPTION_KEY)."""
    print("🔐 Génération de la clé AES-256...")
    key = AESGCM.generate_key(bit_length=256)
    return base64.b64encode(key).decode("utf-8")


def generate_secret(nbytes: int = 48) -> str:
    return secrets.token_urlsafe(nbytes)


def main():
    print("=" * 60)
    print("Génération des secrets Alternance360")
    print("=" * 60)

    values = {
        "ENCRYPTION_KEY": generate_aes256_key(),
        "JWT_SECRET_KEY": generate_secret(),
        "CRON_SECRET": generate_secret(32),
    }

    print("\n✅ À ajouter dans votre fichier .env :\n")
    for name, value in values.items():
        print(f"{name}={value}")

    print("\n" + "=" * 60)
    print("⚠️  IMPORTANT - Sécurité")
    print("=" * 60)
    print("1. NE COMMITEZ JAMAIS le fichier .env")
    print("2. Les secrets doivent être différents par environnement")
    print("3. Changer ENCRYPTION_KEY rend illisibles les secrets déjà chiffrés")
    print("=" * 60)

    if os.path.exists(".env"):
        print("ℹ️  Un fichier .env existe déjà : fusionnez les valeurs à la main")


if __name__ == "__main__":
    main()
