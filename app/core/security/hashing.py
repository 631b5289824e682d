"""Fonctions de hashing pour mots de passe et jetons opaques (one-way)."""

import hashlib
import secrets

import bcrypt

# Coût computationnel (plus = plus sécurisé mais plus lent)
BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    """
    Hash un mot de passe avec bcrypt.

    Args:
        password: Mot de passe en clair

    Returns:
        Hash bcrypt du mot de passe
    """
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Vérifie qu'un mot de passe correspond à son hash.

    Args:
        plain_password: Mot de passe en clair à vérifier
        hashed_password: Hash bcrypt stocké en base de données

    Returns:
        True si le mot de passe correspond, False sinon
    """
    try:
        password_bytes = plain_password.encode('utf-8')
        hashed_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except (ValueError, TypeError):
        return False


def sha256_hex(value: str) -> str:
    """
    Empreinte SHA-256 hexadécimale d'un jeton opaque.

    Les jetons magiques et clés API sont recherchés par leur empreinte :
    un hash déterministe est donc nécessaire (bcrypt est salé).
    """
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def generate_token(nbytes: int = 32) -> str:
    """Génère un jeton aléatoire hexadécimal (2 * nbytes caractères)."""
    return secrets.token_hex(nbytes)


def generate_password(length: int = 12) -> str:
    """Génère un mot de passe temporaire lisible."""
    return secrets.token_urlsafe(length)[:length]
