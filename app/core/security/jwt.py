"""Gestion des tokens JWT (HS256, secret partagé)."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import jwt, JWTError

from app.core.config import settings


def _build_token(data: dict, expire: datetime, token_type: str) -> str:
    """Ajoute les claims standards et signe le token."""
    to_encode = data.copy()
    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "iss": settings.JWT_ISSUER,
        "type": token_type,
    })
    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Crée un token JWT d'accès.

    Args:
        data: Claims à encoder (sub, tenant_id, role, impersonator_id...)
        expires_delta: Durée de validité personnalisée

    Returns:
        Token JWT signé
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    return _build_token(data, expire, "access")


def create_refresh_token(data: dict) -> str:
    """
    Crée un token JWT de refresh.

    Args:
        data: Claims minimaux (généralement juste sub)

    Returns:
        Refresh token JWT signé
    """
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _build_token(data, expire, "refresh")


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """
    Vérifie et décode un token JWT.

    Args:
        token: Token JWT à vérifier
        token_type: Type attendu ("access" ou "refresh")

    Returns:
        Payload décodé

    Raises:
        JWTError: Si le token est invalide, expiré ou de mauvais type
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "require_exp": True,
                "require_iat": True
            }
        )

        # Vérifier le type de token
        if payload.get("type") != token_type:
            raise JWTError(f"Token type mismatch. Expected {token_type}")

        # Vérifier l'issuer
        if payload.get("iss") != settings.JWT_ISSUER:
            raise JWTError("Invalid token issuer")

        return payload

    except JWTError as e:
        raise JWTError(f"Token validation failed: {str(e)}")
