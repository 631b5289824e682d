"""Authentification des tâches planifiées (Authorization: Bearer <CRON_SECRET>)."""

import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import settings


def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """
    Vérifie le secret partagé du planificateur.

    Raises:
        HTTPException 401: Secret absent, non configuré ou invalide
    """
    expected = f"Bearer {settings.CRON_SECRET}"
    if (
        not settings.cron_configured
        or not authorization
        or not hmac.compare_digest(authorization, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Non autorisé",
        )
