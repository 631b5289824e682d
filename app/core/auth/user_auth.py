"""
Dépendances d'authentification Users avec support RLS multi-tenant.

Flow:
    1. get_current_user() extrait le JWT et charge l'utilisateur
    2. Configure automatiquement le contexte tenant (ContextVar)
    3. get_db() lit ce contexte et configure PostgreSQL
    4. RLS s'applique à toutes les requêtes

Un jeton d'impersonation porte la claim impersonator_id : il n'est
accepté que tant que la session Redis du super-admin est active.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.impersonation import ImpersonationManager
from app.core.security.jwt import verify_token
from app.core.tenant_context import set_tenant_context
from app.database.session_rls import get_db_no_rls
from app.models.mixins import as_utc
from app.models.user.user import User

logger = logging.getLogger(__name__)

# Security scheme pour le token Bearer
bearer_scheme = HTTPBearer(auto_error=False)

# Fréquence maximale d'écriture de last_activity_at
ACTIVITY_REFRESH_INTERVAL = timedelta(minutes=5)


def _user_id_from_payload(payload: dict) -> Optional[int]:
    try:
        return int(payload.get("sub")) if payload.get("sub") else None
    except (ValueError, TypeError):
        return None


def _check_impersonation(admin_id: int, target_user_id: int) -> None:
    """Refuse un jeton d'impersonation dont la session Redis a expiré."""
    try:
        active = ImpersonationManager().is_active(admin_id, target_user_id)
    except redis.RedisError as e:
        logger.error(f"❌ Redis indisponible pour vérifier l'impersonation : {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service de session indisponible",
        )
    if not active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session d'impersonation expirée",
            headers={"WWW-Authenticate": "Bearer"},
        )


def touch_user_activity(db: Session, user: User) -> None:
    """Met à jour last_activity_at (au plus toutes les 5 minutes)."""
    now = datetime.now(timezone.utc)
    last = as_utc(user.last_activity_at)
    if last is None or now - last > ACTIVITY_REFRESH_INTERVAL:
        user.last_activity_at = now
        db.commit()


# =============================================================================
# AUTHENTIFICATION UTILISATEUR
# =============================================================================

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db_no_rls),  # Pas de RLS pour charger l'utilisateur
) -> User:
    """
    Dépendance pour obtenir l'utilisateur courant depuis le JWT.

    Raises:
        HTTPException 401: Token manquant ou invalide
        HTTPException 403: Utilisateur inactif
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token d'authentification requis",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = verify_token(credentials.credentials, token_type="access")
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token invalide: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = _user_id_from_payload(payload)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalide: user_id manquant",
        )

    impersonator = payload.get("impersonator_id")
    if impersonator is not None:
        _check_impersonation(int(impersonator), user_id)

    user = db.get(User, user_id)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Utilisateur non trouvé",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Compte utilisateur désactivé",
        )

    tenant_id = payload.get("tenant_id")
    if tenant_id and user.tenant_id != tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Incohérence de tenant",
        )

    # Configurer le contexte tenant pour RLS
    set_tenant_context(
        tenant_id=user.tenant_id,
        user_id=user.id,
        super_admin=user.is_super_admin,
        impersonated_by=int(impersonator) if impersonator is not None else None,
    )
    request.state.tenant_id = user.tenant_id
    request.state.user_id = user.id
    request.state.is_super_admin = user.is_super_admin

    # Les actions d'un super-admin impersonnant ne comptent pas comme activité
    if impersonator is None:
        touch_user_activity(db, user)

    return user
