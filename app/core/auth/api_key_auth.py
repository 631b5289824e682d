"""
Authentification des intégrations externes par clé d'API.

Header attendu : x-api-key: cfa_live_<48 caractères hexadécimaux>
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security.hashing import sha256_hex
from app.database.session_rls import get_db_no_rls
from app.models.audit.api_key import API_KEY_PREFIX, ApiKey
from app.models.tenants.tenant import Tenant

logger = logging.getLogger(__name__)


def get_api_key_tenant(
    x_api_key: Optional[str] = Header(None, alias="x-api-key"),
    db: Session = Depends(get_db_no_rls),
) -> Tenant:
    """
    Valide la clé d'API et retourne le tenant propriétaire.

    Raises:
        HTTPException 401: Clé absente
        HTTPException 403: Clé mal formée, inconnue ou révoquée
    """
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Clé d'API requise (header x-api-key)",
        )

    if not x_api_key.startswith(API_KEY_PREFIX):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clé d'API invalide",
        )

    api_key = db.execute(
        select(ApiKey).where(ApiKey.key_hash == sha256_hex(x_api_key))
    ).scalar_one_or_none()

    if api_key is None or api_key.is_revoked:
        logger.warning("⚠️ Tentative d'accès avec une clé d'API invalide ou révoquée")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clé d'API invalide ou révoquée",
        )

    api_key.last_used_at = datetime.now(timezone.utc)
    db.commit()

    tenant = db.get(Tenant, api_key.tenant_id)
    if tenant is None or not tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tenant inactif",
        )
    return tenant
