# app/api/v1/users/tenant_users_security.py
"""
Sécurité multi-tenant pour les utilisateurs des CFA.

Ce module gère :
- Extraction du tenant_id depuis l'utilisateur courant
- Dépendances de rôle (encadrement, administration)

Note: Pour la sécurité SuperAdmin (équipe plateforme),
voir app/api/v1/platform/super_admin_security.py
"""

from typing import Optional

from fastapi import Depends, HTTPException, status

from app.core.auth.user_auth import get_current_user
from app.models.enums import UserRole
from app.models.user.user import User


# =============================================================================
# TENANT DEPENDENCIES
# =============================================================================

def get_current_tenant_id(
    current_user: User = Depends(get_current_user)
) -> int:
    """
    Extrait le tenant_id de l'utilisateur courant.

    Raises:
        HTTPException 403: Si l'utilisateur n'est pas rattaché à un tenant
    """
    if not current_user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Utilisateur non rattaché à un tenant"
        )
    return current_user.tenant_id


def get_optional_tenant_id(
    current_user: User = Depends(get_current_user)
) -> Optional[int]:
    """
    Extrait le tenant_id de l'utilisateur courant (optionnel).

    Retourne None pour un super-admin (pas de tenant).
    """
    return current_user.tenant_id


# =============================================================================
# ROLE DEPENDENCIES
# =============================================================================

def get_staff_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Exige un membre de l'encadrement (admin, formateur, super-admin).

    Raises:
        HTTPException 403: Rôle apprenti ou tuteur
    """
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Réservé à l'équipe pédagogique"
        )
    return current_user


def get_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Exige un administrateur (admin du CFA ou super-admin).

    Raises:
        HTTPException 403: Autre rôle
    """
    if current_user.role not in (UserRole.ADMIN, UserRole.SUPER_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Réservé aux administrateurs"
        )
    return current_user
