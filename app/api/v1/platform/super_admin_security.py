"""
Dépendances FastAPI pour le module Platform.

Les super-admins sont des utilisateurs de rôle super_admin, sans tenant,
authentifiés par le même JWT que les autres utilisateurs.
"""
from fastapi import Depends, HTTPException, status

from app.core.auth.user_auth import get_current_user
from app.models.user.user import User


# =============================================================================
# DEPENDENCIES
# =============================================================================

async def get_current_super_admin(
        current_user: User = Depends(get_current_user),
) -> User:
    """
    Exige un super-admin.

    Raises:
        HTTPException 403: Si l'utilisateur n'est pas super-admin
    """
    if not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès réservé aux super-administrateurs",
        )
    return current_user
