"""
Contrôle d'accès par permissions fines (RBAC).

Matrice par défaut :
- super_admin et admin : toutes les permissions
- rôle personnalisé : la liste de codes portée par le rôle
- formateur : lecture des contrats et du TSF
- autres rôles : aucune permission fine

Usage:
    @router.delete("/{contract_id}")
    def delete_contract(
        current_user: User = Depends(require_permission(PermissionCode.CONTRACT_DELETE)),
    ):
        ...
"""

from typing import Callable, Union

from fastapi import Depends, HTTPException, status

from app.core.auth.user_auth import get_current_user
from app.models.enums import PermissionCode, UserRole
from app.models.user.user import User


# Permissions accordées par défaut aux formateurs sans rôle personnalisé
FORMATEUR_DEFAULT_PERMISSIONS = frozenset({
    PermissionCode.TSF_READ.value,
    PermissionCode.CONTRACT_READ.value,
})


def _code(permission: Union[str, PermissionCode]) -> str:
    return permission.value if isinstance(permission, PermissionCode) else str(permission)


def user_has_permission(user: User, permission: Union[str, PermissionCode]) -> bool:
    """Vérifie si un utilisateur détient une permission."""
    code = _code(permission)

    if user.role in (UserRole.SUPER_ADMIN, UserRole.ADMIN):
        return True

    if user.custom_role is not None:
        return user.custom_role.grants(code)

    if user.role == UserRole.FORMATEUR:
        return code in FORMATEUR_DEFAULT_PERMISSIONS

    return False


def require_permission(permission: Union[str, PermissionCode]) -> Callable:
    """
    Factory de dépendance exigeant une permission.

    Raises:
        HTTPException 403: Permission manquante
    """
    code = _code(permission)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not user_has_permission(current_user, code):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission requise : {code}",
            )
        return current_user

    return dependency


def require_roles(*roles: UserRole) -> Callable:
    """
    Factory de dépendance exigeant l'un des rôles donnés.

    Raises:
        HTTPException 403: Rôle non autorisé
    """

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Accès non autorisé pour ce rôle",
            )
        return current_user

    return dependency


def can_access_contract(user: User, contract) -> bool:
    """
    Accès en lecture à un contrat.

    L'encadrement voit tous les contrats de son tenant ; apprentis et
    tuteurs ne voient que les contrats dont ils sont partie prenante.
    """
    if user.is_super_admin:
        return True
    if user.tenant_id != contract.tenant_id:
        return False
    if user.role in (UserRole.ADMIN, UserRole.FORMATEUR):
        return True
    return contract.involves(user.id)


def assert_contract_access(user: User, contract) -> None:
    """
    Raises:
        HTTPException 403: Contrat hors du périmètre de l'utilisateur
    """
    if not can_access_contract(user, contract):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès non autorisé à ce contrat",
        )
