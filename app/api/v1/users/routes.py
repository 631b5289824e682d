"""
Routes FastAPI pour les utilisateurs d'un CFA.

Endpoints pour :
- /users : Liste et création (encadrement)
- /users/me : Profil de l'utilisateur connecté
- /users/{id} : Détail, mise à jour, suppression (admin)
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import PaginationParams
from app.api.v1.users.schemas import (
    ProfileUpdate,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from app.api.v1.users.services import (
    UserService,
    update_profile,
    # Exceptions
    DuplicateEmailError,
    DuplicateExternalIdError,
    RoleAssignmentError,
    RoleNotFoundError,
    UserNotFoundError,
)
from app.api.v1.users.tenant_users_security import (
    get_admin_user,
    get_current_tenant_id,
    get_staff_user,
)
from app.core.auth.user_auth import get_current_user
from app.core.permissions import require_permission
from app.database.session_rls import get_db
from app.models.enums import PermissionCode, UserRole
from app.models.user.user import User

router = APIRouter(prefix="/users", tags=["Utilisateurs"])


def _write_errors(e: Exception) -> HTTPException:
    if isinstance(e, (UserNotFoundError, RoleNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, RoleAssignmentError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


WRITE_ERRORS = (
    DuplicateEmailError,
    DuplicateExternalIdError,
    RoleAssignmentError,
    RoleNotFoundError,
    UserNotFoundError,
)


# =============================================================================
# PROFIL
# =============================================================================

@router.get("/me", response_model=UserResponse)
def get_my_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_my_profile(
        data: ProfileUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Met à jour nom, prénom, téléphone, entreprise, tuteur."""
    user = db.merge(current_user)
    return update_profile(db, user, data.model_dump(exclude_unset=True))


# =============================================================================
# GESTION DES COMPTES
# =============================================================================

@router.get("", response_model=UserListResponse)
def list_users(
        role: Optional[UserRole] = Query(None),
        search: Optional[str] = Query(None, description="Nom, prénom ou email"),
        is_active: Optional[bool] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    items, total = UserService(db, tenant_id).get_all(
        page=pagination.page,
        size=pagination.size,
        role=role,
        search=search,
        is_active=is_active,
    )
    return pagination.envelope(items, total)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
        data: UserCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Crée un compte (admin, formateur ; un formateur ne crée pas d'admin)."""
    try:
        return UserService(db, tenant_id).create(data.model_dump(), current_user)
    except WRITE_ERRORS as e:
        raise _write_errors(e)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
        user_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return UserService(db, tenant_id).get_by_id(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
        user_id: int,
        data: UserUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.USER_WRITE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return UserService(db, tenant_id).update(
            user_id, data.model_dump(exclude_unset=True), current_user
        )
    except WRITE_ERRORS as e:
        raise _write_errors(e)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
        user_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Supprime un compte du CFA (administrateur uniquement)."""
    try:
        UserService(db, tenant_id).delete(user_id, current_user)
    except WRITE_ERRORS as e:
        raise _write_errors(e)
