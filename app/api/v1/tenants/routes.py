"""
Routes FastAPI pour le CFA courant.

Endpoints pour :
- /tenant/settings : Paramètres du CFA (admin)
- /tenant/branding : Personnalisation résolue depuis l'hôte (public)
- /tenant/roles : Rôles personnalisés (ROLE_MANAGE)
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.v1.tenants.schemas import (
    BrandingResponse,
    RoleCreate,
    RolePermissionsUpdate,
    RoleResponse,
    TenantSettingsResponse,
    TenantSettingsUpdate,
)
from app.api.v1.tenants.services import (
    TenantSettingsService,
    resolve_branding,
    # Exceptions
    RoleNameExistsError,
    RoleNotFoundError,
    TenantNotFoundError,
    UnknownPermissionError,
)
from app.api.v1.users.tenant_users_security import get_admin_user, get_current_tenant_id
from app.core.auth.user_auth import get_current_user
from app.core.permissions import require_permission
from app.database.session_rls import get_db, get_db_no_rls
from app.models.enums import PermissionCode
from app.models.user.user import User

router = APIRouter(prefix="/tenant", tags=["CFA"])


# =============================================================================
# PARAMÈTRES
# =============================================================================

@router.get("/settings", response_model=TenantSettingsResponse)
def get_settings(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return TenantSettingsService(db, tenant_id).get_tenant()
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/settings", response_model=TenantSettingsResponse)
def update_settings(
        data: TenantSettingsUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Met à jour les paramètres du CFA (le secret webhook est chiffré)."""
    try:
        return TenantSettingsService(db, tenant_id).update_settings(
            data.model_dump(exclude_unset=True)
        )
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/branding", response_model=BrandingResponse)
def get_branding(
        request: Request,
        host: Optional[str] = Query(None, description="Hôte à résoudre (défaut : en-tête Host)"),
        db: Session = Depends(get_db_no_rls),
):
    """Nom, logo et couleur du CFA pour l'hôte demandé (public)."""
    return resolve_branding(db, host or request.headers.get("host"))


# =============================================================================
# RÔLES PERSONNALISÉS
# =============================================================================

@router.get("/roles", response_model=List[RoleResponse])
def list_roles(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.ROLE_MANAGE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return TenantSettingsService(db, tenant_id).list_roles()


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
        data: RoleCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.ROLE_MANAGE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = TenantSettingsService(db, tenant_id)
    try:
        return service.create_role(data.name, data.description, data.permissions)
    except RoleNameExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except UnknownPermissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.put("/roles/{role_id}/permissions", response_model=RoleResponse)
def update_role_permissions(
        role_id: int,
        data: RolePermissionsUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.ROLE_MANAGE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = TenantSettingsService(db, tenant_id)
    try:
        return service.update_role_permissions(role_id, data.permissions)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UnknownPermissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
        role_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.ROLE_MANAGE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        TenantSettingsService(db, tenant_id).delete_role(role_id)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
