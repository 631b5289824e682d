"""
Routes FastAPI pour l'audit Qualiopi.

Endpoints pour :
- /audit/logs : Journal d'audit du CFA
- /audit/sessions : Accès auditeur temporaires
- /audit/portal/{token} : Portail public de l'auditeur
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.audit.schemas import (
    AuditLogListResponse,
    AuditSessionCreate,
    AuditSessionResponse,
    PortalResponse,
)
from app.api.v1.audit.services import (
    AuditService,
    get_portal_data,
    # Exceptions
    AuditSessionExpiredError,
    AuditSessionNotFoundError,
)
from app.api.v1.dependencies import PaginationParams
from app.api.v1.users.tenant_users_security import get_current_tenant_id
from app.core.permissions import require_permission
from app.database.session_rls import get_db, get_db_no_rls
from app.models.enums import PermissionCode
from app.models.user.user import User

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/logs", response_model=AuditLogListResponse)
def list_audit_logs(
        action: Optional[str] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.AUDIT_READ)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    items, total = AuditService(db, tenant_id).list_logs(pagination.page, pagination.size, action)
    return pagination.envelope(items, total)


@router.post("/sessions", response_model=AuditSessionResponse, status_code=status.HTTP_201_CREATED)
def create_audit_session(
        data: AuditSessionCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.AUDIT_GENERATE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Génère un lien auditeur limité aux apprentis sélectionnés."""
    return AuditService(db, tenant_id).create_session(
        data.apprentice_ids,
        created_by=current_user.id,
        auditor_name=data.auditor_name,
        validity_days=data.validity_days,
    )


@router.get("/sessions", response_model=List[AuditSessionResponse])
def list_audit_sessions(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.AUDIT_GENERATE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return AuditService(db, tenant_id).list_sessions()


@router.get("/portal/{token}", response_model=PortalResponse)
def get_audit_portal(
        token: str,
        db: Session = Depends(get_db_no_rls),
):
    """Portail auditeur (public, en lecture seule, limité au périmètre du jeton)."""
    try:
        return get_portal_data(db, token)
    except AuditSessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AuditSessionExpiredError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
