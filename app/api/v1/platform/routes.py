"""
Routes API pour le module Platform.

Gestion au niveau plateforme (SuperAdmin) :
- /platform/leads : Prospects et provisionnement
- /platform/tenants : CRUD et conformité des tenants
- /platform/users : Utilisateurs toutes instances
- /platform/stats : Statistiques globales et MRR
- /platform/config : Paramètres globaux
- /platform/referentiels : Référentiels globaux
- /platform/subscriptions : Abonnements
- /platform/audit-logs : Journal d'audit global
- /platform/system-health : Santé de la base et de l'hôte

IMPORTANT: Toutes ces routes nécessitent un super-admin, sauf le dépôt
d'un prospect (formulaire public).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.v1.audit.schemas import AuditLogListResponse
from app.api.v1.audit.services import AuditService
from app.api.v1.dependencies import PaginationParams
from app.api.v1.platform.schemas import (
    ConfigResponse,
    ConfigUpdate,
    GlobalReferentielCreate,
    GlobalReferentielResponse,
    LeadCreate,
    LeadResponse,
    PlatformStats,
    PlatformTenantCreate,
    PlatformTenantListResponse,
    PlatformTenantResponse,
    PlatformTenantUpdate,
    PlatformUserListResponse,
    PlatformUserResponse,
    PlatformUserUpdate,
    ProvisionResponse,
    SubscriptionResponse,
    SystemHealth,
)
from app.api.v1.platform.services import (
    GlobalReferentielService,
    LeadService,
    PlatformConfigService,
    PlatformStatsService,
    PlatformTenantService,
    PlatformUserService,
    get_system_health,
    # Exceptions
    DuplicateReferentielError,
    LeadAlreadyProcessedError,
    LeadNotFoundError,
    ReferentielNotFoundError,
    SelfDeletionError,
    TenantNotFoundError,
    UserEmailExistsError,
    UserNotFoundError,
)
from app.api.v1.platform.super_admin_security import get_current_super_admin
from app.api.v1.tenants.services import EmailAlreadyUsedError
from app.database.session_rls import get_db_no_rls as get_db
from app.models.enums import ConfigGroup, LeadStatus, UserRole
from app.models.user.user import User


# =============================================================================
# ROUTER
# =============================================================================

router = APIRouter(prefix="/platform", tags=["Platform Administration"])


# =============================================================================
# RESPONSE HELPERS
# =============================================================================

def _tenant_payload(tenant, counts: dict) -> PlatformTenantResponse:
    return PlatformTenantResponse.model_validate(tenant).model_copy(update=counts)


# =============================================================================
# PROSPECTS
# =============================================================================

@router.post("/leads", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
def create_lead(data: LeadCreate, db: Session = Depends(get_db)):
    """Formulaire public de demande de démonstration."""
    return LeadService(db).create_lead(data.model_dump())


@router.get("/leads", response_model=List[LeadResponse])
def list_leads(
        lead_status: Optional[LeadStatus] = Query(None, alias="status"),
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    return LeadService(db).list_leads(lead_status)


@router.post("/leads/{lead_id}/reject", response_model=LeadResponse)
def reject_lead(
        lead_id: int,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    try:
        return LeadService(db).reject_lead(lead_id)
    except LeadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LeadAlreadyProcessedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/leads/{lead_id}/provision", response_model=ProvisionResponse, status_code=status.HTTP_201_CREATED)
def provision_lead(
        lead_id: int,
        request: Request,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    """Crée l'instance du CFA prospect ; le mot de passe provisoire n'est affiché qu'une fois."""
    try:
        tenant, admin, password = LeadService(db).provision(
            lead_id,
            actor_id=current_admin.id,
            ip_address=request.client.host if request.client else None,
        )
    except LeadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (LeadAlreadyProcessedError, EmailAlreadyUsedError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return {
        "tenant_id": tenant.id,
        "tenant_slug": tenant.slug,
        "admin_email": admin.email,
        "temporary_password": password,
    }


# =============================================================================
# TENANTS
# =============================================================================

@router.get("/tenants", response_model=PlatformTenantListResponse)
def list_tenants(
        search: Optional[str] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    service = PlatformTenantService(db)
    tenants, total = service.get_all(pagination.page, pagination.size, search)
    counts = service.counts([t.id for t in tenants])
    items = [_tenant_payload(t, counts[t.id]) for t in tenants]
    return pagination.envelope(items, total)


@router.post("/tenants", response_model=PlatformTenantResponse, status_code=status.HTTP_201_CREATED)
def create_tenant(
        data: PlatformTenantCreate,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    tenant = PlatformTenantService(db).create(data.model_dump(exclude_unset=True), current_admin.id)
    return _tenant_payload(tenant, {})


@router.get("/tenants/{tenant_id}", response_model=PlatformTenantResponse)
def get_tenant(
        tenant_id: int,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    service = PlatformTenantService(db)
    try:
        tenant = service.get_by_id(tenant_id)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _tenant_payload(tenant, service.counts([tenant.id])[tenant.id])


@router.patch("/tenants/{tenant_id}", response_model=PlatformTenantResponse)
def update_tenant(
        tenant_id: int,
        data: PlatformTenantUpdate,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    """Met à jour l'identité et la conformité (Qualiopi, NDA, UAI) d'un CFA."""
    try:
        tenant = PlatformTenantService(db).update(
            tenant_id, data.model_dump(exclude_unset=True), current_admin.id
        )
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _tenant_payload(tenant, {})


# =============================================================================
# UTILISATEURS
# =============================================================================

@router.get("/users", response_model=PlatformUserListResponse)
def list_users(
        search: Optional[str] = Query(None),
        role: Optional[UserRole] = Query(None),
        tenant_id: Optional[int] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    users, total = PlatformUserService(db).get_all(
        pagination.page, pagination.size, search, role, tenant_id
    )
    return pagination.envelope(users, total)


@router.patch("/users/{user_id}", response_model=PlatformUserResponse)
def update_user(
        user_id: int,
        data: PlatformUserUpdate,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    try:
        return PlatformUserService(db).update(
            user_id, data.model_dump(exclude_unset=True), current_admin.id
        )
    except (UserNotFoundError, TenantNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UserEmailExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
        user_id: int,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    try:
        PlatformUserService(db).delete(user_id, current_admin.id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SelfDeletionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# =============================================================================
# STATISTIQUES ET ABONNEMENTS
# =============================================================================

@router.get("/stats", response_model=PlatformStats)
def get_platform_stats(
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    return PlatformStatsService(db).get_platform_stats()


@router.get("/subscriptions", response_model=List[SubscriptionResponse])
def list_subscriptions(
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    return [
        {
            "id": s.id,
            "tenant_id": s.tenant_id,
            "tenant_name": s.tenant.name if s.tenant else None,
            "plan": s.plan,
            "status": s.status,
            "max_apprentices": s.max_apprentices,
            "started_at": s.started_at,
            "ended_at": s.ended_at,
            "monthly_price": s.monthly_price,
        }
        for s in PlatformStatsService(db).list_subscriptions()
    ]


# =============================================================================
# CONFIGURATION
# =============================================================================

@router.get("/config", response_model=List[ConfigResponse])
def list_config(
        group: Optional[ConfigGroup] = Query(None),
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    """Paramètres globaux (valeurs secrètes masquées)."""
    service = PlatformConfigService(db)
    return [service.to_public(c) for c in service.list_configs(group)]


@router.put("/config/{key}", response_model=ConfigResponse)
def set_config(
        key: str,
        data: ConfigUpdate,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    service = PlatformConfigService(db)
    config = service.set_config(
        key, data.value, current_admin.id, group=data.group, is_secret=data.is_secret
    )
    return service.to_public(config)


# =============================================================================
# RÉFÉRENTIELS GLOBAUX
# =============================================================================

@router.get("/referentiels", response_model=List[GlobalReferentielResponse])
def list_global_referentiels(
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    return GlobalReferentielService(db).list_global()


@router.post(
    "/referentiels",
    response_model=GlobalReferentielResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_global_referentiel(
        data: GlobalReferentielCreate,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    try:
        return GlobalReferentielService(db).create_global(data.code_rncp, data.title)
    except DuplicateReferentielError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/referentiels/{referentiel_id}/toggle-visibility", response_model=GlobalReferentielResponse)
def toggle_referentiel_visibility(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    try:
        return GlobalReferentielService(db).toggle_visibility(referentiel_id)
    except ReferentielNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# AUDIT ET SANTÉ
# =============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_global_audit_logs(
        action: Optional[str] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    items, total = AuditService(db, None).list_logs(pagination.page, pagination.size, action)
    return pagination.envelope(items, total)


@router.get("/system-health", response_model=SystemHealth)
def system_health(
        db: Session = Depends(get_db),
        current_admin: User = Depends(get_current_super_admin),
):
    return get_system_health(db)
