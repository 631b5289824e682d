"""
Routes FastAPI pour le suivi des contrats.

Endpoints pour :
- /monitoring/contracts/{id}/milestones : Jalons réglementaires
- /monitoring/milestones/{id}/complete : Réalisation d'un jalon
- /monitoring/contracts/{id}/attendance : Assiduité
- /monitoring/contracts/{id}/health : Score de santé
- /monitoring/notifications : Notifications de l'utilisateur
- /cron/daily : Relances quotidiennes (tâche planifiée)
"""
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.monitoring.schemas import (
    AttendanceCreate,
    AttendanceResponse,
    CronRunResponse,
    HealthResponse,
    MilestoneResponse,
    NotificationResponse,
)
from app.api.v1.monitoring.services import (
    MonitoringService,
    run_daily_alerts,
    sync_milestones,
    # Exceptions
    ContractNotFoundError,
    MilestoneNotFoundError,
    NotificationNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.core.auth.cron_auth import verify_cron_secret
from app.core.auth.user_auth import get_current_user
from app.core.permissions import assert_contract_access
from app.database.session_rls import get_db, get_db_no_rls
from app.models.contract.contract import Contract
from app.models.user.user import User

router = APIRouter(prefix="/monitoring", tags=["Suivi"])
cron_router = APIRouter(prefix="/cron", tags=["Cron"])


def _get_accessible_contract(service: MonitoringService, contract_id: int, user: User) -> Contract:
    try:
        contract = service.get_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, contract)
    return contract


# =============================================================================
# JALONS
# =============================================================================

@router.get("/contracts/{contract_id}/milestones", response_model=List[MilestoneResponse])
def list_milestones(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = MonitoringService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return service.list_milestones(contract_id)


@router.post("/contracts/{contract_id}/milestones/sync", response_model=List[MilestoneResponse])
def sync_contract_milestones(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Crée les jalons réglementaires manquants."""
    service = MonitoringService(db, tenant_id)
    contract = _get_accessible_contract(service, contract_id, current_user)
    sync_milestones(db, contract)
    db.commit()
    return service.list_milestones(contract_id)


@router.post("/milestones/{milestone_id}/complete", response_model=MilestoneResponse)
def complete_milestone(
        milestone_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Marque un jalon comme réalisé."""
    service = MonitoringService(db, tenant_id)
    try:
        assert_contract_access(current_user, service.get_milestone_contract(milestone_id))
        return service.complete_milestone(milestone_id)
    except MilestoneNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# ASSIDUITÉ
# =============================================================================

@router.post("/contracts/{contract_id}/attendance", response_model=AttendanceResponse)
def record_attendance(
        contract_id: int,
        data: AttendanceCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Saisit (ou corrige) l'assiduité d'une journée."""
    service = MonitoringService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return service.record_attendance(
        contract_id, data.date, data.status, hours=data.hours, comment=data.comment
    )


@router.get("/contracts/{contract_id}/attendance", response_model=List[AttendanceResponse])
def list_attendance(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = MonitoringService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return service.list_attendance(contract_id)


# =============================================================================
# SANTÉ
# =============================================================================

@router.get("/contracts/{contract_id}/health", response_model=HealthResponse)
def get_contract_health(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Score de santé du contrat (0-100) et motifs de pénalité."""
    service = MonitoringService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return service.get_contract_health(contract_id)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@router.get("/notifications", response_model=List[NotificationResponse])
def list_notifications(
        unread_only: bool = Query(False),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = MonitoringService(db, tenant_id)
    return service.list_notifications(current_user.id, unread_only=unread_only)


@router.post("/notifications/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_read(
        notification_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = MonitoringService(db, tenant_id)
    try:
        return service.mark_notification_read(notification_id, current_user.id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# TÂCHE PLANIFIÉE
# =============================================================================

@cron_router.post(
    "/daily",
    response_model=CronRunResponse,
    dependencies=[Depends(verify_cron_secret)],
)
def daily_alerts(db: Session = Depends(get_db_no_rls)):
    """Relances quotidiennes sur les jalons (Bearer CRON_SECRET)."""
    results = run_daily_alerts(db)
    return CronRunResponse(timestamp=datetime.now(timezone.utc), results=results)
