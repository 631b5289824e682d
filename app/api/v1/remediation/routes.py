"""
Routes FastAPI pour les plans de remédiation (admin, formateur).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.remediation.schemas import (
    ContractNeedingRemediation,
    RemediationActionCreate,
    RemediationPlanCreate,
    RemediationPlanResponse,
)
from app.api.v1.remediation.services import (
    RemediationService,
    # Exceptions
    ContractNotFoundError,
    InvalidActionIndexError,
    PlanResolvedError,
    RemediationPlanNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.database.session_rls import get_db
from app.models.enums import RemediationStatus
from app.models.user.user import User

router = APIRouter(prefix="/remediation", tags=["Remédiation"])


def _plan_errors(e: Exception) -> HTTPException:
    if isinstance(e, (RemediationPlanNotFoundError, ContractNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidActionIndexError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


PLAN_ERRORS = (
    RemediationPlanNotFoundError,
    ContractNotFoundError,
    InvalidActionIndexError,
    PlanResolvedError,
)


@router.get("/plans", response_model=List[RemediationPlanResponse])
def list_plans(
        plan_status: Optional[RemediationStatus] = Query(None, alias="status"),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return RemediationService(db, tenant_id).list_plans(plan_status)


@router.get("/contracts", response_model=List[ContractNeedingRemediation])
def contracts_needing_remediation(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Contrats en WARNING ou DANGER, avec ou sans plan actif."""
    return RemediationService(db, tenant_id).contracts_needing_remediation()


@router.post("/plans", response_model=RemediationPlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
        data: RemediationPlanCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return RemediationService(db, tenant_id).create_plan(
            data.contract_id, data.title, data.description, current_user.id
        )
    except PLAN_ERRORS as e:
        raise _plan_errors(e)


@router.get("/plans/{plan_id}", response_model=RemediationPlanResponse)
def get_plan(
        plan_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return RemediationService(db, tenant_id).get_plan(plan_id)
    except PLAN_ERRORS as e:
        raise _plan_errors(e)


@router.post("/plans/{plan_id}/actions", response_model=RemediationPlanResponse)
def add_action(
        plan_id: int,
        data: RemediationActionCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return RemediationService(db, tenant_id).add_action(plan_id, data.description, data.due_date)
    except PLAN_ERRORS as e:
        raise _plan_errors(e)


@router.post("/plans/{plan_id}/actions/{action_index}/complete", response_model=RemediationPlanResponse)
def complete_action(
        plan_id: int,
        action_index: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return RemediationService(db, tenant_id).complete_action(plan_id, action_index)
    except PLAN_ERRORS as e:
        raise _plan_errors(e)


@router.post("/plans/{plan_id}/resolve", response_model=RemediationPlanResponse)
def resolve_plan(
        plan_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return RemediationService(db, tenant_id).resolve(plan_id)
    except PLAN_ERRORS as e:
        raise _plan_errors(e)
