"""
Routes FastAPI pour le positionnement initial.

Endpoints pour :
- /assessments/positioning : Positionnement direct et réduction suggérée
- /assessments/contracts/{id} : Diagnostics d'un contrat (brouillon)
- /assessments/{id}/submit, /assessments/{id}/validate : Workflow du diagnostic
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.assessments.schemas import (
    AssessmentResponse,
    DraftCreate,
    PositioningCreate,
    PositioningResult,
)
from app.api.v1.assessments.services import (
    AssessmentService,
    # Exceptions
    AssessmentNotFoundError,
    AssessmentStateError,
    CompetenceNotFoundError,
    ContractNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id
from app.core.auth.user_auth import get_current_user
from app.core.permissions import assert_contract_access, require_permission
from app.database.session_rls import get_db
from app.models.enums import PermissionCode
from app.models.user.user import User

router = APIRouter(prefix="/assessments", tags=["Positionnement"])


def _accessible_contract(service: AssessmentService, contract_id: int, user: User):
    try:
        contract = service.get_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, contract)
    return contract


def _accessible_assessment(service: AssessmentService, assessment_id: int, user: User):
    try:
        assessment = service.get_assessment(assessment_id)
    except AssessmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, assessment.contract)
    return assessment


@router.post("/positioning", response_model=PositioningResult)
def save_positioning(
        data: PositioningCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Enregistre le positionnement et régénère le TSF de l'apprenti."""
    service = AssessmentService(db, tenant_id)
    _accessible_contract(service, data.contract_id, current_user)
    try:
        return service.save_positioning(
            data.contract_id, [e.model_dump() for e in data.entries]
        )
    except CompetenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/contracts/{contract_id}", response_model=List[AssessmentResponse])
def list_contract_assessments(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = AssessmentService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    return service.list_contract_assessments(contract_id)


@router.post("/contracts/{contract_id}/draft", response_model=AssessmentResponse)
def save_draft(
        contract_id: int,
        data: DraftCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Crée ou complète le brouillon du diagnostic initial."""
    service = AssessmentService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    try:
        return service.save_draft(contract_id, [e.model_dump() for e in data.entries])
    except CompetenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AssessmentStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/{assessment_id}", response_model=AssessmentResponse)
def get_assessment(
        assessment_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = AssessmentService(db, tenant_id)
    return _accessible_assessment(service, assessment_id, current_user)


@router.post("/{assessment_id}/submit", response_model=AssessmentResponse)
def submit_assessment(
        assessment_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Soumet le diagnostic (le TSF est régénéré)."""
    service = AssessmentService(db, tenant_id)
    _accessible_assessment(service, assessment_id, current_user)
    try:
        return service.submit(assessment_id)
    except AssessmentStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/{assessment_id}/validate", response_model=AssessmentResponse)
def validate_assessment(
        assessment_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.TSF_VALIDATE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Valide le diagnostic et verrouille le TSF du contrat."""
    service = AssessmentService(db, tenant_id)
    _accessible_assessment(service, assessment_id, current_user)
    try:
        return service.validate(assessment_id, validator_id=current_user.id)
    except AssessmentStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
