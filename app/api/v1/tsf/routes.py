"""
Routes FastAPI pour le module TSF.

Endpoints pour :
- /tsf/contracts/{id} : Arbre du TSF et progression
- /tsf/contracts/{id}/generate : Génération semestrielle
- /tsf/contracts/{id}/mappings : Affectation compétence / période
- /tsf/contracts/{id}/indicateurs/{indicateur_id} : Validation d'indicateur
- /tsf/mappings/{id} : Validation rapide d'une compétence

Version multi-tenant : tous les endpoints filtrent par tenant_id.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.tsf.schemas import (
    BlocProgress,
    EvaluationResponse,
    IndicateurToggle,
    MappingResponse,
    MappingUpsert,
    MappingValidation,
    TSFGenerationResult,
    TSFTree,
)
from app.api.v1.tsf.services import (
    TSFService,
    generate_tsf,
    # Exceptions
    CompetenceNotFoundError,
    ContractLockedError,
    ContractNotFoundError,
    IndicateurNotFoundError,
    MappingNotFoundError,
    PeriodNotFoundError,
    ReferentielMissingError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.core.auth.user_auth import get_current_user
from app.core.permissions import assert_contract_access
from app.database.session_rls import get_db
from app.models.enums import UserRole
from app.models.user.user import User

router = APIRouter(prefix="/tsf", tags=["TSF"])


def _get_accessible_contract(service: TSFService, contract_id: int, user: User):
    try:
        contract = service._get_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, contract)
    return contract


# =============================================================================
# ARBRE ET PROGRESSION
# =============================================================================

@router.get("/contracts/{contract_id}", response_model=TSFTree)
def get_tsf(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Récupère le TSF complet d'un contrat avec la progression globale."""
    service = TSFService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    try:
        return service.get_tree(contract_id)
    except ReferentielMissingError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/contracts/{contract_id}/progress", response_model=List[BlocProgress])
def get_progress(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Progression par bloc de compétences."""
    service = TSFService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return service.get_progress_by_bloc(contract_id)


# =============================================================================
# GÉNÉRATION
# =============================================================================

@router.post("/contracts/{contract_id}/generate", response_model=TSFGenerationResult)
def generate_contract_tsf(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """(Re)génère le TSF semestriel du contrat."""
    service = TSFService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    return generate_tsf(db, contract_id)


# =============================================================================
# AFFECTATIONS
# =============================================================================

@router.put("/contracts/{contract_id}/mappings", response_model=MappingResponse)
def upsert_mapping(
        contract_id: int,
        data: MappingUpsert,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Planifie une compétence sur une période (CFA et/ou entreprise)."""
    try:
        service = TSFService(db, tenant_id)
        return service.upsert_mapping(
            contract_id,
            competence_id=data.competence_id,
            period_id=data.period_id,
            flag_cfa=data.flag_cfa,
            flag_entreprise=data.flag_entreprise,
        )
    except (ContractNotFoundError, CompetenceNotFoundError, PeriodNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ContractLockedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.patch("/mappings/{mapping_id}", response_model=MappingResponse)
def validate_mapping(
        mapping_id: int,
        data: MappingValidation,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Le tuteur ou le formateur valide (ou non) une compétence."""
    if current_user.role == UserRole.APPRENTICE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Un apprenti ne peut pas valider ses compétences",
        )
    service = TSFService(db, tenant_id)
    try:
        contract = service.get_mapping_contract(mapping_id)
        assert_contract_access(current_user, contract)
        return service.validate_mapping(mapping_id, data.status)
    except MappingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# INDICATEURS
# =============================================================================

@router.post(
    "/contracts/{contract_id}/indicateurs/{indicateur_id}",
    response_model=Optional[EvaluationResponse],
)
def toggle_indicator(
        contract_id: int,
        indicateur_id: int,
        data: IndicateurToggle,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Valide un indicateur (ACQUIS) ou annule sa validation (PENDING)."""
    if current_user.role == UserRole.APPRENTICE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Un apprenti ne peut pas valider ses indicateurs",
        )
    service = TSFService(db, tenant_id)
    _get_accessible_contract(service, contract_id, current_user)
    try:
        evaluation = service.toggle_indicator(
            contract_id, indicateur_id, data.status, validator_id=current_user.id
        )
    except IndicateurNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if evaluation is None:
        return None
    return EvaluationResponse(
        contract_id=evaluation.contract_id,
        indicateur_id=evaluation.indicateur_id,
        status=evaluation.status.value,
        checked_at=evaluation.checked_at,
    )
