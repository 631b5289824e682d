"""
Routes FastAPI pour le module Contracts.

Endpoints pour :
- /contracts : CRUD des contrats d'apprentissage
- /contracts/{id}/lock : Verrouillage du TSF (signature du tuteur)
- /contracts/{id}/journey : Initialisation du parcours

Version multi-tenant : tous les endpoints filtrent par tenant_id.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.contracts.schemas import (
    ContractCreate,
    ContractListResponse,
    ContractLock,
    ContractResponse,
    ContractUpdate,
    JourneyInit,
    JourneyResult,
)
from app.api.v1.contracts.services import (
    ContractService,
    # Exceptions
    ContractNotFoundError,
    DuplicateExternalIdError,
    InvalidContractDatesError,
    ParticipantNotFoundError,
    ReferentielNotFoundError,
)
from app.api.v1.dependencies import PaginationParams
from app.api.v1.tsf.services import ReferentielMissingError
from app.api.v1.users.tenant_users_security import get_current_tenant_id
from app.core.auth.user_auth import get_current_user
from app.core.permissions import assert_contract_access, require_permission
from app.database.session_rls import get_db
from app.models.enums import PermissionCode, UserRole
from app.models.user.user import User

router = APIRouter(prefix="/contracts", tags=["Contracts"])


# =============================================================================
# LECTURE
# =============================================================================

@router.get("", response_model=ContractListResponse)
def list_contracts(
        apprentice_id: Optional[int] = Query(None),
        formateur_id: Optional[int] = Query(None),
        referentiel_id: Optional[int] = Query(None),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """
    Liste les contrats du CFA.

    Un apprenti ou un tuteur ne voit que les contrats auxquels il est partie.
    """
    service = ContractService(db, tenant_id)
    party_user_id = None if current_user.is_staff else current_user.id

    items, total = service.list_contracts(
        page=pagination.page,
        size=pagination.size,
        apprentice_id=apprentice_id,
        formateur_id=formateur_id,
        referentiel_id=referentiel_id,
        party_user_id=party_user_id,
    )

    return pagination.envelope(items, total)


@router.get("/{contract_id}", response_model=ContractResponse)
def get_contract(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = ContractService(db, tenant_id)
    try:
        contract = service.get_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(current_user, contract)
    return contract


# =============================================================================
# ÉCRITURE
# =============================================================================

@router.post("", response_model=ContractResponse, status_code=status.HTTP_201_CREATED)
def create_contract(
        data: ContractCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.CONTRACT_WRITE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Crée un contrat, synchronise ses jalons et initialise son parcours."""
    service = ContractService(db, tenant_id)
    try:
        return service.create_contract(data.model_dump())
    except (ParticipantNotFoundError, ReferentielNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DuplicateExternalIdError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.patch("/{contract_id}", response_model=ContractResponse)
def update_contract(
        contract_id: int,
        data: ContractUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.CONTRACT_WRITE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = ContractService(db, tenant_id)
    try:
        return service.update_contract(contract_id, data.model_dump(exclude_unset=True))
    except (ContractNotFoundError, ParticipantNotFoundError, ReferentielNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidContractDatesError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{contract_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contract(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.CONTRACT_DELETE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = ContractService(db, tenant_id)
    try:
        service.delete_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# VERROUILLAGE ET PARCOURS
# =============================================================================

@router.post("/{contract_id}/lock", response_model=ContractResponse)
def lock_contract(
        contract_id: int,
        data: ContractLock,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Le tuteur (ou l'encadrement) signe et verrouille le TSF."""
    if current_user.role == UserRole.APPRENTICE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Un apprenti ne peut pas verrouiller son TSF",
        )
    service = ContractService(db, tenant_id)
    try:
        assert_contract_access(current_user, service.get_contract(contract_id))
        return service.lock_contract(contract_id, data.signature)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{contract_id}/journey", response_model=JourneyResult)
def initialize_journey(
        contract_id: int,
        data: JourneyInit,
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission(PermissionCode.CONTRACT_WRITE)),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """(Ré)initialise le parcours : semestres, trimestres ou mois."""
    service = ContractService(db, tenant_id)
    try:
        return service.initialize_journey(contract_id, data.period_type)
    except (ContractNotFoundError, ReferentielMissingError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
