"""
Routes FastAPI pour le livret d'apprentissage.

Endpoints pour :
- /livrets/contracts/{id}/consolidated : Données consolidées du livret
- /livrets/contracts/{id} : Création et liste des livrets d'un contrat
- /livrets/{id}/sign : Signature tripartite (apprenti, tuteur, CFA)
- /livrets/{id}/sign/magic : Signature du tuteur par lien magique
- /livrets/contracts/{id}/invite-tutor : Invitation du tuteur entreprise
- /livrets/promotions/{referentiel_id} : Signature groupée d'une promotion
- /livrets/contracts/{id}/report : Bilan de progression
"""
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.api.v1.livrets.schemas import (
    LivretDetail,
    LivretResponse,
    MagicAccess,
    MagicSignatureCreate,
    ProgressReport,
    PromotionApprentice,
    PromotionSign,
    PromotionSignResult,
    SignatureCreate,
    SignatureStatus,
    TutorInvite,
    TutorInviteResult,
)
from app.api.v1.livrets.services import (
    LivretService,
    sign_with_magic_token,
    verify_magic_token,
    # Exceptions
    AlreadySignedError,
    ContractNotFoundError,
    InvalidMagicTokenError,
    LivretNotFoundError,
    ReferentielMissingError,
    SignatureForbiddenError,
    TutorEmailConflictError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.core.auth.user_auth import get_current_user
from app.core.integrations.webhooks import dispatch_webhook
from app.core.permissions import assert_contract_access
from app.database.session_rls import get_db, get_db_no_rls
from app.models.enums import SignerRole, UserRole, WebhookEvent
from app.models.livret.livret import Livret
from app.models.user.user import User

router = APIRouter(prefix="/livrets", tags=["Livret"])


def _signer_role(user: User) -> SignerRole:
    if user.role == UserRole.APPRENTICE:
        return SignerRole.APPRENTICE
    if user.is_tutor:
        return SignerRole.TUTOR
    if user.is_staff:
        return SignerRole.CFA
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Rôle non autorisé à signer un livret",
    )


def _accessible_contract(service: LivretService, contract_id: int, user: User):
    try:
        contract = service.get_contract(contract_id)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, contract)
    return contract


def _accessible_livret(service: LivretService, livret_id: int, user: User) -> Livret:
    try:
        livret = service.get_livret(livret_id)
    except LivretNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    assert_contract_access(user, livret.contract)
    return livret


def _schedule_livret_webhook(
        background_tasks: BackgroundTasks,
        service: LivretService,
        livret: Livret,
) -> None:
    background_tasks.add_task(
        dispatch_webhook,
        service.get_tenant(),
        WebhookEvent.LIVRET_SIGNED,
        service.webhook_payload(livret),
    )


# =============================================================================
# CONSOLIDATION ET CRÉATION
# =============================================================================

@router.get("/contracts/{contract_id}/consolidated")
def get_consolidated(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
) -> Dict[str, Any]:
    """Blocs, journal de bord, jalons et statistiques du contrat."""
    service = LivretService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    try:
        return service.get_consolidated(contract_id)
    except ReferentielMissingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post(
    "/contracts/{contract_id}",
    response_model=LivretDetail,
    status_code=status.HTTP_201_CREATED,
)
def create_livret(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = LivretService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    try:
        return service.create_livret(contract_id)
    except ReferentielMissingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/contracts/{contract_id}", response_model=List[LivretResponse])
def list_contract_livrets(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = LivretService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    return service.list_contract_livrets(contract_id)


@router.get("/contracts/{contract_id}/report", response_model=ProgressReport)
def get_progress_report(
        contract_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Bilan par bloc avec empreinte de vérification."""
    service = LivretService(db, tenant_id)
    _accessible_contract(service, contract_id, current_user)
    try:
        return service.get_report(contract_id)
    except ReferentielMissingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# =============================================================================
# TUTEUR EXTERNE (LIEN MAGIQUE)
# =============================================================================

@router.post("/contracts/{contract_id}/invite-tutor", response_model=TutorInviteResult)
def invite_tutor(
        contract_id: int,
        data: TutorInvite,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Invite le tuteur entreprise par email (admin, formateur)."""
    service = LivretService(db, tenant_id)
    try:
        return service.invite_tutor(contract_id, data.tutor_email, data.tutor_name)
    except ContractNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except TutorEmailConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/magic/{token}", response_model=MagicAccess)
def verify_magic_link(token: str, db: Session = Depends(get_db_no_rls)):
    """Vérifie un lien magique (endpoint public)."""
    try:
        access = verify_magic_token(db, token)
    except InvalidMagicTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    tutor = access["tutor"]
    contract = access["contract"]
    apprentice = access["apprentice"]
    return MagicAccess(
        tutor_id=tutor.id,
        tutor_name=tutor.full_name,
        contract_id=contract.id if contract else None,
        apprentice_name=apprentice.full_name if apprentice else None,
        company_name=contract.company_name if contract else None,
        expires_at=access["expires_at"],
    )


# =============================================================================
# SIGNATURES
# =============================================================================

@router.post("/{livret_id}/sign", response_model=LivretResponse)
def sign_livret(
        livret_id: int,
        data: SignatureCreate,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """
    Signe le livret selon le rôle de l'utilisateur.

    Le webhook LIVRET_SIGNED part après la réponse quand la troisième
    signature finalise le livret.
    """
    role = _signer_role(current_user)
    service = LivretService(db, tenant_id)
    try:
        livret, finalized = service.sign(livret_id, role, current_user, data.signature_data)
    except LivretNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SignatureForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except AlreadySignedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if finalized:
        _schedule_livret_webhook(background_tasks, service, livret)
    return livret


@router.post("/{livret_id}/sign/magic", response_model=LivretResponse)
def sign_livret_with_magic_link(
        livret_id: int,
        data: MagicSignatureCreate,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db_no_rls),
):
    """Signature du tuteur arrivé par lien magique (sans compte)."""
    try:
        livret, finalized = sign_with_magic_token(db, livret_id, data.token, data.signature_data)
    except InvalidMagicTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except LivretNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SignatureForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except AlreadySignedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if finalized:
        _schedule_livret_webhook(background_tasks, LivretService(db, livret.tenant_id), livret)
    return livret


@router.get("/{livret_id}/signature-status", response_model=SignatureStatus)
def get_signature_status(
        livret_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = LivretService(db, tenant_id)
    _accessible_livret(service, livret_id, current_user)
    return service.signature_status(livret_id)


@router.get("/{livret_id}", response_model=LivretDetail)
def get_livret(
        livret_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return _accessible_livret(LivretService(db, tenant_id), livret_id, current_user)


# =============================================================================
# SIGNATURE GROUPÉE
# =============================================================================

@router.get("/promotions/{referentiel_id}", response_model=List[PromotionApprentice])
def list_promotion(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Apprentis d'une promotion (contrats du référentiel) avec leur progression."""
    return LivretService(db, tenant_id).promotion_apprentices(referentiel_id)


@router.post("/promotions/{referentiel_id}/sign", response_model=PromotionSignResult)
def sign_promotion(
        referentiel_id: int,
        data: PromotionSign,
        request: Request,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Signe en une transaction les indicateurs acquis des apprentis sélectionnés."""
    service = LivretService(db, tenant_id)
    return service.sign_promotion(
        referentiel_id,
        data.apprentice_ids,
        current_user,
        ip_address=request.client.host if request.client else None,
    )
