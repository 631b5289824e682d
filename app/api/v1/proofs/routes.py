"""
Routes FastAPI pour les preuves et le journal de bord.

Endpoints pour :
- /proofs : Dépôt (multipart) et liste des preuves
- /proofs/journal : Entrée de journal de bord
- /proofs/{id}/validate : Validation par l'encadrement
- /proofs/{id}/comments : Échanges sur une preuve
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import PaginationParams
from app.api.v1.proofs.schemas import (
    CommentCreate,
    CommentResponse,
    JournalEntryCreate,
    ProofListResponse,
    ProofResponse,
    ProofValidation,
)
from app.api.v1.proofs.services import (
    ProofService,
    # Exceptions
    CompetenceNotFoundError,
    ProofAccessError,
    ProofNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.core.auth.user_auth import get_current_user
from app.database.session_rls import get_db
from app.models.enums import ProofStatus, UserRole
from app.models.proof.proof import Proof
from app.models.user.user import User

router = APIRouter(prefix="/proofs", tags=["Preuves"])


def _require_apprentice(user: User) -> None:
    if user.role != UserRole.APPRENTICE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Seul un apprenti peut déposer des preuves",
        )


def _accessible_proof(service: ProofService, proof_id: int, user: User) -> Proof:
    try:
        proof = service.get_proof(proof_id)
        service.check_access(user, proof)
    except ProofNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProofAccessError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return proof


# =============================================================================
# DÉPÔT
# =============================================================================

@router.post("", response_model=ProofResponse, status_code=status.HTTP_201_CREATED)
async def upload_proof(
        file: UploadFile = File(...),
        title: Optional[str] = Form(None),
        competence_id: Optional[int] = Form(None),
        description: Optional[str] = Form(None),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Dépose un fichier (image, PDF, texte) comme preuve de compétence."""
    _require_apprentice(current_user)
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Fichier vide")

    service = ProofService(db, tenant_id)
    try:
        return service.upload_proof(
            current_user,
            content=content,
            filename=file.filename or "preuve",
            content_type=file.content_type or "",
            title=title,
            competence_id=competence_id,
            description=description,
        )
    except CompetenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/journal", response_model=ProofResponse, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
        data: JournalEntryCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Ajoute une entrée au journal de bord de l'apprenti."""
    _require_apprentice(current_user)
    service = ProofService(db, tenant_id)
    try:
        return service.create_journal_entry(current_user, data.model_dump())
    except CompetenceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# LECTURE
# =============================================================================

@router.get("", response_model=ProofListResponse)
def list_proofs(
        proof_status: Optional[ProofStatus] = Query(None, alias="status"),
        apprentice_id: Optional[int] = Query(None),
        journal_only: bool = Query(False),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Liste les preuves visibles par l'utilisateur courant."""
    service = ProofService(db, tenant_id)
    items, total = service.list_proofs(
        current_user,
        page=pagination.page,
        size=pagination.size,
        proof_status=proof_status,
        apprentice_id=apprentice_id,
        journal_only=journal_only,
    )
    return pagination.envelope(items, total)


@router.get("/{proof_id}", response_model=ProofResponse)
def get_proof(
        proof_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return _accessible_proof(ProofService(db, tenant_id), proof_id, current_user)


# =============================================================================
# VALIDATION
# =============================================================================

@router.post("/{proof_id}/validate", response_model=ProofResponse)
def validate_proof(
        proof_id: int,
        data: ProofValidation,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Valide ou rejette une preuve (admin, formateur)."""
    service = ProofService(db, tenant_id)
    try:
        return service.validate_proof(proof_id, data.status, data.feedback, current_user.id)
    except ProofNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# COMMENTAIRES
# =============================================================================

@router.post(
    "/{proof_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
        proof_id: int,
        data: CommentCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = ProofService(db, tenant_id)
    proof = _accessible_proof(service, proof_id, current_user)
    return service.add_comment(proof, current_user.id, data.content)


@router.get("/{proof_id}/comments", response_model=List[CommentResponse])
def list_comments(
        proof_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    service = ProofService(db, tenant_id)
    proof = _accessible_proof(service, proof_id, current_user)
    return service.list_comments(proof)
