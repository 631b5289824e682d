"""
Routes FastAPI pour l'archivage des contrats terminés (admin).
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.archiving.schemas import (
    ArchiveVaultResponse,
    ArchivingCandidates,
    ArchivingResult,
)
from app.api.v1.archiving.services import ArchivingService, archive_cutoff
from app.api.v1.users.tenant_users_security import get_admin_user, get_current_tenant_id
from app.database.session_rls import get_db
from app.models.user.user import User

router = APIRouter(prefix="/archiving", tags=["Archivage"])


@router.get("/candidates", response_model=ArchivingCandidates)
def get_candidates(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return {
        "count": ArchivingService(db, tenant_id).count_candidates(),
        "cutoff_date": archive_cutoff(),
    }


@router.post("/run", response_model=ArchivingResult)
def run_archiving(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Archive les contrats terminés depuis plus de six mois."""
    return ArchivingService(db, tenant_id).run(actor_id=current_user.id)


@router.get("/vault", response_model=List[ArchiveVaultResponse])
def list_vault(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return ArchivingService(db, tenant_id).list_vault()
