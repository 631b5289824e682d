"""
Routes FastAPI pour le pilotage du CFA (admin, formateur).

Endpoints pour :
- /supervision/inactivity : Inactivité des apprentis
- /supervision/health : Santé des contrats
- /supervision/workflow : Avancement du parcours
- /supervision/kpis : Indicateurs de gouvernance
- /supervision/export/non-compliant : Export CSV
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.v1.supervision.schemas import (
    ContractHealthOverview,
    GovernanceKPIs,
    InactivityStat,
    WorkflowStat,
)
from app.api.v1.supervision.services import SupervisionService
from app.api.v1.users.tenant_users_security import get_current_tenant_id, get_staff_user
from app.database.session_rls import get_db
from app.models.user.user import User

router = APIRouter(prefix="/supervision", tags=["Pilotage"])


@router.get("/inactivity", response_model=List[InactivityStat])
def get_inactivity(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return SupervisionService(db, tenant_id, current_user).apprentice_inactivity()


@router.get("/health", response_model=List[ContractHealthOverview])
def get_health_overview(
        referentiel_id: Optional[int] = Query(None),
        formateur_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Santé des contrats, les plus à risque d'abord."""
    return SupervisionService(db, tenant_id, current_user).contracts_health_overview(
        referentiel_id, formateur_id
    )


@router.get("/workflow", response_model=List[WorkflowStat])
def get_workflow(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return SupervisionService(db, tenant_id, current_user).workflow()


@router.get("/kpis", response_model=GovernanceKPIs)
def get_kpis(
        referentiel_id: Optional[int] = Query(None),
        formateur_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return SupervisionService(db, tenant_id, current_user).governance_kpis(
        referentiel_id, formateur_id
    )


@router.get("/export/non-compliant")
def export_non_compliant(
        referentiel_id: Optional[int] = Query(None),
        formateur_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Dossiers non conformes au format CSV (séparateur ;)."""
    content = SupervisionService(db, tenant_id, current_user).export_non_compliant_csv(
        referentiel_id, formateur_id
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="dossiers_non_conformes.csv"'},
    )
