"""
Routes de l'API externe, authentifiées par clé d'API (header x-api-key).

Endpoints pour :
- /external/sync/apprentice : Synchronisation CRM
- /external/analytics/export : Extraction BI
- /external/mobile/proof : Dépôt de preuve mobile
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.external.schemas import (
    ApprenticeSync,
    ExportResponse,
    MobileProofResult,
    SyncResult,
)
from app.api.v1.external.services import (
    ExternalService,
    # Exceptions
    ApprenticeNotFoundError,
    InvalidExportTypeError,
    InvalidSyncDataError,
    SyncConflictError,
)
from app.api.v1.proofs.services import CompetenceNotFoundError
from app.core.auth.api_key_auth import get_api_key_tenant
from app.core.integrations.webhooks import dispatch_webhook
from app.database.session_rls import get_db_no_rls
from app.models.enums import WebhookEvent
from app.models.tenants.tenant import Tenant

router = APIRouter(prefix="/external", tags=["API externe"])


@router.post("/sync/apprentice", response_model=SyncResult)
def sync_apprentice(
        data: ApprenticeSync,
        background_tasks: BackgroundTasks,
        db: Session = Depends(get_db_no_rls),
        tenant: Tenant = Depends(get_api_key_tenant),
):
    """Crée ou met à jour un apprenti (et son contrat) depuis le CRM du CFA."""
    try:
        result = ExternalService(db, tenant.id).sync_apprentice(data.model_dump())
    except SyncConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except InvalidSyncDataError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    background_tasks.add_task(
        dispatch_webhook,
        tenant,
        WebhookEvent.APPRENTICE_SYNCED,
        {"userId": result["user_id"], "contractId": result["contract_id"], "email": data.email},
    )
    return result


@router.get("/analytics/export", response_model=ExportResponse)
def analytics_export(
        export_type: str = Query("apprentices", alias="type"),
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        db: Session = Depends(get_db_no_rls),
        tenant: Tenant = Depends(get_api_key_tenant),
):
    try:
        data = ExternalService(db, tenant.id).export(export_type, limit, offset)
    except InvalidExportTypeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"type": export_type, "count": len(data), "data": data}


@router.post("/mobile/proof", response_model=MobileProofResult)
async def submit_mobile_proof(
        file: Optional[UploadFile] = File(None),
        apprentice_email: Optional[str] = Form(None),
        competence_id: Optional[int] = Form(None),
        comment: Optional[str] = Form(None),
        db: Session = Depends(get_db_no_rls),
        tenant: Tenant = Depends(get_api_key_tenant),
):
    """Dépôt d'une preuve (image, PDF) depuis l'application mobile."""
    if file is None or not apprentice_email or competence_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Champs requis : file, apprentice_email, competence_id",
        )

    content = await file.read()
    try:
        proof = ExternalService(db, tenant.id).submit_mobile_proof(
            apprentice_email,
            competence_id,
            content=content,
            filename=file.filename or "preuve",
            content_type=file.content_type or "",
            comment=comment,
        )
    except (ApprenticeNotFoundError, CompetenceNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"proof_id": proof.id, "url": proof.url}
