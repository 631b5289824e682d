"""
Routes FastAPI pour les référentiels RNCP.

Endpoints pour :
- /referentiels : CRUD des référentiels du CFA (+ globaux visibles)
- /referentiels/{id}/tree : Blocs, compétences, indicateurs
- /referentiels/import : Import JSON (admin, super-admin)
- /referentiels/marketplace, /referentiels/{id}/fork : Bibliothèque globale
- /referentiels/blocs/{bloc_id}/structure : Édition d'un bloc
- /referentiels/rncp-lookup/{code} : Fiche open data RNCP
"""
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import PaginationParams
from app.api.v1.referentiels.schemas import (
    BlocNode,
    BlocStructureUpdate,
    ReferentielCreate,
    ReferentielListResponse,
    ReferentielResponse,
    ReferentielTree,
    ReferentielUpdate,
    RncpLookupResponse,
)
from app.api.v1.referentiels.services import (
    ReferentielService,
    import_referentiel,
    import_target,
    # Exceptions
    BlocNotFoundError,
    DuplicateReferentielError,
    ImportPermissionError,
    ReferentielNotFoundError,
    ReferentielReadOnlyError,
)
from app.api.v1.users.tenant_users_security import get_admin_user, get_current_tenant_id, get_optional_tenant_id
from app.core.auth.user_auth import get_current_user
from app.core.integrations.rncp_api import RncpLookupError, RncpNotFoundError, fetch_rncp_fiche
from app.database.session_rls import get_db
from app.models.user.user import User
from app.services.validation import SchemaValidationError

router = APIRouter(prefix="/referentiels", tags=["Référentiels"])


def _referentiel_errors(e: Exception) -> HTTPException:
    if isinstance(e, (ReferentielNotFoundError, BlocNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ReferentielReadOnlyError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


REFERENTIEL_ERRORS = (
    BlocNotFoundError,
    DuplicateReferentielError,
    ReferentielNotFoundError,
    ReferentielReadOnlyError,
)


def _run_import(db: Session, data: Dict[str, Any], user: User, tenant_id: Optional[int]):
    try:
        target_tenant, is_global = import_target(user, tenant_id)
        return import_referentiel(db, data, target_tenant, is_global)
    except ImportPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except SchemaValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "errors": e.errors},
        )


# =============================================================================
# LISTE ET LECTURE
# =============================================================================

@router.get("", response_model=ReferentielListResponse)
def list_referentiels(
        search: Optional[str] = Query(None),
        include_global: bool = Query(True),
        pagination: PaginationParams = Depends(),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    items, total = ReferentielService(db, tenant_id).list_referentiels(
        page=pagination.page,
        size=pagination.size,
        search=search,
        include_global=include_global,
    )
    return pagination.envelope(items, total)


@router.get("/marketplace", response_model=List[ReferentielResponse])
def list_marketplace(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    """Bibliothèque des référentiels globaux publics."""
    return ReferentielService(db, tenant_id).marketplace()


@router.get("/rncp-lookup/{code}", response_model=RncpLookupResponse)
async def rncp_lookup(code: str, current_user: User = Depends(get_current_user)):
    """Informations de base d'une fiche RNCP (open data France Compétences)."""
    try:
        return await fetch_rncp_fiche(code)
    except RncpNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RncpLookupError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/{referentiel_id}", response_model=ReferentielResponse)
def get_referentiel(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    try:
        return ReferentielService(db, tenant_id).get_referentiel(referentiel_id)
    except ReferentielNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{referentiel_id}/tree", response_model=ReferentielTree)
def get_referentiel_tree(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    """Arbre complet : blocs (ordonnés) → compétences → indicateurs."""
    try:
        return ReferentielService(db, tenant_id).get_referentiel(referentiel_id, with_tree=True)
    except ReferentielNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# =============================================================================
# ÉCRITURE
# =============================================================================

@router.post("", response_model=ReferentielResponse, status_code=status.HTTP_201_CREATED)
def create_referentiel(
        data: ReferentielCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    try:
        return ReferentielService(db, tenant_id).create_referentiel(data.model_dump())
    except REFERENTIEL_ERRORS as e:
        raise _referentiel_errors(e)


@router.patch("/{referentiel_id}", response_model=ReferentielResponse)
def update_referentiel(
        referentiel_id: int,
        data: ReferentielUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    try:
        return ReferentielService(db, tenant_id).update_referentiel(
            referentiel_id, data.model_dump(exclude_unset=True)
        )
    except REFERENTIEL_ERRORS as e:
        raise _referentiel_errors(e)


@router.delete("/{referentiel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_referentiel(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    try:
        ReferentielService(db, tenant_id).delete_referentiel(referentiel_id)
    except REFERENTIEL_ERRORS as e:
        raise _referentiel_errors(e)


@router.put("/blocs/{bloc_id}/structure", response_model=BlocNode)
def replace_bloc_structure(
        bloc_id: int,
        data: BlocStructureUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: Optional[int] = Depends(get_optional_tenant_id),
):
    """Remplace les compétences et indicateurs d'un bloc."""
    try:
        return ReferentielService(db, tenant_id).replace_bloc_structure(
            bloc_id, [c.model_dump() for c in data.competences]
        )
    except REFERENTIEL_ERRORS as e:
        raise _referentiel_errors(e)


@router.post("/{referentiel_id}/fork", response_model=ReferentielResponse, status_code=status.HTTP_201_CREATED)
def fork_referentiel(
        referentiel_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Copie un référentiel global dans le CFA."""
    try:
        return ReferentielService(db, tenant_id).fork(referentiel_id)
    except REFERENTIEL_ERRORS as e:
        raise _referentiel_errors(e)


# =============================================================================
# IMPORT
# =============================================================================

@router.post("/import", response_model=ReferentielResponse, status_code=status.HTTP_201_CREATED)
def import_referentiel_json(
        data: Dict[str, Any] = Body(...),
        tenant_id: Optional[int] = Query(None, description="Tenant cible (super-admin uniquement)"),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """
    Import idempotent d'un référentiel au format JSON.

    Le super-admin importe dans la bibliothèque globale (ou dans le tenant
    indiqué) ; l'admin d'un CFA importe dans son propre tenant.
    """
    return _run_import(db, data, current_user, tenant_id)


@router.post("/import/file", response_model=ReferentielResponse, status_code=status.HTTP_201_CREATED)
async def import_referentiel_file(
        file: UploadFile = File(...),
        tenant_id: Optional[int] = Query(None, description="Tenant cible (super-admin uniquement)"),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
):
    """Même import, à partir d'un fichier JSON téléversé."""
    try:
        data = json.loads(await file.read())
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Fichier JSON invalide")
    if not isinstance(data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Objet JSON attendu")
    return _run_import(db, data, current_user, tenant_id)
