"""
Routes FastAPI pour les clés d'API (admin du CFA).
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.api_keys.schemas import ApiKeyCreate, ApiKeyCreated, ApiKeyResponse
from app.api.v1.api_keys.services import ApiKeyNotFoundError, ApiKeyService
from app.api.v1.users.tenant_users_security import get_admin_user, get_current_tenant_id
from app.database.session_rls import get_db
from app.models.user.user import User

router = APIRouter(prefix="/api-keys", tags=["Clés d'API"])


@router.post("", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
def create_api_key(
        data: ApiKeyCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    """Génère une clé ; la valeur en clair n'est affichée qu'une fois."""
    api_key, plain_key = ApiKeyService(db, tenant_id).create_key(data.name, current_user.id)
    return ApiKeyCreated(
        **ApiKeyResponse.model_validate(api_key).model_dump(),
        plain_key=plain_key,
    )


@router.get("", response_model=List[ApiKeyResponse])
def list_api_keys(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return ApiKeyService(db, tenant_id).list_keys()


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_api_key(
        key_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        ApiKeyService(db, tenant_id).revoke_key(key_id)
    except ApiKeyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
