"""
Routes FastAPI pour les offres de formation.

Endpoints pour :
- /offers : CRUD des offres du CFA
- /offers/public/{slug} : Vitrine publique d'un CFA
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.offers.schemas import OfferCreate, OfferResponse, OfferUpdate
from app.api.v1.offers.services import (
    OfferService,
    list_published_offers,
    # Exceptions
    OfferNotFoundError,
    ReferentielNotFoundError,
    TenantNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_admin_user, get_current_tenant_id, get_staff_user
from app.database.session_rls import get_db, get_db_no_rls
from app.models.user.user import User

router = APIRouter(prefix="/offers", tags=["Offres de formation"])


@router.get("/public/{tenant_slug}", response_model=List[OfferResponse])
def list_public_offers(tenant_slug: str, db: Session = Depends(get_db_no_rls)):
    try:
        return list_published_offers(db, tenant_slug)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=List[OfferResponse])
def list_offers(
        referentiel_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return OfferService(db, tenant_id).list_offers(referentiel_id)


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
        data: OfferCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return OfferService(db, tenant_id).create_offer(data.model_dump())
    except ReferentielNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{offer_id}", response_model=OfferResponse)
def get_offer(
        offer_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_staff_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return OfferService(db, tenant_id).get_offer(offer_id)
    except OfferNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/{offer_id}", response_model=OfferResponse)
def update_offer(
        offer_id: int,
        data: OfferUpdate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        return OfferService(db, tenant_id).update_offer(offer_id, data.model_dump(exclude_unset=True))
    except (OfferNotFoundError, ReferentielNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_offer(
        offer_id: int,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_admin_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    try:
        OfferService(db, tenant_id).delete_offer(offer_id)
    except OfferNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
