"""
Services métier pour les offres de formation (vitrine du CFA).
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from app.models.catalog.training_offer import TrainingOffer
from app.models.referentiel.referentiel import Referentiel
from app.models.tenants.tenant import Tenant

logger = logging.getLogger(__name__)


class OfferNotFoundError(Exception):
    """Offre de formation non trouvée."""
    pass


class ReferentielNotFoundError(Exception):
    """Référentiel non trouvé ou non accessible."""
    pass


class TenantNotFoundError(Exception):
    """CFA inconnu ou inactif."""
    pass


class OfferService:
    """Offres de formation d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        return (
            select(TrainingOffer)
            .options(selectinload(TrainingOffer.referentiel))
            .where(TrainingOffer.tenant_id == self.tenant_id)
        )

    def _check_referentiel(self, referentiel_id: Optional[int]) -> None:
        if referentiel_id is None:
            return
        visible = self.db.execute(
            select(Referentiel.id).where(
                Referentiel.id == referentiel_id,
                or_(Referentiel.tenant_id == self.tenant_id, Referentiel.is_global.is_(True)),
            )
        ).first()
        if not visible:
            raise ReferentielNotFoundError(f"Référentiel {referentiel_id} non trouvé")

    def list_offers(self, referentiel_id: Optional[int] = None) -> List[TrainingOffer]:
        query = self._base_query()
        if referentiel_id:
            query = query.where(TrainingOffer.referentiel_id == referentiel_id)
        return list(self.db.execute(
            query.order_by(TrainingOffer.created_at.desc(), TrainingOffer.id.desc())
        ).scalars().all())

    def get_offer(self, offer_id: int) -> TrainingOffer:
        offer = self.db.execute(
            self._base_query().where(TrainingOffer.id == offer_id)
        ).scalar_one_or_none()
        if not offer:
            raise OfferNotFoundError(f"Offre {offer_id} non trouvée")
        return offer

    def create_offer(self, data: Dict[str, Any]) -> TrainingOffer:
        self._check_referentiel(data.get("referentiel_id"))
        offer = TrainingOffer(tenant_id=self.tenant_id, **data)
        self.db.add(offer)
        self.db.commit()
        self.db.refresh(offer)
        logger.info(f"✅ Offre de formation {offer.id} créée")
        return offer

    def update_offer(self, offer_id: int, data: Dict[str, Any]) -> TrainingOffer:
        offer = self.get_offer(offer_id)
        if "referentiel_id" in data:
            self._check_referentiel(data["referentiel_id"])
        for field, value in data.items():
            setattr(offer, field, value)
        self.db.commit()
        self.db.refresh(offer)
        return offer

    def delete_offer(self, offer_id: int) -> None:
        offer = self.get_offer(offer_id)
        self.db.delete(offer)
        self.db.commit()


def list_published_offers(db: Session, tenant_slug: str) -> List[TrainingOffer]:
    """Offres publiées d'un CFA actif (vitrine publique)."""
    tenant = db.execute(
        select(Tenant).where(Tenant.slug == tenant_slug, Tenant.is_active.is_(True))
    ).scalar_one_or_none()
    if tenant is None:
        raise TenantNotFoundError(f"CFA '{tenant_slug}' introuvable")

    return list(db.execute(
        select(TrainingOffer)
        .options(selectinload(TrainingOffer.referentiel))
        .where(TrainingOffer.tenant_id == tenant.id, TrainingOffer.is_published.is_(True))
        .order_by(TrainingOffer.title)
    ).scalars().all())
