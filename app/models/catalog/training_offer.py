"""Offres de formation publiées par les CFA (vitrine publique)."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.referentiel.referentiel import Referentiel


class TrainingOffer(Base, TenantMixin, TimestampMixin):
    """Formation proposée en alternance par un CFA."""

    __tablename__ = "training_offers"

    id: Mapped[int] = mapped_column(primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    referentiel_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("referentiels.id", ondelete="SET NULL"),
        nullable=True,
    )
    duration_months: Mapped[Optional[int]] = mapped_column(Integer)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    referentiel: Mapped[Optional["Referentiel"]] = relationship("Referentiel")

    def __repr__(self) -> str:
        return f"<TrainingOffer(id={self.id}, title='{self.title}')>"
