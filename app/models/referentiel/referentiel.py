"""
Référentiels RNCP - Structure des certifications.

Hiérarchie : Referentiel → BlocCompetence → Competence → Indicateur.

Un référentiel sans tenant (tenant_id NULL, is_global=True) appartient
à la bibliothèque de la plateforme et peut être importé par les CFA.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.tenants.tenant import Tenant


class Referentiel(Base, TimestampMixin):
    """
    Référentiel de certification (fiche RNCP).

    Attributes:
        code_rncp: Numéro de fiche (ex: RNCP35185)
        is_global: Référentiel de la bibliothèque plateforme
        is_public: Visible dans la marketplace
        download_count: Nombre d'imports par des CFA
    """

    __tablename__ = "referentiels"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code_rncp", name="uq_referentiels_tenant_code"),
        {"comment": "Référentiels RNCP"},
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="NULL = référentiel global",
    )

    code_rncp: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    is_global: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    blocs: Mapped[List["BlocCompetence"]] = relationship(
        "BlocCompetence",
        back_populates="referentiel",
        cascade="all, delete-orphan",
        order_by="BlocCompetence.order_index",
    )

    tenant: Mapped[Optional["Tenant"]] = relationship("Tenant")

    def __repr__(self) -> str:
        return f"<Referentiel(id={self.id}, code='{self.code_rncp}')>"

    @property
    def competences(self) -> List["Competence"]:
        """Toutes les compétences, dans l'ordre des blocs."""
        return [c for bloc in self.blocs for c in bloc.competences]

    @property
    def competences_count(self) -> int:
        return len(self.competences)


class BlocCompetence(Base, TimestampMixin):
    """Bloc de compétences d'un référentiel."""

    __tablename__ = "bloc_competences"
    __table_args__ = (
        UniqueConstraint("referentiel_id", "title", name="uq_blocs_referentiel_title"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    referentiel_id: Mapped[int] = mapped_column(
        ForeignKey("referentiels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    referentiel: Mapped["Referentiel"] = relationship("Referentiel", back_populates="blocs")

    competences: Mapped[List["Competence"]] = relationship(
        "Competence",
        back_populates="bloc",
        cascade="all, delete-orphan",
        order_by="Competence.id",
    )

    def __repr__(self) -> str:
        return f"<BlocCompetence(id={self.id}, title='{self.title}')>"


class Competence(Base, TimestampMixin):
    """Compétence évaluable d'un bloc."""

    __tablename__ = "competences"
    __table_args__ = (
        UniqueConstraint("bloc_id", "description", name="uq_competences_bloc_description"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    bloc_id: Mapped[int] = mapped_column(
        ForeignKey("bloc_competences.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    bloc: Mapped["BlocCompetence"] = relationship("BlocCompetence", back_populates="competences")

    indicateurs: Mapped[List["Indicateur"]] = relationship(
        "Indicateur",
        back_populates="competence",
        cascade="all, delete-orphan",
        order_by="Indicateur.id",
    )

    def __repr__(self) -> str:
        return f"<Competence(id={self.id}, bloc_id={self.bloc_id})>"


class Indicateur(Base):
    """Indicateur (critère observable) d'une compétence."""

    __tablename__ = "indicateurs"

    id: Mapped[int] = mapped_column(primary_key=True)

    competence_id: Mapped[int] = mapped_column(
        ForeignKey("competences.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    competence: Mapped["Competence"] = relationship("Competence", back_populates="indicateurs")

    def __repr__(self) -> str:
        return f"<Indicateur(id={self.id}, competence_id={self.competence_id})>"
