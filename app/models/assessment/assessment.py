"""
Positionnement initial de l'apprenti.

- InitialAssessment : diagnostic d'entrée (brouillon → soumis → validé)
- Positioning : niveau initial (0 à 4) sur une compétence
- EvaluationIndicateur : validation d'un indicateur au fil du contrat
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum as SQLEnum,
    ForeignKey, Integer, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import AssessmentStatus, EvaluationStatus
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.contract.contract import Contract
    from app.models.referentiel.referentiel import Competence, Indicateur
    from app.models.user.user import User


# Niveau à partir duquel une compétence est considérée comme acquise
ACQUIRED_LEVEL = 3


class InitialAssessment(Base, TenantMixin, TimestampMixin):
    """Diagnostic initial rattaché à un contrat."""

    __tablename__ = "initial_assessments"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    apprentice_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[AssessmentStatus] = mapped_column(
        SQLEnum(AssessmentStatus, name="assessment_status_enum"),
        default=AssessmentStatus.DRAFT,
        nullable=False,
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    validated_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    contract: Mapped["Contract"] = relationship("Contract")
    positionings: Mapped[List["Positioning"]] = relationship(
        "Positioning",
        back_populates="assessment",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<InitialAssessment(id={self.id}, status={self.status})>"

    @property
    def acquired_competence_ids(self) -> set:
        return {p.competence_id for p in self.positionings if p.is_acquired}


class Positioning(Base, TenantMixin, TimestampMixin):
    """Niveau initial déclaré par compétence."""

    __tablename__ = "positionings"
    __table_args__ = (
        CheckConstraint("level_initial BETWEEN 0 AND 4", name="level_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    apprentice_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competence_id: Mapped[int] = mapped_column(
        ForeignKey("competences.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assessment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("initial_assessments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    level_initial: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)

    assessment: Mapped[Optional["InitialAssessment"]] = relationship(
        "InitialAssessment", back_populates="positionings"
    )
    competence: Mapped["Competence"] = relationship("Competence")

    @property
    def is_acquired(self) -> bool:
        return self.level_initial >= ACQUIRED_LEVEL


class EvaluationIndicateur(Base, TimestampMixin):
    """Validation d'un indicateur pour un contrat."""

    __tablename__ = "evaluation_indicateurs"
    __table_args__ = (
        UniqueConstraint("contract_id", "indicateur_id", name="uq_evaluations_contract_indicateur"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    indicateur_id: Mapped[int] = mapped_column(
        ForeignKey("indicateurs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[EvaluationStatus] = mapped_column(
        SQLEnum(EvaluationStatus, name="evaluation_status_enum"),
        default=EvaluationStatus.PENDING,
        nullable=False,
    )
    checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    validator_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Signature groupée (fin de semestre)
    is_signed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    comment: Mapped[Optional[str]] = mapped_column(Text)

    indicateur: Mapped["Indicateur"] = relationship("Indicateur")
    validator: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<EvaluationIndicateur(contract_id={self.contract_id}, indicateur_id={self.indicateur_id})>"
