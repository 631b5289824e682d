"""
Modèle Contract - Contrat d'apprentissage.

Un contrat lie un apprenti à son tuteur en entreprise, à son formateur
référent et au référentiel RNCP préparé. Il porte le Tableau Stratégique
de Formation (périodes + affectations de compétences).
"""

from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import PeriodType, TsfStatus
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.contract.period import Period
    from app.models.contract.tsf_mapping import TSFMapping
    from app.models.monitoring.milestone import Milestone
    from app.models.monitoring.attendance import Attendance
    from app.models.referentiel.referentiel import Referentiel
    from app.models.user.user import User


class Contract(Base, TenantMixin, TimestampMixin):
    """
    Contrat d'apprentissage.

    Attributes:
        tsf_status: DRAFT tant que le TSF n'est pas validé
        is_locked: Verrouillé après signature du tuteur
        version_id: Version du parcours (v1, v2...) incrémentée après verrouillage
        change_log: Motif de la dernière révision du parcours
    """

    __tablename__ = "contracts"
    __table_args__ = {"comment": "Contrats d'apprentissage"}

    id: Mapped[int] = mapped_column(primary_key=True)

    # === Parties prenantes ===

    apprentice_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tutor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    formateur_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    referentiel_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("referentiels.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # === Période du contrat ===

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    external_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        comment="Identifiant CRM externe",
    )
    company_name: Mapped[Optional[str]] = mapped_column(String(255))

    # === TSF ===

    tsf_status: Mapped[TsfStatus] = mapped_column(
        SQLEnum(TsfStatus, name="tsf_status_enum"),
        default=TsfStatus.DRAFT,
        nullable=False,
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    version_id: Mapped[str] = mapped_column(String(10), default="v1", nullable=False)
    period_type: Mapped[PeriodType] = mapped_column(
        SQLEnum(PeriodType, name="period_type_enum"),
        default=PeriodType.SEMESTER,
        nullable=False,
    )
    change_log: Mapped[Optional[str]] = mapped_column(Text)

    # === Signature tuteur ===

    tutor_signature: Mapped[Optional[str]] = mapped_column(Text)
    signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # === Relations ===

    apprentice: Mapped["User"] = relationship("User", foreign_keys=[apprentice_id])
    tutor: Mapped[Optional["User"]] = relationship("User", foreign_keys=[tutor_id])
    formateur: Mapped[Optional["User"]] = relationship("User", foreign_keys=[formateur_id])
    referentiel: Mapped[Optional["Referentiel"]] = relationship("Referentiel")

    periods: Mapped[List["Period"]] = relationship(
        "Period",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Period.order_index",
    )
    mappings: Mapped[List["TSFMapping"]] = relationship(
        "TSFMapping",
        back_populates="contract",
        cascade="all, delete-orphan",
    )
    milestones: Mapped[List["Milestone"]] = relationship(
        "Milestone",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Milestone.due_date",
    )
    attendances: Mapped[List["Attendance"]] = relationship(
        "Attendance",
        back_populates="contract",
        cascade="all, delete-orphan",
    )

    # === Méthodes ===

    def __repr__(self) -> str:
        return f"<Contract(id={self.id}, apprentice_id={self.apprentice_id})>"

    @property
    def duration_months(self) -> int:
        """Nombre de mois calendaires couverts par le contrat."""
        return (
            (self.end_date.year - self.start_date.year) * 12
            + (self.end_date.month - self.start_date.month)
        )

    @property
    def next_version_id(self) -> str:
        """Version suivante du parcours (v1 → v2)."""
        try:
            current = int(self.version_id.lstrip("v"))
        except (AttributeError, ValueError):
            current = 1
        return f"v{current + 1}"

    def is_ended_before(self, when: date) -> bool:
        return self.end_date < when

    def involves(self, user_id: int) -> bool:
        """L'utilisateur est partie prenante du contrat (apprenti, tuteur, formateur)."""
        return user_id in (self.apprentice_id, self.tutor_id, self.formateur_id)
