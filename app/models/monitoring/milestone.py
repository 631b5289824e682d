"""
Jalons réglementaires du suivi de l'apprenti.

Entretien de démarrage (J+7), bilan de période d'essai (J+45),
bilans semestriels.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, DateTime, Enum as SQLEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import MilestoneStatus
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.contract.contract import Contract


START_INTERVIEW = "START_INTERVIEW"
PROBATION_REVIEW = "PROBATION_REVIEW"
SEMESTER_REVIEW_PREFIX = "SEMESTER_REVIEW_"


class Milestone(Base, TimestampMixin):
    """Échéance de suivi d'un contrat."""

    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[MilestoneStatus] = mapped_column(
        SQLEnum(MilestoneStatus, name="milestone_status_enum"),
        default=MilestoneStatus.PENDING,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    contract: Mapped["Contract"] = relationship("Contract", back_populates="milestones")

    def __repr__(self) -> str:
        return f"<Milestone(id={self.id}, type='{self.type}', due={self.due_date})>"

    @property
    def is_pending(self) -> bool:
        return self.status == MilestoneStatus.PENDING

    def is_overdue(self, today: date) -> bool:
        """Jalon non réalisé dont l'échéance est dépassée."""
        return self.is_pending and self.due_date < today
