"""Assiduité journalière de l'apprenti."""

from datetime import date as date_type
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, Enum as SQLEnum, Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import AttendanceStatus
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.contract.contract import Contract


class Attendance(Base, TimestampMixin):
    """Présence ou absence d'un jour donné (une ligne par contrat et par jour)."""

    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint("contract_id", "date", name="uq_attendances_contract_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(
        SQLEnum(AttendanceStatus, name="attendance_status_enum"),
        default=AttendanceStatus.PRESENT,
        nullable=False,
    )
    hours: Mapped[float] = mapped_column(Float, default=7.0, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="attendances")

    @property
    def is_unjustified_absence(self) -> bool:
        return self.status == AttendanceStatus.ABSENT_UNJUSTIFIED
