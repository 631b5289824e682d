"""
Affectation d'une compétence à une période du TSF.

Les drapeaux flag_cfa / flag_entreprise indiquent où la compétence
doit être travaillée.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import Lieu, MappingStatus
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.contract.contract import Contract
    from app.models.contract.period import Period
    from app.models.referentiel.referentiel import Competence


class TSFMapping(Base, TimestampMixin):
    """Ligne du Tableau Stratégique de Formation."""

    __tablename__ = "tsf_mappings"
    __table_args__ = (
        UniqueConstraint(
            "contract_id", "competence_id", "period_id",
            name="uq_tsf_mappings_contract_competence_period",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competence_id: Mapped[int] = mapped_column(
        ForeignKey("competences.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[MappingStatus] = mapped_column(
        SQLEnum(MappingStatus, name="mapping_status_enum"),
        default=MappingStatus.PENDING,
        nullable=False,
    )
    flag_cfa: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    flag_entreprise: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    lieu: Mapped[Lieu] = mapped_column(
        SQLEnum(Lieu, name="lieu_enum"),
        default=Lieu.MIXTE,
        nullable=False,
    )

    contract: Mapped["Contract"] = relationship("Contract", back_populates="mappings")
    period: Mapped["Period"] = relationship("Period", back_populates="mappings")
    competence: Mapped["Competence"] = relationship("Competence")

    def __repr__(self) -> str:
        return (
            f"<TSFMapping(contract_id={self.contract_id}, "
            f"competence_id={self.competence_id}, status={self.status})>"
        )

    @property
    def is_acquired(self) -> bool:
        return self.status == MappingStatus.ACQUIS
