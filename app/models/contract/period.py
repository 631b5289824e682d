"""Périodes du parcours (semestres, trimestres ou mois) d'un contrat."""

from datetime import date
from typing import TYPE_CHECKING, List

from sqlalchemy import Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base

if TYPE_CHECKING:
    from app.models.contract.contract import Contract
    from app.models.contract.tsf_mapping import TSFMapping


class Period(Base):
    """Tranche temporelle du TSF à laquelle sont affectées des compétences."""

    __tablename__ = "periods"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="periods")

    mappings: Mapped[List["TSFMapping"]] = relationship(
        "TSFMapping",
        back_populates="period",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Period(id={self.id}, label='{self.label}')>"
