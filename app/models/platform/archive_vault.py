"""
Coffre d'archivage des contrats terminés.

Un contrat terminé depuis plus de six mois est figé dans un instantané
JSON puis supprimé des tables actives. L'instantané est conservé cinq ans.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base_class import Base
from app.models.mixins import TenantMixin, utcnow
from app.models.types import JSONSnapshot


class ArchiveVault(Base, TenantMixin):
    """Instantané d'un contrat archivé."""

    __tablename__ = "archive_vault"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Pas de clé étrangère : le contrat d'origine est supprimé
    original_contract_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    apprentice_name: Mapped[Optional[str]] = mapped_column(String(255))

    snapshot: Mapped[dict] = mapped_column(JSONSnapshot, nullable=False)
    storage_url: Mapped[Optional[str]] = mapped_column(String(500))

    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    purge_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ArchiveVault(id={self.id}, contract={self.original_contract_id})>"
