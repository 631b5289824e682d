"""
Livret d'apprentissage et signature tripartite.

Le livret est signé par l'apprenti, le tuteur et le CFA. Dès que les
trois signatures sont présentes, il passe au statut FULLY_SIGNED et un
webhook LIVRET_SIGNED est émis vers le système du CFA.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import LivretStatus, ReportType, SignerRole
from app.models.mixins import TenantMixin, TimestampMixin
from app.models.types import JSONSnapshot

if TYPE_CHECKING:
    from app.models.contract.contract import Contract
    from app.models.user.user import User


class Livret(Base, TenantMixin, TimestampMixin):
    """Livret d'apprentissage généré pour un contrat."""

    __tablename__ = "livrets"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    document_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    file_path: Mapped[Optional[str]] = mapped_column(String(500))

    status: Mapped[LivretStatus] = mapped_column(
        SQLEnum(LivretStatus, name="livret_status_enum"),
        default=LivretStatus.DRAFT,
        nullable=False,
    )

    # === Signatures ===

    apprentice_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    apprentice_signature_data: Mapped[Optional[str]] = mapped_column(Text)

    tutor_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    tutor_signature_data: Mapped[Optional[str]] = mapped_column(Text)

    cfa_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cfa_signature_data: Mapped[Optional[str]] = mapped_column(Text)
    cfa_signer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    signed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        comment="Date de finalisation (trois signatures)",
    )

    snapshot: Mapped[Optional[dict]] = mapped_column(JSONSnapshot)

    contract: Mapped["Contract"] = relationship("Contract")
    cfa_signer: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<Livret(id={self.id}, status={self.status})>"

    def signed_at_for(self, role: SignerRole) -> Optional[datetime]:
        """Date de signature d'un signataire donné."""
        return getattr(self, f"{role.value}_signed_at")

    def apply_signature(self, role: SignerRole, signature_data: str, when: datetime) -> None:
        setattr(self, f"{role.value}_signed_at", when)
        setattr(self, f"{role.value}_signature_data", signature_data)

    @property
    def is_fully_signed_by_all(self) -> bool:
        """Les trois signatures sont présentes."""
        return all(self.signed_at_for(role) for role in SignerRole)

    @property
    def has_any_signature(self) -> bool:
        return any(self.signed_at_for(role) for role in SignerRole)


class HistoricalReport(Base, TenantMixin, TimestampMixin):
    """Rapport figé (ex: bilan semestriel signé en masse)."""

    __tablename__ = "historical_reports"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[ReportType] = mapped_column(
        SQLEnum(ReportType, name="report_type_enum"),
        default=ReportType.SEMESTER_REPORT,
        nullable=False,
    )
    data: Mapped[dict] = mapped_column(JSONSnapshot, default=dict, nullable=False)
    signed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
