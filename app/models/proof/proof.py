"""
Preuves de compétence déposées par les apprentis.

Une preuve est un fichier (image, PDF), un texte libre ou une entrée
du journal de bord, rattachée à une compétence principale.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import ProofStatus, ProofType
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.referentiel.referentiel import Competence
    from app.models.user.user import User


class Proof(Base, TenantMixin, TimestampMixin):
    """
    Preuve de compétence.

    Attributes:
        url: Chemin du fichier déposé (vide pour les entrées de journal)
        description: Texte libre, ou JSON sérialisé pour le journal de bord
        feedback: Retour du formateur lors de la validation
    """

    __tablename__ = "proofs"

    id: Mapped[int] = mapped_column(primary_key=True)

    apprentice_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    competence_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("competences.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    url: Mapped[Optional[str]] = mapped_column(String(500))

    type: Mapped[ProofType] = mapped_column(
        SQLEnum(ProofType, name="proof_type_enum"),
        default=ProofType.TEXT,
        nullable=False,
    )
    status: Mapped[ProofStatus] = mapped_column(
        SQLEnum(ProofStatus, name="proof_status_enum"),
        default=ProofStatus.PENDING,
        nullable=False,
    )

    feedback: Mapped[Optional[str]] = mapped_column(Text)
    validated_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    validated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    apprentice: Mapped["User"] = relationship("User", foreign_keys=[apprentice_id])
    competence: Mapped[Optional["Competence"]] = relationship("Competence")
    comments: Mapped[List["ProofComment"]] = relationship(
        "ProofComment",
        back_populates="proof",
        cascade="all, delete-orphan",
        order_by="ProofComment.created_at",
    )

    def __repr__(self) -> str:
        return f"<Proof(id={self.id}, type={self.type}, status={self.status})>"

    @property
    def is_journal(self) -> bool:
        return self.type == ProofType.JOURNAL


class ProofComment(Base, TimestampMixin):
    """Commentaire échangé sur une preuve."""

    __tablename__ = "proof_comments"

    id: Mapped[int] = mapped_column(primary_key=True)

    proof_id: Mapped[int] = mapped_column(
        ForeignKey("proofs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    proof: Mapped["Proof"] = relationship("Proof", back_populates="comments")
    author: Mapped["User"] = relationship("User")
