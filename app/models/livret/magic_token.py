"""Jetons d'accès magiques (invitation des tuteurs externes)."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import TenantMixin, TimestampMixin, as_utc

if TYPE_CHECKING:
    from app.models.contract.contract import Contract
    from app.models.user.user import User


class MagicToken(Base, TenantMixin, TimestampMixin):
    """
    Lien d'accès sans mot de passe.

    Seule l'empreinte SHA-256 du jeton est stockée ; le jeton en clair
    n'existe que dans l'email envoyé au tuteur.
    """

    __tablename__ = "magic_tokens"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contract_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=True,
    )

    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    user: Mapped["User"] = relationship("User")
    contract: Mapped[Optional["Contract"]] = relationship("Contract")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return as_utc(self.expires_at) < now
