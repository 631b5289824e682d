# app/models/tenants/subscription.py
"""
Modèle Subscription - Abonnements des CFA.
"""

from datetime import date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, Enum, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import SubscriptionPlan, SubscriptionStatus
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.tenants.tenant import Tenant


# Tarifs mensuels HT (en euros) utilisés pour l'estimation du MRR
PLAN_MONTHLY_PRICES = {
    SubscriptionPlan.ESSENTIAL: 149,
    SubscriptionPlan.PREMIUM: 349,
    SubscriptionPlan.ENTERPRISE: 899,
}


class Subscription(Base, TimestampMixin):
    """
    Abonnement d'un CFA à la plateforme.

    Un tenant peut avoir plusieurs abonnements au fil du temps
    (historique), mais un seul actif à la fois.
    """

    __tablename__ = "subscriptions"
    __table_args__ = {
        "comment": "Abonnements des tenants"
    }

    id: Mapped[int] = mapped_column(primary_key=True)

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    plan: Mapped[SubscriptionPlan] = mapped_column(
        Enum(SubscriptionPlan, name="subscription_plan_enum", create_constraint=True),
        default=SubscriptionPlan.ESSENTIAL,
        nullable=False,
    )
    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus, name="subscription_status_enum", create_constraint=True),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
    )
    max_apprentices: Mapped[Optional[int]] = mapped_column(
        Integer,
        comment="Limite d'apprentis (NULL = illimité)"
    )
    started_at: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    ended_at: Mapped[Optional[date]] = mapped_column(Date)

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="subscriptions")

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, tenant_id={self.tenant_id}, plan={self.plan})>"

    @property
    def is_active(self) -> bool:
        return self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)

    @property
    def monthly_price(self) -> int:
        """Prix mensuel HT du plan."""
        return PLAN_MONTHLY_PRICES.get(self.plan, 0)
