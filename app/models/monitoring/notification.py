"""Journal des notifications envoyées aux utilisateurs."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import NotificationType
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.monitoring.milestone import Milestone
    from app.models.user.user import User


class NotificationLog(Base, TenantMixin, TimestampMixin):
    """Notification (email, push ou alerte interne) adressée à un utilisateur."""

    __tablename__ = "notification_logs"

    id: Mapped[int] = mapped_column(primary_key=True)

    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    milestone_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("milestones.id", ondelete="SET NULL"),
        nullable=True,
    )

    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, name="notification_type_enum"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    recipient: Mapped["User"] = relationship("User")
    milestone: Mapped[Optional["Milestone"]] = relationship("Milestone")
