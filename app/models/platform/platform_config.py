"""
Paramètres globaux de la plateforme (clé/valeur).

Exemples de clés :
- GENERAL : platform_name, support_email
- TECH : smtp_host, smtp_port, smtp_user, smtp_pass
- BILLING : price_essential, price_premium
"""

from typing import Optional

from sqlalchemy import Boolean, Enum as SQLEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base_class import Base
from app.models.enums import ConfigGroup
from app.models.mixins import TimestampMixin


class PlatformConfig(Base, TimestampMixin):
    """Paramètre de configuration modifiable par les super-admins."""

    __tablename__ = "platform_configs"

    id: Mapped[int] = mapped_column(primary_key=True)

    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[Optional[str]] = mapped_column(Text)
    group: Mapped[ConfigGroup] = mapped_column(
        SQLEnum(ConfigGroup, name="config_group_enum"),
        default=ConfigGroup.GENERAL,
        nullable=False,
    )
    is_secret: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Valeur chiffrée et masquée à la lecture",
    )

    def __repr__(self) -> str:
        return f"<PlatformConfig(key='{self.key}', group={self.group})>"
