"""
Sessions d'impersonation stockées dans Redis.

Un super-admin peut se connecter "en tant que" un utilisateur d'un CFA
pour le support. La session est conservée dans Redis avec un TTL et
supprimée à l'arrêt de l'impersonation.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from app.core.config import settings
from app.core.redis_client import get_redis


class ImpersonationSession:
    """Informations sur une impersonation en cours."""

    def __init__(
            self,
            admin_id: int,
            target_user_id: int,
            target_tenant_id: Optional[int],
            started_at: datetime,
            expires_at: datetime,
    ):
        self.admin_id = admin_id
        self.target_user_id = target_user_id
        self.target_tenant_id = target_tenant_id
        self.started_at = started_at
        self.expires_at = expires_at

    def to_dict(self) -> Dict:
        return {
            "admin_id": self.admin_id,
            "target_user_id": self.target_user_id,
            "target_tenant_id": self.target_tenant_id,
            "started_at": self.started_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ImpersonationSession":
        return cls(
            admin_id=data["admin_id"],
            target_user_id=data["target_user_id"],
            target_tenant_id=data.get("target_tenant_id"),
            started_at=datetime.fromisoformat(data["started_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class ImpersonationManager:
    """
    Gestionnaire des sessions d'impersonation.

    Une seule session active par super-admin (clé impersonation:{admin_id}).
    """

    def __init__(self, redis_client=None):
        self.redis = redis_client or get_redis()
        self.ttl = settings.IMPERSONATION_TTL_SECONDS

    def _key(self, admin_id: int) -> str:
        return f"impersonation:{admin_id}"

    def start(
            self,
            admin_id: int,
            target_user_id: int,
            target_tenant_id: Optional[int],
    ) -> ImpersonationSession:
        """Ouvre (ou remplace) la session d'impersonation du super-admin."""
        now = datetime.now(timezone.utc)
        session = ImpersonationSession(
            admin_id=admin_id,
            target_user_id=target_user_id,
            target_tenant_id=target_tenant_id,
            started_at=now,
            expires_at=now + timedelta(seconds=self.ttl),
        )
        self.redis.setex(self._key(admin_id), self.ttl, json.dumps(session.to_dict()))
        return session

    def get(self, admin_id: int) -> Optional[ImpersonationSession]:
        raw = self.redis.get(self._key(admin_id))
        if not raw:
            return None
        return ImpersonationSession.from_dict(json.loads(raw))

    def stop(self, admin_id: int) -> Optional[ImpersonationSession]:
        """Termine la session. Retourne la session supprimée (ou None)."""
        session = self.get(admin_id)
        self.redis.delete(self._key(admin_id))
        return session

    def is_active(self, admin_id: int, target_user_id: int) -> bool:
        session = self.get(admin_id)
        return session is not None and session.target_user_id == target_user_id
