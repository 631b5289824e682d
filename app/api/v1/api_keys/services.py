"""
Services de gestion des clés d'API d'un CFA.

La clé en clair (cfa_live_ + 48 caractères hexadécimaux) n'est restituée
qu'à la création ; seule son empreinte SHA-256 est conservée.
"""
import logging
from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security.hashing import generate_token, sha256_hex
from app.models.audit.api_key import API_KEY_PREFIX, ApiKey

logger = logging.getLogger(__name__)

API_KEY_RANDOM_BYTES = 24


class ApiKeyNotFoundError(Exception):
    """Clé d'API non trouvée."""
    pass


def generate_plain_key() -> str:
    return f"{API_KEY_PREFIX}{generate_token(API_KEY_RANDOM_BYTES)}"


class ApiKeyService:
    """Clés d'API d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def create_key(self, name: str, created_by: int) -> Tuple[ApiKey, str]:
        """
        Returns:
            (clé enregistrée, clé en clair)
        """
        plain_key = generate_plain_key()
        api_key = ApiKey(
            tenant_id=self.tenant_id,
            name=name,
            key_hash=sha256_hex(plain_key),
            prefix=API_KEY_PREFIX,
            created_by=created_by,
        )
        self.db.add(api_key)
        self.db.commit()
        self.db.refresh(api_key)
        logger.info(f"🔑 Clé d'API « {name} » créée pour le tenant {self.tenant_id}")
        return api_key, plain_key

    def list_keys(self) -> List[ApiKey]:
        return list(self.db.execute(
            select(ApiKey)
            .where(ApiKey.tenant_id == self.tenant_id, ApiKey.revoked_at.is_(None))
            .order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
        ).scalars().all())

    def revoke_key(self, key_id: int) -> ApiKey:
        api_key = self.db.execute(
            select(ApiKey).where(ApiKey.id == key_id, ApiKey.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if not api_key:
            raise ApiKeyNotFoundError(f"Clé d'API {key_id} non trouvée")
        if api_key.revoked_at is None:
            api_key.revoked_at = datetime.now(timezone.utc)
            self.db.commit()
            logger.info(f"🔒 Clé d'API {key_id} révoquée")
        return api_key
