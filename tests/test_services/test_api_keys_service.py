"""
Tests de la gestion des clés d'API.
"""

import pytest
from sqlalchemy.orm import Session

from app.api.v1.api_keys.services import ApiKeyNotFoundError, ApiKeyService
from app.core.security.hashing import sha256_hex


class TestApiKeys:

    def test_create_returns_plain_key_once(self, db_session: Session, tenant, admin):
        api_key, plain_key = ApiKeyService(db_session, tenant.id).create_key("ERP", admin.id)

        assert plain_key.startswith("cfa_live_")
        assert len(plain_key) == len("cfa_live_") + 48
        assert api_key.key_hash == sha256_hex(plain_key)
        assert plain_key not in (api_key.key_hash, api_key.prefix)

    def test_revoked_keys_are_hidden(self, db_session: Session, tenant, admin):
        service = ApiKeyService(db_session, tenant.id)
        kept, _ = service.create_key("CRM", admin.id)
        revoked, _ = service.create_key("Ancien ERP", admin.id)

        service.revoke_key(revoked.id)

        assert [k.id for k in service.list_keys()] == [kept.id]
        assert revoked.is_revoked

    def test_revoke_is_idempotent(self, db_session: Session, tenant, admin):
        service = ApiKeyService(db_session, tenant.id)
        api_key, _ = service.create_key("ERP", admin.id)

        first = service.revoke_key(api_key.id).revoked_at
        assert service.revoke_key(api_key.id).revoked_at == first

    def test_other_tenant_cannot_revoke(self, db_session: Session, tenant, other_tenant, admin):
        api_key, _ = ApiKeyService(db_session, tenant.id).create_key("ERP", admin.id)

        with pytest.raises(ApiKeyNotFoundError):
            ApiKeyService(db_session, other_tenant.id).revoke_key(api_key.id)
