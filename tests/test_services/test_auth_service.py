"""
Tests du service d'authentification (connexion, jetons, inscription, impersonation).
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.auth.services import (
    AuthService,
    ImpersonationError,
    InactiveUserError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
)
from app.api.v1.tenants.services import EmailAlreadyUsedError
from app.core.impersonation import ImpersonationManager
from app.core.security.jwt import verify_token
from app.models import AuditAction, AuditLog, Subscription, UserRole

TEST_PASSWORD = "MotDePasse123!"


@pytest.fixture
def impersonation(fake_redis) -> ImpersonationManager:
    return ImpersonationManager(redis_client=fake_redis)


def _actions(db: Session):
    return [entry.action for entry in db.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all()]


class TestAuthenticateLocal:

    def test_success_is_audited(self, db_session: Session, admin):
        user = AuthService(db_session).authenticate_local("ADMIN@cfa-test.fr", TEST_PASSWORD, ip_address="10.0.0.3")

        assert user.id == admin.id
        assert user.last_login is not None
        assert _actions(db_session) == [AuditAction.AUTH_SUCCESS.value]

    def test_wrong_password(self, db_session: Session, admin):
        with pytest.raises(InvalidCredentialsError):
            AuthService(db_session).authenticate_local(admin.email, "mauvais")
        assert _actions(db_session) == [AuditAction.AUTH_FAILURE.value]

    def test_unknown_email(self, db_session: Session):
        with pytest.raises(InvalidCredentialsError):
            AuthService(db_session).authenticate_local("personne@cfa.fr", TEST_PASSWORD)

    def test_passwordless_external_tutor(self, db_session: Session, tenant, user_factory):
        tutor = user_factory("maitre@societe.fr", UserRole.TUTOR_EXT, tenant)
        tutor.password_hash = None
        db_session.flush()

        with pytest.raises(InvalidCredentialsError):
            AuthService(db_session).authenticate_local(tutor.email, "")

    def test_inactive_user(self, db_session: Session, admin):
        admin.is_active = False
        db_session.flush()

        with pytest.raises(InactiveUserError):
            AuthService(db_session).authenticate_local(admin.email, TEST_PASSWORD)


class TestTokens:

    def test_tokens_carry_tenant_and_role(self, db_session: Session, formateur):
        tokens = AuthService(db_session).create_tokens_for_user(formateur)
        payload = verify_token(tokens.access_token)

        assert payload["sub"] == str(formateur.id)
        assert payload["role"] == UserRole.FORMATEUR.value
        assert payload["tenant_id"] == formateur.tenant_id
        assert tokens.token_type == "Bearer"

    def test_refresh(self, db_session: Session, formateur):
        service = AuthService(db_session)
        tokens = service.create_tokens_for_user(formateur)

        refreshed = service.refresh(tokens.refresh_token)
        assert verify_token(refreshed.access_token)["sub"] == str(formateur.id)

        with pytest.raises(InvalidRefreshTokenError):
            service.refresh(tokens.access_token)

    def test_refresh_for_inactive_user(self, db_session: Session, formateur):
        service = AuthService(db_session)
        tokens = service.create_tokens_for_user(formateur)
        formateur.is_active = False
        db_session.flush()

        with pytest.raises(InvalidRefreshTokenError):
            service.refresh(tokens.refresh_token)


class TestRegisterTenant:

    def test_register_creates_tenant_admin_and_subscription(self, db_session: Session):
        tenant, admin = AuthService(db_session).register_tenant(
            "CFA des Métiers", "Direction@CFA-Metiers.fr", "secret123", "Paul", "Girard",
        )

        assert tenant.slug == "cfa-des-metiers"
        assert admin.email == "direction@cfa-metiers.fr"
        assert admin.role == UserRole.ADMIN
        assert db_session.execute(
            select(Subscription).where(Subscription.tenant_id == tenant.id)
        ).scalar_one() is not None

    def test_duplicate_email(self, db_session: Session, admin):
        with pytest.raises(EmailAlreadyUsedError):
            AuthService(db_session).register_tenant("Autre CFA", admin.email, "secret123", "A", "B")


class TestImpersonation:

    def test_start_and_stop(self, db_session: Session, super_admin, formateur, impersonation, fake_redis):
        service = AuthService(db_session, impersonation=impersonation)

        token, session, target = service.start_impersonation(super_admin, formateur.id, ip_address="10.0.0.4")

        payload = verify_token(token)
        assert payload["sub"] == str(formateur.id)
        assert payload["impersonator_id"] == super_admin.id
        assert target.id == formateur.id
        assert impersonation.is_active(super_admin.id, formateur.id)
        assert f"impersonation:{super_admin.id}" in fake_redis.store

        assert service.stop_impersonation(super_admin.id) is True
        assert not impersonation.is_active(super_admin.id, formateur.id)
        assert service.stop_impersonation(super_admin.id) is False
        assert _actions(db_session) == [
            AuditAction.IMPERSONATION_START.value,
            AuditAction.IMPERSONATION_STOP.value,
        ]

    def test_cannot_impersonate_super_admin(self, db_session: Session, super_admin, impersonation):
        with pytest.raises(ImpersonationError):
            AuthService(db_session, impersonation=impersonation).start_impersonation(super_admin, super_admin.id)

    def test_unknown_target(self, db_session: Session, super_admin, impersonation):
        with pytest.raises(ImpersonationError):
            AuthService(db_session, impersonation=impersonation).start_impersonation(super_admin, 9999)
