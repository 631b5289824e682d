"""
Tests unitaires pour le modèle User, les rôles personnalisés et la matrice de permissions.
"""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.permissions import can_access_contract, user_has_permission
from app.models import PermissionCode, Role, User, UserRole


class TestUser:
    """Tests pour le modèle User."""

    def test_create_user(self, db_session: Session, tenant):
        """Test création d'un utilisateur."""
        user = User(
            tenant_id=tenant.id,
            email="nouveau@cfa-test.fr",
            first_name="Pierre",
            last_name="Durand",
            role=UserRole.APPRENTICE,
        )
        user.refresh_full_name()
        db_session.add(user)
        db_session.flush()

        assert user.id is not None
        assert user.full_name == "Pierre Durand"
        assert user.is_active is True
        assert user.created_at is not None

    def test_user_email_unique(self, db_session: Session, admin, tenant):
        """Test que l'email est unique sur toute la plateforme."""
        duplicate = User(tenant_id=tenant.id, email=admin.email, role=UserRole.FORMATEUR)
        db_session.add(duplicate)

        with pytest.raises(IntegrityError):
            db_session.flush()

    def test_super_admin_has_no_tenant(self, super_admin):
        assert super_admin.tenant_id is None
        assert super_admin.is_super_admin is True
        assert super_admin.is_admin is True

    def test_display_name_fallbacks(self, db_session: Session, tenant):
        """Nom complet, sinon prénom + nom, sinon email."""
        user = User(tenant_id=tenant.id, email="anonyme@cfa-test.fr", role=UserRole.APPRENTICE)
        assert user.display_name == "anonyme@cfa-test.fr"

        user.first_name = "Léa"
        assert user.display_name == "Léa"

        user.full_name = "Léa Moreau"
        assert user.display_name == "Léa Moreau"

    def test_role_helpers(self, admin, formateur, tutor, apprentice):
        assert admin.is_staff and formateur.is_staff
        assert not apprentice.is_staff
        assert tutor.is_tutor and not formateur.is_tutor
        assert apprentice.has_role(UserRole.APPRENTICE, UserRole.TUTOR)


class TestPermissions:
    """Tests pour la matrice de permissions par défaut et les rôles personnalisés."""

    def test_admin_has_every_permission(self, admin, super_admin):
        for code in PermissionCode:
            assert user_has_permission(admin, code)
            assert user_has_permission(super_admin, code)

    def test_formateur_defaults(self, formateur):
        assert formateur.has_permission(PermissionCode.TSF_READ.value)
        assert formateur.has_permission(PermissionCode.CONTRACT_READ.value)
        assert not formateur.has_permission(PermissionCode.CONTRACT_WRITE.value)
        assert not formateur.has_permission(PermissionCode.TSF_UNLOCK.value)

    def test_apprentice_has_no_permission(self, apprentice):
        assert not any(user_has_permission(apprentice, code) for code in PermissionCode)

    def test_custom_role_overrides_defaults(self, db_session: Session, tenant, formateur):
        """Un rôle personnalisé remplace la matrice par défaut du formateur."""
        role = Role(
            tenant_id=tenant.id,
            name="Responsable pédagogique",
            permissions=[PermissionCode.TSF_VALIDATE.value, PermissionCode.TSF_UNLOCK.value],
        )
        db_session.add(role)
        db_session.flush()

        formateur.custom_role = role

        assert user_has_permission(formateur, PermissionCode.TSF_UNLOCK)
        assert not user_has_permission(formateur, PermissionCode.TSF_READ)


class TestContractAccess:
    """Tests pour can_access_contract."""

    def test_staff_of_same_tenant(self, contract, admin, formateur):
        assert can_access_contract(admin, contract)
        assert can_access_contract(formateur, contract)

    def test_parties_of_the_contract(self, contract, apprentice, tutor):
        assert can_access_contract(apprentice, contract)
        assert can_access_contract(tutor, contract)

    def test_unrelated_apprentice_denied(self, contract, user_factory, tenant):
        stranger = user_factory("autre@cfa-test.fr", UserRole.APPRENTICE, tenant)
        assert not can_access_contract(stranger, contract)

    def test_other_tenant_denied(self, contract, user_factory, other_tenant):
        foreign_admin = user_factory("admin@cfa-voisin.fr", UserRole.ADMIN, other_tenant)
        assert not can_access_contract(foreign_admin, contract)

    def test_super_admin_sees_everything(self, contract, super_admin):
        assert can_access_contract(super_admin, contract)
