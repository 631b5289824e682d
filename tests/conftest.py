"""
Fixtures pytest partagées pour les tests Alternance360.

Ce module fournit :
- Une base de données SQLite en mémoire pour les tests (rapide, isolé)
- Des fixtures pour créer des objets de test (Tenant, User, Referentiel, Contract, etc.)
- Une fabrique de clients FastAPI authentifiés pour chaque rôle

IMPORTANT - Multi-tenant:
- Les données métier portent tenant_id (contrats, preuves, livrets, ...)
- User, Role et Referentiel ont un tenant_id nullable (NULL = global)
- Période, affectation TSF, jalon et assiduité héritent du tenant via le contrat
"""

import os

# Configuration de test AVANT l'import de l'application
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date, timedelta
from typing import Callable, Dict, Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.security.hashing import hash_password
from app.database.base import metadata
from app.main import app
from app.models import (
    BlocCompetence,
    Competence,
    Contract,
    Indicateur,
    Referentiel,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    Tenant,
    User,
    UserRole,
)

TEST_PASSWORD = "MotDePasse123!"

# bcrypt est volontairement lent : un seul hash pour toute la session
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """
    Crée un engine SQLite en mémoire pour les tests.

    Avantages :
    - Rapide (pas d'I/O disque)
    - Isolé (chaque test a sa propre base)
    - Pas besoin de PostgreSQL pour les tests unitaires
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,  # Mettre True pour debug SQL
    )

    metadata.create_all(bind=engine)

    yield engine

    metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Fournit une session de base de données pour chaque test.

    Les services committent eux-mêmes : la base étant recréée à chaque test,
    aucun rollback n'est nécessaire.
    """
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Dépôts de fichiers et livrets dans un répertoire temporaire."""
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "LIVRET_DIR", str(tmp_path / "livrets"))
    return tmp_path


# =============================================================================
# MODEL FIXTURES - Tenants
# =============================================================================

@pytest.fixture
def tenant(db_session: Session) -> Tenant:
    """Crée le CFA de test."""
    tenant = Tenant(
        name="CFA Test",
        slug="cfa-test",
        contact_email="contact@cfa-test.fr",
        qualiopi_certified=True,
    )
    db_session.add(tenant)
    db_session.flush()
    return tenant


@pytest.fixture
def other_tenant(db_session: Session) -> Tenant:
    """Crée un second CFA (tests d'isolation multi-tenant)."""
    tenant = Tenant(
        name="CFA Voisin",
        slug="cfa-voisin",
        contact_email="contact@cfa-voisin.fr",
    )
    db_session.add(tenant)
    db_session.flush()
    return tenant


@pytest.fixture
def subscription(db_session: Session, tenant: Tenant) -> Subscription:
    """Abonnement ESSENTIAL actif du CFA de test."""
    subscription = Subscription(
        tenant_id=tenant.id,
        plan=SubscriptionPlan.ESSENTIAL,
        status=SubscriptionStatus.ACTIVE,
        started_at=date.today() - timedelta(days=30),
    )
    db_session.add(subscription)
    db_session.flush()
    return subscription


# =============================================================================
# MODEL FIXTURES - Utilisateurs
# =============================================================================

def make_user(
        db_session: Session,
        email: str,
        role: UserRole,
        tenant: Optional[Tenant] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        **kwargs,
) -> User:
    """Helper de création d'un utilisateur (mot de passe TEST_PASSWORD)."""
    user = User(
        tenant_id=tenant.id if tenant else None,
        email=email,
        password_hash=TEST_PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
        role=role,
        **kwargs,
    )
    user.refresh_full_name()
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def user_factory(db_session: Session) -> Callable[..., User]:
    """Fabrique d'utilisateurs supplémentaires : user_factory(email, role, tenant, ...)."""
    def factory(email: str, role: UserRole, tenant: Optional[Tenant] = None, **kwargs) -> User:
        return make_user(db_session, email, role, tenant, **kwargs)
    return factory


@pytest.fixture
def super_admin(db_session: Session) -> User:
    """Super-admin de la plateforme (sans tenant)."""
    return make_user(db_session, "root@alternance360.fr", UserRole.SUPER_ADMIN, None, "Super", "Admin")


@pytest.fixture
def admin(db_session: Session, tenant: Tenant) -> User:
    """Administrateur du CFA de test."""
    return make_user(db_session, "admin@cfa-test.fr", UserRole.ADMIN, tenant, "Alice", "Martin")


@pytest.fixture
def formateur(db_session: Session, tenant: Tenant) -> User:
    """Formateur référent."""
    return make_user(db_session, "formateur@cfa-test.fr", UserRole.FORMATEUR, tenant, "Bruno", "Petit")


@pytest.fixture
def tutor(db_session: Session, tenant: Tenant) -> User:
    """Maître d'apprentissage."""
    return make_user(
        db_session, "tuteur@entreprise.fr", UserRole.TUTOR, tenant, "Claire", "Roux",
        company_name="Entreprise SA",
    )


@pytest.fixture
def apprentice(db_session: Session, tenant: Tenant) -> User:
    """Apprenti du CFA de test."""
    return make_user(db_session, "apprenti@cfa-test.fr", UserRole.APPRENTICE, tenant, "David", "Leroy")


@pytest.fixture
def other_apprentice(db_session: Session, other_tenant: Tenant) -> User:
    """Apprenti d'un autre CFA."""
    return make_user(db_session, "apprenti@cfa-voisin.fr", UserRole.APPRENTICE, other_tenant, "Eva", "Blanc")


# =============================================================================
# MODEL FIXTURES - Référentiel
# =============================================================================

def make_referentiel(
        db_session: Session,
        tenant: Optional[Tenant],
        code_rncp: str = "RNCP35475",
        nb_blocs: int = 3,
        competences_per_bloc: int = 2,
        indicateurs_per_competence: int = 2,
) -> Referentiel:
    """Helper : référentiel blocs → compétences → indicateurs."""
    referentiel = Referentiel(
        tenant_id=tenant.id if tenant else None,
        code_rncp=code_rncp,
        title=f"Titre {code_rncp}",
        is_global=tenant is None,
    )
    for b in range(nb_blocs):
        bloc = BlocCompetence(title=f"Bloc {b + 1}", order_index=b)
        for c in range(competences_per_bloc):
            competence = Competence(description=f"Compétence {b + 1}.{c + 1}")
            competence.indicateurs = [
                Indicateur(description=f"Indicateur {b + 1}.{c + 1}.{i + 1}")
                for i in range(indicateurs_per_competence)
            ]
            bloc.competences.append(competence)
        referentiel.blocs.append(bloc)
    db_session.add(referentiel)
    db_session.flush()
    return referentiel


@pytest.fixture
def referentiel_factory(db_session: Session) -> Callable[..., Referentiel]:
    """Fabrique de référentiels : referentiel_factory(tenant, code_rncp=..., nb_blocs=...)."""
    def factory(tenant: Optional[Tenant], **kwargs) -> Referentiel:
        return make_referentiel(db_session, tenant, **kwargs)
    return factory


@pytest.fixture
def referentiel(db_session: Session, tenant: Tenant) -> Referentiel:
    """Référentiel du CFA : 3 blocs, 6 compétences, 12 indicateurs."""
    return make_referentiel(db_session, tenant)


# =============================================================================
# MODEL FIXTURES - Contrat
# =============================================================================

@pytest.fixture
def contract(
        db_session: Session,
        tenant: Tenant,
        apprentice: User,
        tutor: User,
        formateur: User,
        referentiel: Referentiel,
) -> Contract:
    """Contrat de 24 mois (01/09/2025 → 01/09/2027)."""
    contract = Contract(
        tenant_id=tenant.id,
        apprentice_id=apprentice.id,
        tutor_id=tutor.id,
        formateur_id=formateur.id,
        referentiel_id=referentiel.id,
        start_date=date(2025, 9, 1),
        end_date=date(2027, 9, 1),
        company_name="Entreprise SA",
    )
    db_session.add(contract)
    db_session.commit()
    return contract


# =============================================================================
# DOUBLURES
# =============================================================================

class FakeRedis:
    """Redis en mémoire (setex / get / delete) pour les sessions d'impersonation."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = int(ttl.total_seconds()) if isinstance(ttl, timedelta) else int(ttl)
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


# =============================================================================
# API TEST FIXTURES
# =============================================================================

@pytest.fixture
def make_client(db_session: Session) -> Generator[Callable[[Optional[User]], TestClient], None, None]:
    """
    Fabrique de clients de test FastAPI avec authentification mockée.

    Cette fixture :
    1. Override get_db et get_db_no_rls pour utiliser SQLite de test
    2. Override get_current_user pour bypasser l'authentification JWT
       (toutes les dépendances de rôle en découlent)

    Usage:
        client = make_client(admin)
        client.get("/api/v1/contracts")
    """
    from app.core.auth.user_auth import get_current_user
    from app.database.session_rls import get_db, get_db_no_rls

    clients = []

    def override_get_db():
        yield db_session

    def factory(user: Optional[User] = None) -> TestClient:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_db_no_rls] = override_get_db
        if user is not None:
            app.dependency_overrides[get_current_user] = lambda: user
        else:
            app.dependency_overrides.pop(get_current_user, None)
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield factory

    for test_client in clients:
        test_client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(make_client, admin: User) -> TestClient:
    """Client authentifié en tant qu'administrateur du CFA."""
    return make_client(admin)


@pytest.fixture
def formateur_client(make_client, formateur: User) -> TestClient:
    return make_client(formateur)


@pytest.fixture
def apprentice_client(make_client, apprentice: User) -> TestClient:
    """Client authentifié en tant qu'apprenti (droits restreints)."""
    return make_client(apprentice)


@pytest.fixture
def super_admin_client(make_client, super_admin: User) -> TestClient:
    return make_client(super_admin)


# --- Instructions de lancement des tests --- #
"""
Pour lancer les tests :
   pytest tests/test_models/ -v --tb=short
   pytest tests/test_services/ -v --tb=short
   pytest tests/test_api/ -v --tb=short
   pytest tests/ -v
"""
