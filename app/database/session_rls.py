"""
Gestion des sessions de base de données avec support RLS.

Ce module fournit les dépendances FastAPI pour obtenir une session
de base de données configurée avec le contexte tenant pour RLS
(PostgreSQL uniquement ; le filtrage applicatif par tenant_id
reste systématique dans les services).

Usage:
    @router.get("/contracts")
    def list_contracts(db: Session = Depends(get_db)):
        ...
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.tenant_context import (
    get_current_tenant_id,
    get_is_super_admin,
)
from app.database.session import SessionLocal


def configure_tenant_context(db: Session, tenant_id: Optional[int], is_super_admin: bool = False) -> None:
    """
    Configure les variables de session PostgreSQL pour RLS.

    Ces variables sont lues par les politiques créées par la migration RLS.
    Sans effet sur les autres dialectes (SQLite en test).

    Args:
        db: Session SQLAlchemy
        tenant_id: ID du tenant courant (None = pas de tenant)
        is_super_admin: Si True, bypass le RLS
    """
    if db.get_bind().dialect.name != "postgresql":
        return

    db.execute(
        text("SELECT set_config('app.current_tenant_id', :tenant_id, false)"),
        {"tenant_id": str(tenant_id) if tenant_id is not None else ""},
    )
    db.execute(
        text("SELECT set_config('app.is_super_admin', :flag, false)"),
        {"flag": str(is_super_admin).lower()},
    )


def get_db() -> Generator[Session, None, None]:
    """
    Dépendance FastAPI pour obtenir une session DB avec contexte RLS.

    Yields:
        Session: Session SQLAlchemy configurée avec RLS
    """
    db = SessionLocal()
    try:
        configure_tenant_context(db, get_current_tenant_id(), get_is_super_admin())

        yield db

        # Commit si tout s'est bien passé
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db_no_rls() -> Generator[Session, None, None]:
    """
    Session DB SANS contexte RLS (authentification, clés API, tâches système).

    ⚠️ ATTENTION: Cette fonction bypass complètement le RLS.
    """
    db = SessionLocal()
    try:
        configure_tenant_context(db, tenant_id=None, is_super_admin=True)

        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_for_tenant(tenant_id: int) -> Generator[Session, None, None]:
    """
    Context manager pour obtenir une session pour un tenant spécifique.

    Example:
        with get_db_for_tenant(tenant_id=42) as db:
            contracts = db.query(Contract).all()
    """
    db = SessionLocal()
    try:
        configure_tenant_context(db, tenant_id, is_super_admin=False)
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
