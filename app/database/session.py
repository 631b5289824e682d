"""
Configuration de la session SQLAlchemy - Connexion PostgreSQL
Fournit l'engine, la factory de sessions et les utilitaires de vérification
"""
import logging
import time
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from app.core.config import settings

# Logger pour debugging des connexions
logger = logging.getLogger(__name__)


# === 1. ENGINE (Connexion PostgreSQL) ===
#
# L'engine gère un "pool" de connexions réutilisables.
# En SQLite (démo, tests) on bascule sur un pool statique mono-thread.

def _build_engine():
    """Construit l'engine selon le dialecte configuré."""
    if settings.is_sqlite:
        return create_engine(
            settings.DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

    return create_engine(
        settings.DATABASE_URL,

        # === Pool de connexions ===
        poolclass=QueuePool,      # Type de pool (file d'attente)
        pool_size=5,              # Nombre de connexions permanentes
        max_overflow=10,          # Connexions supplémentaires si besoin (temporaires)
        pool_timeout=30,          # Timeout pour obtenir une connexion (secondes)
        pool_recycle=1800,        # Recycler les connexions après 30 min
        pool_pre_ping=True,       # Vérifier que la connexion est vivante avant utilisation

        # === Options de connexion ===
        echo=settings.ENVIRONMENT == "development",  # Log SQL en dev uniquement
        echo_pool=False,

        # === Paramètres PostgreSQL ===
        connect_args={
            "application_name": "alternance360",  # Identifie l'app dans pg_stat_activity
            "options": "-c timezone=UTC",         # Forcer timezone UTC
        }
    )


engine = _build_engine()


# === 2. SESSION LOCAL (Factory de sessions) ===

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,         # Pas de commit automatique (on contrôle explicitement)
    autoflush=False,          # Pas de flush automatique (meilleur contrôle)
    expire_on_commit=False,   # Garder les objets accessibles après commit
)


# === 3. FONCTIONS UTILITAIRES ===

class db_session:
    """
    Context manager pour utiliser une session hors FastAPI
    (tâches planifiées, scripts d'initialisation).

    Gère automatiquement le commit/rollback et la fermeture.

    Usage:
        with db_session() as db:
            contract = db.get(Contract, 1)
            contract.is_locked = True
            # Commit automatique si pas d'erreur
    """

    def __init__(self, commit_on_exit: bool = True):
        self.db: Optional[Session] = None
        self.commit_on_exit = commit_on_exit

    def __enter__(self) -> Session:
        self.db = SessionLocal()
        return self.db

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None and self.commit_on_exit:
                self.db.commit()
            else:
                self.db.rollback()
        finally:
            self.db.close()

        # Ne pas supprimer l'exception (la propager)
        return False


# === 4. VÉRIFICATION DE CONNEXION ===

def measure_database_latency(db: Session) -> Optional[float]:
    """
    Mesure la latence d'un aller-retour SQL (en millisecondes).

    Returns:
        Latence en ms, ou None si la base est injoignable
    """
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"❌ Erreur de connexion à la base de données : {e}")
        return None
    return round((time.perf_counter() - started) * 1000, 2)


def check_database_connection() -> bool:
    """
    Vérifie que la connexion à la base de données fonctionne.

    Returns:
        True si la connexion est OK, False sinon
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Erreur de connexion à la base de données : {e}")
        return False


# === 5. EVENT LISTENERS (Debugging) ===

if settings.ENVIRONMENT == "development" and not settings.is_sqlite:
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        """Log quand une nouvelle connexion est créée"""
        logger.debug("🔌 Nouvelle connexion PostgreSQL créée")
