"""
Base de données SQLAlchemy - Configuration centrale
Importe tous les modèles pour que SQLAlchemy connaisse toutes les relations
"""
from app.database.base_class import Base

# === IMPORTS DES MODÈLES ===
# IMPORTANT : Tous les modèles doivent être importés ici pour que :
# 1. SQLAlchemy connaisse toutes les relations entre tables
# 2. Alembic puisse détecter tous les modèles pour les migrations
# 3. Les métadonnées soient complètes lors de create_all()
import app.models  # noqa: F401


# === MÉTADONNÉES ===
metadata = Base.metadata


# === FONCTIONS UTILITAIRES ===

def get_all_models() -> list:
    """Retourne la liste de tous les modèles SQLAlchemy enregistrés."""
    return [mapper.class_ for mapper in Base.registry.mappers]


def get_table_names() -> list[str]:
    """Retourne la liste des noms de toutes les tables."""
    return list(metadata.tables.keys())


def get_tenant_scoped_tables() -> list[str]:
    """Tables portant une colonne tenant_id (soumises aux politiques RLS)."""
    return sorted(
        name for name, table in metadata.tables.items()
        if "tenant_id" in table.columns
    )
