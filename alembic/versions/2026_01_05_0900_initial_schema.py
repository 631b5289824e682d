"""initial_schema

Revision ID: 5b1e0a7c9d21
Revises:
Create Date: 2026-01-05 09:00:00+00:00

Schéma initial Alternance360 : toutes les tables déclarées par les modèles
(tenants, utilisateurs, référentiels, contrats/TSF, positionnement, preuves,
livrets, suivi, audit, support, plateforme, catalogue).
"""
from typing import Sequence, Union

from alembic import op

from app.database.base import metadata

# revision identifiers, used by Alembic.
revision: str = '5b1e0a7c9d21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Crée toutes les tables (idempotent : ignore les tables existantes)."""
    metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    metadata.drop_all(bind=op.get_bind(), checkfirst=True)
