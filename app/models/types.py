"""
Types SQLAlchemy personnalisés pour Alternance360.

Ce module définit des types compatibles SQLite (tests) et PostgreSQL (production).
"""

from sqlalchemy import JSON, Text
from sqlalchemy.dialects.postgresql import JSONB


# ============================================================================
# JSONBCompatible - Type JSON compatible multi-dialecte
# ============================================================================
#
# - Sur PostgreSQL : JSONB (indexable, opérateurs @>, ?, etc.)
# - Sur SQLite/autres : JSON standard
#
# with_variant() permet à Alembic de générer directement les bonnes migrations.
#
# ============================================================================

JSONBCompatible = JSON().with_variant(JSONB(astext_type=Text()), 'postgresql')


# ============================================================================
# Alias pour clarté sémantique
# ============================================================================

# Listes de codes (permissions d'un rôle, périmètre d'un auditeur)
JSONList = JSONBCompatible

# Instantanés figés (archives, livrets, rapports historisés)
JSONSnapshot = JSONBCompatible
