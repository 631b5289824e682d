"""add_rls_policies

Revision ID: 8f3c2d4e6a10
Revises: 5b1e0a7c9d21
Create Date: 2026-01-05 09:30:00+00:00

Cette migration configure Row-Level Security (RLS) pour l'isolation multi-tenant :
1. Crée les fonctions PostgreSQL lisant le contexte posé par la session
   (app.current_tenant_id, app.is_super_admin)
2. Active RLS sur les tables portant un tenant_id
3. Crée les politiques d'isolation par tenant
4. Autorise la lecture des lignes globales (tenant_id NULL) là où elles existent

IMPORTANT: Cette migration nécessite PostgreSQL 9.5+
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8f3c2d4e6a10'
down_revision: Union[str, Sequence[str], None] = '5b1e0a7c9d21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# =============================================================================
# CONFIGURATION
# =============================================================================

# tenant_id obligatoire
TABLES_WITH_TENANT_ID = [
    'subscriptions',
    'contracts',
    'initial_assessments',
    'positionings',
    'proofs',
    'livrets',
    'historical_reports',
    'magic_tokens',
    'remediation_plans',
    'notification_logs',
    'api_keys',
    'audit_sessions',
    'support_tickets',
    'training_offers',
    'archive_vault',
]

# tenant_id nullable : NULL = ligne globale (super-admin, référentiel partagé)
TABLES_WITH_GLOBAL_ROWS = [
    'users',
    'roles',
    'referentiels',
    'audit_logs',
]


# =============================================================================
# HELPERS
# =============================================================================

def table_exists(table_name: str) -> bool:
    conn = op.get_bind()
    result = conn.execute(sa.text("""
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = 'public' AND table_name = :name
    """), {"name": table_name})
    return result.fetchone() is not None


def policy_exists(policy_name: str, table_name: str) -> bool:
    conn = op.get_bind()
    result = conn.execute(sa.text("""
        SELECT 1 FROM pg_policies
        WHERE policyname = :policy AND tablename = :table
    """), {"policy": policy_name, "table": table_name})
    return result.fetchone() is not None


def create_policies(table_name: str, allow_global_rows: bool) -> None:
    """Active RLS sur une table et crée ses quatre politiques."""
    read_check = "check_tenant_access(tenant_id)"
    if allow_global_rows:
        read_check = f"(tenant_id IS NULL OR {read_check})"

    op.execute(f"ALTER TABLE {table_name} ENABLE ROW LEVEL SECURITY;")
    op.execute(f"ALTER TABLE {table_name} FORCE ROW LEVEL SECURITY;")

    policies = {
        "select": f"FOR SELECT USING ({read_check})",
        "insert": "FOR INSERT WITH CHECK (is_super_admin() OR tenant_id = get_current_tenant_id())",
        "update": (
            "FOR UPDATE USING (check_tenant_access(tenant_id)) "
            "WITH CHECK (is_super_admin() OR tenant_id = get_current_tenant_id())"
        ),
        "delete": "FOR DELETE USING (check_tenant_access(tenant_id))",
    }
    for action, clause in policies.items():
        policy_name = f"tenant_isolation_{action}_{table_name}"
        if not policy_exists(policy_name, table_name):
            op.execute(f"CREATE POLICY {policy_name} ON {table_name} {clause};")


# =============================================================================
# UPGRADE
# =============================================================================

def upgrade() -> None:
    """Configure Row-Level Security pour l'isolation multi-tenant."""

    op.execute("""
        CREATE OR REPLACE FUNCTION get_current_tenant_id()
        RETURNS INTEGER AS $$
        DECLARE
            tenant_id_str TEXT;
        BEGIN
            tenant_id_str := current_setting('app.current_tenant_id', true);
            IF tenant_id_str IS NULL OR tenant_id_str = '' THEN
                RETURN NULL;
            END IF;
            RETURN tenant_id_str::INTEGER;
        EXCEPTION
            WHEN OTHERS THEN
                RETURN NULL;
        END;
        $$ LANGUAGE plpgsql STABLE SECURITY DEFINER;
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION is_super_admin()
        RETURNS BOOLEAN AS $$
        DECLARE
            flag TEXT;
        BEGIN
            flag := current_setting('app.is_super_admin', true);
            IF flag IS NULL OR flag = '' THEN
                RETURN FALSE;
            END IF;
            RETURN flag::BOOLEAN;
        EXCEPTION
            WHEN OTHERS THEN
                RETURN FALSE;
        END;
        $$ LANGUAGE plpgsql STABLE SECURITY DEFINER;
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION check_tenant_access(row_tenant_id INTEGER)
        RETURNS BOOLEAN AS $$
        DECLARE
            current_tenant INTEGER;
        BEGIN
            IF is_super_admin() THEN
                RETURN TRUE;
            END IF;
            current_tenant := get_current_tenant_id();
            -- Pas de tenant en session : accès refusé
            IF current_tenant IS NULL THEN
                RETURN FALSE;
            END IF;
            RETURN row_tenant_id = current_tenant;
        END;
        $$ LANGUAGE plpgsql STABLE SECURITY DEFINER;
    """)

    for table_name in TABLES_WITH_TENANT_ID + TABLES_WITH_GLOBAL_ROWS:
        if not table_exists(table_name):
            print(f"  ⚠️  Table {table_name} n'existe pas, skip")
            continue
        print(f"  ✅ Configuration RLS pour {table_name}")
        create_policies(table_name, allow_global_rows=table_name in TABLES_WITH_GLOBAL_ROWS)


# =============================================================================
# DOWNGRADE
# =============================================================================

def downgrade() -> None:
    """Supprime la configuration RLS."""
    for table_name in TABLES_WITH_TENANT_ID + TABLES_WITH_GLOBAL_ROWS:
        if not table_exists(table_name):
            continue
        for action in ['select', 'insert', 'update', 'delete']:
            op.execute(f"DROP POLICY IF EXISTS tenant_isolation_{action}_{table_name} ON {table_name};")
        op.execute(f"ALTER TABLE {table_name} DISABLE ROW LEVEL SECURITY;")

    op.execute("DROP FUNCTION IF EXISTS check_tenant_access(INTEGER);")
    op.execute("DROP FUNCTION IF EXISTS is_super_admin();")
    op.execute("DROP FUNCTION IF EXISTS get_current_tenant_id();")
