from app.database.session import SessionLocal, engine
from app.database.session_rls import (
    get_db,
    get_db_no_rls,
    get_db_for_tenant,
    configure_tenant_context,
)

__all__ = [
    "SessionLocal",
    "engine",
    "get_db",
    "get_db_no_rls",
    "get_db_for_tenant",
    "configure_tenant_context",
]
