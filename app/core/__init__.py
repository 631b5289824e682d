from app.core.tenant_context import (
    get_current_tenant_id,
    get_current_user_id,
    get_is_super_admin,
    get_impersonator_id,
    set_tenant_context,
    current_tenant_id,
    TenantContextMiddleware,
)

__all__ = [
    "get_current_tenant_id",
    "get_current_user_id",
    "get_is_super_admin",
    "get_impersonator_id",
    "set_tenant_context",
    "current_tenant_id",
    "TenantContextMiddleware",
]
