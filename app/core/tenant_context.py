"""
Middleware de contexte tenant pour RLS.

Ce module conserve, pour la requête courante, le tenant, l'utilisateur
et l'éventuel super-admin qui l'impersonne. get_db() s'en sert pour
configurer les variables de session PostgreSQL.

Usage:
    app.add_middleware(TenantContextMiddleware)
"""

from typing import Optional, Callable
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Variables de contexte de la requête courante
current_tenant_id: ContextVar[Optional[int]] = ContextVar('current_tenant_id', default=None)
current_user_id: ContextVar[Optional[int]] = ContextVar('current_user_id', default=None)
is_super_admin: ContextVar[bool] = ContextVar('is_super_admin', default=False)
impersonator_id: ContextVar[Optional[int]] = ContextVar('impersonator_id', default=None)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware qui isole le contexte tenant de chaque requête.

    Flow:
        1. Request arrive, le contexte est remis à zéro
        2. get_current_user() renseigne le contexte depuis le JWT
        3. get_db() lit le contexte et configure PostgreSQL
        4. Le contexte est nettoyé en fin de requête
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        token_tenant = current_tenant_id.set(None)
        token_user = current_user_id.set(None)
        token_admin = is_super_admin.set(False)
        token_impersonator = impersonator_id.set(None)

        try:
            return await call_next(request)
        finally:
            current_tenant_id.reset(token_tenant)
            current_user_id.reset(token_user)
            is_super_admin.reset(token_admin)
            impersonator_id.reset(token_impersonator)


def get_current_tenant_id() -> Optional[int]:
    """Récupère le tenant_id du contexte de la requête courante."""
    return current_tenant_id.get()


def get_current_user_id() -> Optional[int]:
    """Récupère le user_id du contexte de la requête courante."""
    return current_user_id.get()


def get_is_super_admin() -> bool:
    """Vérifie si la requête courante est d'un super-admin."""
    return is_super_admin.get()


def get_impersonator_id() -> Optional[int]:
    """ID du super-admin qui impersonne l'utilisateur courant (sinon None)."""
    return impersonator_id.get()


def set_tenant_context(
    tenant_id: Optional[int],
    user_id: Optional[int] = None,
    super_admin: bool = False,
    impersonated_by: Optional[int] = None,
):
    """
    Définit manuellement le contexte tenant.

    Utile pour les tâches planifiées et les scripts.
    """
    current_tenant_id.set(tenant_id)
    current_user_id.set(user_id)
    is_super_admin.set(super_admin)
    impersonator_id.set(impersonated_by)
