"""
Module Tenants - Gestion multi-tenant (CFA clients).
"""

from app.models.tenants.tenant import Tenant
from app.models.tenants.subscription import Subscription, PLAN_MONTHLY_PRICES

__all__ = [
    "Tenant",
    "Subscription",
    "PLAN_MONTHLY_PRICES",
]
