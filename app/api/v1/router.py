"""
Router principal API v1.

Agrège tous les routers des différents modules métier.

Usage dans main.py:
    from app.api.v1.router import api_router

    app = FastAPI(title="Alternance360 API")
    app.include_router(api_router)
"""
from fastapi import APIRouter

from .api_keys import router as api_keys_router
from .archiving import router as archiving_router
from .assessments import router as assessments_router
from .audit import router as audit_router
from .auth import router as auth_router
from .contracts import router as contracts_router
from .external import router as external_router
from .livrets import router as livrets_router
from .monitoring import cron_router, router as monitoring_router
from .offers import router as offers_router
from .platform import router as platform_router
from .proofs import router as proofs_router
from .referentiels import router as referentiels_router
from .remediation import router as remediation_router
from .supervision import router as supervision_router
from .tenants import router as tenants_router
from .tickets import router as tickets_router
from .tsf import router as tsf_router
from .users import router as users_router


# =============================================================================
# ROUTER PRINCIPAL
# =============================================================================

api_router = APIRouter(prefix="/api/v1")

# Identité, CFA, utilisateurs
api_router.include_router(auth_router)
api_router.include_router(tenants_router)
api_router.include_router(users_router)

# Parcours pédagogique
api_router.include_router(referentiels_router)
api_router.include_router(contracts_router)
api_router.include_router(tsf_router)
api_router.include_router(assessments_router)
api_router.include_router(proofs_router)
api_router.include_router(livrets_router)

# Suivi et pilotage
api_router.include_router(monitoring_router)
api_router.include_router(supervision_router)
api_router.include_router(remediation_router)
api_router.include_router(archiving_router)
api_router.include_router(audit_router)

# Intégrations et vitrine
api_router.include_router(api_keys_router)
api_router.include_router(external_router)
api_router.include_router(offers_router)

# Support et plateforme
api_router.include_router(tickets_router)
api_router.include_router(platform_router)
api_router.include_router(cron_router)


# =============================================================================
# HEALTH CHECK
# =============================================================================

@api_router.get(
    "/health",
    tags=["System"],
    summary="Health check",
    description="Vérifie que l'API est opérationnelle.",
)
async def health_check():
    """
    Endpoint de santé pour les load balancers et le monitoring.

    Returns:
        Statut de l'API
    """
    return {
        "status": "healthy",
        "service": "alternance360-api",
        "version": "1.0.0",
        "api_version": "v1",
    }
