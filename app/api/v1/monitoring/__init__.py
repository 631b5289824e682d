from app.api.v1.monitoring.routes import cron_router, router

__all__ = ["router", "cron_router"]
