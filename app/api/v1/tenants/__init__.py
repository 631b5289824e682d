from app.api.v1.tenants.routes import router

__all__ = ["router"]
