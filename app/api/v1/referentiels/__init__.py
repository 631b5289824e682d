from app.api.v1.referentiels.routes import router

__all__ = ["router"]
