from app.api.v1.external.routes import router

__all__ = ["router"]
