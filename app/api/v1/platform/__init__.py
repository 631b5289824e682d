from app.api.v1.platform.routes import router

__all__ = ["router"]
