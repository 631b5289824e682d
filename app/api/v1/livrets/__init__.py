from app.api.v1.livrets.routes import router

__all__ = ["router"]
