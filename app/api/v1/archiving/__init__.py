from app.api.v1.archiving.routes import router

__all__ = ["router"]
