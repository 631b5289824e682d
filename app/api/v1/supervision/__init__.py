from app.api.v1.supervision.routes import router

__all__ = ["router"]
