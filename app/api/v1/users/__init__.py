from app.api.v1.users.routes import router

__all__ = ["router"]
