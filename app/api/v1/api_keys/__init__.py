from app.api.v1.api_keys.routes import router

__all__ = ["router"]
