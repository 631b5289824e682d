from app.api.v1.contracts.routes import router

__all__ = ["router"]
