from app.api.v1.tsf.routes import router

__all__ = ["router"]
