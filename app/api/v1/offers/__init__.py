from app.api.v1.offers.routes import router

__all__ = ["router"]
