from app.api.v1.tickets.routes import router

__all__ = ["router"]
