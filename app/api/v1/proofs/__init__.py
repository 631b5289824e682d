from app.api.v1.proofs.routes import router

__all__ = ["router"]
