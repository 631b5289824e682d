from app.api.v1.remediation.routes import router

__all__ = ["router"]
