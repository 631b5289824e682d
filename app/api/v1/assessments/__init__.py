from app.api.v1.assessments.routes import router

__all__ = ["router"]
