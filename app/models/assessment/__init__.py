from app.models.assessment.assessment import (
    ACQUIRED_LEVEL,
    InitialAssessment,
    Positioning,
    EvaluationIndicateur,
)

__all__ = ["ACQUIRED_LEVEL", "InitialAssessment", "Positioning", "EvaluationIndicateur"]
