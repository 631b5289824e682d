from app.models.referentiel.referentiel import (
    Referentiel,
    BlocCompetence,
    Competence,
    Indicateur,
)

__all__ = ["Referentiel", "BlocCompetence", "Competence", "Indicateur"]
