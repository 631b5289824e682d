"""
Pagination des listes de l'API v1 (utilisateurs, contrats, référentiels,
preuves, journaux d'audit, vues plateforme).

Les listes paginées répondent toutes avec la même enveloppe :

    {"items": [...], "total": 42, "page": 1, "size": 20, "pages": 3}
"""

from typing import Annotated, Any, Dict, Sequence

from fastapi import Depends, Query


class PaginationParams:
    """Paramètres ?page=&size= communs aux routes de liste."""

    def __init__(
            self,
            page: Annotated[int, Query(ge=1, description="Numéro de page (commence à 1)")] = 1,
            size: Annotated[int, Query(ge=1, le=100, description="Nombre d'éléments par page")] = 20,
    ):
        self.page = page
        self.size = size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    def envelope(self, items: Sequence[Any], total: int) -> Dict[str, Any]:
        """Enveloppe de réponse d'une page de résultats."""
        return {
            "items": items,
            "total": total,
            "page": self.page,
            "size": self.size,
            "pages": (total + self.size - 1) // self.size,
        }


Pagination = Annotated[PaginationParams, Depends()]
