"""
Client de l'open data RNCP (France Compétences, via opendatasoft).

Récupère les informations de base d'une fiche pour pré-remplir
un référentiel avant import.
"""

from typing import Any, Dict

import httpx

from app.core.config import settings


class RncpLookupError(Exception):
    """Erreur de communication avec l'API RNCP."""
    pass


class RncpNotFoundError(Exception):
    """Fiche RNCP introuvable."""
    pass


async def fetch_rncp_fiche(code: str) -> Dict[str, Any]:
    """
    Recherche une fiche RNCP par son numéro.

    Returns:
        {"id_national", "title", "active", "level", "raw_blocks"}

    Raises:
        RncpNotFoundError: Aucune fiche pour ce numéro
        RncpLookupError: Erreur réseau ou réponse non 200
    """
    params = {"where": f'numero_fiche="{code.strip().upper()}"', "limit": 1}

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            response = await client.get(settings.RNCP_API_URL, params=params)
    except httpx.RequestError as e:
        raise RncpLookupError(f"Erreur de connexion à l'API RNCP: {str(e)}")

    if response.status_code != 200:
        raise RncpLookupError(f"API RNCP indisponible (HTTP {response.status_code})")

    results = response.json().get("results") or []
    if not results:
        raise RncpNotFoundError("Fiche RNCP introuvable")

    record = results[0]
    return {
        "id_national": record.get("numero_fiche"),
        "title": record.get("intitule"),
        "active": record.get("etat_fiche") == "Active",
        "level": record.get("niveau_qualification"),
        "raw_blocks": record.get("blocs_competences"),
    }
