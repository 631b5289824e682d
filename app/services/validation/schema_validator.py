"""
Service de validation JSON Schema pour les imports de référentiels.

Valide les fichiers d'import RNCP (code, titre, blocs, compétences,
indicateurs) avant toute écriture en base.
"""

import json
from pathlib import Path
from functools import lru_cache
from typing import Dict, Any, List, Optional

from jsonschema import Draft202012Validator


# =============================================================================
# EXCEPTIONS
# =============================================================================

class SchemaValidationError(Exception):
    """Erreur de validation JSON Schema."""

    def __init__(
            self,
            message: str,
            errors: Optional[List[Dict[str, Any]]] = None
    ):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class SchemaNotFoundError(Exception):
    """Schema JSON non trouvé."""
    pass


# =============================================================================
# SERVICE
# =============================================================================

class ImportSchemaValidator:
    """
    Validateur des documents d'import contre les JSON Schemas.

    Usage:
        validator = ImportSchemaValidator()
        validator.validate_full("rncp_import", "v1", data)
    """

    SCHEMA_DIR = Path(__file__).parent.parent / "schemas" / "json_schemas"

    SCHEMA_FILES = {
        "rncp_import": "rncp_import_{version}.json",
    }

    @lru_cache(maxsize=10)
    def _load_schema(self, schema_type: str, version: str) -> Dict[str, Any]:
        """
        Charge et cache un schema JSON.

        Raises:
            SchemaNotFoundError: Si le schema n'existe pas
        """
        template = self.SCHEMA_FILES.get(schema_type.lower())
        if not template:
            raise SchemaNotFoundError(f"Type de schéma inconnu: {schema_type}")

        schema_path = self.SCHEMA_DIR / template.format(version=version)
        if not schema_path.exists():
            raise SchemaNotFoundError(f"Schema non trouvé: {schema_path}")

        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)

    def validate_partial(
            self,
            schema_type: str,
            version: str,
            data: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Retourne la liste des erreurs sans lever d'exception."""
        schema = self._load_schema(schema_type, version)
        validator = Draft202012Validator(schema)

        return [
            {
                "path": ".".join(str(p) for p in err.absolute_path),
                "message": err.message,
            }
            for err in validator.iter_errors(data)
        ]

    def validate_full(
            self,
            schema_type: str,
            version: str,
            data: Dict[str, Any]
    ) -> bool:
        """
        Validation complète contre le schema.

        Raises:
            SchemaValidationError: Si les données sont invalides (10 erreurs max rapportées)
        """
        errors = self.validate_partial(schema_type, version, data)
        if errors:
            raise SchemaValidationError(
                message=f"Validation échouée: {len(errors)} erreur(s) détectée(s)",
                errors=errors[:10],
            )
        return True


# =============================================================================
# SINGLETON
# =============================================================================

_validator_instance: Optional[ImportSchemaValidator] = None


def get_schema_validator() -> ImportSchemaValidator:
    """Retourne l'instance singleton du validateur."""
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = ImportSchemaValidator()
    return _validator_instance
