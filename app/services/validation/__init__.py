from app.services.validation.schema_validator import (
    ImportSchemaValidator,
    SchemaNotFoundError,
    SchemaValidationError,
    get_schema_validator,
)

__all__ = [
    "ImportSchemaValidator",
    "SchemaNotFoundError",
    "SchemaValidationError",
    "get_schema_validator",
]
