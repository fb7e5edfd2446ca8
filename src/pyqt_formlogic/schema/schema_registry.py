"""Registry of reusable schema definitions, scoped to one form build."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from pyqt_formlogic.exceptions import FormConfigurationError, SchemaReferenceError
from pyqt_formlogic.models.schema import SchemaDefinition

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Name -> SchemaDefinition lookup.

    Examples:
        registry = SchemaRegistry([{"name": "email", "validators": [{"type": "email"}]}])
        registry.get("email")
    """

    def __init__(self, schemas: Optional[Iterable[Any]] = None):
        self._schemas: Dict[str, SchemaDefinition] = {}
        for schema in schemas or ():
            self.register(schema)

    def register(self, schema: Any) -> SchemaDefinition:
        definition = schema if isinstance(schema, SchemaDefinition) else SchemaDefinition.from_config(schema)
        if definition.name in self._schemas:
            raise FormConfigurationError(f"Schema '{definition.name}' registered twice")
        self._schemas[definition.name] = definition
        logger.debug(f"Registered schema '{definition.name}'")
        return definition

    def get(self, name: str, field_key: Optional[str] = None) -> SchemaDefinition:
        """
        Raises:
            SchemaReferenceError: if ``name`` is not registered
        """
        try:
            return self._schemas[name]
        except KeyError:
            raise SchemaReferenceError(name, field_key) from None

    def names(self) -> List[str]:
        return list(self._schemas)

    def __contains__(self, name: str) -> bool:
        return name in self._schemas
