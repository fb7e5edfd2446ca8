"""
Schema composition: merges shorthand validators, explicit validators,
reusable schemas and logic into one executable rule set per field.
"""

from .schema_registry import SchemaRegistry
from .schema_composer import ComposedField, ComposedForm, SchemaComposer
from .validators import ValidationService, is_empty

__all__ = [
    "SchemaRegistry",
    "ComposedField",
    "ComposedForm",
    "SchemaComposer",
    "ValidationService",
    "is_empty",
]
