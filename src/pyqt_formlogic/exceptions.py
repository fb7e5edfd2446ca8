"""Exception hierarchy for pyqt-formlogic.

Configuration errors are raised while a form is being built (fail-loud, before
the form becomes interactive). Expression errors are raised by the evaluator and
caught at the field level by the logic and derivation layers.
"""

from typing import Optional, Sequence


class FormLogicError(Exception):
    """Base class for all pyqt-formlogic errors."""


class FormConfigurationError(FormLogicError):
    """Raised when static form configuration is invalid."""


class SchemaReferenceError(FormConfigurationError):
    """Raised when a field references a schema that is not registered."""

    def __init__(self, schema_name: str, field_key: Optional[str] = None):
        self.schema_name = schema_name
        self.field_key = field_key
        where = f" (field '{field_key}')" if field_key else ""
        super().__init__(f"Unknown schema reference '{schema_name}'{where}")


class SchemaCycleError(FormConfigurationError):
    """Raised when schema references form a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Schema reference cycle: {' -> '.join(self.cycle)}")


class DerivationCycleError(FormConfigurationError):
    """Raised when a derivation (transitively) reads its own target field."""

    def __init__(self, cycle: Sequence[str], message: Optional[str] = None):
        self.cycle = list(cycle)
        super().__init__(message or f"Cyclic derivation: {' -> '.join(self.cycle)}")


class ExpressionError(FormLogicError):
    """Base class for expression compilation and evaluation errors."""

    def __init__(self, message: str, expression: str = ""):
        self.expression = expression
        super().__init__(message)


class ExpressionSyntaxError(ExpressionError):
    """Raised when an expression cannot be tokenized or parsed."""

    def __init__(self, message: str, position: int, expression: str = ""):
        self.position = position
        super().__init__(f"{message} at position {position} in {expression!r}", expression)


class ExpressionEvaluationError(ExpressionError):
    """Raised when a compiled expression fails at evaluation time."""
