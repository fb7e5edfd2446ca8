"""Validator execution.

Empty values (``None``, ``""``, ``[]``) pass every validator except
``required``. Each validator maps to a ``_check_<kind>`` method returning True
when the value is valid.
"""

import logging
import re
from typing import Any, Dict, Iterable, Optional

from pyqt_formlogic.exceptions import ExpressionError
from pyqt_formlogic.expressions import compile_expression, to_number, truthy
from pyqt_formlogic.logic.condition_evaluator import ConditionEvaluator
from pyqt_formlogic.logic.context import EvaluationContext
from pyqt_formlogic.models.validator import ValidatorEntry, ValidatorKind

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_MESSAGES = {
    ValidatorKind.REQUIRED: "This field is required",
    ValidatorKind.EMAIL: "Enter a valid email address",
    ValidatorKind.MIN: "Must be at least {value}",
    ValidatorKind.MAX: "Must be at most {value}",
    ValidatorKind.MIN_LENGTH: "Must be at least {value} characters",
    ValidatorKind.MAX_LENGTH: "Must be at most {value} characters",
    ValidatorKind.PATTERN: "Invalid format",
    ValidatorKind.CUSTOM: "Invalid value",
}

IMPLICIT_REQUIRED = ValidatorEntry(ValidatorKind.REQUIRED)


def is_empty(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, (list, dict)) and not value)


class ValidationService:
    """Runs a field's validators and returns ``{error_key: message}``."""

    def __init__(self, evaluator: ConditionEvaluator):
        self._evaluator = evaluator

    def validate(self, validators: Iterable[ValidatorEntry], context: EvaluationContext,
                 required: bool = False) -> Dict[str, str]:
        entries = list(validators)
        if required and not any(v.kind is ValidatorKind.REQUIRED for v in entries):
            entries.insert(0, IMPLICIT_REQUIRED)

        value = context.field_value
        errors: Dict[str, str] = {}
        for entry in entries:
            if entry.error_key in errors:
                continue
            if entry.when is not None and not self._evaluator.evaluate(entry.when, context):
                continue
            if entry.kind is not ValidatorKind.REQUIRED and is_empty(value):
                continue
            check = getattr(self, f"_check_{entry.kind.name.lower()}")
            if not check(value, entry, context):
                errors[entry.error_key] = self._message(entry)
        return errors

    @staticmethod
    def _message(entry: ValidatorEntry) -> str:
        if entry.message:
            return entry.message
        return DEFAULT_MESSAGES[entry.kind].format(value=entry.value)

    def _check_required(self, value, entry, context) -> bool:
        return not is_empty(value)

    def _check_email(self, value, entry, context) -> bool:
        return isinstance(value, str) and EMAIL_RE.match(value) is not None

    def _check_min(self, value, entry, context) -> bool:
        number, bound = to_number(value), to_number(entry.value)
        return number is None or bound is None or number >= bound

    def _check_max(self, value, entry, context) -> bool:
        number, bound = to_number(value), to_number(entry.value)
        return number is None or bound is None or number <= bound

    def _check_min_length(self, value, entry, context) -> bool:
        return not hasattr(value, "__len__") or len(value) >= int(entry.value)

    def _check_max_length(self, value, entry, context) -> bool:
        return not hasattr(value, "__len__") or len(value) <= int(entry.value)

    def _check_pattern(self, value, entry, context) -> bool:
        pattern = entry.value
        try:
            # String patterns are anchored to the whole value
            return re.fullmatch(pattern, str(value)) is not None
        except re.error as e:
            logger.error(f"Invalid validator pattern {pattern!r} on '{context.owner_id}': {e}")
            return True

    def _check_custom(self, value, entry, context) -> bool:
        try:
            compiled = compile_expression(entry.expression)
            return truthy(compiled.evaluate(context.scope(), context.functions))
        except ExpressionError as e:
            logger.warning(f"Custom validator on '{context.owner_id}' failed: {e}")
            return False
