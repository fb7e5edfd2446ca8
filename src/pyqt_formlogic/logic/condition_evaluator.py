"""
Condition evaluation and dependency collection.

Both services dispatch on the condition class name (``_evaluate_AndCondition``,
``_collect_FieldValueCondition``...). Evaluation of every non-HTTP variant is
pure for a fixed context. Expression and custom-function failures never
escape: they are logged and the condition evaluates to False.
"""

import logging
import re
from typing import Any, Set

from pyqt_formlogic.core.path_utils import WILDCARD
from pyqt_formlogic.exceptions import ExpressionError
from pyqt_formlogic.expressions import compile_expression, compare, strict_equals, to_display_string, truthy
from pyqt_formlogic.logic.context import EvaluationContext
from pyqt_formlogic.logic.http_condition_resolver import http_dependencies
from pyqt_formlogic.models.conditions import (
    AndCondition, BooleanCondition, ComparisonOperator, Condition, CustomCondition,
    FieldValueCondition, FormStateCondition, FormStateKind, FormValueCondition,
    HttpCondition, JavaScriptCondition, OrCondition,
)
from pyqt_formlogic.services.type_dispatch import TypeDispatchServiceABC

logger = logging.getLogger(__name__)

_ORDERING = {
    ComparisonOperator.GREATER: ">",
    ComparisonOperator.LESS: "<",
    ComparisonOperator.GREATER_OR_EQUAL: ">=",
    ComparisonOperator.LESS_OR_EQUAL: "<=",
}


def compare_values(actual: Any, operator: ComparisonOperator, expected: Any) -> bool:
    """Apply a FieldValue operator. Never raises."""
    if operator is ComparisonOperator.EQUALS:
        return strict_equals(actual, expected)
    if operator is ComparisonOperator.NOT_EQUALS:
        return not strict_equals(actual, expected)
    if operator in _ORDERING:
        return compare(_ORDERING[operator], actual, expected, lexicographic=False)
    if operator is ComparisonOperator.CONTAINS and isinstance(actual, (list, tuple)):
        return any(strict_equals(item, expected) for item in actual)

    text = to_display_string(actual)
    needle = to_display_string(expected)
    if operator is ComparisonOperator.CONTAINS:
        return needle in text
    if operator is ComparisonOperator.STARTS_WITH:
        return text.startswith(needle)
    if operator is ComparisonOperator.ENDS_WITH:
        return text.endswith(needle)
    if operator is ComparisonOperator.MATCHES:
        try:
            return re.search(needle, text) is not None
        except re.error as e:
            logger.warning(f"Invalid 'matches' pattern {needle!r}: {e}")
            return False
    return False


class ConditionEvaluator(TypeDispatchServiceABC):
    """
    Evaluates condition trees against an EvaluationContext.

    Examples:
        evaluator = ConditionEvaluator()
        hidden = evaluator.evaluate(parse_condition({...}), context)
    """

    def _get_handler_prefix(self) -> str:
        return '_evaluate_'

    def evaluate(self, condition: Condition, context: EvaluationContext) -> bool:
        try:
            return bool(self.dispatch(condition, context))
        except ExpressionError as e:
            logger.warning(f"Condition on '{context.owner_id}' failed, treating as false: {e}")
            return False

    def _evaluate_BooleanCondition(self, condition: BooleanCondition, context: EvaluationContext) -> bool:
        return condition.value

    def _evaluate_FieldValueCondition(self, condition: FieldValueCondition, context: EvaluationContext) -> bool:
        return compare_values(context.read(condition.field_path), condition.operator, condition.value)

    def _evaluate_FormValueCondition(self, condition: FormValueCondition, context: EvaluationContext) -> bool:
        return compare_values(context.form_value, condition.operator, condition.value)

    def _evaluate_JavaScriptCondition(self, condition: JavaScriptCondition, context: EvaluationContext) -> bool:
        compiled = compile_expression(condition.expression)
        return truthy(compiled.evaluate(context.scope(), context.functions))

    def _evaluate_AndCondition(self, condition: AndCondition, context: EvaluationContext) -> bool:
        return all(self.evaluate(c, context) for c in condition.conditions)

    def _evaluate_OrCondition(self, condition: OrCondition, context: EvaluationContext) -> bool:
        return any(self.evaluate(c, context) for c in condition.conditions)

    def _evaluate_FormStateCondition(self, condition: FormStateCondition, context: EvaluationContext) -> bool:
        status = context.form_status
        if condition.kind is FormStateKind.FORM_INVALID:
            return status.invalid
        if condition.kind is FormStateKind.FORM_SUBMITTING:
            return status.submitting
        return status.page_invalid(context.page_index)

    def _evaluate_HttpCondition(self, condition: HttpCondition, context: EvaluationContext) -> bool:
        if context.http is None:
            logger.error(f"HTTP condition on '{context.owner_id}' evaluated without a resolver")
            return False
        return truthy(context.http.resolve_condition(condition, context))

    def _evaluate_CustomCondition(self, condition: CustomCondition, context: EvaluationContext) -> bool:
        func = context.functions.get(condition.function_name)
        if func is None:
            logger.warning(f"Custom function '{condition.function_name}' is not registered")
            return False
        try:
            return truthy(func(context))
        except Exception as e:
            logger.warning(f"Custom function '{condition.function_name}' raised on '{context.owner_id}': {e}")
            return False


class ConditionDependencyService(TypeDispatchServiceABC):
    """
    Statically lists the form paths a condition reads.

    FieldValue conditions and parsed expressions yield precise paths; whole-form
    reads and custom functions yield the wildcard ``*``.
    """

    def _get_handler_prefix(self) -> str:
        return '_collect_'

    def collect(self, condition: Condition, context: EvaluationContext) -> Set[str]:
        return set(self.dispatch(condition, context))

    def _collect_BooleanCondition(self, condition, context) -> Set[str]:
        return set()

    def _collect_FieldValueCondition(self, condition: FieldValueCondition, context) -> Set[str]:
        return {context.resolve_path(condition.field_path)}

    def _collect_FormValueCondition(self, condition, context) -> Set[str]:
        return {WILDCARD}

    def _collect_JavaScriptCondition(self, condition: JavaScriptCondition, context) -> Set[str]:
        try:
            compiled = compile_expression(condition.expression)
        except ExpressionError as e:
            logger.error(f"Invalid expression on '{context.owner_id}': {e}")
            return set()
        return set(compiled.dependencies(context.field_path, context.item_path))

    def _collect_AndCondition(self, condition: AndCondition, context) -> Set[str]:
        return set().union(*(self.collect(c, context) for c in condition.conditions))

    def _collect_OrCondition(self, condition: OrCondition, context) -> Set[str]:
        return set().union(*(self.collect(c, context) for c in condition.conditions))

    def _collect_FormStateCondition(self, condition, context) -> Set[str]:
        # Re-evaluated on form status changes, not value changes
        return set()

    def _collect_HttpCondition(self, condition: HttpCondition, context) -> Set[str]:
        return http_dependencies(condition.http, context)

    def _collect_CustomCondition(self, condition, context) -> Set[str]:
        return {WILDCARD}
