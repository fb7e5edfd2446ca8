"""
Schema composer.

Turns static field definitions into one executable rule set per field. For
every field, in this order:
    1. shorthand validators (required, email, min, max, minLength, maxLength, pattern)
    2. explicit ``validators``
    3. referenced ``schemas`` (recursively; cycles and unknown names are fatal)
    4. ``logic`` rules

Container rules: ``page`` and ``row`` flatten their children onto the parent
path, ``group`` nests them under its own key, ``array`` composes its children
once as a template under ``<array>.$`` that is instantiated per item index.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from pyqt_formlogic.core.path_utils import join_path, substitute_index
from pyqt_formlogic.exceptions import ExpressionError, FormConfigurationError, SchemaCycleError
from pyqt_formlogic.expressions import compile_expression
from pyqt_formlogic.models.conditions import (
    AndCondition, Condition, JavaScriptCondition, contains_form_state, iter_conditions,
)
from pyqt_formlogic.models.field_def import ARRAY, PAGE, FieldDef
from pyqt_formlogic.models.logic import ALWAYS, DerivationRule, LogicRule, StateRule
from pyqt_formlogic.models.schema import SchemaApplication
from pyqt_formlogic.models.validator import ValidatorEntry, ValidatorKind, lower_shorthand
from pyqt_formlogic.schema.schema_registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComposedField:
    """A field with its merged rule set, positioned in the field tree.

    Inside array templates, paths contain ``$`` placeholders until the field
    is instantiated for a concrete item index.
    """
    field_id: str
    definition: FieldDef
    value_path: Optional[str]
    parent_id: Optional[str] = None
    ancestor_ids: Tuple[str, ...] = ()
    page_index: Optional[int] = None
    item_path: Optional[str] = None
    indices: Tuple[int, ...] = ()
    validators: Tuple[ValidatorEntry, ...] = ()
    state_rules: Tuple[StateRule, ...] = ()
    derivations: Tuple[DerivationRule, ...] = ()
    children: Tuple["ComposedField", ...] = field(default=(), repr=False)

    @property
    def key(self) -> str:
        return self.definition.key

    @property
    def type(self) -> str:
        return self.definition.type

    @property
    def is_array(self) -> bool:
        return self.definition.type == ARRAY

    @property
    def is_button(self) -> bool:
        return self.definition.is_button

    def instantiate(self, index: int) -> "ComposedField":
        """Copy of this template subtree with the first ``$`` replaced by ``index``."""
        def sub(path: Optional[str]) -> Optional[str]:
            return substitute_index(path, index) if path is not None else None

        return replace(
            self,
            field_id=sub(self.field_id),
            value_path=sub(self.value_path),
            parent_id=sub(self.parent_id),
            ancestor_ids=tuple(sub(a) for a in self.ancestor_ids),
            item_path=sub(self.item_path),
            indices=self.indices + (index,),
            children=tuple(child.instantiate(index) for child in self.children),
        )


@dataclass(frozen=True)
class ComposedForm:
    roots: Tuple[ComposedField, ...]
    page_ids: Tuple[str, ...] = ()

    def iter_static(self):
        """All composed fields outside array templates, parents first."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            if not node.is_array:
                stack.extend(reversed(node.children))


class SchemaComposer:
    """
    Composes field definitions against a schema registry.

    Examples:
        composer = SchemaComposer(SchemaRegistry(schema_configs))
        form = composer.compose([FieldDef.from_config(c) for c in field_configs])
    """

    def __init__(self, registry: Optional[SchemaRegistry] = None):
        self._registry = registry or SchemaRegistry()

    def compose(self, fields: Sequence[FieldDef]) -> ComposedForm:
        pages: List[str] = []
        roots = self._compose_children(fields, value_prefix=None, parent_id=None, ancestors=(),
                                       page_index=None, item_path=None, pages=pages, top_level=True)
        if pages and any(r.definition.type != PAGE for r in roots):
            raise FormConfigurationError("Paged forms must contain only page fields at the top level")
        _check_unique_ids(roots)
        return ComposedForm(tuple(roots), tuple(pages))

    def _compose_children(self, fields, value_prefix, parent_id, ancestors, page_index,
                          item_path, pages, top_level=False) -> List[ComposedField]:
        return [
            self._compose_field(definition, value_prefix, parent_id, ancestors, page_index, item_path, pages, top_level)
            for definition in fields
        ]

    def _compose_field(self, definition: FieldDef, value_prefix, parent_id, ancestors,
                       page_index, item_path, pages, top_level) -> ComposedField:
        if definition.type == PAGE:
            if not top_level:
                raise FormConfigurationError(f"Page '{definition.key}' must be a top-level field")
            page_index = len(pages)

        value_path = join_path(value_prefix, definition.key) if definition.has_value else None
        field_id = value_path or join_path(value_prefix, definition.key)
        if definition.type == PAGE:
            pages.append(field_id)

        validators, logic = self._compose_rules(definition)
        state_rules = tuple(r for r in logic if isinstance(r, StateRule))
        derivations = tuple(r for r in logic if isinstance(r, DerivationRule))
        self._check_rules(definition, field_id, state_rules, derivations)

        children: Tuple[ComposedField, ...] = ()
        if definition.fields:
            child_ancestors = ancestors + (field_id,)
            if definition.is_flattening:
                child_prefix, child_item = value_prefix, item_path
            elif definition.type == ARRAY:
                child_prefix = child_item = join_path(value_path, "$")
            else:
                child_prefix, child_item = value_path, item_path
            children = tuple(self._compose_children(
                definition.fields, child_prefix, field_id, child_ancestors, page_index, child_item, pages,
            ))

        return ComposedField(
            field_id=field_id,
            definition=definition,
            value_path=value_path,
            parent_id=parent_id,
            ancestor_ids=ancestors,
            page_index=page_index,
            item_path=item_path,
            validators=validators,
            state_rules=state_rules,
            derivations=derivations,
            children=children,
        )

    # ========== RULE MERGING ==========

    def _compose_rules(self, definition: FieldDef) -> Tuple[Tuple[ValidatorEntry, ...], Tuple[LogicRule, ...]]:
        validators: List[ValidatorEntry] = []
        if definition.required:
            validators.append(ValidatorEntry(ValidatorKind.REQUIRED))
        for key, value in definition.shorthand:
            entry = lower_shorthand(key, value)
            if entry is not None:
                validators.append(entry)
        validators.extend(definition.validators)

        schema_validators, schema_logic = self._expand_schemas(definition.schemas, (), definition.key)
        validators.extend(schema_validators)

        logic = list(schema_logic) + list(definition.logic)
        return tuple(validators), tuple(logic)

    def _expand_schemas(self, applications: Iterable[SchemaApplication], stack: Tuple[str, ...],
                        field_key: str) -> Tuple[List[ValidatorEntry], List[LogicRule]]:
        validators: List[ValidatorEntry] = []
        logic: List[LogicRule] = []
        for application in applications:
            if application.schema in stack:
                raise SchemaCycleError(stack + (application.schema,))
            definition = self._registry.get(application.schema, field_key)
            nested_validators, nested_logic = self._expand_schemas(
                definition.sub_schemas, stack + (application.schema,), field_key,
            )
            for entry in list(definition.validators) + nested_validators:
                validators.append(entry.gated_by(application.condition))
            for rule in list(definition.logic) + nested_logic:
                logic.append(_gate_rule(rule, application.condition))
        return validators, logic

    # ========== STATIC CHECKS ==========

    def _check_rules(self, definition: FieldDef, field_id: str, state_rules, derivations) -> None:
        for rule in state_rules:
            if contains_form_state(rule.condition) and not definition.is_button:
                raise FormConfigurationError(
                    f"Form state conditions are only allowed on buttons, found on '{field_id}' ({definition.type})"
                )
        for rule in derivations:
            if contains_form_state(rule.condition):
                raise FormConfigurationError(f"Derivation on '{field_id}' cannot depend on form state")
            if rule.target_field is None and not definition.has_value:
                raise FormConfigurationError(f"Derivation on '{field_id}' needs a targetField")
            if rule.expression is not None:
                _check_expression(rule.expression, field_id)
        for rule in state_rules:
            for condition in iter_conditions(rule.condition):
                if isinstance(condition, JavaScriptCondition):
                    _check_expression(condition.expression, field_id)


def _check_unique_ids(roots: Sequence[ComposedField]) -> None:
    # Flattened containers share their parent's namespace, so ids are checked form-wide
    seen: Set[str] = set()
    stack = list(roots)
    while stack:
        node = stack.pop()
        if node.field_id in seen:
            raise FormConfigurationError(f"Duplicate field '{node.field_id}'")
        seen.add(node.field_id)
        stack.extend(node.children)


def _check_expression(source: str, field_id: str) -> None:
    # Invalid expressions are reported here and evaluate as failures at runtime
    try:
        compile_expression(source)
    except ExpressionError as e:
        logger.error(f"Invalid expression on '{field_id}': {e}")


def _gate_rule(rule: LogicRule, condition: Optional[Condition]) -> LogicRule:
    if condition is None:
        return rule
    if isinstance(rule, StateRule):
        return replace(rule, condition=AndCondition((condition, rule.condition)))
    if rule.condition is ALWAYS:
        return replace(rule, condition=condition)
    return replace(rule, condition=AndCondition((condition, rule.condition)))
