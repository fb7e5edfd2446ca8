"""
Value exclusion service.

Strips the values of hidden, disabled or readonly fields from the submission
payload. A container's flags apply to everything below it. Whether a flag
excludes a value is resolved per setting with precedence
field > form > global; ``None`` at a tier defers to the next one.
"""

import copy
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from pyqt_formlogic.core.path_utils import delete_path
from pyqt_formlogic.models.state import FieldRuntimeState, ValueExclusionConfig
from pyqt_formlogic.protocols.form_config import get_form_logic_config

logger = logging.getLogger(__name__)

_SETTINGS = (
    ("hidden", "exclude_value_if_hidden"),
    ("disabled", "exclude_value_if_disabled"),
    ("readonly", "exclude_value_if_readonly"),
)


class ValueExclusionService:
    """
    Decides which field values the submission payload leaves out.

    Examples:
        service = ValueExclusionService(form_tier=options.value_exclusion)
        payload = service.submission_value(form_value, tree.nodes, states)
    """

    def __init__(self, form_tier: Optional[ValueExclusionConfig] = None):
        self._form_tier = form_tier or ValueExclusionConfig()

    def resolve(self, setting: str, field_tier: Optional[ValueExclusionConfig] = None) -> bool:
        for tier in (field_tier, self._form_tier):
            if tier is not None and getattr(tier, setting) is not None:
                return getattr(tier, setting)
        return getattr(get_form_logic_config(), setting)

    def effective_state(self, node, states: Mapping[str, FieldRuntimeState]) -> FieldRuntimeState:
        """The node's own flags ORed with the flags of its ancestor containers."""
        flags = dict(states.get(node.field_id, FieldRuntimeState()).as_dict())
        for ancestor_id in node.ancestor_ids:
            ancestor = states.get(ancestor_id)
            if ancestor is None:
                continue
            for name, _ in _SETTINGS:
                flags[name] = flags[name] or getattr(ancestor, name)
        return FieldRuntimeState(**flags)

    def is_excluded(self, node, states: Mapping[str, FieldRuntimeState]) -> bool:
        state = self.effective_state(node, states)
        field_tier = node.definition.value_exclusion
        return any(getattr(state, flag) and self.resolve(setting, field_tier) for flag, setting in _SETTINGS)

    def submission_value(self, form_value: Mapping[str, Any], nodes: Iterable,
                         states: Mapping[str, FieldRuntimeState]) -> Dict[str, Any]:
        """Deep copy of ``form_value`` without the values of excluded fields."""
        result = copy.deepcopy(dict(form_value))
        for node in nodes:
            if node.value_path is None or node.is_button:
                continue
            if self.is_excluded(node, states) and delete_path(result, node.value_path):
                logger.debug(f"Excluded '{node.value_path}' from submission")
        return result
