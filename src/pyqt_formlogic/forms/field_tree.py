"""
Live field tree.

Projects a composed form onto the current value: array templates are
instantiated once per item index present in the value tree, and instances
whose item left the tree are dropped. Instances are reused by id across
rebuilds so their bindings survive unrelated edits.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from pyqt_formlogic.core.path_utils import get_path
from pyqt_formlogic.schema.schema_composer import ComposedField, ComposedForm

logger = logging.getLogger(__name__)


class FieldTree:
    """Ordered live fields of one form, parents before children."""

    def __init__(self, form: ComposedForm):
        self._form = form
        self._nodes: List[ComposedField] = []
        self._by_id: Dict[str, ComposedField] = {}

    @property
    def form(self) -> ComposedForm:
        return self._form

    @property
    def nodes(self) -> Tuple[ComposedField, ...]:
        return tuple(self._nodes)

    def get(self, field_id: str) -> Optional[ComposedField]:
        return self._by_id.get(field_id)

    def __contains__(self, field_id: str) -> bool:
        return field_id in self._by_id

    def __len__(self) -> int:
        return len(self._nodes)

    def rebuild(self, form_value: Any) -> Tuple[Set[str], Set[str]]:
        """Re-project onto ``form_value``. Returns ``(added_ids, removed_ids)``."""
        previous = self._by_id
        nodes: List[ComposedField] = []
        for root in self._form.roots:
            self._walk(root, form_value, previous, nodes)
        self._nodes = nodes
        self._by_id = {node.field_id: node for node in nodes}

        added = set(self._by_id) - set(previous)
        removed = set(previous) - set(self._by_id)
        if added or removed:
            logger.debug(f"Field tree rebuilt: +{len(added)} -{len(removed)} ({len(nodes)} fields)")
        return added, removed

    def _walk(self, node: ComposedField, form_value: Any, previous: Dict[str, ComposedField],
              out: List[ComposedField]) -> None:
        node = previous.get(node.field_id, node)
        out.append(node)
        if not node.is_array:
            for child in node.children:
                self._walk(child, form_value, previous, out)
            return
        items = get_path(form_value, node.value_path)
        count = len(items) if isinstance(items, list) else 0
        for index in range(count):
            for template in node.children:
                self._walk(template.instantiate(index), form_value, previous, out)
