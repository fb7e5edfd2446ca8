"""
Field Change Dispatcher.

Turns one triggering change into exactly one settle pass over a form:

    1. sync the live field tree (array items entering or leaving)
    2. run affected derivations in dependency order
    3. recompute state flags of affected non-button fields
    4. validate and recompute form/page validity
    5. recompute button flags when form status or their inputs changed
    6. emit value, field state and form state notifications

Changes arriving while a pass is running are queued and settled in a
follow-up pass on the same manager.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, List, Set

from pyqt_formlogic.core.path_utils import any_affected
from pyqt_formlogic.core.performance_monitor import timer
from pyqt_formlogic.services.flag_context_manager import EngineFlag, FlagContextManager

if TYPE_CHECKING:
    from pyqt_formlogic.forms.form_logic_manager import FormLogicManager

logger = logging.getLogger(__name__)

# Debug flag for verbose dispatcher logging
DEBUG_DISPATCHER = False


@dataclass(frozen=True)
class FieldChangeEvent:
    """Immutable event describing what changed."""
    source_manager: 'FormLogicManager'
    paths: FrozenSet[str] = field(default_factory=frozenset)
    initial: bool = False        # True for the pass that runs when the form is built


class FieldChangeDispatcher:
    """Singleton dispatcher for all field changes. Stateless."""

    _instance = None

    @classmethod
    def instance(cls) -> 'FieldChangeDispatcher':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def dispatch(self, event: FieldChangeEvent) -> None:
        """Settle ``event`` now, or queue it if its manager is mid-pass."""
        manager = event.source_manager

        if DEBUG_DISPATCHER:
            initial_tag = " [INITIAL]" if event.initial else ""
            logger.info(f"🚀 DISPATCH{initial_tag}: {sorted(event.paths)}")

        # Reentrancy guard
        if FlagContextManager.is_flag_set(manager, EngineFlag.DISPATCHING):
            if DEBUG_DISPATCHER:
                logger.info(f"  ⏳ Queued {sorted(event.paths)} (pass in progress)")
            manager._queued_paths |= event.paths
            return

        with FlagContextManager.manage_flags(manager, _dispatching=True):
            self._settle(manager, event)
            while manager._queued_paths:
                queued = frozenset(manager._queued_paths)
                manager._queued_paths = set()
                self._settle(manager, FieldChangeEvent(manager, queued))

    def _settle(self, manager: 'FormLogicManager', event: FieldChangeEvent) -> None:
        with timer("Settle pass", log_args=True, paths=len(event.paths), initial=event.initial):
            changed: Set[str] = set(event.paths)

            # 1. Field tree
            added, removed = manager._tree.rebuild(manager._store.value)
            for field_id in removed:
                manager._forget(field_id)
            if event.initial or added or removed:
                manager._derivations.build(manager._tree.nodes, manager._make_context)
                if DEBUG_DISPATCHER:
                    logger.info(f"  🌳 Tree synced: +{len(added)} -{len(removed)}")

            # 2. Derivations
            written = manager._derivations.run(
                changed, manager._store, manager._make_context, run_all=event.initial or bool(added),
            )
            changed.update(written)
            if DEBUG_DISPATCHER and written:
                logger.info(f"  🧮 Derived {written}")

            fresh = {node.field_id for node in manager._tree.nodes} if event.initial else added
            state_changes: List[str] = []

            # 3. Non-button state flags
            for node in manager._tree.nodes:
                if node.is_button:
                    continue
                deps, _ = manager._state_dependencies(node)
                if node.field_id in fresh or any_affected(changed, deps):
                    if manager._update_state(node):
                        state_changes.append(node.field_id)

            # 4. Validation and form status
            for node in manager._tree.nodes:
                manager._update_errors(node)
            status = manager._compute_status()
            status_changed = status != manager._status
            manager._status = status

            # 5. Button state flags
            for node in manager._tree.nodes:
                if not node.is_button:
                    continue
                deps, uses_form_state = manager._state_dependencies(node)
                if (node.field_id in fresh or (status_changed and uses_form_state)
                        or any_affected(changed, deps)):
                    if manager._update_state(node):
                        state_changes.append(node.field_id)

            # 6. Notifications
            if not event.initial:
                for path in sorted(p for p in changed if not manager._is_token(p)):
                    manager.value_changed.emit(path, manager._store.get(path))
            for field_id in state_changes:
                manager.field_state_changed.emit(field_id, manager._states[field_id])
            if status_changed:
                manager.form_state_changed.emit(status)

            if DEBUG_DISPATCHER:
                logger.info(f"  ✅ Settled: {len(state_changes)} state change(s), status_changed={status_changed}")
