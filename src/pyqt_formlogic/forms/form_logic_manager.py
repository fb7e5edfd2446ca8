"""
Form logic manager.

One instance per live form. Owns the value store, the composed rule set, the
per-form HTTP resolver (request cache and debounce timers) and the runtime
state every rendering layer reads: field flags, validation errors and form
status. Every change to the value tree is settled by the field change
dispatcher in a single pass.
"""

import copy
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from PyQt6.QtCore import QObject, pyqtSignal

from pyqt_formlogic.core.path_utils import normalize_path, set_path
from pyqt_formlogic.core.performance_monitor import timer
from pyqt_formlogic.exceptions import FormConfigurationError
from pyqt_formlogic.forms.field_tree import FieldTree
from pyqt_formlogic.forms.form_value_store import FormValueStore
from pyqt_formlogic.logic.condition_evaluator import ConditionDependencyService, ConditionEvaluator
from pyqt_formlogic.logic.context import EvaluationContext
from pyqt_formlogic.logic.derivation_engine import DerivationEngine
from pyqt_formlogic.logic.http_condition_resolver import HTTP_TOKEN_PREFIX, HttpConditionResolver, http_token
from pyqt_formlogic.logic.http_transport import ThreadedRequestRunner
from pyqt_formlogic.logic.logic_applier import LogicApplier
from pyqt_formlogic.models.field_def import FieldDef
from pyqt_formlogic.models.http import UNSET
from pyqt_formlogic.models.state import FieldRuntimeState, FormOptions, FormStatus
from pyqt_formlogic.protocols.function_registry import FunctionRegistry, get_function_registry
from pyqt_formlogic.protocols.request_runner import RequestRunner
from pyqt_formlogic.schema.schema_composer import ComposedField, SchemaComposer
from pyqt_formlogic.schema.schema_registry import SchemaRegistry
from pyqt_formlogic.schema.validators import ValidationService
from pyqt_formlogic.services.field_change_dispatcher import FieldChangeDispatcher, FieldChangeEvent
from pyqt_formlogic.services.flag_context_manager import FlagContextManager
from pyqt_formlogic.services.value_exclusion_service import ValueExclusionService

logger = logging.getLogger(__name__)


class FormLogicManager(QObject):
    """
    Reactive logic engine for one form instance.

    Examples:
        manager = FormLogicManager(
            [{"key": "firstName"}, {"key": "lastName"},
             {"key": "fullName", "derivation": "formValue.firstName + ' ' + formValue.lastName"}],
            initial_value={"firstName": "John", "lastName": "Doe"},
        )
        manager.value("fullName")   # "John Doe"

    Signals:
        field_state_changed(str, object): field id, new FieldRuntimeState
        value_changed(str, object): changed path, new value
        form_state_changed(object): new FormStatus
    """

    field_state_changed = pyqtSignal(str, object)
    value_changed = pyqtSignal(str, object)
    form_state_changed = pyqtSignal(object)

    def __init__(
        self,
        fields: Iterable[Union[FieldDef, Mapping[str, Any]]],
        *,
        initial_value: Optional[Mapping[str, Any]] = None,
        schemas: Optional[Union[SchemaRegistry, Iterable[Any]]] = None,
        custom_functions: Optional[Mapping[str, Callable]] = None,
        options: Optional[FormOptions] = None,
        request_runner: Optional[RequestRunner] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._options = options or FormOptions()

        with timer("FormLogicManager.__init__", threshold_ms=5.0):
            # STEP 1: Compose static configuration (fails loud before the form is live)
            registry = schemas if isinstance(schemas, SchemaRegistry) else SchemaRegistry(schemas)
            definitions = [FieldDef.from_config(f) for f in fields]
            self._form = SchemaComposer(registry).compose(definitions)
            self._tree = FieldTree(self._form)

            # STEP 2: Engines
            self._functions = FunctionRegistry(custom_functions, parent=get_function_registry())
            self._evaluator = ConditionEvaluator()
            dependency_service = ConditionDependencyService()
            self._applier = LogicApplier(self._evaluator, dependency_service)
            self._derivations = DerivationEngine(self._evaluator, dependency_service, self._on_deferred_derivation)
            self._validation = ValidationService(self._evaluator)
            self._exclusion = ValueExclusionService(self._options.value_exclusion)
            self._owns_runner = request_runner is None
            self._runner = request_runner or ThreadedRequestRunner()
            self._resolver = HttpConditionResolver(self._runner, self._on_http_resolved)

            # STEP 3: Runtime state
            self._states: Dict[str, FieldRuntimeState] = {}
            self._errors: Dict[str, Dict[str, str]] = {}
            self._state_deps: Dict[str, Tuple[frozenset, bool]] = {}
            self._current_page = self._options.current_page
            self._submitting = False
            self._status = FormStatus(current_page=self._current_page)
            self._queued_paths = set()
            self._batch_paths = set()
            self._disposed = False

            # STEP 4: Flags
            self._initial_load_complete, self._in_batch, self._dispatching = False, False, False

            # STEP 5: Value store with defaults, then the initial settle pass
            self._store = FormValueStore(initial_value)
            with FlagContextManager.initial_load_context(self):
                self._fill_defaults()
                FieldChangeDispatcher.instance().dispatch(FieldChangeEvent(self, initial=True))
            self._store.values_changed.connect(self._on_values_changed)

        logger.debug(f"FormLogicManager ready: {len(self._tree)} live field(s), {len(self._form.page_ids)} page(s)")

    # ========== VALUE ACCESS ==========

    def value(self, path: Optional[str] = None) -> Any:
        """Snapshot of the value at ``path`` (whole form when omitted)."""
        return copy.deepcopy(self._store.get(path))

    def snapshot(self) -> Dict[str, Any]:
        return self._store.snapshot()

    def set_value(self, path: str, value: Any) -> bool:
        """Write one value as the user and settle. Returns False when the value was unchanged."""
        self._derivations.mark_user_override(path)
        return self._store.set(path, value)

    def patch_value(self, values: Mapping[str, Any]) -> None:
        """Write several paths and settle them in one pass."""
        for path in values:
            self._derivations.mark_user_override(path)
        with self.batch():
            self._store.patch(values)

    @contextmanager
    def batch(self):
        """Coalesce every write inside the block into one settle pass on exit."""
        if self._in_batch:
            yield
            return
        with FlagContextManager.batch_context(self):
            yield
        paths, self._batch_paths = frozenset(self._batch_paths), set()
        if paths:
            self._dispatch(paths)

    def add_array_item(self, path: str, item: Any = None) -> int:
        """Append an item (template defaults when ``item`` is None). Returns its index."""
        path = normalize_path(path)
        node = self._array_node(path)
        items = list(self._store.get(path) or [])
        items.append(copy.deepcopy(item) if item is not None else self._template_defaults(node))
        self._store.set(path, items)
        return len(items) - 1

    def remove_array_item(self, path: str, index: int) -> Any:
        """Remove and return the item at ``index``.

        Raises:
            IndexError: if there is no item at ``index``
        """
        path = normalize_path(path)
        self._array_node(path)
        items = list(self._store.get(path) or [])
        removed = items.pop(index)
        # Item indices shift, so user edits below the array no longer line up
        self._derivations.clear_user_overrides(path)
        self._store.set(path, items)
        return removed

    def submission_value(self) -> Dict[str, Any]:
        """Form value without hidden/disabled/readonly values, per exclusion settings."""
        return self._exclusion.submission_value(self._store.value, self._tree.nodes, self._states)

    # ========== RUNTIME STATE ==========

    @property
    def field_ids(self) -> Tuple[str, ...]:
        return tuple(node.field_id for node in self._tree.nodes)

    def field_state(self, field_id: str) -> FieldRuntimeState:
        return self._states[normalize_path(field_id)]

    def field_errors(self, field_id: str) -> Dict[str, str]:
        return dict(self._errors.get(normalize_path(field_id), {}))

    def derivation_error(self, path: str) -> Optional[str]:
        """Last derivation failure for a target path, if its current value is stale."""
        return self._derivations.errors_for(normalize_path(path))

    @property
    def form_status(self) -> FormStatus:
        return self._status

    @property
    def is_valid(self) -> bool:
        return self._status.valid

    def is_page_valid(self, index: int) -> bool:
        return not self._status.page_invalid(index)

    @property
    def current_page(self) -> int:
        return self._current_page

    @current_page.setter
    def current_page(self, index: int) -> None:
        if not self._form.page_ids:
            raise FormConfigurationError("Form has no pages")
        if not 0 <= index < len(self._form.page_ids):
            raise IndexError(f"Page index {index} out of range")
        if index != self._current_page:
            self._current_page = index
            self._dispatch(frozenset())

    @property
    def submitting(self) -> bool:
        return self._submitting

    def set_submitting(self, submitting: bool) -> None:
        if submitting != self._submitting:
            self._submitting = submitting
            self._dispatch(frozenset())

    # ========== HTTP LIFECYCLE ==========

    @property
    def request_cache(self):
        return self._resolver.cache

    def has_pending_requests(self) -> bool:
        return self._resolver.has_pending_work()

    def flush_pending_requests(self) -> int:
        """Send every debounced request now instead of waiting for its window."""
        return self._resolver.flush()

    # ========== DEFERRED DERIVATIONS ==========

    def has_pending_derivations(self) -> bool:
        """True while a debounced or async derivation has not delivered yet."""
        return self._derivations.has_pending_work()

    def flush_pending_derivations(self) -> int:
        """Run every debounced derivation now instead of waiting for its window."""
        return self._derivations.flush()

    def is_user_override(self, path: str) -> bool:
        """Whether the user has written ``path`` (or a path above or below it)."""
        return self._derivations.is_user_override(path)

    def clear_user_overrides(self, path: Optional[str] = None) -> None:
        """Let stopOnUserOverride derivations write again at or below ``path`` (everywhere when omitted)."""
        self._derivations.clear_user_overrides(path)

    def dispose(self) -> None:
        """Cancel timers and in-flight requests; the manager is inert afterwards."""
        if self._disposed:
            return
        self._disposed = True
        self._store.values_changed.disconnect(self._on_values_changed)
        self._resolver.dispose()
        self._derivations.dispose()
        if self._owns_runner:
            self._runner.dispose()
        logger.debug("FormLogicManager disposed")

    # ========== INTERNALS (used by FieldChangeDispatcher) ==========

    def _dispatch(self, paths: frozenset) -> None:
        if self._disposed:
            return
        FieldChangeDispatcher.instance().dispatch(FieldChangeEvent(self, paths))

    def _on_values_changed(self, paths: frozenset) -> None:
        if self._in_batch:
            self._batch_paths |= paths
            return
        self._dispatch(paths)

    def _on_http_resolved(self, owner_id: str) -> None:
        self._dispatch(frozenset({http_token(owner_id)}))

    def _on_deferred_derivation(self, target: str, value: Any) -> None:
        if not self._disposed:
            self._store.set(target, value)

    def _make_context(self, node: ComposedField) -> EvaluationContext:
        return EvaluationContext(
            form_value=self._store.value,
            field_path=node.value_path,
            owner_id=node.field_id,
            item_path=node.item_path,
            indices=node.indices,
            page_index=node.page_index,
            form_status=self._status,
            functions=self._functions.get_all_functions(),
            external_data=self._options.external_data,
            http=self._resolver,
        )

    def _state_dependencies(self, node: ComposedField) -> Tuple[frozenset, bool]:
        cached = self._state_deps.get(node.field_id)
        if cached is None:
            cached = self._applier.dependencies(node, self._make_context(node))
            self._state_deps[node.field_id] = cached
        return cached

    def _update_state(self, node: ComposedField) -> bool:
        state = self._applier.compute_state(node, self._make_context(node))
        previous = self._states.get(node.field_id)
        self._states[node.field_id] = state
        return state != previous

    def _update_errors(self, node: ComposedField) -> None:
        if node.value_path is None or node.is_button:
            return
        # Flags alone do not skip validation; only values left out of the submission do
        state = self._exclusion.effective_state(node, self._states)
        if self._exclusion.is_excluded(node, self._states) or not (node.validators or state.required):
            self._errors.pop(node.field_id, None)
            return
        errors = self._validation.validate(node.validators, self._make_context(node), required=state.required)
        if errors:
            self._errors[node.field_id] = errors
        else:
            self._errors.pop(node.field_id, None)

    def _compute_status(self) -> FormStatus:
        invalid_pages = set()
        for field_id in self._errors:
            node = self._tree.get(field_id)
            if node is not None and node.page_index is not None:
                invalid_pages.add(node.page_index)
        return FormStatus(
            valid=not self._errors,
            submitting=self._submitting,
            current_page=self._current_page,
            page_validity=tuple(i not in invalid_pages for i in range(len(self._form.page_ids))),
        )

    def _forget(self, field_id: str) -> None:
        self._states.pop(field_id, None)
        self._errors.pop(field_id, None)
        self._state_deps.pop(field_id, None)
        self._resolver.release(field_id)

    @staticmethod
    def _is_token(path: str) -> bool:
        return path.startswith(HTTP_TOKEN_PREFIX)

    # ========== DEFAULTS ==========

    def _fill_defaults(self) -> None:
        defaults = [(n.value_path, n.definition.value) for n in self._form.iter_static()
                    if n.value_path and n.definition.value is not UNSET]
        self._store.fill_defaults(defaults)
        self._tree.rebuild(self._store.value)
        instance_defaults = [(n.value_path, n.definition.value) for n in self._tree.nodes
                             if n.indices and n.value_path and n.definition.value is not UNSET]
        self._store.fill_defaults(instance_defaults)

    def _array_node(self, path: str) -> ComposedField:
        node = self._tree.get(path)
        if node is None or not node.is_array:
            raise FormConfigurationError(f"'{path}' is not an array field")
        return node

    @staticmethod
    def _template_defaults(node: ComposedField) -> Dict[str, Any]:
        """Default item for an array from its template's configured values."""
        item: Dict[str, Any] = {}
        prefix = f"{node.value_path}.$."
        stack: List[ComposedField] = list(node.children)
        while stack:
            child = stack.pop()
            if child.value_path and child.definition.value is not UNSET:
                set_path(item, child.value_path[len(prefix):], copy.deepcopy(child.definition.value))
            if not child.is_array:
                stack.extend(child.children)
        return item
