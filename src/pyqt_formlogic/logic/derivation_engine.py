"""
Derivation engine.

Computes values from expressions, static values, custom functions or HTTP
responses and writes them to their target fields. Entries are ordered
topologically by reads and writes, so a derivation sees upstream values
written earlier in the same pass. A value is written only when it differs
from the current one.

Cycles between statically known paths are rejected when the engine is built.
Wildcard readers cannot be ordered; late writes that affect an earlier entry
trigger another iteration, bounded by ``max_derivation_iterations``.

Deferred entries (``trigger: debounced`` and async functions) never write
inside a pass. Each one owns a DebounceTimer; async functions then run on a
BackgroundTask, and only the result of the latest call for an entry is kept.
Their values reach the form through ``on_deferred_value``.

Entries with ``stopOnUserOverride`` stand down once the user has written
their target, until ``reEngageOnDependencyChange`` lifts the hold.
"""

import copy
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from pyqt_formlogic.core.background_task import BackgroundTaskManager
from pyqt_formlogic.core.debounce_timer import DebounceTimer
from pyqt_formlogic.core.path_utils import WILDCARD, any_affected, deep_equal, normalize_path, path_affects
from pyqt_formlogic.exceptions import DerivationCycleError, ExpressionError
from pyqt_formlogic.expressions import compile_expression
from pyqt_formlogic.logic.condition_evaluator import ConditionDependencyService, ConditionEvaluator
from pyqt_formlogic.logic.context import EvaluationContext
from pyqt_formlogic.logic.http_condition_resolver import HTTP_TOKEN_PREFIX, http_dependencies
from pyqt_formlogic.models.logic import DerivationRule
from pyqt_formlogic.protocols.form_config import get_form_logic_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DerivationEntry:
    """One derivation rule bound to a live field."""
    entry_id: str
    owner: Any
    rule: DerivationRule
    target_path: str
    dependencies: FrozenSet[str]

    @property
    def static_dependencies(self) -> Set[str]:
        """Dependencies that can be ordered: no wildcard, no HTTP tokens."""
        return {d for d in self.dependencies if d != WILDCARD and not d.startswith(HTTP_TOKEN_PREFIX)}

    @property
    def debounce_ms(self) -> int:
        if self.rule.debounce_ms is not None:
            return self.rule.debounce_ms
        config = get_form_logic_config()
        if self.rule.async_function_name is not None:
            return config.default_async_derivation_debounce_ms
        return config.default_derivation_debounce_ms

    def is_affected_by(self, changed: Iterable[str]) -> bool:
        """Whether ``changed`` touches a dependency, ignoring writes to the entry's own target."""
        relevant = {p for p in changed
                    if not p.startswith(HTTP_TOKEN_PREFIX) and not path_affects(p, self.target_path)}
        return any_affected(relevant, self.dependencies)


class DerivationEngine:
    """
    Runs the derivation rules of a form instance.

    Args:
        evaluator: Evaluates derivation guard conditions
        dependencies: Collects the paths a condition reads
        on_deferred_value: Receives ``(target_path, value)`` when a debounced
            or async derivation produces a value outside a settle pass

    Examples:
        engine = DerivationEngine(ConditionEvaluator(), ConditionDependencyService())
        engine.build(nodes, make_context)
        written = engine.run({"firstName"}, store, make_context)
    """

    def __init__(self, evaluator: ConditionEvaluator, dependencies: ConditionDependencyService,
                 on_deferred_value: Optional[Callable[[str, Any], None]] = None):
        self._evaluator = evaluator
        self._dependencies = dependencies
        self._on_deferred_value = on_deferred_value
        self._entries: List[DerivationEntry] = []
        self._by_id: Dict[str, DerivationEntry] = {}
        self._make_context: Optional[Callable[[Any], EvaluationContext]] = None
        self._timers: Dict[str, DebounceTimer] = {}
        self._deferred_changes: Dict[str, Set[str]] = {}
        self._async_calls: Dict[str, int] = {}
        self._tasks = BackgroundTaskManager()
        self._user_overrides: Set[str] = set()
        self._disposed = False
        self.errors: Dict[str, str] = {}

    @property
    def entries(self) -> Tuple[DerivationEntry, ...]:
        return tuple(self._entries)

    # ========== BUILD ==========

    def build(self, nodes: Iterable[Any], make_context: Callable[[Any], EvaluationContext]) -> None:
        """Bind every derivation of ``nodes`` and order them.

        Raises:
            DerivationCycleError: if a derivation reads its own target, directly
                or through other derivations
        """
        entries = []
        for node in nodes:
            if not node.derivations:
                continue
            context = make_context(node)
            for position, rule in enumerate(node.derivations):
                target = context.resolve_path(rule.target_field) if rule.target_field else node.value_path
                entries.append(DerivationEntry(
                    entry_id=f"{node.field_id}#{position}",
                    owner=node,
                    rule=rule,
                    target_path=target,
                    dependencies=frozenset(self._collect(rule, context)),
                ))
                if rule.re_engage_on_dependency_change and not rule.stop_on_user_override:
                    logger.warning(f"Derivation '{rule.label}' on '{node.field_id}' sets "
                                   f"reEngageOnDependencyChange without stopOnUserOverride; it has no effect")
        self._entries = self._order(entries)
        self._by_id = {e.entry_id: e for e in self._entries}
        self._make_context = make_context
        for entry_id in [i for i in self._timers if i not in self._by_id]:
            self._timers.pop(entry_id).dispose()
            self._deferred_changes.pop(entry_id, None)
            self._async_calls.pop(entry_id, None)
        live_targets = {e.target_path for e in self._entries}
        self.errors = {k: v for k, v in self.errors.items() if k in live_targets}
        logger.debug(f"Built {len(self._entries)} derivation(s)")

    def _collect(self, rule: DerivationRule, context: EvaluationContext) -> Set[str]:
        if rule.depends_on is not None:
            deps = {context.resolve_path(p) for p in rule.depends_on}
            if rule.http is not None:
                deps |= http_dependencies(rule.http, context)
            return deps

        deps = self._dependencies.collect(rule.condition, context)
        if rule.expression is not None:
            try:
                compiled = compile_expression(rule.expression)
                deps |= compiled.dependencies(context.field_path, context.item_path)
            except ExpressionError as e:
                logger.error(f"Invalid derivation expression on '{context.owner_id}': {e}")
        elif rule.function_name is not None or rule.async_function_name is not None:
            deps.add(WILDCARD)
        elif rule.http is not None:
            deps |= http_dependencies(rule.http, context)
        return deps

    @staticmethod
    def _order(entries: List[DerivationEntry]) -> List[DerivationEntry]:
        """Kahn's algorithm; ties keep declaration order."""
        readers: Dict[int, List[int]] = {i: [] for i in range(len(entries))}
        indegree = [0] * len(entries)
        for i, writer in enumerate(entries):
            for j, reader in enumerate(entries):
                if any(path_affects(writer.target_path, d) for d in reader.static_dependencies):
                    if i == j:
                        raise DerivationCycleError(
                            [writer.target_path, writer.target_path],
                            f"Derivation '{writer.rule.label}' on '{writer.owner.field_id}' "
                            f"reads its own target '{writer.target_path}'",
                        )
                    readers[i].append(j)
                    indegree[j] += 1

        ready = [i for i in range(len(entries)) if indegree[i] == 0]
        ordered: List[int] = []
        while ready:
            ready.sort()
            current = ready.pop(0)
            ordered.append(current)
            for j in readers[current]:
                indegree[j] -= 1
                if indegree[j] == 0:
                    ready.append(j)

        if len(ordered) != len(entries):
            stuck = [entries[i].target_path for i in range(len(entries)) if i not in set(ordered)]
            raise DerivationCycleError(stuck + stuck[:1])
        return [entries[i] for i in ordered]

    # ========== RUN ==========

    def run(self, changed: Iterable[str], store, make_context: Callable[[Any], EvaluationContext],
            run_all: bool = False) -> List[str]:
        """Re-run derivations affected by ``changed``; returns written target paths.

        Deferred entries are only scheduled here; they never appear in the result.

        Args:
            changed: Paths changed by the triggering event
            store: Value store with ``get(path)`` and ``set(path, value, notify=False)``
            make_context: Builds the evaluation context for an owner field
            run_all: Run every derivation regardless of dependencies (initial load)

        Raises:
            DerivationCycleError: if writes keep feeding back after
                ``max_derivation_iterations`` in strict mode
        """
        config = get_form_logic_config()
        written: List[str] = []
        pending: Set[str] = set(changed)

        for _ in range(config.max_derivation_iterations):
            changed_now = set(pending)
            late: Set[str] = set()
            for position, entry in enumerate(self._entries):
                if entry.rule.is_deferred:
                    if run_all or entry.is_affected_by(changed_now):
                        self._schedule(entry, changed_now)
                    continue
                if not run_all and not any_affected(changed_now, entry.dependencies):
                    continue
                if self._held_by_user(entry, changed_now):
                    continue
                if not self._run_entry(entry, store, make_context):
                    continue
                target = entry.target_path
                changed_now.add(target)
                written.append(target)
                if any(any_affected({target}, earlier.dependencies) for earlier in self._entries[:position]):
                    late.add(target)
            run_all = False
            if not late:
                return written
            pending = late

        targets = sorted(set(written))
        message = (f"Derivations did not settle after {config.max_derivation_iterations} "
                   f"iterations: {', '.join(targets)}")
        if config.strict_cycle_detection:
            raise DerivationCycleError(targets, message)
        logger.error(message)
        return written

    def _run_entry(self, entry: DerivationEntry, store, make_context) -> bool:
        context = make_context(entry.owner)
        if not self._evaluator.evaluate(entry.rule.condition, context):
            return False
        try:
            has_value, value = self._compute(entry.rule, context)
        except ExpressionError as e:
            self._record_error(entry, e)
            return False
        self.errors.pop(entry.target_path, None)
        if not has_value or deep_equal(store.get(entry.target_path), value):
            return False
        logger.debug(f"Derived {entry.target_path} = {value!r}")
        store.set(entry.target_path, value, notify=False)
        return True

    def _record_error(self, entry: DerivationEntry, error: Exception) -> None:
        self.errors[entry.target_path] = str(error)
        logger.warning(f"Derivation '{entry.rule.label}' for '{entry.target_path}' failed, keeping value: {error}")

    def _compute(self, rule: DerivationRule, context: EvaluationContext) -> Tuple[bool, Any]:
        source = rule.source_kind
        if source == "expression":
            return True, compile_expression(rule.expression).evaluate(context.scope(), context.functions)
        if source == "value":
            return True, copy.deepcopy(rule.value)
        if source == "http":
            if context.http is None:
                logger.error(f"HTTP derivation on '{context.owner_id}' evaluated without a resolver")
                return False, None
            return context.http.resolve_derivation(rule, context)
        return self._call_function(rule.function_name, context)

    @staticmethod
    def _call_function(name: str, context: EvaluationContext) -> Tuple[bool, Any]:
        func = context.functions.get(name)
        if func is None:
            logger.warning(f"Derivation function '{name}' is not registered")
            return False, None
        try:
            return True, func(context)
        except Exception as e:
            raise ExpressionError(f"Function '{name}' raised: {e}", name) from e

    def errors_for(self, target_path: str) -> Optional[str]:
        return self.errors.get(target_path)

    # ========== USER OVERRIDES ==========

    def mark_user_override(self, path: str) -> None:
        """Record that the user wrote ``path`` directly."""
        self._user_overrides.add(normalize_path(path))

    def clear_user_overrides(self, prefix: Optional[str] = None) -> None:
        """Forget user writes at or below ``prefix``, or all of them."""
        if prefix is None:
            self._user_overrides.clear()
            return
        prefix = normalize_path(prefix)
        self._user_overrides = {p for p in self._user_overrides
                                if p != prefix and not p.startswith(prefix + ".")}

    def is_user_override(self, path: str) -> bool:
        return any(path_affects(written, path) for written in self._user_overrides)

    def _held_by_user(self, entry: DerivationEntry, changed: Set[str]) -> bool:
        """True when a user write to the target stops ``entry`` from running."""
        rule = entry.rule
        target = entry.target_path
        if not rule.stop_on_user_override or not self.is_user_override(target):
            return False
        if rule.re_engage_on_dependency_change and entry.is_affected_by(changed):
            self._user_overrides = {p for p in self._user_overrides if not path_affects(p, target)}
            logger.debug(f"Derivation '{rule.label}' re-engaged for '{target}'")
            return False
        logger.debug(f"Derivation '{rule.label}' skipped: '{target}' was edited by the user")
        return True

    # ========== DEFERRED ENTRIES ==========

    def _schedule(self, entry: DerivationEntry, changed: Set[str]) -> None:
        self._deferred_changes.setdefault(entry.entry_id, set()).update(changed)
        timer = self._timers.get(entry.entry_id)
        if timer is None:
            timer = DebounceTimer(entry.debounce_ms, lambda entry_id=entry.entry_id: self._fire(entry_id))
            self._timers[entry.entry_id] = timer
        timer.trigger()

    def _fire(self, entry_id: str) -> None:
        """Debounce window expired: compute the entry against the current form value."""
        changed = self._deferred_changes.pop(entry_id, set())
        entry = self._by_id.get(entry_id)
        if entry is None or self._disposed or self._make_context is None:
            return
        if self._held_by_user(entry, changed):
            return
        context = self._make_context(entry.owner)
        if not self._evaluator.evaluate(entry.rule.condition, context):
            return
        if entry.rule.async_function_name is not None:
            self._start_async(entry, context)
            return
        try:
            has_value, value = self._compute(entry.rule, context)
        except ExpressionError as e:
            self._record_error(entry, e)
            return
        self.errors.pop(entry.target_path, None)
        if has_value:
            self._deliver(entry, value)

    def _start_async(self, entry: DerivationEntry, context: EvaluationContext) -> None:
        name = entry.rule.async_function_name
        func = context.functions.get(name)
        if func is None:
            logger.warning(f"Async derivation function '{name}' is not registered")
            return
        call = self._async_calls.get(entry.entry_id, 0) + 1
        self._async_calls[entry.entry_id] = call
        # The worker reads a private copy; the live form value keeps changing
        snapshot = replace(context, form_value=copy.deepcopy(context.form_value))
        logger.debug(f"Starting async derivation '{name}' for '{entry.target_path}' (call {call})")
        self._tasks.run(
            target=func,
            args=(snapshot,),
            on_success=lambda value, i=entry.entry_id, c=call: self._on_async_result(i, c, value),
            on_error=lambda error, i=entry.entry_id, c=call: self._on_async_error(i, c, error),
        )

    def _current_call(self, entry_id: str, call: int) -> Optional[DerivationEntry]:
        """The entry, if ``call`` is still its latest async call."""
        if self._disposed or self._async_calls.get(entry_id) != call:
            logger.debug(f"Discarding stale async derivation result for '{entry_id}'")
            return None
        return self._by_id.get(entry_id)

    def _on_async_result(self, entry_id: str, call: int, value: Any) -> None:
        entry = self._current_call(entry_id, call)
        if entry is None:
            return
        if entry.rule.stop_on_user_override and self.is_user_override(entry.target_path):
            logger.debug(f"Async derivation result for '{entry.target_path}' dropped after a user edit")
            return
        self.errors.pop(entry.target_path, None)
        self._deliver(entry, value)

    def _on_async_error(self, entry_id: str, call: int, error: Exception) -> None:
        entry = self._current_call(entry_id, call)
        if entry is not None:
            self._record_error(entry, error)

    def _deliver(self, entry: DerivationEntry, value: Any) -> None:
        if self._on_deferred_value is None:
            logger.warning(f"No writer for deferred derivation of '{entry.target_path}'")
            return
        logger.debug(f"Derived {entry.target_path} = {value!r} (deferred)")
        self._on_deferred_value(entry.target_path, value)

    # ========== LIFECYCLE ==========

    def flush(self) -> int:
        """Fire every pending debounce window now. Returns how many fired."""
        fired = 0
        for timer in list(self._timers.values()):
            if timer.is_pending():
                timer.force()
                fired += 1
        return fired

    def has_pending_work(self) -> bool:
        return any(t.is_pending() for t in self._timers.values()) or self._tasks.active_count > 0

    def dispose(self) -> None:
        self._disposed = True
        for timer in self._timers.values():
            timer.dispose()
        self._timers.clear()
        self._deferred_changes.clear()
        self._tasks.cleanup()
