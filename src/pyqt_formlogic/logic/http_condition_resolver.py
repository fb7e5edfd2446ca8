"""
HTTP condition resolver.

Asynchronous counterpart of the condition evaluator, scoped to one form
instance. A synchronous ``resolve_*`` call always answers immediately with the
governed value for the *current* request key: the resolved value on a cache
hit or after a response, otherwise the pending value. Misses schedule a
debounced request; when it completes the owner is notified so the next settle
pass re-reads the binding.

Guarantees:
    - one outbound request per settled burst of dependent-value changes
    - a repeated key after a success is served from the cache, no network call
    - failures leave the pending value in place; no retry until the key changes
    - only the response for a binding's latest key may update it
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional, Set, Tuple
from urllib.parse import quote

from pyqt_formlogic.core.debounce_timer import DebounceTimer
from pyqt_formlogic.core.path_utils import get_path
from pyqt_formlogic.exceptions import ExpressionError
from pyqt_formlogic.expressions import compile_expression, to_display_string, truthy
from pyqt_formlogic.logic.request_cache import RequestCache
from pyqt_formlogic.models.conditions import HttpCondition
from pyqt_formlogic.models.http import UNSET, CacheScope, HttpConditionConfig
from pyqt_formlogic.models.logic import DerivationRule
from pyqt_formlogic.protocols.form_config import get_form_logic_config
from pyqt_formlogic.protocols.request_runner import HttpRequest, RequestHandle, RequestRunner

logger = logging.getLogger(__name__)

# Debug flag for verbose resolver logging
DEBUG_RESOLVER = False

HTTP_TOKEN_PREFIX = "@http:"
_TEMPLATE_RE = re.compile(r"\{\{(.*?)\}\}")


def http_token(owner_id: str) -> str:
    """Synthetic path marking "an HTTP binding of this owner resolved"."""
    return f"{HTTP_TOKEN_PREFIX}{owner_id}"


def _expression_dependencies(source: str, context) -> Set[str]:
    try:
        return set(compile_expression(source).dependencies(context.field_path, context.item_path))
    except ExpressionError as e:
        logger.error(f"Invalid HTTP expression on '{context.owner_id}': {e}")
        return set()


def http_dependencies(config: HttpConditionConfig, context) -> Set[str]:
    """Form paths an HTTP config reads, plus its owner's resolution token."""
    deps = {http_token(context.owner_id)}
    for match in _TEMPLATE_RE.finditer(config.url):
        deps |= _expression_dependencies(match.group(1).strip(), context)
    for value in (config.payload or {}).values():
        if isinstance(value, str):
            deps |= _expression_dependencies(value, context)
    if config.response_expression:
        deps |= _expression_dependencies(config.response_expression, context)
    return deps


def build_request(config: HttpConditionConfig, context) -> HttpRequest:
    """Interpolate URL placeholders and evaluate payload expressions.

    Raises:
        ExpressionError: if a placeholder or payload expression fails
    """
    scope = context.scope()

    def _eval(source: str) -> Any:
        return compile_expression(source).evaluate(scope, context.functions)

    url = _TEMPLATE_RE.sub(lambda m: quote(to_display_string(_eval(m.group(1).strip())), safe=""), config.url)
    payload = None
    if config.payload is not None:
        payload = {k: _eval(v) if isinstance(v, str) else v for k, v in config.payload.items()}
    if config.sends_body:
        return HttpRequest(config.method, url, body=payload, headers=dict(config.headers))
    return HttpRequest(config.method, url, params=payload, headers=dict(config.headers))


def request_key(request: HttpRequest) -> str:
    """Stable signature of a request: method, URL and params/body with sorted keys."""
    payload = request.body if request.method != "GET" else request.params
    return json.dumps(
        {"method": request.method, "url": request.url, "payload": payload},
        sort_keys=True, default=str, separators=(",", ":"),
    )


@dataclass
class HttpBinding:
    """State of one HTTP-governed flag or value."""
    binding_id: Hashable
    owner_id: str
    config: HttpConditionConfig
    coerce: bool
    pending_value: Any
    key: Optional[str] = None
    request: Optional[HttpRequest] = None
    value: Any = None
    resolved: bool = False
    context: Any = None
    debouncer: Optional[DebounceTimer] = field(default=None, repr=False)


class HttpConditionResolver:
    """
    Resolves HTTP conditions and HTTP derivations for one form instance.

    Args:
        runner: Executes requests off the evaluation thread
        on_resolved: Called with the owner id whenever a binding's value changes
            asynchronously
    """

    def __init__(self, runner: RequestRunner, on_resolved: Callable[[str], None]):
        self._runner = runner
        self._on_resolved = on_resolved
        self._cache = RequestCache()
        self._bindings: Dict[Hashable, HttpBinding] = {}
        self._inflight: Dict[str, Tuple[RequestHandle, Set[Hashable], bool]] = {}
        self._disposed = False

    @property
    def cache(self) -> RequestCache:
        return self._cache

    # ========== PUBLIC RESOLUTION API ==========

    def resolve_condition(self, condition: HttpCondition, context) -> Any:
        """Current governed value of an HTTP condition (coerced with truthiness by default)."""
        config = condition.http
        coerce = True if config.coerce_boolean is None else config.coerce_boolean
        pending = config.pending_value
        if pending is UNSET:
            pending = get_form_logic_config().default_pending_value
        binding_id = (context.owner_id, "condition", id(condition))
        return self._resolve(binding_id, config, context, coerce, pending)

    def resolve_derivation(self, rule: DerivationRule, context) -> Tuple[bool, Any]:
        """Return ``(has_value, value)`` for an HTTP derivation.

        While pending, ``has_value`` is False unless the rule configures a
        pending value.
        """
        config = rule.http
        coerce = bool(config.coerce_boolean)
        binding_id = (context.owner_id, "derivation", id(rule))
        value = self._resolve(binding_id, config, context, coerce, config.pending_value)
        binding = self._bindings[binding_id]
        if binding.resolved:
            return True, value
        return config.pending_value is not UNSET, value

    # ========== CORE ==========

    def _resolve(self, binding_id: Hashable, config: HttpConditionConfig, context,
                 coerce: bool, pending: Any) -> Any:
        binding = self._bindings.get(binding_id)
        if binding is None:
            binding = HttpBinding(binding_id, context.owner_id, config, coerce, pending, value=pending)
            self._bindings[binding_id] = binding
        binding.context = context

        try:
            request = build_request(config, context)
        except ExpressionError as e:
            logger.warning(f"Could not build HTTP request for '{context.owner_id}': {e}")
            self._cancel_debounce(binding)
            binding.key = None
            binding.value, binding.resolved = pending, False
            return binding.value

        key = request_key(request)
        if key == binding.key:
            return binding.value

        if DEBUG_RESOLVER:
            logger.info(f"🔑 New request key for {binding.owner_id}: {key}")
        binding.key = key
        binding.request = request

        entry = self._cache_lookup(config, key)
        if entry is not None:
            self._cancel_debounce(binding)
            try:
                binding.value, binding.resolved = self._extract(binding, entry.resolved_value), True
            except ExpressionError as e:
                logger.warning(f"Could not extract cached HTTP response for '{binding.owner_id}': {e}")
                binding.value, binding.resolved = pending, False
                return binding.value
            if DEBUG_RESOLVER:
                logger.info(f"  ✅ Cache hit for {binding.owner_id}")
            return binding.value

        # Never inherit the previous key's resolved value
        binding.value, binding.resolved = pending, False
        self._debouncer_for(binding).trigger()
        return binding.value

    def _cache_lookup(self, config: HttpConditionConfig, key: str):
        if config.cache_scope is not CacheScope.FORM:
            return None
        ttl = config.cache_ttl_ms
        if ttl is None:
            ttl = get_form_logic_config().http_cache_ttl_ms
        return self._cache.get(key, ttl)

    def _debouncer_for(self, binding: HttpBinding) -> DebounceTimer:
        if binding.debouncer is None:
            delay = binding.config.debounce_ms
            if delay is None:
                delay = get_form_logic_config().default_http_debounce_ms
            binding.debouncer = DebounceTimer(delay, lambda: self._fire(binding.binding_id))
        return binding.debouncer

    def _cancel_debounce(self, binding: HttpBinding) -> None:
        if binding.debouncer is not None:
            binding.debouncer.cancel()

    def _fire(self, binding_id: Hashable) -> None:
        """Debounce window expired: issue the request for the binding's latest key."""
        binding = self._bindings.get(binding_id)
        if binding is None or self._disposed or binding.key is None:
            return
        key = binding.key

        entry = self._cache_lookup(binding.config, key)
        if entry is not None:
            self._apply(binding, entry.resolved_value)
            return

        inflight = self._inflight.get(key)
        if inflight is not None:
            inflight[1].add(binding_id)
            return

        if DEBUG_RESOLVER:
            logger.info(f"🚀 HTTP {binding.request.method} {binding.request.url} for {binding.owner_id}")
        cacheable = binding.config.cache_scope is CacheScope.FORM
        waiters = {binding_id}
        # Register before submitting so a runner answering synchronously finds the entry
        self._inflight[key] = (None, waiters, cacheable)
        handle = self._runner.submit(
            binding.request,
            lambda body, k=key: self._on_success(k, body),
            lambda error, k=key: self._on_error(k, error),
        )
        if key in self._inflight:
            self._inflight[key] = (handle, waiters, cacheable)

    def _on_success(self, key: str, body: Any) -> None:
        if self._disposed:
            return
        _, waiters, cacheable = self._inflight.pop(key, (None, set(), False))
        if cacheable:
            self._cache.put(key, body)
        for binding_id in waiters:
            binding = self._bindings.get(binding_id)
            if binding is None:
                continue
            if binding.key != key:
                if DEBUG_RESOLVER:
                    logger.info(f"  🗑️ Discarding stale response for {binding.owner_id}")
                continue
            self._apply(binding, body)

    def _on_error(self, key: str, error: Exception) -> None:
        if self._disposed:
            return
        _, waiters, _ = self._inflight.pop(key, (None, set(), False))
        owners = {self._bindings[b].owner_id for b in waiters if b in self._bindings}
        logger.warning(f"HTTP condition request failed for {sorted(owners)}: {error}")

    def _apply(self, binding: HttpBinding, body: Any) -> None:
        try:
            value = self._extract(binding, body)
        except ExpressionError as e:
            logger.warning(f"Could not extract HTTP response for '{binding.owner_id}': {e}")
            return
        changed = not binding.resolved or value != binding.value
        binding.value, binding.resolved = value, True
        if changed:
            self._on_resolved(binding.owner_id)

    def _extract(self, binding: HttpBinding, body: Any) -> Any:
        config = binding.config
        if config.response_expression:
            scope = binding.context.scope(response=body)
            value = compile_expression(config.response_expression).evaluate(scope, binding.context.functions)
        elif config.response_path:
            value = get_path(body, config.response_path)
        else:
            value = body
        return truthy(value) if binding.coerce else value

    # ========== LIFECYCLE ==========

    def flush(self) -> int:
        """Fire every pending debounce window now. Returns how many fired."""
        fired = 0
        for binding in list(self._bindings.values()):
            if binding.debouncer is not None and binding.debouncer.is_pending():
                binding.debouncer.force()
                fired += 1
        return fired

    def has_pending_work(self) -> bool:
        pending = any(b.debouncer is not None and b.debouncer.is_pending() for b in self._bindings.values())
        return pending or bool(self._inflight)

    def release(self, owner_prefix: str) -> None:
        """Drop bindings of owners at or below ``owner_prefix`` (removed array items)."""
        for binding_id, binding in list(self._bindings.items()):
            owner = binding.owner_id
            if owner == owner_prefix or owner.startswith(owner_prefix + "."):
                if binding.debouncer is not None:
                    binding.debouncer.dispose()
                del self._bindings[binding_id]

    def dispose(self) -> None:
        self._disposed = True
        for binding in self._bindings.values():
            if binding.debouncer is not None:
                binding.debouncer.dispose()
        for handle, _, _ in self._inflight.values():
            if handle is not None:
                handle.cancel()
        self._bindings.clear()
        self._inflight.clear()
        self._cache.clear()
