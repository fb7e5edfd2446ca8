"""
Reactive rule evaluation.

Condition evaluation, state-flag computation, derivations and the
asynchronous HTTP condition path with its per-form request cache.
"""

from .context import EvaluationContext
from .condition_evaluator import ConditionEvaluator, ConditionDependencyService, compare_values
from .logic_applier import LogicApplier
from .derivation_engine import DerivationEngine, DerivationEntry
from .request_cache import RequestCache, RequestCacheEntry
from .http_condition_resolver import (
    HTTP_TOKEN_PREFIX,
    HttpConditionResolver,
    build_request,
    http_dependencies,
    http_token,
    request_key,
)
from .http_transport import ThreadedRequestRunner

__all__ = [
    "EvaluationContext",
    "ConditionEvaluator",
    "ConditionDependencyService",
    "compare_values",
    "LogicApplier",
    "DerivationEngine",
    "DerivationEntry",
    "RequestCache",
    "RequestCacheEntry",
    "HTTP_TOKEN_PREFIX",
    "HttpConditionResolver",
    "build_request",
    "http_dependencies",
    "http_token",
    "request_key",
    "ThreadedRequestRunner",
]
