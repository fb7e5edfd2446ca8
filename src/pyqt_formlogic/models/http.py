"""HTTP-backed condition and derivation configuration."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pyqt_formlogic.exceptions import FormConfigurationError


class _Unset:
    """Marker for "not configured" where ``None`` is a meaningful value."""

    def __repr__(self):
        return "UNSET"

    def __bool__(self):
        return False


UNSET = _Unset()

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH")


class CacheScope(Enum):
    FORM = "form"
    NONE = "none"


@dataclass(frozen=True)
class HttpConditionConfig:
    """Declarative HTTP lookup.

    ``url`` may contain ``{{expr}}`` placeholders. String values in ``params``
    (GET) or ``body`` (POST/PUT/PATCH) are expressions evaluated against the
    owning field's context; other values are sent literally.
    """
    url: str
    method: str = "GET"
    params: Optional[Dict[str, Any]] = None
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    response_path: Optional[str] = None
    response_expression: Optional[str] = None
    coerce_boolean: Optional[bool] = None
    debounce_ms: Optional[int] = None
    pending_value: Any = UNSET
    cache_scope: CacheScope = CacheScope.FORM
    cache_ttl_ms: Optional[int] = None

    @property
    def sends_body(self) -> bool:
        return self.method != "GET"

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        """Params for GET, body otherwise."""
        return self.body if self.sends_body else self.params

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "HttpConditionConfig":
        if not isinstance(config, Mapping) or not config.get("url"):
            raise FormConfigurationError(f"HTTP config requires a 'url': {config!r}")
        method = str(config.get("method", "GET")).upper()
        if method not in HTTP_METHODS:
            raise FormConfigurationError(f"Unsupported HTTP method '{method}'")
        try:
            cache_scope = CacheScope(config.get("cacheScope", "form"))
        except ValueError:
            raise FormConfigurationError(f"Unknown cacheScope {config.get('cacheScope')!r}") from None
        payload = config.get("paramsOrBody")
        params = config.get("params", payload if method == "GET" else None)
        body = config.get("body", payload if method != "GET" else None)
        return cls(
            url=config["url"],
            method=method,
            params=dict(params) if params else None,
            body=dict(body) if isinstance(body, Mapping) else body,
            headers=dict(config.get("headers") or {}),
            response_path=config.get("responsePath"),
            response_expression=config.get("responseExpression"),
            coerce_boolean=config.get("coerceBoolean"),
            debounce_ms=config.get("debounceMs"),
            pending_value=config.get("pendingValue", UNSET),
            cache_scope=cache_scope,
            cache_ttl_ms=config.get("cacheTtlMs"),
        )
