"""Per-form cache of successful HTTP condition responses."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class RequestCacheEntry:
    key: str
    resolved_value: Any
    created_at: float = field(default_factory=time.monotonic)

    def age_ms(self) -> float:
        return (time.monotonic() - self.created_at) * 1000


class RequestCache:
    """Request-key -> parsed response body.

    Entries live as long as the owning form unless a TTL is given, in which
    case an expired entry is dropped on lookup.
    """

    def __init__(self):
        self._entries: Dict[str, RequestCacheEntry] = {}

    def get(self, key: str, ttl_ms: Optional[int] = None) -> Optional[RequestCacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if ttl_ms is not None and entry.age_ms() > ttl_ms:
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, value: Any) -> RequestCacheEntry:
        entry = RequestCacheEntry(key, value)
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
