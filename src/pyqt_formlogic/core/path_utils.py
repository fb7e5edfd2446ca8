"""
Field path utilities.

A field path addresses a location in the nested form value: object members are
separated by dots, array items by a numeric segment or bracket index. Both
``"items[0].name"`` and ``"items.0.name"`` address the same location; the dotted
form is canonical.

Reads never throw: a missing intermediate segment resolves to ``None``.
"""

import re
from typing import Any, List, Optional

WILDCARD = "*"
INDEX_PLACEHOLDER = "$"

_SEGMENT_RE = re.compile(r"[^.\[\]]+|\[(\d+|\$)\]")


def split_path(path: str) -> List[str]:
    """Split a dot/bracket path into its segments."""
    if not path:
        return []
    segments = []
    for match in _SEGMENT_RE.finditer(path):
        segments.append(match.group(1) if match.group(1) is not None else match.group(0))
    return segments


def join_path(*parts: Optional[str]) -> str:
    """Join path fragments, skipping empty ones."""
    return ".".join(str(p) for p in parts if p not in (None, ""))


def normalize_path(path: str) -> str:
    """Return the canonical dotted form of a path."""
    return ".".join(split_path(path))


def _step(container: Any, segment: str) -> Any:
    if isinstance(container, dict):
        return container.get(segment)
    if isinstance(container, (list, tuple)) and segment.isdigit():
        index = int(segment)
        return container[index] if index < len(container) else None
    return None


def get_path(data: Any, path: str, default: Any = None) -> Any:
    """Read the value at ``path``; missing segments resolve to ``default``."""
    value = data
    for segment in split_path(path):
        if value is None:
            return default
        value = _step(value, segment)
    return default if value is None else value


def has_path(data: Any, path: str) -> bool:
    """Return True when every segment of ``path`` exists in ``data``."""
    value = data
    for segment in split_path(path):
        if isinstance(value, dict):
            if segment not in value:
                return False
            value = value[segment]
        elif isinstance(value, list) and segment.isdigit() and int(segment) < len(value):
            value = value[int(segment)]
        else:
            return False
    return True


def set_path(data: dict, path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating intermediate objects as needed."""
    segments = split_path(path)
    if not segments:
        raise ValueError("Cannot set an empty path")
    container: Any = data
    for i, segment in enumerate(segments[:-1]):
        next_is_index = segments[i + 1].isdigit()
        child = _step(container, segment)
        if not isinstance(child, (dict, list)):
            child = [] if next_is_index else {}
            _assign(container, segment, child)
        container = child
    _assign(container, segments[-1], value)


def _assign(container: Any, segment: str, value: Any) -> None:
    if isinstance(container, list):
        if not segment.isdigit():
            raise ValueError(f"Cannot use key '{segment}' on a list")
        index = int(segment)
        while len(container) <= index:
            container.append(None)
        container[index] = value
    elif isinstance(container, dict):
        container[segment] = value
    else:
        raise ValueError(f"Cannot assign '{segment}' on {type(container).__name__}")


def delete_path(data: Any, path: str) -> bool:
    """Remove the member at ``path`` from its parent object. Returns True if removed."""
    segments = split_path(path)
    if not segments:
        return False
    parent = data
    for segment in segments[:-1]:
        parent = _step(parent, segment)
        if parent is None:
            return False
    if isinstance(parent, dict) and segments[-1] in parent:
        del parent[segments[-1]]
        return True
    return False


def is_prefix(prefix: str, path: str) -> bool:
    """Segment-wise prefix test: ``a.b`` prefixes ``a.b.c`` but not ``a.bc``."""
    prefix_parts = split_path(prefix)
    path_parts = split_path(path)
    return len(prefix_parts) <= len(path_parts) and path_parts[:len(prefix_parts)] == prefix_parts


def path_affects(changed: str, dependency: str) -> bool:
    """Return True if a change at ``changed`` can alter the value read at ``dependency``.

    A dependency is affected when the same location changed, when an ancestor
    was replaced, or when a descendant of an object read wholesale changed.
    """
    if dependency == WILDCARD or changed == WILDCARD:
        return True
    return is_prefix(changed, dependency) or is_prefix(dependency, changed)


def any_affected(changed_paths, dependencies) -> bool:
    """Return True if any changed path affects any dependency."""
    if not changed_paths or not dependencies:
        return False
    if WILDCARD in dependencies:
        return True
    return any(path_affects(c, d) for c in changed_paths for d in dependencies)


def substitute_index(path: str, index: int) -> str:
    """Replace the first ``$`` placeholder segment with ``index``."""
    segments = split_path(path)
    for i, segment in enumerate(segments):
        if segment == INDEX_PLACEHOLDER:
            segments[i] = str(index)
            break
    return ".".join(segments)


def substitute_indices(path: str, indices) -> str:
    """Replace successive ``$`` placeholder segments with ``indices`` (outermost first)."""
    if not indices or INDEX_PLACEHOLDER not in path:
        return path
    remaining = list(indices)
    segments = split_path(path)
    for i, segment in enumerate(segments):
        if segment == INDEX_PLACEHOLDER and remaining:
            segments[i] = str(remaining.pop(0))
    return ".".join(segments)


def deep_equal(a: Any, b: Any) -> bool:
    """Type-aware deep equality (``True`` is not equal to ``1``)."""
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if a is None or b is None:
        return False
    return type(a) is type(b) and a == b or (
        isinstance(a, (int, float)) and isinstance(b, (int, float)) and a == b
    )
