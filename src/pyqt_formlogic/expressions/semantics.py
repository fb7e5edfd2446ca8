"""Value semantics shared by the expression evaluator and FieldValue conditions.

Missing values are ``None``. Truthiness, equality and string conversion follow
the loose conventions form authors expect from browser expressions: empty
containers are truthy, ``0``/``""``/``None`` are falsy, and numeric strings
compare numerically against numbers.
"""

import math
from typing import Any, Optional

from pyqt_formlogic.core.path_utils import deep_equal


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> Optional[float]:
    """Numeric view of ``value``, or None when it has none."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def normalize_number(value: float):
    """Collapse integral floats to int so ``6 / 3`` prints as ``2``."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


def to_display_string(value: Any) -> str:
    """String conversion used by concatenation and ``join``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        value = normalize_number(value)
        return str(value)
    if isinstance(value, (list, tuple)):
        return ",".join(to_display_string(v) for v in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def strict_equals(a: Any, b: Any) -> bool:
    return deep_equal(a, b)


def loose_equals(a: Any, b: Any) -> bool:
    """Equality with numeric coercion between numbers, booleans and numeric strings."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    scalar = (str, int, float, bool)
    if isinstance(a, scalar) and isinstance(b, scalar):
        na, nb = to_number(a), to_number(b)
        return na is not None and nb is not None and na == nb
    return deep_equal(a, b)


def compare(op: str, a: Any, b: Any, lexicographic: bool = True) -> bool:
    """Ordering comparison; mismatched operand kinds compare False rather than raise.

    Operands that both read as numbers (including numeric strings) compare
    numerically. Two non-numeric strings compare lexicographically unless
    ``lexicographic`` is False.
    """
    left, right = to_number(a), to_number(b)
    if left is None or right is None:
        if not (lexicographic and isinstance(a, str) and isinstance(b, str)):
            return False
        left, right = a, b
    if op in ("<", "less"):
        return left < right
    if op in (">", "greater"):
        return left > right
    if op in ("<=", "lessOrEqual"):
        return left <= right
    if op in (">=", "greaterOrEqual"):
        return left >= right
    raise ValueError(f"Unknown comparison operator: {op}")
