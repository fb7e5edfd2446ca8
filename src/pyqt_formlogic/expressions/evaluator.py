"""AST evaluator for the expression language.

Evaluation is side-effect free: identifiers resolve against an explicit scope
mapping, only whitelisted methods of strings, numbers and arrays may be called,
and bare calls resolve against registered custom functions. Every failure is
raised as ExpressionEvaluationError.
"""

import math
from typing import Any, Callable, Dict, Mapping, Optional

from pyqt_formlogic.exceptions import ExpressionEvaluationError, ExpressionError
from pyqt_formlogic.expressions.parser import (
    ASTNode, ArrayLiteral, BinaryOp, Call, Conditional, Identifier, IndexAccess,
    Literal, LogicalOp, MemberAccess, UnaryOp,
)
from pyqt_formlogic.expressions.semantics import (
    compare, loose_equals, normalize_number, strict_equals, to_display_string,
    to_number, truthy,
)

BLOCKED_PROPERTIES = frozenset({
    "constructor", "prototype", "__proto__", "__defineGetter__", "__defineSetter__",
    "__lookupGetter__", "__lookupSetter__", "valueOf", "hasOwnProperty",
    "isPrototypeOf", "propertyIsEnumerable", "toLocaleString",
})


# Longest string a method may build; longer results fail like a JS RangeError
MAX_STRING_LENGTH = 1 << 20


def _int_arg(value, default=0, limit=MAX_STRING_LENGTH):
    """Truncate a numeric argument toward zero, clamped to +/- limit."""
    if value is None:
        return default
    number = float(value)
    if math.isnan(number):
        return 0
    return int(max(-limit, min(limit, number)))


def _checked_length(length: int) -> int:
    if length > MAX_STRING_LENGTH:
        raise ValueError(f"Invalid string length {length}")
    return length


def _js_slice(seq, start=0, end=None):
    n = len(seq)
    start = _int_arg(start)
    end = n if end is None else _int_arg(end)
    if start < 0:
        start = max(n + start, 0)
    if end < 0:
        end = max(n + end, 0)
    return seq[start:end]


def _substring(s: str, start=0, end=None):
    n = len(s)
    start = min(max(_int_arg(start), 0), n)
    end = n if end is None else min(max(_int_arg(end), 0), n)
    if start > end:
        start, end = end, start
    return s[start:end]


def _char_at(s: str, i=0):
    i = _int_arg(i)
    return s[i] if 0 <= i < len(s) else ""


def _char_code_at(s: str, i=0):
    i = _int_arg(i)
    return ord(s[i]) if 0 <= i < len(s) else None


def _pad(s: str, length, fill=" ", left=True):
    fill = to_display_string(fill)
    missing = _checked_length(_int_arg(length, limit=MAX_STRING_LENGTH + 1)) - len(s)
    if missing <= 0 or not fill:
        return s
    padding = (fill * (missing // len(fill) + 1))[:missing]
    return padding + s if left else s + padding


def _repeat(s: str, count):
    count = _int_arg(count, limit=MAX_STRING_LENGTH + 1)
    if count < 0:
        raise ValueError(f"Invalid count value {count}")
    _checked_length(len(s) * count)
    return s * count


def _split(s: str, sep=None, limit=None):
    if sep is None:
        parts = [s]
    elif sep == "":
        parts = list(s)
    else:
        parts = s.split(to_display_string(sep))
    return parts if limit is None else parts[:max(_int_arg(limit), 0)]


def _index_of(seq, item, start=0):
    for i in range(max(_int_arg(start), 0), len(seq)):
        if strict_equals(seq[i], item):
            return i
    return -1


def _last_index_of(seq, item):
    for i in range(len(seq) - 1, -1, -1):
        if strict_equals(seq[i], item):
            return i
    return -1


def _flat(seq, depth=1):
    result = []
    for item in seq:
        if isinstance(item, list) and depth >= 1:
            result.extend(_flat(item, depth - 1))
        else:
            result.append(item)
    return result


def _to_fixed(n, digits=0):
    digits = _int_arg(digits)
    if not 0 <= digits <= 100:
        raise ValueError("toFixed() digits must be between 0 and 100")
    return f"{float(n):.{digits}f}"


def _to_precision(n, precision=None):
    if precision is None:
        return to_display_string(n)
    precision = _int_arg(precision)
    if not 1 <= precision <= 100:
        raise ValueError("toPrecision() argument must be between 1 and 100")
    return f"{float(n):.{precision}g}"


STRING_METHODS: Dict[str, Callable[..., Any]] = {
    "charAt": _char_at,
    "charCodeAt": _char_code_at,
    "concat": lambda s, *parts: s + "".join(to_display_string(p) for p in parts),
    "endsWith": lambda s, suffix, end=None: (s if end is None else s[:max(_int_arg(end), 0)]).endswith(to_display_string(suffix)),
    "includes": lambda s, sub, start=0: to_display_string(sub) in s[max(_int_arg(start), 0):],
    "indexOf": lambda s, sub, start=0: s.find(to_display_string(sub), max(_int_arg(start), 0)),
    "lastIndexOf": lambda s, sub: s.rfind(to_display_string(sub)),
    "padEnd": lambda s, n, fill=" ": _pad(s, n, fill, left=False),
    "padStart": lambda s, n, fill=" ": _pad(s, n, fill, left=True),
    "repeat": _repeat,
    "replace": lambda s, old, new: s.replace(to_display_string(old), to_display_string(new), 1),
    "slice": _js_slice,
    "split": _split,
    "startsWith": lambda s, prefix, pos=0: s.startswith(to_display_string(prefix), max(_int_arg(pos), 0)),
    "substring": _substring,
    "toLowerCase": lambda s: s.lower(),
    "toUpperCase": lambda s: s.upper(),
    "trim": lambda s: s.strip(),
    "trimEnd": lambda s: s.rstrip(),
    "trimStart": lambda s: s.lstrip(),
    "toString": lambda s: s,
}

NUMBER_METHODS: Dict[str, Callable[..., Any]] = {
    "toFixed": _to_fixed,
    "toPrecision": _to_precision,
    "toString": to_display_string,
}

ARRAY_METHODS: Dict[str, Callable[..., Any]] = {
    "concat": lambda a, *parts: list(a) + [x for p in parts for x in (p if isinstance(p, list) else [p])],
    "flat": _flat,
    "includes": lambda a, item: _index_of(a, item) >= 0,
    "indexOf": _index_of,
    "join": lambda a, sep=",": to_display_string(sep).join(to_display_string(x) for x in a),
    "lastIndexOf": _last_index_of,
    "slice": lambda a, start=0, end=None: list(_js_slice(a, start, end)),
    "toString": to_display_string,
}


def _methods_for(value: Any) -> Optional[Dict[str, Callable[..., Any]]]:
    if isinstance(value, str):
        return STRING_METHODS
    if isinstance(value, list):
        return ARRAY_METHODS
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return NUMBER_METHODS
    return None


class Evaluator:
    """Evaluates one AST against a scope.

    Args:
        source: Expression text, used in error messages
        scope: Names visible to the expression (formValue, fieldValue, ...)
        functions: Custom functions callable by bare name
    """

    def __init__(self, source: str, scope: Mapping[str, Any], functions: Optional[Mapping[str, Callable]] = None):
        self.source = source
        self.scope = scope
        self.functions = functions or {}

    def evaluate(self, node: ASTNode) -> Any:
        method = getattr(self, f"_eval_{type(node).__name__}", None)
        if method is None:
            raise self._error(f"Unsupported node {type(node).__name__}")
        return method(node)

    def _error(self, message: str) -> ExpressionEvaluationError:
        return ExpressionEvaluationError(f"{message} in {self.source!r}", self.source)

    def _eval_Literal(self, node: Literal) -> Any:
        return node.value

    def _eval_ArrayLiteral(self, node: ArrayLiteral) -> Any:
        return [self.evaluate(e) for e in node.elements]

    def _eval_Identifier(self, node: Identifier) -> Any:
        return self.scope.get(node.name)

    def _read_member(self, obj: Any, name: Any) -> Any:
        if obj is None:
            return None
        if isinstance(name, str) and (name in BLOCKED_PROPERTIES or name.startswith("__")):
            raise self._error(f"Property {name!r} is not accessible")
        if isinstance(obj, dict):
            if isinstance(name, (int, float)) and not isinstance(name, bool):
                name = to_display_string(name)
            return obj.get(name)
        if isinstance(obj, (list, str)):
            if name == "length":
                return len(obj)
            index = to_number(name) if not isinstance(name, bool) else None
            if isinstance(index, int) and 0 <= index < len(obj):
                return obj[index]
        return None

    def _eval_MemberAccess(self, node: MemberAccess) -> Any:
        return self._read_member(self.evaluate(node.obj), node.name)

    def _eval_IndexAccess(self, node: IndexAccess) -> Any:
        obj = self.evaluate(node.obj)
        if obj is None:
            return None
        return self._read_member(obj, self.evaluate(node.index))

    def _eval_Call(self, node: Call) -> Any:
        callee = node.callee
        if isinstance(callee, Identifier):
            func = self.functions.get(callee.name)
            if func is None:
                raise self._error(f"Unknown function {callee.name!r}")
            args = [self.evaluate(a) for a in node.args]
            try:
                return func(*args)
            except ExpressionError:
                raise
            except Exception as e:
                raise self._error(f"Function {callee.name!r} failed: {e}") from e

        if not isinstance(callee, MemberAccess):
            raise self._error("Only method calls and registered functions can be called")

        obj = self.evaluate(callee.obj)
        name = callee.name
        if name in BLOCKED_PROPERTIES or name.startswith("__"):
            raise self._error(f"Property {name!r} is not accessible")
        if obj is None and callee.optional:
            return None
        methods = _methods_for(obj)
        if methods is None or name not in methods:
            raise self._error(f"Method {name!r} is not allowed on {type(obj).__name__}")
        args = [self.evaluate(a) for a in node.args]
        try:
            return methods[name](obj, *args)
        except (TypeError, ValueError, IndexError, ArithmeticError, MemoryError) as e:
            raise self._error(f"Method {name!r} failed: {e}") from e

    def _eval_UnaryOp(self, node: UnaryOp) -> Any:
        operand = self.evaluate(node.operand)
        if node.op == "!":
            return not truthy(operand)
        number = self._arith_operand(operand, node.op)
        return -number if node.op == "-" else number

    def _eval_LogicalOp(self, node: LogicalOp) -> Any:
        left = self.evaluate(node.left)
        if node.op == "&&":
            return self.evaluate(node.right) if truthy(left) else left
        if node.op == "||":
            return left if truthy(left) else self.evaluate(node.right)
        return left if left is not None else self.evaluate(node.right)

    def _eval_Conditional(self, node: Conditional) -> Any:
        if truthy(self.evaluate(node.test)):
            return self.evaluate(node.consequent)
        return self.evaluate(node.alternate)

    def _arith_operand(self, value: Any, op: str):
        number = to_number(value)
        if number is None:
            raise self._error(f"Operator {op!r} needs a number, got {value!r}")
        return number

    def _eval_BinaryOp(self, node: BinaryOp) -> Any:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        op = node.op

        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op in ("<", ">", "<=", ">="):
            return compare(op, left, right)

        if op == "+" and (isinstance(left, (str, list)) or isinstance(right, (str, list))):
            return to_display_string(left) + to_display_string(right)

        a = self._arith_operand(left, op)
        b = self._arith_operand(right, op)
        if op == "+":
            return normalize_number(a + b)
        if op == "-":
            return normalize_number(a - b)
        if op == "*":
            return normalize_number(a * b)
        if op in ("/", "%"):
            if b == 0:
                return None
            return normalize_number(a / b if op == "/" else math.fmod(a, b))
        raise self._error(f"Unknown operator {op!r}")


def evaluate_ast(node: ASTNode, source: str, scope: Mapping[str, Any],
                 functions: Optional[Mapping[str, Callable]] = None) -> Any:
    return Evaluator(source, scope, functions).evaluate(node)
