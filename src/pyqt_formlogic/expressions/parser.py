"""Pratt parser producing an immutable AST for the expression language."""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pyqt_formlogic.exceptions import ExpressionSyntaxError
from pyqt_formlogic.expressions.lexer import KEYWORDS, Token, TokenType, tokenize


class ASTNode:
    """Base class for expression AST nodes."""


@dataclass(frozen=True)
class Literal(ASTNode):
    value: Any


@dataclass(frozen=True)
class ArrayLiteral(ASTNode):
    elements: Tuple[ASTNode, ...]


@dataclass(frozen=True)
class Identifier(ASTNode):
    name: str


@dataclass(frozen=True)
class MemberAccess(ASTNode):
    obj: ASTNode
    name: str
    optional: bool = False


@dataclass(frozen=True)
class IndexAccess(ASTNode):
    obj: ASTNode
    index: ASTNode
    optional: bool = False


@dataclass(frozen=True)
class Call(ASTNode):
    callee: ASTNode
    args: Tuple[ASTNode, ...]


@dataclass(frozen=True)
class UnaryOp(ASTNode):
    op: str
    operand: ASTNode


@dataclass(frozen=True)
class BinaryOp(ASTNode):
    op: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class LogicalOp(ASTNode):
    """Short-circuiting ``&&``, ``||`` and ``??``."""
    op: str
    left: ASTNode
    right: ASTNode


@dataclass(frozen=True)
class Conditional(ASTNode):
    test: ASTNode
    consequent: ASTNode
    alternate: ASTNode


# Binding powers; higher binds tighter
_INFIX_PRECEDENCE = {
    "??": 1,
    "||": 2,
    "&&": 3,
    "==": 4, "!=": 4, "===": 4, "!==": 4,
    "<": 5, ">": 5, "<=": 5, ">=": 5,
    "+": 6, "-": 6,
    "*": 7, "/": 7, "%": 7,
}
_TERNARY_PRECEDENCE = 0
_UNARY_PRECEDENCE = 8
_LOGICAL_OPS = {"&&", "||", "??"}


class Parser:
    """Parses a token stream into an AST.

    Example:
        ast = Parser("formValue.age >= 18 && !formValue.blocked").parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens: List[Token] = tokenize(source)
        self.pos = 0

    def parse(self) -> ASTNode:
        if self._peek().type is TokenType.EOF:
            raise ExpressionSyntaxError("Empty expression", 0, self.source)
        node = self._expression(_TERNARY_PRECEDENCE)
        if self._peek().type is not TokenType.EOF:
            tok = self._peek()
            raise ExpressionSyntaxError(f"Unexpected token {tok.value!r}", tok.position, self.source)
        return node

    # --- token helpers ---

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _expect(self, op: str) -> Token:
        tok = self._advance()
        if not tok.is_op(op):
            found = "end of expression" if tok.type is TokenType.EOF else repr(tok.value)
            raise ExpressionSyntaxError(f"Expected {op!r} but found {found}", tok.position, self.source)
        return tok

    # --- grammar ---

    def _expression(self, min_prec: int) -> ASTNode:
        left = self._unary()
        while True:
            tok = self._peek()
            if tok.is_op("?") and min_prec <= _TERNARY_PRECEDENCE:
                self._advance()
                consequent = self._expression(_TERNARY_PRECEDENCE)
                self._expect(":")
                alternate = self._expression(_TERNARY_PRECEDENCE)
                left = Conditional(left, consequent, alternate)
                continue
            prec = _INFIX_PRECEDENCE.get(tok.value) if tok.type is TokenType.OPERATOR else None
            if prec is None or prec <= min_prec:
                return left
            self._advance()
            right = self._expression(prec)
            node_cls = LogicalOp if tok.value in _LOGICAL_OPS else BinaryOp
            left = node_cls(tok.value, left, right)

    def _unary(self) -> ASTNode:
        tok = self._peek()
        if tok.is_op("!", "-", "+"):
            self._advance()
            return UnaryOp(tok.value, self._unary())
        return self._postfix(self._primary())

    def _primary(self) -> ASTNode:
        tok = self._advance()
        if tok.type in (TokenType.NUMBER, TokenType.STRING):
            return Literal(tok.value)
        if tok.type is TokenType.KEYWORD:
            return Literal(KEYWORDS[tok.value])
        if tok.type is TokenType.IDENTIFIER:
            return Identifier(tok.value)
        if tok.is_op("("):
            node = self._expression(_TERNARY_PRECEDENCE)
            self._expect(")")
            return node
        if tok.is_op("["):
            return ArrayLiteral(tuple(self._arguments("]")))
        found = "end of expression" if tok.type is TokenType.EOF else repr(tok.value)
        raise ExpressionSyntaxError(f"Unexpected {found}", tok.position, self.source)

    def _postfix(self, node: ASTNode) -> ASTNode:
        while True:
            tok = self._peek()
            if tok.is_op("."):
                self._advance()
                node = MemberAccess(node, self._property_name())
            elif tok.is_op("?."):
                self._advance()
                if self._peek().is_op("["):
                    self._advance()
                    index = self._expression(_TERNARY_PRECEDENCE)
                    self._expect("]")
                    node = IndexAccess(node, index, optional=True)
                elif self._peek().is_op("("):
                    self._advance()
                    node = Call(node, tuple(self._arguments(")")))
                else:
                    node = MemberAccess(node, self._property_name(), optional=True)
            elif tok.is_op("["):
                self._advance()
                index = self._expression(_TERNARY_PRECEDENCE)
                self._expect("]")
                node = IndexAccess(node, index)
            elif tok.is_op("("):
                self._advance()
                node = Call(node, tuple(self._arguments(")")))
            else:
                return node

    def _property_name(self) -> str:
        tok = self._advance()
        # Keywords are valid property names: obj.null, obj.true
        if tok.type in (TokenType.IDENTIFIER, TokenType.KEYWORD):
            return tok.value
        raise ExpressionSyntaxError("Expected property name", tok.position, self.source)

    def _arguments(self, closing: str) -> List[ASTNode]:
        args: List[ASTNode] = []
        if self._peek().is_op(closing):
            self._advance()
            return args
        while True:
            args.append(self._expression(_TERNARY_PRECEDENCE))
            if self._peek().is_op(","):
                self._advance()
                continue
            self._expect(closing)
            return args


def parse(source: str) -> ASTNode:
    """Parse ``source`` into an AST, raising ExpressionSyntaxError on failure."""
    return Parser(source).parse()


def static_member_name(node: ASTNode) -> Optional[str]:
    """Name addressed by a member or constant-index node, if statically known."""
    if isinstance(node, MemberAccess):
        return node.name
    if isinstance(node, IndexAccess) and isinstance(node.index, Literal):
        value = node.index.value
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, str)):
            return str(value)
    return None
