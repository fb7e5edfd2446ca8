"""Restricted expression language used by conditions and derivations.

This package provides:
- Lexer: tokenizes expression strings
- Parser: produces an immutable AST
- Evaluator: evaluates an AST against an explicit scope
- Dependency extraction: statically lists the form paths an expression reads
"""

from pyqt_formlogic.expressions.compiler import CompiledExpression, compile_expression
from pyqt_formlogic.expressions.dependencies import extract_dependencies
from pyqt_formlogic.expressions.evaluator import Evaluator, evaluate_ast
from pyqt_formlogic.expressions.lexer import Lexer, Token, TokenType, tokenize
from pyqt_formlogic.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Call,
    Conditional,
    Identifier,
    IndexAccess,
    Literal,
    LogicalOp,
    MemberAccess,
    Parser,
    UnaryOp,
    parse,
)
from pyqt_formlogic.expressions.semantics import (
    compare,
    loose_equals,
    strict_equals,
    to_display_string,
    to_number,
    truthy,
)

__all__ = [
    # Compilation
    "CompiledExpression",
    "compile_expression",
    "extract_dependencies",
    # Evaluator
    "Evaluator",
    "evaluate_ast",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "ASTNode",
    "ArrayLiteral",
    "BinaryOp",
    "Call",
    "Conditional",
    "Identifier",
    "IndexAccess",
    "Literal",
    "LogicalOp",
    "MemberAccess",
    "Parser",
    "UnaryOp",
    "parse",
    # Semantics
    "compare",
    "loose_equals",
    "strict_equals",
    "to_display_string",
    "to_number",
    "truthy",
]
