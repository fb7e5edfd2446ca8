"""Compile-once cache for expression text."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional

from pyqt_formlogic.expressions.dependencies import extract_dependencies
from pyqt_formlogic.expressions.evaluator import evaluate_ast
from pyqt_formlogic.expressions.parser import ASTNode, parse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledExpression:
    """A parsed expression ready for repeated evaluation."""
    source: str
    ast: ASTNode

    def evaluate(self, scope: Mapping[str, Any], functions: Optional[Mapping[str, Callable]] = None) -> Any:
        return evaluate_ast(self.ast, self.source, scope, functions)

    def dependencies(self, field_path: Optional[str] = None, item_path: Optional[str] = None) -> frozenset:
        return _dependencies(self, field_path, item_path)


@lru_cache(maxsize=1024)
def compile_expression(source: str) -> CompiledExpression:
    """Parse ``source`` once; later calls with the same text hit the cache.

    Raises:
        ExpressionSyntaxError: if the text does not parse
    """
    logger.debug(f"Compiling expression {source!r}")
    return CompiledExpression(source, parse(source))


@lru_cache(maxsize=4096)
def _dependencies(compiled: CompiledExpression, field_path, item_path) -> frozenset:
    return extract_dependencies(compiled.ast, field_path, item_path)
