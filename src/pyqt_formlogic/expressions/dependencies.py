"""Static dependency extraction.

Walks an expression AST and reports which form-value paths it reads, so the
dispatcher can re-run a rule only when one of those paths changes. Reads that
cannot be resolved statically (``formValue[someVar]``, ``formValue`` passed
whole to a function) yield the wildcard ``*``.
"""

from typing import List, Optional, Set

from pyqt_formlogic.core.path_utils import WILDCARD, join_path
from pyqt_formlogic.expressions.parser import (
    ASTNode, ArrayLiteral, BinaryOp, Call, Conditional, Identifier, IndexAccess,
    Literal, LogicalOp, MemberAccess, UnaryOp, static_member_name,
)


class DependencyCollector:

    def __init__(self, field_path: Optional[str] = None, item_path: Optional[str] = None):
        self.field_path = field_path
        self.item_path = item_path
        self.paths: Set[str] = set()

    def collect(self, node: ASTNode) -> Set[str]:
        self._visit(node)
        return self.paths

    def _record(self, root: str, segments: List[str]) -> None:
        if root == "formValue":
            self.paths.add(join_path(*segments) if segments else WILDCARD)
        elif root == "fieldValue":
            self.paths.add(self.field_path or WILDCARD)
        elif root == "itemValue" and self.item_path:
            self.paths.add(join_path(self.item_path, *segments))

    def _visit_chain(self, node: ASTNode) -> None:
        accesses = []
        while isinstance(node, (MemberAccess, IndexAccess)):
            accesses.append(node)
            node = node.obj
        accesses.reverse()

        segments: List[str] = []
        static = True
        for access in accesses:
            if isinstance(access, IndexAccess):
                self._visit(access.index)
            if static:
                name = static_member_name(access)
                if name is None:
                    static = False
                else:
                    segments.append(name)

        if isinstance(node, Identifier):
            self._record(node.name, segments)
        else:
            self._visit(node)

    def _visit(self, node: ASTNode) -> None:
        if isinstance(node, (MemberAccess, IndexAccess)):
            self._visit_chain(node)
        elif isinstance(node, Identifier):
            self._record(node.name, [])
        elif isinstance(node, Call):
            if isinstance(node.callee, MemberAccess):
                # the method name is not a data path
                callee_obj = node.callee.obj
                if isinstance(callee_obj, (MemberAccess, IndexAccess)):
                    self._visit_chain(callee_obj)
                else:
                    self._visit(callee_obj)
            elif not isinstance(node.callee, Identifier):
                self._visit(node.callee)
            for arg in node.args:
                self._visit(arg)
        elif isinstance(node, (BinaryOp, LogicalOp)):
            self._visit(node.left)
            self._visit(node.right)
        elif isinstance(node, UnaryOp):
            self._visit(node.operand)
        elif isinstance(node, Conditional):
            self._visit(node.test)
            self._visit(node.consequent)
            self._visit(node.alternate)
        elif isinstance(node, ArrayLiteral):
            for element in node.elements:
                self._visit(element)
        elif isinstance(node, Literal):
            pass


def extract_dependencies(node: ASTNode, field_path: Optional[str] = None,
                         item_path: Optional[str] = None) -> frozenset:
    """Return the set of form paths ``node`` reads."""
    return frozenset(DependencyCollector(field_path, item_path).collect(node))
