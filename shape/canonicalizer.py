"""Raw expression -> canonical IR.

Rules:
    Constant        -> ConstantRef(pool.intern(value))
    Query           -> Var(class, indexer.index_of(class, column, rotation))
    Challenge       -> Var(challenge, index)
    Negated / Sum   -> structural copy, no algebraic simplification
    Product         -> Scaled(other, idx) if either side canonicalized to
                       ConstantRef(idx) (left side checked first), else Product
    Selector        -> SchemaInconsistency

The Scaled rewrite always applies, so c*x and x*c produce the same node.
"""

from __future__ import annotations

from shape import constraint_system as raw
from shape.constant_pool import ConstantPool
from shape.errors import SchemaInconsistency
from shape.expressions import (
    CanonicalExpression,
    ConstantRef,
    Negated,
    Product,
    Scaled,
    Sum,
    Var,
)
from shape.indexer import VarClass, VariableIndexer, var_class_of


class Canonicalizer:
    """Rewrites raw expressions against one circuit's indexer and constant pool."""

    def __init__(self, indexer: VariableIndexer, pool: ConstantPool) -> None:
        self.indexer = indexer
        self.pool = pool

    def canonicalize(self, expr: raw.Expression) -> CanonicalExpression:
        """Canonicalize one expression tree, interning its constants left to right.

        Raises:
            SchemaInconsistency: On a selector or an unregistered query/challenge
        """
        values: list[CanonicalExpression] = []
        for node in raw.postorder(expr):
            if isinstance(node, raw.Constant):
                values.append(ConstantRef(self.pool.intern(node.value)))
            elif isinstance(node, raw.Query):
                var_class = var_class_of(node.column.kind)
                local = self.indexer.index_of(var_class, node.column, node.rotation)
                values.append(Var(var_class, local))
            elif isinstance(node, raw.Challenge):
                values.append(Var(VarClass.challenge, self.indexer.challenge_index(node.index)))
            elif isinstance(node, raw.Selector):
                raise SchemaInconsistency(
                    f"Virtual selector {node.index} survived optimization"
                )
            elif isinstance(node, raw.Negated):
                values.append(Negated(values.pop()))
            elif isinstance(node, raw.Sum):
                rhs = values.pop()
                values.append(Sum(values.pop(), rhs))
            elif isinstance(node, raw.Product):
                rhs = values.pop()
                values.append(_product(values.pop(), rhs))
            else:
                raise TypeError(f"Unknown expression node: {type(node).__name__}")
        return values.pop()

    def canonicalize_all(self, exprs) -> tuple[CanonicalExpression, ...]:
        return tuple(self.canonicalize(e) for e in exprs)


def _product(lhs: CanonicalExpression, rhs: CanonicalExpression) -> CanonicalExpression:
    if isinstance(lhs, ConstantRef):
        return Scaled(rhs, lhs.pool_index)
    if isinstance(rhs, ConstantRef):
        return Scaled(lhs, rhs.pool_index)
    return Product(lhs, rhs)
