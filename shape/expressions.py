"""Canonical expression IR.

Closed set of immutable node types produced by the canonicalizer:

    ConstantRef(pool_index)
    Var(var_class, index)         index is local to the class
    Negated(expr)
    Sum(lhs, rhs)
    Product(lhs, rhs)             neither side is a ConstantRef
    Scaled(expr, pool_index)      a Product with a constant operand

All traversals here use explicit stacks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from shape.indexer import VarClass


class CanonicalExpression:
    """Base class of canonical IR nodes."""

    def children(self) -> tuple[CanonicalExpression, ...]:
        return ()

    def scalars(self) -> tuple:
        """Non-node fields, in field order."""
        return ()

    # Equality, hashing and repr walk the tree iteratively, so they work on
    # trees deeper than the interpreter recursion limit.

    def _key(self) -> tuple:
        # Arity is fixed per node type, so the pre-order sequence determines the tree
        return tuple((type(node), *node.scalars()) for node in preorder(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CanonicalExpression):
            return NotImplemented
        return type(self) is type(other) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        out: list[str] = []
        stack: list[CanonicalExpression | str] = [self]
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                out.append(item)
                continue
            scalars = [repr(s) if isinstance(s, int) else str(s) for s in item.scalars()]
            parts = [*item.children(), *scalars]
            stack.append(")")
            for i in reversed(range(len(parts))):
                stack.append(parts[i])
                if i:
                    stack.append(", ")
            stack.append(f"{type(item).__name__}(")
        return "".join(out)

    def identifier(self) -> str:
        """Stable textual rendering, e.g. "(advice_query[0]*fixed_query[1])"."""
        out: list[str] = []
        stack: list[CanonicalExpression | str] = [self]
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                out.append(item)
            elif isinstance(item, ConstantRef):
                out.append(f"constant_index[{item.pool_index}]")
            elif isinstance(item, Var):
                out.append(f"{_VAR_LABELS[item.var_class]}[{item.index}]")
            elif isinstance(item, Negated):
                stack.extend([")", item.expr, "(-"])
            elif isinstance(item, Sum):
                stack.extend([")", item.rhs, "+", item.lhs, "("])
            elif isinstance(item, Product):
                stack.extend([")", item.rhs, "*", item.lhs, "("])
            elif isinstance(item, Scaled):
                stack.extend([f"*constant_index[{item.pool_index}]", item.expr])
            else:
                raise TypeError(f"Unknown canonical node: {type(item).__name__}")
        return "".join(out)

    def __str__(self) -> str:
        return self.identifier()


_VAR_LABELS = {
    VarClass.advice: "advice_query",
    VarClass.fixed: "fixed_query",
    VarClass.instance: "instance_query",
    VarClass.challenge: "challenge",
}


@dataclass(frozen=True, eq=False, repr=False)
class ConstantRef(CanonicalExpression):
    pool_index: int

    def scalars(self) -> tuple:
        return (self.pool_index,)


@dataclass(frozen=True, eq=False, repr=False)
class Var(CanonicalExpression):
    var_class: VarClass
    index: int

    def scalars(self) -> tuple:
        return (self.var_class, self.index)


@dataclass(frozen=True, eq=False, repr=False)
class Negated(CanonicalExpression):
    expr: CanonicalExpression

    def children(self) -> tuple[CanonicalExpression, ...]:
        return (self.expr,)


@dataclass(frozen=True, eq=False, repr=False)
class Sum(CanonicalExpression):
    lhs: CanonicalExpression
    rhs: CanonicalExpression

    def children(self) -> tuple[CanonicalExpression, ...]:
        return (self.lhs, self.rhs)


@dataclass(frozen=True, eq=False, repr=False)
class Product(CanonicalExpression):
    lhs: CanonicalExpression
    rhs: CanonicalExpression

    def children(self) -> tuple[CanonicalExpression, ...]:
        return (self.lhs, self.rhs)


@dataclass(frozen=True, eq=False, repr=False)
class Scaled(CanonicalExpression):
    expr: CanonicalExpression
    pool_index: int

    def children(self) -> tuple[CanonicalExpression, ...]:
        return (self.expr,)

    def scalars(self) -> tuple:
        return (self.pool_index,)


def preorder(root: CanonicalExpression) -> Iterator[CanonicalExpression]:
    """Yield nodes parent-first, left to right."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children()))


def pool_indices(root: CanonicalExpression) -> Iterator[int]:
    """Every pool index referenced by ConstantRef or Scaled nodes."""
    for node in preorder(root):
        if isinstance(node, (ConstantRef, Scaled)):
            yield node.pool_index
