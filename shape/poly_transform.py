"""Raw expression -> flat sparse polynomial.

Alternate IR for verifiers that evaluate a sum of monomials instead of an
expression tree. Every query and challenge is a variable x_i where i is its
position in the VariableIndexer's flat index space.
"""

from __future__ import annotations

from dataclasses import dataclass

from primitives.field import FF
from primitives.sparse_polynomial import SparsePolynomial
from shape import constraint_system as raw
from shape.errors import SchemaInconsistency
from shape.indexer import VarClass, VariableIndexer, var_class_of


def to_sparse_polynomial(expr: raw.Expression, indexer: VariableIndexer) -> SparsePolynomial:
    """Expand an expression tree into a normalized SparsePolynomial.

    Raises:
        SchemaInconsistency: On a selector or an unregistered query/challenge
    """
    num_vars = indexer.width
    values: list[SparsePolynomial] = []
    for node in raw.postorder(expr):
        if isinstance(node, raw.Constant):
            values.append(SparsePolynomial.constant(node.value, num_vars))
        elif isinstance(node, raw.Query):
            var_class = var_class_of(node.column.kind)
            local = indexer.index_of(var_class, node.column, node.rotation)
            values.append(SparsePolynomial.variable(indexer.global_index(var_class, local), num_vars))
        elif isinstance(node, raw.Challenge):
            local = indexer.challenge_index(node.index)
            values.append(
                SparsePolynomial.variable(indexer.global_index(VarClass.challenge, local), num_vars)
            )
        elif isinstance(node, raw.Selector):
            raise SchemaInconsistency(f"Virtual selector {node.index} survived optimization")
        elif isinstance(node, raw.Negated):
            values.append(-values.pop())
        elif isinstance(node, raw.Sum):
            rhs = values.pop()
            values.append(values.pop() + rhs)
        elif isinstance(node, raw.Product):
            rhs = values.pop()
            lhs = values.pop()
            values.append(_multiply(lhs, rhs))
        else:
            raise TypeError(f"Unknown expression node: {type(node).__name__}")
    return values.pop()


def _multiply(lhs: SparsePolynomial, rhs: SparsePolynomial) -> SparsePolynomial:
    # Constant factors only rescale coefficients
    if _is_constant(lhs):
        return rhs.scale(_constant_value(lhs))
    if _is_constant(rhs):
        return lhs.scale(_constant_value(rhs))
    return lhs * rhs


def _is_constant(p: SparsePolynomial) -> bool:
    return all(term.is_constant() for _, term in p.terms)


def _constant_value(p: SparsePolynomial) -> FF:
    return p.terms[0][0] if p.terms else FF(0)


@dataclass(frozen=True)
class CircuitPolynomials:
    """Every gate, lookup and shuffle expression of a circuit as a sparse polynomial."""
    num_vars: int
    gates: tuple[tuple[SparsePolynomial, ...], ...]
    lookups_input: tuple[tuple[SparsePolynomial, ...], ...]
    lookups_table: tuple[tuple[SparsePolynomial, ...], ...]
    shuffles_input: tuple[tuple[SparsePolynomial, ...], ...]
    shuffles_shuffle: tuple[tuple[SparsePolynomial, ...], ...]


def circuit_polynomials(cs: raw.ConstraintSystem) -> CircuitPolynomials:
    """Convert all arguments of a constraint system, in the canonical traversal order."""
    indexer = VariableIndexer.from_constraint_system(cs)

    def convert(exprs) -> tuple[SparsePolynomial, ...]:
        return tuple(to_sparse_polynomial(e, indexer) for e in exprs)

    return CircuitPolynomials(
        num_vars=indexer.width,
        gates=tuple(convert(g.polys) for g in cs.gates),
        lookups_input=tuple(convert(lk.input_exprs) for lk in cs.lookups),
        lookups_table=tuple(convert(lk.table_exprs) for lk in cs.lookups),
        shuffles_input=tuple(convert(s.input_exprs) for s in cs.shuffles),
        shuffles_shuffle=tuple(convert(s.shuffle_exprs) for s in cs.shuffles),
    )
