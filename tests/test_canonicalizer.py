"""Tests for raw -> canonical expression rewriting."""

import pytest

from shape.canonicalizer import Canonicalizer
from shape.constant_pool import ConstantPool
from shape.constraint_system import Constant, ConstraintSystem, Selector
from shape.errors import SchemaInconsistency
from shape.expressions import (
    ConstantRef,
    Negated,
    Product,
    Scaled,
    Sum,
    Var,
    pool_indices,
    preorder,
)
from shape.indexer import VarClass, VariableIndexer

ADVICE = VarClass.advice
FIXED = VarClass.fixed
CHALLENGE = VarClass.challenge


class Circuit:
    """Two advice columns, one fixed column, one challenge."""

    def __init__(self) -> None:
        self.cs = ConstraintSystem()
        a, b = self.cs.advice_column(), self.cs.advice_column()
        f = self.cs.fixed_column()
        self.a = self.cs.query(a)
        self.b = self.cs.query(b)
        self.a_next = self.cs.query(a, 1)
        self.f = self.cs.query(f)
        self.theta = self.cs.challenge_usable_after(0)
        self.pool = ConstantPool()
        self.canon = Canonicalizer(VariableIndexer.from_constraint_system(self.cs), self.pool)


class TestRewriting:
    """Structural rules."""

    def test_leaves(self) -> None:
        c = Circuit()
        assert c.canon.canonicalize(c.a) == Var(ADVICE, 0)
        assert c.canon.canonicalize(c.a_next) == Var(ADVICE, 2)
        assert c.canon.canonicalize(c.f) == Var(FIXED, 0)
        assert c.canon.canonicalize(c.theta) == Var(CHALLENGE, 0)
        assert c.canon.canonicalize(Constant(9)) == ConstantRef(0)

    def test_mul_gate(self) -> None:
        """a0 * a1 - f0."""
        c = Circuit()
        expr = c.canon.canonicalize(c.a * c.b - c.f)
        assert expr == Sum(Product(Var(ADVICE, 0), Var(ADVICE, 1)), Negated(Var(FIXED, 0)))
        assert len(c.pool) == 0

    def test_constant_on_either_side_scales(self) -> None:
        """c*x and x*c produce the same node."""
        c = Circuit()
        left = c.canon.canonicalize(5 * c.a)
        right = c.canon.canonicalize(c.a * 5)
        assert left == right == Scaled(Var(ADVICE, 0), 0)

    def test_product_of_constants_scales_right_operand(self) -> None:
        c = Circuit()
        expr = c.canon.canonicalize(Constant(2) * Constant(3))
        assert expr == Scaled(ConstantRef(1), 0)

    def test_no_algebraic_simplification(self) -> None:
        c = Circuit()
        expr = c.canon.canonicalize(-(-c.a) + 0)
        assert expr == Sum(Negated(Negated(Var(ADVICE, 0))), ConstantRef(0))

    def test_scaled_subtree(self) -> None:
        c = Circuit()
        expr = c.canon.canonicalize((c.a + c.b) * 4)
        assert expr == Scaled(Sum(Var(ADVICE, 0), Var(ADVICE, 1)), 0)

    def test_no_product_has_constant_child(self) -> None:
        c = Circuit()
        expr = c.canon.canonicalize((3 * c.a) * (c.b * 4) * (c.f * c.theta * 3))
        for node in preorder(expr):
            if isinstance(node, Product):
                assert not isinstance(node.lhs, ConstantRef)
                assert not isinstance(node.rhs, ConstantRef)


class TestInterning:
    """Constant pool interaction."""

    def test_shared_constant(self) -> None:
        """7*x - 7 interns 7 once."""
        c = Circuit()
        expr = c.canon.canonicalize(7 * c.a - 7)
        assert expr == Sum(Scaled(Var(ADVICE, 0), 0), Negated(ConstantRef(0)))
        assert len(c.pool) == 1
        assert list(pool_indices(expr)) == [0, 0]

    def test_left_to_right_order(self) -> None:
        c = Circuit()
        c.canon.canonicalize_all([c.a * 11 + 22, 33 - c.b * 11])
        assert [int(v) for v in c.pool.values()] == [11, 22, 33]

    def test_deterministic(self) -> None:
        first, second = Circuit(), Circuit()
        exprs = [first.a * 3 + first.f * 9, first.theta * first.b - 3]
        assert first.canon.canonicalize_all(exprs) == second.canon.canonicalize_all(exprs)
        assert first.pool.entries == second.pool.entries

    def test_pool_indices_in_range(self) -> None:
        c = Circuit()
        expr = c.canon.canonicalize((c.a * 2 + 3) * (c.b - 5) * 2)
        assert all(0 <= i < len(c.pool) for i in pool_indices(expr))


class TestErrors:
    """Inconsistent inputs are rejected."""

    def test_selector(self) -> None:
        c = Circuit()
        with pytest.raises(SchemaInconsistency, match="selector"):
            c.canon.canonicalize(Selector(0) * c.a)

    def test_unregistered_query(self) -> None:
        c = Circuit()
        other = ConstraintSystem()
        other.advice_column()
        stray = other.query(other.advice_column(), -3)
        with pytest.raises(SchemaInconsistency, match="unregistered query"):
            c.canon.canonicalize(c.a + stray)

    def test_unregistered_challenge(self) -> None:
        c = Circuit()
        stray = ConstraintSystem()
        stray.challenge_usable_after(0)
        late = stray.challenge_usable_after(0)
        with pytest.raises(SchemaInconsistency, match="challenge 1"):
            c.canon.canonicalize(late * c.a)


def test_identifier_rendering() -> None:
    expr = Sum(Scaled(Var(ADVICE, 0), 1), Negated(Product(Var(FIXED, 2), Var(CHALLENGE, 0))))
    assert expr.identifier() == (
        "(advice_query[0]*constant_index[1]+(-(fixed_query[2]*challenge[0])))"
    )
    assert str(ConstantRef(3)) == "constant_index[3]"


def test_equality_compares_structure() -> None:
    assert Scaled(Var(ADVICE, 0), 1) == Scaled(Var(ADVICE, 0), 1)
    assert Scaled(Var(ADVICE, 0), 1) != Scaled(Var(ADVICE, 0), 2)
    assert Sum(ConstantRef(0), Var(FIXED, 1)) != Product(ConstantRef(0), Var(FIXED, 1))
    assert Var(ADVICE, 0) != Var(FIXED, 0)
    assert len({Negated(ConstantRef(0)), Negated(ConstantRef(0)), ConstantRef(0)}) == 2
    assert repr(Scaled(Var(FIXED, 2), 3)) == "Scaled(Var(VarClass.fixed, 2), 3)"
