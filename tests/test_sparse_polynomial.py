"""Tests for sparse multivariate polynomials."""

import random

import pytest

from primitives.field import BN254_SCALAR_MODULUS, FF
from primitives.sparse_polynomial import SparsePolynomial, SparseTerm

NUM_VARS = 4


def random_poly(rng: random.Random, max_terms: int = 5) -> SparsePolynomial:
    """Random polynomial over NUM_VARS variables with small exponents."""
    terms = []
    for _ in range(rng.randint(0, max_terms)):
        pairs = [(rng.randrange(NUM_VARS), rng.randint(1, 2)) for _ in range(rng.randint(0, 3))]
        terms.append((rng.randrange(BN254_SCALAR_MODULUS), SparseTerm(pairs)))
    return SparsePolynomial(NUM_VARS, terms)


def random_point(rng: random.Random) -> list:
    return [FF(rng.randrange(BN254_SCALAR_MODULUS)) for _ in range(NUM_VARS)]


class TestSparseTerm:
    """Tests for monomials."""

    def test_merges_repeated_indices(self) -> None:
        assert SparseTerm([(2, 1), (0, 3), (2, 2)]).pairs == ((0, 3), (2, 3))

    def test_drops_zero_exponents(self) -> None:
        assert SparseTerm([(1, 0)]).is_constant()

    def test_negative_exponent_rejected(self) -> None:
        with pytest.raises(ValueError):
            SparseTerm([(0, -1)])

    def test_product_adds_exponents(self) -> None:
        t = SparseTerm([(0, 1), (2, 1)]) * SparseTerm([(1, 1), (2, 2)])
        assert t.pairs == ((0, 1), (1, 1), (2, 3))
        assert t.degree() == 5

    def test_lexicographic_order(self) -> None:
        """Constant term first, then by (index, exponent) sequence."""
        one = SparseTerm()
        x0 = SparseTerm([(0, 1)])
        x0_sq = SparseTerm([(0, 2)])
        x0x1 = SparseTerm([(0, 1), (1, 1)])
        x1 = SparseTerm([(1, 1)])
        assert sorted([x1, x0_sq, x0x1, one, x0]) == [one, x0, x0x1, x0_sq, x1]


class TestNormalForm:
    """Every constructor and operator returns a normalized polynomial."""

    def test_constructor_combines_and_sorts(self) -> None:
        x1 = SparseTerm([(1, 1)])
        x0 = SparseTerm([(0, 1)])
        p = SparsePolynomial(2, [(3, x1), (5, x0), (-3, x1)])
        assert p.is_normalized()
        assert p.terms == ((FF(5), x0),)

    def test_zero_coefficients_purged(self) -> None:
        p = SparsePolynomial(1, [(0, SparseTerm()), (BN254_SCALAR_MODULUS, SparseTerm([(0, 1)]))])
        assert p.is_zero()
        assert p.terms == ()

    def test_variable_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="outside"):
            SparsePolynomial.variable(3, num_vars=3)

    def test_operations_preserve_normal_form(self) -> None:
        """Invariants hold after each operation, including chained ones."""
        rng = random.Random(1234)
        for _ in range(30):
            p, q, r = random_poly(rng), random_poly(rng), random_poly(rng)
            for result in [p + q, p - q, -p, p * q, (p + q) * r, p * q - r, p.scale(rng.randrange(7))]:
                assert result.is_normalized()

    def test_add_negation_is_zero(self) -> None:
        rng = random.Random(7)
        for _ in range(10):
            p = random_poly(rng)
            assert (p + (-p)).is_zero()
            assert (p - p).terms == ()

    def test_multiply_by_zero(self) -> None:
        rng = random.Random(8)
        p = random_poly(rng)
        zero = SparsePolynomial.zero(NUM_VARS)
        assert (p * zero).is_zero()
        assert (zero * p).is_zero()
        assert p.scale(0).is_zero()

    def test_equality_ignores_num_vars(self) -> None:
        assert SparsePolynomial.variable(0, 1) == SparsePolynomial.variable(0, 5)


class TestAlgebra:
    """Ring laws and agreement with point evaluation."""

    def test_commutativity(self) -> None:
        rng = random.Random(42)
        for _ in range(20):
            p, q = random_poly(rng), random_poly(rng)
            assert p + q == q + p
            assert p * q == q * p

    def test_associativity(self) -> None:
        rng = random.Random(43)
        for _ in range(10):
            p, q, r = random_poly(rng, 3), random_poly(rng, 3), random_poly(rng, 3)
            assert (p + q) + r == p + (q + r)
            assert (p * q) * r == p * (q * r)

    def test_distributivity(self) -> None:
        rng = random.Random(44)
        for _ in range(10):
            p, q, r = random_poly(rng, 3), random_poly(rng, 3), random_poly(rng, 3)
            assert p * (q + r) == p * q + p * r

    def test_evaluation_is_a_homomorphism(self) -> None:
        rng = random.Random(45)
        for _ in range(10):
            p, q = random_poly(rng), random_poly(rng)
            x = random_point(rng)
            assert (p + q).evaluate(x) == p.evaluate(x) + q.evaluate(x)
            assert (p * q).evaluate(x) == p.evaluate(x) * q.evaluate(x)
            assert (-p).evaluate(x) == -p.evaluate(x)

    def test_degree(self) -> None:
        x0 = SparsePolynomial.variable(0, 2)
        x1 = SparsePolynomial.variable(1, 2)
        p = x0 * x1 * x1 - SparsePolynomial.constant(5, 2)
        assert p.degree() == 3
        assert SparsePolynomial.zero(2).degree() == 0

    def test_evaluate_short_point_rejected(self) -> None:
        with pytest.raises(ValueError, match="coordinates"):
            SparsePolynomial.variable(1, 2).evaluate([FF(1)])

    def test_scalar_multiplication(self) -> None:
        x0 = SparsePolynomial.variable(0, 1)
        assert 3 * x0 == x0.scale(3)
        assert x0 * 3 == x0.scale(3)
        assert (3 * x0).terms == ((FF(3), SparseTerm([(0, 1)])),)

    def test_field_element_times_polynomial(self) -> None:
        """FF(c) * p scales like c * p."""
        x0 = SparsePolynomial.variable(0, 1)
        assert FF(3) * x0 == x0.scale(3)
        assert x0 * FF(3) == x0.scale(3)
        assert (FF(0) * x0).is_zero()
