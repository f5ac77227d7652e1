"""Sparse multivariate polynomials in coefficient form.

A SparseTerm is a monomial x_i1^e1 * x_i2^e2 * ... stored as a tuple of
(index, exponent) pairs with strictly increasing indices and positive
exponents. Terms order lexicographically on that tuple, so the constant term
(empty tuple) sorts first.

A SparsePolynomial is a tuple of (coefficient, term) pairs sorted by term with
at most one pair per term and no zero coefficients. Every constructor and
operator returns a polynomial in this normal form.

Example:
    x0 = SparsePolynomial.variable(0, num_vars=2)
    x1 = SparsePolynomial.variable(1, num_vars=2)
    p = x0 * x1 - SparsePolynomial.constant(5, num_vars=2)
    assert p.degree() == 2
"""

from __future__ import annotations

from typing import Iterable, Sequence

from primitives.field import FF, to_field


# --- Terms ---

class SparseTerm:
    """Monomial as sorted (variable index, exponent) pairs."""

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Iterable[tuple[int, int]] = ()) -> None:
        """Build a term, merging repeated indices and dropping zero exponents.

        Raises:
            ValueError: On a negative index or exponent
        """
        powers: dict[int, int] = {}
        for index, exponent in pairs:
            if index < 0 or exponent < 0:
                raise ValueError(f"Invalid term factor x_{index}^{exponent}")
            powers[index] = powers.get(index, 0) + exponent
        self._pairs = tuple(sorted((i, e) for i, e in powers.items() if e != 0))

    @classmethod
    def _from_sorted(cls, pairs: tuple[tuple[int, int], ...]) -> SparseTerm:
        term = cls.__new__(cls)
        term._pairs = pairs
        return term

    @property
    def pairs(self) -> tuple[tuple[int, int], ...]:
        return self._pairs

    def degree(self) -> int:
        """Total degree (sum of exponents)."""
        return sum(e for _, e in self._pairs)

    def is_constant(self) -> bool:
        return not self._pairs

    def max_index(self) -> int:
        """Largest variable index, or -1 for the constant term."""
        return self._pairs[-1][0] if self._pairs else -1

    def evaluate(self, point: Sequence) -> FF:
        """Evaluate the monomial at a point given as field values per index."""
        result = FF(1)
        for index, exponent in self._pairs:
            result = result * to_field(point[index]) ** exponent
        return result

    def __mul__(self, other: SparseTerm) -> SparseTerm:
        # Merge two sorted pair lists, adding exponents of shared indices
        a, b = self._pairs, other._pairs
        i = j = 0
        merged = []
        while i < len(a) and j < len(b):
            if a[i][0] < b[j][0]:
                merged.append(a[i])
                i += 1
            elif a[i][0] > b[j][0]:
                merged.append(b[j])
                j += 1
            else:
                merged.append((a[i][0], a[i][1] + b[j][1]))
                i += 1
                j += 1
        merged.extend(a[i:])
        merged.extend(b[j:])
        return SparseTerm._from_sorted(tuple(merged))

    def __iter__(self):
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseTerm):
            return NotImplemented
        return self._pairs == other._pairs

    def __lt__(self, other: SparseTerm) -> bool:
        return self._pairs < other._pairs

    def __le__(self, other: SparseTerm) -> bool:
        return self._pairs <= other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __repr__(self) -> str:
        if not self._pairs:
            return "1"
        return "*".join(f"x_{i}" if e == 1 else f"x_{i}^{e}" for i, e in self._pairs)


# --- Polynomials ---

Terms = tuple[tuple[FF, SparseTerm], ...]


def _normalize(terms: Iterable[tuple[object, SparseTerm]]) -> Terms:
    """Sort by term, add up coefficients of equal terms, drop zeros."""
    ordered = sorted(((to_field(c), t) for c, t in terms), key=lambda ct: ct[1].pairs)
    merged: list[tuple[FF, SparseTerm]] = []
    for coeff, term in ordered:
        if merged and merged[-1][1] == term:
            merged[-1] = (merged[-1][0] + coeff, term)
        else:
            merged.append((coeff, term))
    return tuple((c, t) for c, t in merged if c != 0)


class SparsePolynomial:
    """Sum of distinct monomials with non-zero coefficients."""

    __slots__ = ("num_vars", "_terms")

    # Field elements are numpy arrays; this makes FF(c) * p fall through to __rmul__
    __array_ufunc__ = None

    def __init__(self, num_vars: int, terms: Iterable[tuple[object, SparseTerm]] = ()) -> None:
        """Build a polynomial from (coefficient, term) pairs in any order.

        Raises:
            ValueError: If a term references a variable index >= num_vars
        """
        normalized = _normalize(terms)
        for _, term in normalized:
            if term.max_index() >= num_vars:
                raise ValueError(
                    f"Term {term!r} references a variable outside {num_vars} indeterminates"
                )
        self.num_vars = num_vars
        self._terms = normalized

    @classmethod
    def _from_normalized(cls, num_vars: int, terms: Terms) -> SparsePolynomial:
        poly = cls.__new__(cls)
        poly.num_vars = num_vars
        poly._terms = terms
        return poly

    # --- Constructors ---

    @classmethod
    def zero(cls, num_vars: int = 0) -> SparsePolynomial:
        return cls._from_normalized(num_vars, ())

    @classmethod
    def constant(cls, value, num_vars: int = 0) -> SparsePolynomial:
        """Single-term polynomial value * x^0."""
        return cls(num_vars, [(value, SparseTerm())])

    @classmethod
    def variable(cls, index: int, num_vars: int) -> SparsePolynomial:
        """Single-term polynomial 1 * x_index."""
        return cls(num_vars, [(FF(1), SparseTerm([(index, 1)]))])

    # --- Inspection ---

    @property
    def terms(self) -> Terms:
        return self._terms

    def is_zero(self) -> bool:
        return not self._terms

    def degree(self) -> int:
        """Total degree; the zero polynomial has degree 0."""
        return max((t.degree() for _, t in self._terms), default=0)

    def is_normalized(self) -> bool:
        """Check sorted, duplicate-free, zero-free term list."""
        for i, (coeff, term) in enumerate(self._terms):
            if coeff == 0:
                return False
            if i > 0 and not self._terms[i - 1][1] < term:
                return False
        return True

    def evaluate(self, point: Sequence) -> FF:
        """Evaluate at a point with one value per variable.

        Raises:
            ValueError: If the point has fewer than num_vars coordinates
        """
        if len(point) < self.num_vars:
            raise ValueError(f"Point has {len(point)} coordinates, need {self.num_vars}")
        result = FF(0)
        for coeff, term in self._terms:
            result = result + coeff * term.evaluate(point)
        return result

    # --- Arithmetic ---

    def __add__(self, other: SparsePolynomial) -> SparsePolynomial:
        if not isinstance(other, SparsePolynomial):
            return NotImplemented
        # Both term lists are sorted, so a single merge pass suffices
        a, b = self._terms, other._terms
        i = j = 0
        result: list[tuple[FF, SparseTerm]] = []
        while i < len(a) and j < len(b):
            ta, tb = a[i][1], b[j][1]
            if ta < tb:
                result.append(a[i])
                i += 1
            elif tb < ta:
                result.append(b[j])
                j += 1
            else:
                coeff = a[i][0] + b[j][0]
                if coeff != 0:
                    result.append((coeff, ta))
                i += 1
                j += 1
        result.extend(a[i:])
        result.extend(b[j:])
        return SparsePolynomial._from_normalized(max(self.num_vars, other.num_vars), tuple(result))

    def __neg__(self) -> SparsePolynomial:
        return SparsePolynomial._from_normalized(
            self.num_vars, tuple((-c, t) for c, t in self._terms)
        )

    def __sub__(self, other: SparsePolynomial) -> SparsePolynomial:
        if not isinstance(other, SparsePolynomial):
            return NotImplemented
        return self + (-other)

    def scale(self, scalar) -> SparsePolynomial:
        """Multiply every coefficient by a field scalar."""
        s = to_field(scalar)
        if s == 0 or self.is_zero():
            return SparsePolynomial.zero(self.num_vars)
        return SparsePolynomial._from_normalized(
            self.num_vars, tuple((c * s, t) for c, t in self._terms)
        )

    def __mul__(self, other) -> SparsePolynomial:
        if not isinstance(other, SparsePolynomial):
            return self.scale(other)
        num_vars = max(self.num_vars, other.num_vars)
        if self.is_zero() or other.is_zero():
            return SparsePolynomial.zero(num_vars)
        products = [
            (ca * cb, ta * tb)
            for ca, ta in self._terms
            for cb, tb in other._terms
        ]
        return SparsePolynomial._from_normalized(num_vars, _normalize(products))

    def __rmul__(self, scalar) -> SparsePolynomial:
        return self.scale(scalar)

    # --- Comparison ---

    def _key(self) -> tuple:
        return tuple((int(c), t.pairs) for c, t in self._terms)

    def __eq__(self, other: object) -> bool:
        # num_vars does not take part in equality
        if not isinstance(other, SparsePolynomial):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        if not self._terms:
            return "SparsePolynomial(0)"
        body = " + ".join(
            str(int(c)) if t.is_constant() else f"{int(c)}*{t!r}" for c, t in self._terms
        )
        return f"SparsePolynomial({body})"
