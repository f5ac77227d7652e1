"""Primitives - Field arithmetic and sparse polynomial building blocks."""

from primitives.field import (
    BN254_SCALAR_MODULUS,
    FF,
    REPR_SIZE,
    from_repr,
    from_uniform_bytes,
    to_field,
    to_repr,
    vk_transcript_repr,
)
from primitives.sparse_polynomial import (
    SparsePolynomial,
    SparseTerm,
)

__all__ = [
    # Field
    "FF",
    "BN254_SCALAR_MODULUS",
    "REPR_SIZE",
    "to_field",
    "to_repr",
    "from_repr",
    "from_uniform_bytes",
    "vk_transcript_repr",
    # Sparse polynomials
    "SparsePolynomial",
    "SparseTerm",
]
