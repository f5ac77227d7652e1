"""Shape - Circuit shape extraction, canonicalization and encoding."""

from shape.canonicalizer import Canonicalizer
from shape.circuit_shape import (
    CanonicalGate,
    CanonicalLookup,
    CanonicalShuffle,
    CircuitShape,
    VerifyingKeyData,
    build_circuit_shape,
    build_from_keygen,
)
from shape.constant_pool import ConstantPool
from shape.constraint_system import (
    Column,
    ColumnKind,
    ColumnQuery,
    ConstraintSystem,
    Rotation,
    parse_expression,
)
from shape.decode import (
    ArtifactReader,
    GeneralInfo,
    decode_artifact,
    decode_expressions,
    decode_shape,
    read_general_info,
)
from shape.errors import (
    CollaboratorError,
    IndexOverflow,
    SchemaInconsistency,
    ShapeError,
)
from shape.expressions import CanonicalExpression
from shape.indexer import VarClass, VariableIndexer
from shape.poly_transform import CircuitPolynomials, circuit_polynomials, to_sparse_polynomial
from shape.serialize import (
    GROUP_NAMES,
    ArtifactGroup,
    IndexWidth,
    ShapeArtifact,
    serialize,
)

__all__ = [
    # Constraint system
    "Column",
    "ColumnKind",
    "ColumnQuery",
    "ConstraintSystem",
    "Rotation",
    "parse_expression",
    # Canonicalization
    "CanonicalExpression",
    "Canonicalizer",
    "ConstantPool",
    "VarClass",
    "VariableIndexer",
    # Shape
    "CanonicalGate",
    "CanonicalLookup",
    "CanonicalShuffle",
    "CircuitShape",
    "VerifyingKeyData",
    "build_circuit_shape",
    "build_from_keygen",
    # Sparse polynomial form
    "CircuitPolynomials",
    "circuit_polynomials",
    "to_sparse_polynomial",
    # Encoding
    "GROUP_NAMES",
    "ArtifactGroup",
    "IndexWidth",
    "ShapeArtifact",
    "serialize",
    "ArtifactReader",
    "GeneralInfo",
    "decode_artifact",
    "decode_expressions",
    "decode_shape",
    "read_general_info",
    # Errors
    "ShapeError",
    "SchemaInconsistency",
    "IndexOverflow",
    "CollaboratorError",
]
