"""Adaptive-width binary encoding of a CircuitShape.

The artifact is a fixed sequence of named groups, each a list of byte-string
elements:

    General Info                  scalar parameters and the two width flags
    Advice Queries                one element per query: column + rotation
    Instance Queries
    Fixed Queries
    Permutation Columns           one element per column
    Fields Pool                   one 32-byte LE field element per constant
    Gates                         one element per gate (its expressions, concatenated)
    Lookups Input Expressions     one element per lookup
    Lookups Table Expressions
    Shuffles Input Expressions    one element per shuffle
    Shuffles Shuffle Expressions

Expressions are written pre-order as a one-byte opcode followed by operands.
Query and pool indices use one byte when the corresponding width flag says
so and four bytes (LE) otherwise. Challenge indices are always four bytes.

ShapeArtifact.to_bytes() flattens the groups:

    u32 group_count
    per group:   u32 element_count
    per element: u32 byte_length, bytes
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import Enum

import numpy as np

from shape.circuit_shape import CircuitShape
from shape.constraint_system import Column, ColumnQuery
from shape.errors import IndexOverflow
from shape.expressions import (
    CanonicalExpression,
    ConstantRef,
    Negated,
    Product,
    Scaled,
    Sum,
    Var,
)
from shape.indexer import VarClass

logger = logging.getLogger(__name__)

# --- Opcodes ---

OP_CONSTANT = 0x00
OP_FIXED = 0x02
OP_ADVICE = 0x03
OP_INSTANCE = 0x04
OP_CHALLENGE = 0x05
OP_NEGATED = 0x06
OP_SUM = 0x07
OP_PRODUCT = 0x08
OP_SCALED = 0x09

VAR_OPCODES = {
    VarClass.fixed: OP_FIXED,
    VarClass.advice: OP_ADVICE,
    VarClass.instance: OP_INSTANCE,
    VarClass.challenge: OP_CHALLENGE,
}

U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF

# --- Group Layout ---

GROUP_NAMES = (
    "General Info",
    "Advice Queries",
    "Instance Queries",
    "Fixed Queries",
    "Permutation Columns",
    "Fields Pool",
    "Gates",
    "Lookups Input Expressions",
    "Lookups Table Expressions",
    "Shuffles Input Expressions",
    "Shuffles Shuffle Expressions",
)

# Element positions inside the General Info group
GI_TRANSCRIPT_REPR = 0
GI_FIXED_COMMITMENTS = 1
GI_PERMUTATION_COMMITMENTS = 2
GI_K = 3
GI_MAX_QUERIES_PER_ADVICE_COLUMN = 4
GI_DEGREE = 5
GI_NUM_FIXED_COLUMNS = 6
GI_NUM_INSTANCE_COLUMNS = 7
GI_ADVICE_COLUMN_PHASE = 8
GI_CHALLENGE_PHASE = 9
GI_QUERY_INDEX_WIDTH = 10
GI_POOL_INDEX_WIDTH = 11


class IndexWidth(Enum):
    """Index encoding width. Values are the flag bytes written to General Info."""
    u8 = 0
    u32 = 1

    @property
    def dtype(self) -> np.dtype:
        return np.dtype("u1") if self == IndexWidth.u8 else np.dtype("<u4")

    @property
    def max_value(self) -> int:
        return int(np.iinfo(self.dtype).max)


# --- Width Selection ---

def _width_for_counts(what: str, counts) -> IndexWidth:
    for count in counts:
        # Indices run 0..count-1, so count itself may reach U32_MAX + 1
        if count > U32_MAX + 1:
            raise IndexOverflow(what, count, U32_MAX + 1)
    if all(count <= IndexWidth.u8.max_value for count in counts):
        return IndexWidth.u8
    return IndexWidth.u32


def pool_index_width(shape: CircuitShape) -> IndexWidth:
    """u8 iff the pool holds fewer than 256 constants.

    Raises:
        IndexOverflow: If the pool is too large even for u32 indices
    """
    return _width_for_counts("constant pool size", [len(shape.constant_pool)])


def query_index_width(shape: CircuitShape) -> IndexWidth:
    """u8 iff each of the three query lists holds fewer than 256 queries.

    Raises:
        IndexOverflow: If a query list is too large even for u32 indices
    """
    return _width_for_counts(
        "query list size",
        [len(shape.advice_queries), len(shape.fixed_queries), len(shape.instance_queries)],
    )


# --- Scalar Encoding ---

def encode_index(value: int, width: IndexWidth, what: str = "index") -> bytes:
    """Encode an index at the given width.

    Raises:
        IndexOverflow: If value does not fit
    """
    if not 0 <= value <= width.max_value:
        raise IndexOverflow(what, value, width.max_value)
    return np.array([value], dtype=width.dtype).tobytes()


def _u8(value: int, what: str) -> bytes:
    if not 0 <= value <= 0xFF:
        raise IndexOverflow(what, value, 0xFF)
    return struct.pack("<B", value)


def _u32(value: int, what: str) -> bytes:
    if not 0 <= value <= U32_MAX:
        raise IndexOverflow(what, value, U32_MAX)
    return struct.pack("<I", value)


def _u64(value: int, what: str) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise IndexOverflow(what, value, U64_MAX)
    return struct.pack("<Q", value)


def _phases(phases) -> bytes:
    for phase in phases:
        if not 0 <= phase <= 0xFF:
            raise IndexOverflow("phase", phase, 0xFF)
    return np.asarray(phases, dtype=np.uint8).tobytes()


# --- Columns and Queries ---

def serialize_column(column: Column) -> bytes:
    """(kind: u8, index: u32 LE)."""
    return struct.pack("<B", column.kind.value) + _u32(column.index, "column index")


def serialize_column_query(query: ColumnQuery) -> bytes:
    """Column followed by (direction: u8, magnitude: u32 LE); forward is 1."""
    rotation = query.rotation
    return (
        serialize_column(query.column)
        + struct.pack("<B", 1 if rotation.forward else 0)
        + _u32(rotation.magnitude, "rotation magnitude")
    )


# --- Expressions ---

def serialize_expression(
    expr: CanonicalExpression,
    buffer: bytearray,
    query_width: IndexWidth,
    pool_width: IndexWidth,
) -> None:
    """Append the pre-order encoding of expr to buffer.

    Raises:
        IndexOverflow: If an index does not fit its width
    """
    # Items are either nodes still to encode or bytes to emit verbatim
    stack: list[CanonicalExpression | bytes] = [expr]
    while stack:
        item = stack.pop()
        if isinstance(item, bytes):
            buffer += item
        elif isinstance(item, ConstantRef):
            buffer.append(OP_CONSTANT)
            buffer += encode_index(item.pool_index, pool_width, "constant pool index")
        elif isinstance(item, Var):
            buffer.append(VAR_OPCODES[item.var_class])
            if item.var_class == VarClass.challenge:
                buffer += _u32(item.index, "challenge index")
            else:
                buffer += encode_index(item.index, query_width, f"{item.var_class.name} query index")
        elif isinstance(item, Negated):
            buffer.append(OP_NEGATED)
            stack.append(item.expr)
        elif isinstance(item, Sum):
            buffer.append(OP_SUM)
            stack.extend([item.rhs, item.lhs])
        elif isinstance(item, Product):
            buffer.append(OP_PRODUCT)
            stack.extend([item.rhs, item.lhs])
        elif isinstance(item, Scaled):
            buffer.append(OP_SCALED)
            stack.append(encode_index(item.pool_index, pool_width, "constant pool index"))
            stack.append(item.expr)
        else:
            raise TypeError(f"Unknown canonical node: {type(item).__name__}")


def serialize_exprs(exprs, query_width: IndexWidth, pool_width: IndexWidth) -> bytes:
    """Concatenated encodings of a list of expressions."""
    buffer = bytearray()
    for expr in exprs:
        serialize_expression(expr, buffer, query_width, pool_width)
    return bytes(buffer)


# --- Artifact ---

@dataclass(frozen=True)
class ArtifactGroup:
    name: str
    elements: tuple[bytes, ...]

    @property
    def total_size(self) -> int:
        return sum(len(e) for e in self.elements)


@dataclass(frozen=True)
class ShapeArtifact:
    """Serialized circuit shape: named groups of byte-string elements."""
    groups: tuple[ArtifactGroup, ...]

    def group(self, name: str) -> ArtifactGroup:
        for g in self.groups:
            if g.name == name:
                return g
        raise KeyError(f"Group '{name}' not found")

    def as_nested(self) -> list[list[bytes]]:
        """Plain nested lists, in group order, for downstream packagers."""
        return [list(g.elements) for g in self.groups]

    def size_report(self) -> list[tuple[str, int, int]]:
        """(name, element count, total bytes) per group."""
        return [(g.name, len(g.elements), g.total_size) for g in self.groups]

    def to_bytes(self) -> bytes:
        """Flatten into a single length-prefixed byte string."""
        out = bytearray(_u32(len(self.groups), "group count"))
        for g in self.groups:
            out += _u32(len(g.elements), f"{g.name} element count")
            for element in g.elements:
                out += _u32(len(element), f"{g.name} element length")
                out += element
        return bytes(out)


def general_info(shape: CircuitShape, query_width: IndexWidth, pool_width: IndexWidth) -> tuple[bytes, ...]:
    """General Info elements in wire order."""
    return (
        bytes(shape.transcript_repr),
        b"".join(shape.fixed_commitments),
        b"".join(shape.permutation_commitments),
        _u8(shape.k, "k"),
        _u32(shape.max_num_query_of_advice_column, "max queries per advice column"),
        _u32(shape.degree, "degree"),
        _u64(shape.num_fixed_columns, "fixed column count"),
        _u64(shape.num_instance_columns, "instance column count"),
        _phases(shape.advice_column_phase),
        _phases(shape.challenge_phase),
        bytes([query_width.value]),
        bytes([pool_width.value]),
    )


def serialize(shape: CircuitShape) -> ShapeArtifact:
    """Encode a CircuitShape into its artifact.

    Widths are chosen once for the whole circuit before any index is written.

    Raises:
        IndexOverflow: If any count or index exceeds its encoding width
    """
    pool_width = pool_index_width(shape)
    query_width = query_index_width(shape)
    logger.debug("Index widths: query=%s pool=%s", query_width.name, pool_width.name)

    def exprs(items) -> bytes:
        return serialize_exprs(items, query_width, pool_width)

    elements = (
        general_info(shape, query_width, pool_width),
        tuple(serialize_column_query(q) for q in shape.advice_queries),
        tuple(serialize_column_query(q) for q in shape.instance_queries),
        tuple(serialize_column_query(q) for q in shape.fixed_queries),
        tuple(serialize_column(c) for c in shape.permutation_columns),
        tuple(shape.constant_pool),
        tuple(exprs(g.polys) for g in shape.gates),
        tuple(exprs(lk.input_exprs) for lk in shape.lookups),
        tuple(exprs(lk.table_exprs) for lk in shape.lookups),
        tuple(exprs(s.input_exprs) for s in shape.shuffles),
        tuple(exprs(s.shuffle_exprs) for s in shape.shuffles),
    )
    artifact = ShapeArtifact(
        tuple(ArtifactGroup(name, group) for name, group in zip(GROUP_NAMES, elements))
    )
    for i, (name, count, total) in enumerate(artifact.size_report()):
        logger.info("Item %d (%s): total size = %d, lengths = %d", i, name, total, count)
    return artifact
