"""Artifact decoder.

Reads a flattened artifact back into groups, and groups back into a
CircuitShape, using only the opcode table and the two width flags. This is
the work an independent verifier does; keeping it here lets the encoding be
checked end to end.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from primitives.field import from_repr
from shape.circuit_shape import CanonicalGate, CanonicalLookup, CanonicalShuffle, CircuitShape
from shape.constraint_system import Column, ColumnKind, ColumnQuery, Rotation
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
from shape.serialize import (
    GI_ADVICE_COLUMN_PHASE,
    GI_CHALLENGE_PHASE,
    GI_DEGREE,
    GI_FIXED_COMMITMENTS,
    GI_K,
    GI_MAX_QUERIES_PER_ADVICE_COLUMN,
    GI_NUM_FIXED_COLUMNS,
    GI_NUM_INSTANCE_COLUMNS,
    GI_PERMUTATION_COMMITMENTS,
    GI_POOL_INDEX_WIDTH,
    GI_QUERY_INDEX_WIDTH,
    GI_TRANSCRIPT_REPR,
    GROUP_NAMES,
    OP_CONSTANT,
    OP_NEGATED,
    OP_PRODUCT,
    OP_SCALED,
    OP_SUM,
    VAR_OPCODES,
    ArtifactGroup,
    IndexWidth,
    ShapeArtifact,
)

COMPRESSED_G1_SIZE = 32

_VAR_CLASS_OF_OPCODE = {op: var_class for var_class, op in VAR_OPCODES.items()}
_UNARY_OPS = (OP_NEGATED, OP_SCALED)
_BINARY_OPS = (OP_SUM, OP_PRODUCT)


class ArtifactReader:
    """Little-endian cursor over a byte string."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.pos = 0

    def _take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise ValueError(
                f"Unexpected end of data: need {n} bytes at offset {self.pos}, "
                f"{len(self.data) - self.pos} left"
            )
        result = self.data[self.pos:self.pos + n]
        self.pos += n
        return result

    def read_bytes(self, n: int) -> bytes:
        """Read n raw bytes."""
        return self._take(n)

    def read_u8_le(self) -> int:
        return struct.unpack('<B', self._take(1))[0]

    def read_u32_le(self) -> int:
        return struct.unpack('<I', self._take(4))[0]

    def read_u64_le(self) -> int:
        return struct.unpack('<Q', self._take(8))[0]

    def read_index(self, width: IndexWidth) -> int:
        return self.read_u8_le() if width == IndexWidth.u8 else self.read_u32_le()

    def at_end(self) -> bool:
        return self.pos >= len(self.data)

    def expect_end(self) -> None:
        """Raise if unread bytes remain."""
        if not self.at_end():
            raise ValueError(f"Trailing data: {len(self.data) - self.pos} bytes unread")


# --- Artifact Framing ---

def decode_artifact(data: bytes) -> ShapeArtifact:
    """Split a flattened artifact into its named groups.

    Raises:
        ValueError: On truncated data, trailing data, or a wrong group count
    """
    reader = ArtifactReader(data)
    n_groups = reader.read_u32_le()
    if n_groups != len(GROUP_NAMES):
        raise ValueError(f"Expected {len(GROUP_NAMES)} groups, got {n_groups}")
    groups = []
    for name in GROUP_NAMES:
        n_elements = reader.read_u32_le()
        elements = tuple(reader.read_bytes(reader.read_u32_le()) for _ in range(n_elements))
        groups.append(ArtifactGroup(name, elements))
    reader.expect_end()
    return ShapeArtifact(tuple(groups))


# --- General Info ---

@dataclass(frozen=True)
class GeneralInfo:
    transcript_repr: bytes
    fixed_commitments: bytes
    permutation_commitments: bytes
    k: int
    max_num_query_of_advice_column: int
    degree: int
    num_fixed_columns: int
    num_instance_columns: int
    advice_column_phase: tuple[int, ...]
    challenge_phase: tuple[int, ...]
    query_width: IndexWidth
    pool_width: IndexWidth


def read_general_info(group: ArtifactGroup) -> GeneralInfo:
    """Parse the General Info group.

    Raises:
        ValueError: On a malformed element or unknown width flag
    """
    e = group.elements
    if len(e) != GI_POOL_INDEX_WIDTH + 1:
        raise ValueError(f"General Info has {len(e)} elements, expected {GI_POOL_INDEX_WIDTH + 1}")

    def scalar(index: int, fmt: str) -> int:
        if len(e[index]) != struct.calcsize(fmt):
            raise ValueError(
                f"General Info element {index} has {len(e[index])} bytes, expected {struct.calcsize(fmt)}"
            )
        return struct.unpack(fmt, e[index])[0]

    def width(index: int) -> IndexWidth:
        if len(e[index]) != 1:
            raise ValueError(f"Width flag must be one byte, got {len(e[index])}")
        return IndexWidth(e[index][0])

    return GeneralInfo(
        transcript_repr=e[GI_TRANSCRIPT_REPR],
        fixed_commitments=e[GI_FIXED_COMMITMENTS],
        permutation_commitments=e[GI_PERMUTATION_COMMITMENTS],
        k=scalar(GI_K, "<B"),
        max_num_query_of_advice_column=scalar(GI_MAX_QUERIES_PER_ADVICE_COLUMN, "<I"),
        degree=scalar(GI_DEGREE, "<I"),
        num_fixed_columns=scalar(GI_NUM_FIXED_COLUMNS, "<Q"),
        num_instance_columns=scalar(GI_NUM_INSTANCE_COLUMNS, "<Q"),
        advice_column_phase=tuple(e[GI_ADVICE_COLUMN_PHASE]),
        challenge_phase=tuple(e[GI_CHALLENGE_PHASE]),
        query_width=width(GI_QUERY_INDEX_WIDTH),
        pool_width=width(GI_POOL_INDEX_WIDTH),
    )


# --- Columns and Queries ---

def _read_column(reader: ArtifactReader, advice_column_phase) -> Column:
    kind = ColumnKind(reader.read_u8_le())
    index = reader.read_u32_le()
    phase = 0
    if kind == ColumnKind.advice and advice_column_phase is not None:
        if index >= len(advice_column_phase):
            raise ValueError(
                f"Advice column {index} has no phase ({len(advice_column_phase)} advice columns)"
            )
        phase = advice_column_phase[index]
    return Column(index, kind, phase)


def decode_column(data: bytes, advice_column_phase=None) -> Column:
    """Parse a (kind, index) column element; advice phases come from the phase list."""
    reader = ArtifactReader(data)
    column = _read_column(reader, advice_column_phase)
    reader.expect_end()
    return column


def decode_column_query(data: bytes, advice_column_phase=None) -> ColumnQuery:
    """Parse a column followed by a (direction, magnitude) rotation."""
    reader = ArtifactReader(data)
    column = _read_column(reader, advice_column_phase)
    forward = reader.read_u8_le()
    if forward not in (0, 1):
        raise ValueError(f"Invalid rotation direction byte: {forward}")
    rotation = Rotation(reader.read_u32_le(), bool(forward))
    reader.expect_end()
    return ColumnQuery(column, rotation)


# --- Expressions ---

def read_expression(
    reader: ArtifactReader, query_width: IndexWidth, pool_width: IndexWidth
) -> CanonicalExpression:
    """Parse one pre-order encoded expression with an explicit frame stack.

    Raises:
        ValueError: On an unknown opcode or truncated data
    """
    # Each frame is [opcode, children decoded so far]
    frames: list[list] = []
    while True:
        op = reader.read_u8_le()
        if op == OP_CONSTANT:
            node: CanonicalExpression = ConstantRef(reader.read_index(pool_width))
        elif op in _VAR_CLASS_OF_OPCODE:
            var_class = _VAR_CLASS_OF_OPCODE[op]
            if var_class == VarClass.challenge:
                node = Var(var_class, reader.read_u32_le())
            else:
                node = Var(var_class, reader.read_index(query_width))
        elif op in _UNARY_OPS or op in _BINARY_OPS:
            frames.append([op, []])
            continue
        else:
            raise ValueError(f"Invalid opcode 0x{op:02x} at offset {reader.pos - 1}")

        # Attach the finished node to its parent, completing parents as they fill up
        while frames:
            parent_op, kids = frames[-1]
            kids.append(node)
            arity = 1 if parent_op in _UNARY_OPS else 2
            if len(kids) < arity:
                break
            frames.pop()
            if parent_op == OP_NEGATED:
                node = Negated(kids[0])
            elif parent_op == OP_SCALED:
                node = Scaled(kids[0], reader.read_index(pool_width))
            elif parent_op == OP_SUM:
                node = Sum(kids[0], kids[1])
            else:
                node = Product(kids[0], kids[1])
        else:
            return node


def decode_expressions(
    data: bytes, query_width: IndexWidth, pool_width: IndexWidth
) -> tuple[CanonicalExpression, ...]:
    """Parse a concatenation of expressions (one gate, lookup or shuffle element)."""
    reader = ArtifactReader(data)
    exprs = []
    while not reader.at_end():
        exprs.append(read_expression(reader, query_width, pool_width))
    return tuple(exprs)


# --- Whole Shape ---

def _split(blob: bytes, size: int, what: str) -> tuple[bytes, ...]:
    if len(blob) % size:
        raise ValueError(f"{what} length {len(blob)} is not a multiple of {size}")
    return tuple(blob[i:i + size] for i in range(0, len(blob), size))


def decode_shape(artifact: ShapeArtifact, commitment_size: int = COMPRESSED_G1_SIZE) -> CircuitShape:
    """Rebuild a CircuitShape from an artifact.

    Gate, lookup and shuffle names are not on the wire and come back empty.

    Raises:
        ValueError: On a malformed element, including a Fields Pool entry
            that is not a canonical field repr
    """
    info = read_general_info(artifact.group("General Info"))
    phases = info.advice_column_phase

    def queries(name: str) -> tuple[ColumnQuery, ...]:
        return tuple(decode_column_query(e, phases) for e in artifact.group(name).elements)

    def exprs(data: bytes) -> tuple[CanonicalExpression, ...]:
        return decode_expressions(data, info.query_width, info.pool_width)

    lookup_inputs = artifact.group("Lookups Input Expressions").elements
    lookup_tables = artifact.group("Lookups Table Expressions").elements
    shuffle_inputs = artifact.group("Shuffles Input Expressions").elements
    shuffle_targets = artifact.group("Shuffles Shuffle Expressions").elements
    if len(lookup_inputs) != len(lookup_tables) or len(shuffle_inputs) != len(shuffle_targets):
        raise ValueError("Lookup or shuffle expression groups have mismatched lengths")

    pool = artifact.group("Fields Pool").elements
    for entry in pool:
        from_repr(entry)

    return CircuitShape(
        k=info.k,
        degree=info.degree,
        num_fixed_columns=info.num_fixed_columns,
        num_instance_columns=info.num_instance_columns,
        advice_column_phase=info.advice_column_phase,
        challenge_phase=info.challenge_phase,
        max_num_query_of_advice_column=info.max_num_query_of_advice_column,
        advice_queries=queries("Advice Queries"),
        instance_queries=queries("Instance Queries"),
        fixed_queries=queries("Fixed Queries"),
        permutation_columns=tuple(
            decode_column(e, phases) for e in artifact.group("Permutation Columns").elements
        ),
        constant_pool=pool,
        gates=tuple(CanonicalGate("", exprs(e)) for e in artifact.group("Gates").elements),
        lookups=tuple(
            CanonicalLookup("", exprs(i), exprs(t)) for i, t in zip(lookup_inputs, lookup_tables)
        ),
        shuffles=tuple(
            CanonicalShuffle("", exprs(i), exprs(s)) for i, s in zip(shuffle_inputs, shuffle_targets)
        ),
        transcript_repr=info.transcript_repr,
        fixed_commitments=_split(info.fixed_commitments, commitment_size, "Fixed commitments"),
        permutation_commitments=_split(
            info.permutation_commitments, commitment_size, "Permutation commitments"
        ),
    )
