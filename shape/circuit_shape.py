"""Circuit shape: the immutable aggregate handed to the serializer.

A CircuitShape is built once per (circuit, k) by build_circuit_shape(). The
build walks every expression exactly once, in the fixed order

    gates -> lookups (inputs, then tables) -> shuffles (inputs, then targets)

interning constants as they are met, and freezes the pool afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from primitives.field import REPR_SIZE, to_repr, vk_transcript_repr
from shape.canonicalizer import Canonicalizer
from shape.constant_pool import ConstantPool
from shape.constraint_system import Column, ColumnQuery, ConstraintSystem
from shape.errors import CollaboratorError, IndexOverflow, ShapeError
from shape.expressions import CanonicalExpression
from shape.indexer import VariableIndexer

logger = logging.getLogger(__name__)

U8_MAX = 0xFF


# --- Canonical Arguments ---

@dataclass(frozen=True)
class CanonicalGate:
    name: str
    polys: tuple[CanonicalExpression, ...]


@dataclass(frozen=True)
class CanonicalLookup:
    name: str
    input_exprs: tuple[CanonicalExpression, ...]
    table_exprs: tuple[CanonicalExpression, ...]


@dataclass(frozen=True)
class CanonicalShuffle:
    name: str
    input_exprs: tuple[CanonicalExpression, ...]
    shuffle_exprs: tuple[CanonicalExpression, ...]


# --- Collaborator Output ---

@dataclass
class VerifyingKeyData:
    """What keygen hands over: the constraint system plus opaque key material.

    Attributes:
        constraint_system: Constraint system after selector optimization
        transcript_repr: 32-byte verifying-key fingerprint (canonical field repr)
        fixed_commitments: Encoded commitment per fixed column
        permutation_commitments: Encoded commitment per permutation column
    """
    constraint_system: ConstraintSystem
    transcript_repr: bytes = bytes(REPR_SIZE)
    fixed_commitments: list[bytes] = field(default_factory=list)
    permutation_commitments: list[bytes] = field(default_factory=list)

    @classmethod
    def from_dict(cls, cs: ConstraintSystem, j: dict) -> VerifyingKeyData:
        """Load the opaque fields from hex strings.

        "transcriptRepr" is a 32-byte hex string; alternatively "pinned" gives
        the pinned key description to fingerprint.
        """
        if "transcriptRepr" in j:
            transcript_repr = bytes.fromhex(j["transcriptRepr"])
        elif "pinned" in j:
            transcript_repr = to_repr(vk_transcript_repr(j["pinned"]))
        else:
            transcript_repr = bytes(REPR_SIZE)
        return cls(
            constraint_system=cs,
            transcript_repr=transcript_repr,
            fixed_commitments=[bytes.fromhex(c) for c in j.get("fixedCommitments", [])],
            permutation_commitments=[bytes.fromhex(c) for c in j.get("permutationCommitments", [])],
        )


# --- Circuit Shape ---

@dataclass(frozen=True)
class CircuitShape:
    """Complete structural description of one circuit at one k.

    Attributes:
        k: log2 of the number of rows
        degree: Maximum constraint degree
        num_fixed_columns: Number of fixed columns
        num_instance_columns: Number of instance columns
        advice_column_phase: Phase per advice column
        challenge_phase: Phase per challenge
        max_num_query_of_advice_column: Most rotations any one advice column is queried at
        advice_queries: Advice query list; its order defines advice variable indices
        instance_queries: Instance query list
        fixed_queries: Fixed query list
        permutation_columns: Columns in the copy-constraint argument
        constant_pool: Canonical bytes of each pooled constant, in pool order
        gates: Canonicalized gates
        lookups: Canonicalized lookups
        shuffles: Canonicalized shuffles
        transcript_repr: Verifying-key fingerprint (opaque)
        fixed_commitments: Fixed column commitments (opaque)
        permutation_commitments: Permutation commitments (opaque)
    """
    k: int
    degree: int
    num_fixed_columns: int
    num_instance_columns: int
    advice_column_phase: tuple[int, ...]
    challenge_phase: tuple[int, ...]
    max_num_query_of_advice_column: int
    advice_queries: tuple[ColumnQuery, ...]
    instance_queries: tuple[ColumnQuery, ...]
    fixed_queries: tuple[ColumnQuery, ...]
    permutation_columns: tuple[Column, ...]
    constant_pool: tuple[bytes, ...]
    gates: tuple[CanonicalGate, ...]
    lookups: tuple[CanonicalLookup, ...]
    shuffles: tuple[CanonicalShuffle, ...]
    transcript_repr: bytes = bytes(REPR_SIZE)
    fixed_commitments: tuple[bytes, ...] = ()
    permutation_commitments: tuple[bytes, ...] = ()

    @property
    def num_challenges(self) -> int:
        return len(self.challenge_phase)

    def indexer(self) -> VariableIndexer:
        """Indexer over this shape's query lists."""
        return VariableIndexer(
            list(self.advice_queries),
            list(self.fixed_queries),
            list(self.instance_queries),
            self.num_challenges,
        )


def _check_u8(what: str, value: int) -> None:
    if not 0 <= value <= U8_MAX:
        raise IndexOverflow(what, value, U8_MAX)


def build_circuit_shape(k: int, vk: VerifyingKeyData) -> CircuitShape:
    """Canonicalize every argument of vk's constraint system into a CircuitShape.

    Raises:
        SchemaInconsistency: If an expression references an unregistered query or a selector
        IndexOverflow: If k or a phase does not fit in a byte
    """
    cs = vk.constraint_system
    _check_u8("k", k)
    for phase in [*cs.advice_column_phase, *cs.challenge_phase]:
        _check_u8("phase", phase)
    if len(vk.transcript_repr) != REPR_SIZE:
        raise ValueError(f"transcript_repr must be {REPR_SIZE} bytes, got {len(vk.transcript_repr)}")

    indexer = VariableIndexer.from_constraint_system(cs)
    pool = ConstantPool()
    canon = Canonicalizer(indexer, pool)

    gates = tuple(
        CanonicalGate(g.name, canon.canonicalize_all(g.polys)) for g in cs.gates
    )
    lookups = tuple(
        CanonicalLookup(
            lk.name,
            canon.canonicalize_all(lk.input_exprs),
            canon.canonicalize_all(lk.table_exprs),
        )
        for lk in cs.lookups
    )
    shuffles = tuple(
        CanonicalShuffle(
            s.name,
            canon.canonicalize_all(s.input_exprs),
            canon.canonicalize_all(s.shuffle_exprs),
        )
        for s in cs.shuffles
    )
    pool.freeze()

    logger.debug(
        "Built shape k=%d: %d advice / %d fixed / %d instance queries, %d challenges, "
        "%d constants, %d gates, %d lookups, %d shuffles",
        k, len(cs.advice_queries), len(cs.fixed_queries), len(cs.instance_queries),
        len(cs.challenge_phase), len(pool), len(gates), len(lookups), len(shuffles),
    )

    return CircuitShape(
        k=k,
        degree=cs.degree(),
        num_fixed_columns=cs.num_fixed_columns,
        num_instance_columns=cs.num_instance_columns,
        advice_column_phase=tuple(cs.advice_column_phase),
        challenge_phase=tuple(cs.challenge_phase),
        max_num_query_of_advice_column=cs.max_queries_per_advice_column(),
        advice_queries=tuple(cs.advice_queries),
        instance_queries=tuple(cs.instance_queries),
        fixed_queries=tuple(cs.fixed_queries),
        permutation_columns=tuple(cs.permutation_columns),
        constant_pool=pool.entries,
        gates=gates,
        lookups=lookups,
        shuffles=shuffles,
        transcript_repr=bytes(vk.transcript_repr),
        fixed_commitments=tuple(vk.fixed_commitments),
        permutation_commitments=tuple(vk.permutation_commitments),
    )


def build_from_keygen(k: int, keygen: Callable[[int], VerifyingKeyData]) -> CircuitShape:
    """Run the proving library's keygen for k and build the shape from its output.

    Raises:
        CollaboratorError: If keygen itself fails (original exception kept as cause)
    """
    try:
        vk = keygen(k)
    except ShapeError:
        raise
    except Exception as exc:
        raise CollaboratorError(exc) from exc
    return build_circuit_shape(k, vk)
