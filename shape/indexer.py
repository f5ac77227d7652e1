"""Global variable index space over queries and challenges.

Every queryable variable gets one index in a single contiguous range laid out
in a fixed class order:

    [0, A)              advice queries
    [A, A+F)            fixed queries
    [A+F, A+F+I)        instance queries
    [A+F+I, A+F+I+H)    challenges

The same order is assumed by the on-chain expression evaluator, so it must
never change.
"""

from __future__ import annotations

from enum import Enum

from shape.constraint_system import Column, ColumnKind, ColumnQuery, ConstraintSystem, Rotation
from shape.errors import SchemaInconsistency


class VarClass(Enum):
    """Variable classes in index-space order."""
    advice = 0
    fixed = 1
    instance = 2
    challenge = 3


VAR_CLASS_ORDER = (VarClass.advice, VarClass.fixed, VarClass.instance, VarClass.challenge)

_CLASS_OF_KIND = {
    ColumnKind.advice: VarClass.advice,
    ColumnKind.fixed: VarClass.fixed,
    ColumnKind.instance: VarClass.instance,
}


def var_class_of(kind: ColumnKind) -> VarClass:
    return _CLASS_OF_KIND[kind]


class VariableIndexer:
    """Resolves column queries and challenges to positions in the index space.

    Offsets are computed once from the query lists and challenge count and do
    not change afterwards.
    """

    def __init__(
        self,
        advice_queries: list[ColumnQuery],
        fixed_queries: list[ColumnQuery],
        instance_queries: list[ColumnQuery],
        num_challenges: int,
    ) -> None:
        self._queries = {
            VarClass.advice: tuple(advice_queries),
            VarClass.fixed: tuple(fixed_queries),
            VarClass.instance: tuple(instance_queries),
        }
        # First-registration position of each (column, rotation) pair
        self._positions: dict[VarClass, dict[ColumnQuery, int]] = {}
        for var_class, queries in self._queries.items():
            positions: dict[ColumnQuery, int] = {}
            for i, q in enumerate(queries):
                positions.setdefault(q, i)
            self._positions[var_class] = positions

        self.sizes = {
            VarClass.advice: len(advice_queries),
            VarClass.fixed: len(fixed_queries),
            VarClass.instance: len(instance_queries),
            VarClass.challenge: num_challenges,
        }
        self.offsets: dict[VarClass, int] = {}
        offset = 0
        for var_class in VAR_CLASS_ORDER:
            self.offsets[var_class] = offset
            offset += self.sizes[var_class]
        self.width = offset

    @classmethod
    def from_constraint_system(cls, cs: ConstraintSystem) -> VariableIndexer:
        return cls(cs.advice_queries, cs.fixed_queries, cs.instance_queries, len(cs.challenge_phase))

    def index_of(self, var_class: VarClass, column: Column, rotation: Rotation) -> int:
        """Local position of a column query within its class.

        Advice columns match on phase as well as index.

        Raises:
            SchemaInconsistency: If the query was never registered
        """
        if var_class == VarClass.challenge:
            raise SchemaInconsistency(
                "Challenges are not column queries", var_class=var_class.name, column=column
            )
        position = self._positions[var_class].get(ColumnQuery(column, rotation))
        if position is None:
            raise SchemaInconsistency(
                "Expression references an unregistered query",
                var_class=var_class.name,
                column=column,
                rotation=rotation,
            )
        return position

    def challenge_index(self, index: int) -> int:
        """Validate a challenge index and return it as its local position.

        Raises:
            SchemaInconsistency: If the challenge was never registered
        """
        if not 0 <= index < self.sizes[VarClass.challenge]:
            raise SchemaInconsistency(
                f"Expression references unregistered challenge {index}",
                var_class=VarClass.challenge.name,
            )
        return index

    def global_index(self, var_class: VarClass, local: int) -> int:
        """Position in the flat index space.

        Raises:
            SchemaInconsistency: If local is outside the class range
        """
        if not 0 <= local < self.sizes[var_class]:
            raise SchemaInconsistency(
                f"Local index {local} outside class of size {self.sizes[var_class]}",
                var_class=var_class.name,
            )
        return self.offsets[var_class] + local

    def resolve(self, index: int) -> tuple[VarClass, int]:
        """Map a flat index back to (class, local position).

        Raises:
            SchemaInconsistency: If index is outside [0, width)
        """
        if 0 <= index < self.width:
            for var_class in reversed(VAR_CLASS_ORDER):
                if index >= self.offsets[var_class] and self.sizes[var_class] > 0:
                    return var_class, index - self.offsets[var_class]
        raise SchemaInconsistency(f"Variable index {index} outside [0, {self.width})")

    def query(self, var_class: VarClass, local: int) -> ColumnQuery:
        """The registered query at a local position."""
        return self._queries[var_class][local]
