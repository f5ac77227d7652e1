"""Constraint system description handed over by the proving library.

These structures mirror what the proving library's setup phase exposes after
keygen: registered column queries, challenges, permutation columns, and the
gate/lookup/shuffle expressions in raw operator form. Nothing here is
canonicalized; see shape.canonicalizer for that.

Circuits can be written directly:

    cs = ConstraintSystem()
    a, b = cs.advice_column(), cs.advice_column()
    f = cs.fixed_column()
    cs.create_gate("mul", [cs.query(a) * cs.query(b) - cs.query(f)])

or loaded from the JSON form emitted by a proving-library exporter with
ConstraintSystem.from_json().
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from primitives.field import FF, from_repr, to_field


# --- Columns and Rotations ---

class ColumnKind(Enum):
    """Column type. Values are the kind tags written on the wire."""
    advice = 1
    fixed = 2
    instance = 3


@dataclass(frozen=True)
class Column:
    """A circuit column. Advice columns also carry their assignment phase."""
    index: int
    kind: ColumnKind
    phase: int = 0

    def __str__(self) -> str:
        if self.kind == ColumnKind.advice:
            return f"advice[{self.index}]@phase{self.phase}"
        return f"{self.kind.name}[{self.index}]"


@dataclass(frozen=True)
class Rotation:
    """Row offset stored as magnitude plus direction instead of a signed int."""
    magnitude: int
    forward: bool = True

    @classmethod
    def from_int(cls, offset: int) -> Rotation:
        if offset < 0:
            return cls(magnitude=-offset, forward=False)
        return cls(magnitude=offset, forward=True)

    def to_int(self) -> int:
        return self.magnitude if self.forward else -self.magnitude

    def __str__(self) -> str:
        return str(self.to_int())


@dataclass(frozen=True)
class ColumnQuery:
    """A column queried at a rotation."""
    column: Column
    rotation: Rotation


def _as_rotation(rotation) -> Rotation:
    return rotation if isinstance(rotation, Rotation) else Rotation.from_int(rotation)


# --- Raw Expressions ---

class Expression:
    """Base class of raw expression nodes.

    Supports +, -, * and unary - so gates can be written as ordinary Python
    arithmetic. Ints and field elements are promoted to Constant leaves.
    """

    def children(self) -> tuple[Expression, ...]:
        return ()

    def __add__(self, other) -> Expression:
        return Sum(self, _as_expression(other))

    def __radd__(self, other) -> Expression:
        return Sum(_as_expression(other), self)

    def __sub__(self, other) -> Expression:
        return Sum(self, Negated(_as_expression(other)))

    def __rsub__(self, other) -> Expression:
        return Sum(_as_expression(other), Negated(self))

    def __mul__(self, other) -> Expression:
        return Product(self, _as_expression(other))

    def __rmul__(self, other) -> Expression:
        return Product(_as_expression(other), self)

    def __neg__(self) -> Expression:
        return Negated(self)

    def degree(self) -> int:
        """Polynomial degree; queries and selectors count 1, challenges 0."""
        values: list[int] = []
        for node in postorder(self):
            if isinstance(node, (Query, Selector)):
                values.append(1)
            elif isinstance(node, (Constant, Challenge)):
                values.append(0)
            elif isinstance(node, Negated):
                pass
            elif isinstance(node, Sum):
                rhs = values.pop()
                values.append(max(values.pop(), rhs))
            elif isinstance(node, Product):
                rhs = values.pop()
                values.append(values.pop() + rhs)
            else:
                raise TypeError(f"Unknown expression node: {type(node).__name__}")
        return values.pop()


@dataclass(frozen=True)
class Constant(Expression):
    """Literal field element."""
    value: FF

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_field(self.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constant):
            return NotImplemented
        return int(self.value) == int(other.value)

    def __hash__(self) -> int:
        return hash(("constant", int(self.value)))


@dataclass(frozen=True)
class Query(Expression):
    """Column query leaf."""
    column: Column
    rotation: Rotation = Rotation(0)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", _as_rotation(self.rotation))


@dataclass(frozen=True)
class Challenge(Expression):
    """Verifier challenge leaf."""
    index: int
    phase: int = 0


@dataclass(frozen=True)
class Selector(Expression):
    """Virtual selector leaf. Must be optimized away before shape extraction."""
    index: int


@dataclass(frozen=True)
class Negated(Expression):
    expr: Expression

    def children(self) -> tuple[Expression, ...]:
        return (self.expr,)


@dataclass(frozen=True)
class Sum(Expression):
    lhs: Expression
    rhs: Expression

    def children(self) -> tuple[Expression, ...]:
        return (self.lhs, self.rhs)


@dataclass(frozen=True)
class Product(Expression):
    lhs: Expression
    rhs: Expression

    def children(self) -> tuple[Expression, ...]:
        return (self.lhs, self.rhs)


def _as_expression(value) -> Expression:
    if isinstance(value, Expression):
        return value
    return Constant(value)


def postorder(root: Expression) -> Iterator[Expression]:
    """Yield nodes children-first, left to right, using an explicit stack."""
    stack: list[tuple[Expression, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        kids = node.children()
        if expanded or not kids:
            yield node
            continue
        stack.append((node, True))
        for child in reversed(kids):
            stack.append((child, False))


# --- Arguments ---

@dataclass(frozen=True)
class Gate:
    """Polynomial constraints that must each evaluate to zero."""
    name: str
    polys: tuple[Expression, ...]


@dataclass(frozen=True)
class Lookup:
    """Lookup argument: input expressions must appear in the table expressions."""
    name: str
    input_exprs: tuple[Expression, ...]
    table_exprs: tuple[Expression, ...]


@dataclass(frozen=True)
class Shuffle:
    """Shuffle argument: input expressions are a permutation of the shuffle expressions."""
    name: str
    input_exprs: tuple[Expression, ...]
    shuffle_exprs: tuple[Expression, ...]


# --- Constraint System ---

PERMUTATION_MIN_DEGREE = 3


@dataclass
class ConstraintSystem:
    """Queries, challenges and arguments registered by a circuit.

    Attributes:
        num_fixed_columns: Number of fixed columns
        num_instance_columns: Number of instance columns
        advice_column_phase: Phase of each advice column (its length is the advice column count)
        challenge_phase: Phase of each challenge (its length is the challenge count)
        advice_queries: Registered advice queries, in registration order
        fixed_queries: Registered fixed queries, in registration order
        instance_queries: Registered instance queries, in registration order
        permutation_columns: Columns taking part in the copy-constraint argument
        gates: Gates in registration order
        lookups: Lookup arguments in registration order
        shuffles: Shuffle arguments in registration order
        declared_degree: Degree reported by the proving library, if known
    """
    num_fixed_columns: int = 0
    num_instance_columns: int = 0
    advice_column_phase: list[int] = field(default_factory=list)
    challenge_phase: list[int] = field(default_factory=list)
    advice_queries: list[ColumnQuery] = field(default_factory=list)
    fixed_queries: list[ColumnQuery] = field(default_factory=list)
    instance_queries: list[ColumnQuery] = field(default_factory=list)
    permutation_columns: list[Column] = field(default_factory=list)
    gates: list[Gate] = field(default_factory=list)
    lookups: list[Lookup] = field(default_factory=list)
    shuffles: list[Shuffle] = field(default_factory=list)
    declared_degree: int | None = None

    # --- Column allocation ---

    @property
    def num_advice_columns(self) -> int:
        return len(self.advice_column_phase)

    def advice_column(self, phase: int = 0) -> Column:
        column = Column(len(self.advice_column_phase), ColumnKind.advice, phase)
        self.advice_column_phase.append(phase)
        return column

    def fixed_column(self) -> Column:
        column = Column(self.num_fixed_columns, ColumnKind.fixed)
        self.num_fixed_columns += 1
        return column

    def instance_column(self) -> Column:
        column = Column(self.num_instance_columns, ColumnKind.instance)
        self.num_instance_columns += 1
        return column

    def challenge_usable_after(self, phase: int) -> Challenge:
        challenge = Challenge(len(self.challenge_phase), phase)
        self.challenge_phase.append(phase)
        return challenge

    def enable_equality(self, column: Column) -> None:
        if column not in self.permutation_columns:
            self.permutation_columns.append(column)

    # --- Queries ---

    def queries_for(self, kind: ColumnKind) -> list[ColumnQuery]:
        if kind == ColumnKind.advice:
            return self.advice_queries
        if kind == ColumnKind.fixed:
            return self.fixed_queries
        return self.instance_queries

    def query(self, column: Column, rotation=0) -> Query:
        """Return a query leaf, registering the (column, rotation) pair on first use."""
        q = ColumnQuery(column, _as_rotation(rotation))
        registered = self.queries_for(column.kind)
        if q not in registered:
            registered.append(q)
        return Query(column, q.rotation)

    # --- Arguments ---

    def create_gate(self, name: str, polys) -> Gate:
        gate = Gate(name, tuple(polys))
        self.gates.append(gate)
        return gate

    def lookup(self, name: str, pairs) -> Lookup:
        pairs = list(pairs)
        lookup = Lookup(name, tuple(i for i, _ in pairs), tuple(t for _, t in pairs))
        self.lookups.append(lookup)
        return lookup

    def shuffle(self, name: str, pairs) -> Shuffle:
        pairs = list(pairs)
        shuffle = Shuffle(name, tuple(i for i, _ in pairs), tuple(s for _, s in pairs))
        self.shuffles.append(shuffle)
        return shuffle

    # --- Derived values ---

    def degree(self) -> int:
        """Maximum constraint degree over gates, lookups, shuffles and the permutation."""
        if self.declared_degree is not None:
            return self.declared_degree
        degree = PERMUTATION_MIN_DEGREE
        for gate in self.gates:
            for poly in gate.polys:
                degree = max(degree, poly.degree())
        for lookup in self.lookups:
            input_degree = max((e.degree() for e in lookup.input_exprs), default=1)
            table_degree = max((e.degree() for e in lookup.table_exprs), default=1)
            degree = max(degree, 2 + max(input_degree, 1) + max(table_degree, 1))
        for shuffle in self.shuffles:
            input_degree = max((e.degree() for e in shuffle.input_exprs), default=1)
            shuffle_degree = max((e.degree() for e in shuffle.shuffle_exprs), default=1)
            degree = max(degree, 2 + max(input_degree, shuffle_degree, 1))
        return degree

    def max_queries_per_advice_column(self) -> int:
        """Largest number of rotations at which any single advice column is queried."""
        counts: dict[int, int] = {}
        for q in self.advice_queries:
            counts[q.column.index] = counts.get(q.column.index, 0) + 1
        return max(counts.values(), default=0)

    # --- Loading ---

    @classmethod
    def from_json(cls, path: str) -> ConstraintSystem:
        """Load a constraint system description from a JSON file."""
        with open(path) as f:
            j = json.load(f)
        return cls.from_dict(j)

    @classmethod
    def from_dict(cls, j: dict) -> ConstraintSystem:
        """Build from a parsed JSON object (camelCase keys)."""
        cs = cls()
        cs._parse_columns(j)
        cs._parse_queries(j)
        cs._parse_arguments(j)
        return cs

    def _parse_columns(self, j: dict) -> None:
        self.num_fixed_columns = j.get("numFixedColumns", 0)
        self.num_instance_columns = j.get("numInstanceColumns", 0)
        self.advice_column_phase = list(j.get("adviceColumnPhase", []))
        self.challenge_phase = list(j.get("challengePhase", []))
        self.declared_degree = j.get("degree")
        self.permutation_columns = [_parse_column(c) for c in j.get("permutationColumns", [])]

    def _parse_queries(self, j: dict) -> None:
        self.advice_queries = [_parse_query(q) for q in j.get("adviceQueries", [])]
        self.fixed_queries = [_parse_query(q) for q in j.get("fixedQueries", [])]
        self.instance_queries = [_parse_query(q) for q in j.get("instanceQueries", [])]

    def _parse_arguments(self, j: dict) -> None:
        for i, g in enumerate(j.get("gates", [])):
            self.gates.append(Gate(
                name=g.get("name", f"gate_{i}"),
                polys=tuple(parse_expression(p) for p in g["polys"]),
            ))
        for i, lk in enumerate(j.get("lookups", [])):
            self.lookups.append(Lookup(
                name=lk.get("name", f"lookup_{i}"),
                input_exprs=tuple(parse_expression(e) for e in lk["inputExpressions"]),
                table_exprs=tuple(parse_expression(e) for e in lk["tableExpressions"]),
            ))
        for i, sh in enumerate(j.get("shuffles", [])):
            self.shuffles.append(Shuffle(
                name=sh.get("name", f"shuffle_{i}"),
                input_exprs=tuple(parse_expression(e) for e in sh["inputExpressions"]),
                shuffle_exprs=tuple(parse_expression(e) for e in sh["shuffleExpressions"]),
            ))


# --- JSON Parsing Helpers ---

_QUERY_OPS = {
    "advice": ColumnKind.advice,
    "fixed": ColumnKind.fixed,
    "instance": ColumnKind.instance,
}


def _parse_column(c: dict) -> Column:
    kind_str = c["kind"]
    if kind_str not in _QUERY_OPS:
        raise ValueError(f"Invalid column kind: {kind_str}")
    return Column(index=c["index"], kind=_QUERY_OPS[kind_str], phase=c.get("phase", 0))


def _parse_query(q: dict) -> ColumnQuery:
    return ColumnQuery(_parse_column(q["column"]), Rotation.from_int(q.get("rotation", 0)))


def _parse_constant(value) -> FF:
    """Constants are ints, decimal or 0x-hex strings, or {"repr": hex} canonical bytes."""
    if isinstance(value, dict):
        return from_repr(bytes.fromhex(value["repr"]))
    if isinstance(value, str):
        return to_field(int(value, 0))
    return to_field(value)


def parse_expression(root: dict) -> Expression:
    """Convert a JSON expression object (tagged by "op") to a raw Expression.

    Uses an explicit stack so deeply nested expressions do not hit the
    interpreter recursion limit.

    Raises:
        ValueError: On an unknown op
    """
    values: list[Expression] = []
    stack: list[tuple[dict, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        op = node.get("op")
        if op in ("neg", "sum", "product") and not expanded:
            stack.append((node, True))
            if op == "neg":
                stack.append((node["expr"], False))
            else:
                stack.append((node["rhs"], False))
                stack.append((node["lhs"], False))
            continue

        if op == "constant":
            values.append(Constant(_parse_constant(node["value"])))
        elif op in _QUERY_OPS:
            column = Column(node["column"], _QUERY_OPS[op], node.get("phase", 0))
            values.append(Query(column, Rotation.from_int(node.get("rotation", 0))))
        elif op == "challenge":
            values.append(Challenge(node["index"], node.get("phase", 0)))
        elif op == "selector":
            values.append(Selector(node["index"]))
        elif op == "neg":
            values.append(Negated(values.pop()))
        elif op == "sum":
            rhs = values.pop()
            values.append(Sum(values.pop(), rhs))
        elif op == "product":
            rhs = values.pop()
            values.append(Product(values.pop(), rhs))
        else:
            raise ValueError(f"Invalid expression op: {op}")
    return values.pop()
