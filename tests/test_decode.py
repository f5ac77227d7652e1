"""Tests for reading artifacts back."""

import json
from dataclasses import replace
from pathlib import Path

import pytest

from shape.circuit_shape import VerifyingKeyData, build_circuit_shape
from shape.constraint_system import Constant, ConstraintSystem
from shape.decode import (
    ArtifactReader,
    decode_artifact,
    decode_expressions,
    decode_shape,
    read_general_info,
)
from shape.expressions import ConstantRef, Negated, Product, Scaled, Sum, Var
from shape.indexer import VarClass
from shape.serialize import ArtifactGroup, IndexWidth, ShapeArtifact, serialize, serialize_exprs

DATA_DIR = Path(__file__).parent / "data"


def load_shape(k: int = 4):
    cs = ConstraintSystem.from_json(str(DATA_DIR / "mul-lookup.cs.json"))
    with open(DATA_DIR / "mul-lookup.vk.json") as f:
        vk = VerifyingKeyData.from_dict(cs, json.load(f))
    return build_circuit_shape(k, vk)


def without_names(shape):
    return replace(
        shape,
        gates=tuple(replace(g, name="") for g in shape.gates),
        lookups=tuple(replace(lk, name="") for lk in shape.lookups),
        shuffles=tuple(replace(s, name="") for s in shape.shuffles),
    )


class TestArtifactReader:
    """Cursor reads."""

    def test_little_endian_reads(self) -> None:
        reader = ArtifactReader(bytes.fromhex("01" + "02000000" + "0300000000000000" + "aabb"))
        assert reader.read_u8_le() == 1
        assert reader.read_u32_le() == 2
        assert reader.read_u64_le() == 3
        assert reader.read_bytes(2) == b"\xaa\xbb"
        assert reader.at_end()

    def test_truncated(self) -> None:
        reader = ArtifactReader(b"\x01\x02")
        with pytest.raises(ValueError, match="Unexpected end of data"):
            reader.read_u32_le()


class TestExpressionDecoding:
    """Decoding reproduces the canonical IR exactly."""

    EXPRS = [
        Sum(Product(Var(VarClass.advice, 0), Var(VarClass.advice, 1)), Negated(Var(VarClass.fixed, 0))),
        Scaled(Sum(Var(VarClass.instance, 3), ConstantRef(2)), 1),
        Product(Scaled(Var(VarClass.challenge, 7), 0), Negated(Negated(ConstantRef(0)))),
        Var(VarClass.challenge, 70000),
    ]

    @pytest.mark.parametrize("query_width", [IndexWidth.u8, IndexWidth.u32])
    @pytest.mark.parametrize("pool_width", [IndexWidth.u8, IndexWidth.u32])
    def test_expressions(self, query_width: IndexWidth, pool_width: IndexWidth) -> None:
        data = serialize_exprs(self.EXPRS, query_width, pool_width)
        assert decode_expressions(data, query_width, pool_width) == tuple(self.EXPRS)

    def test_mul_gate_bytes(self) -> None:
        exprs = decode_expressions(bytes.fromhex("070803000301060200"), IndexWidth.u8, IndexWidth.u8)
        assert exprs == (self.EXPRS[0],)

    def test_deep_expression(self) -> None:
        expr = Var(VarClass.advice, 0)
        for i in range(3000):
            expr = Sum(expr, ConstantRef(i % 7))
        data = serialize_exprs([expr], IndexWidth.u8, IndexWidth.u8)
        assert decode_expressions(data, IndexWidth.u8, IndexWidth.u8) == (expr,)

    def test_invalid_opcode(self) -> None:
        """0x01 is not assigned."""
        with pytest.raises(ValueError, match="Invalid opcode 0x01"):
            decode_expressions(b"\x07\x01", IndexWidth.u8, IndexWidth.u8)

    def test_truncated_expression(self) -> None:
        with pytest.raises(ValueError, match="Unexpected end of data"):
            decode_expressions(bytes.fromhex("0708030003"), IndexWidth.u8, IndexWidth.u8)


class TestArtifactDecoding:
    """Whole-artifact decoding."""

    def test_flattened_bytes_round_trip(self) -> None:
        artifact = serialize(load_shape())
        assert decode_artifact(artifact.to_bytes()) == artifact

    def test_trailing_data_rejected(self) -> None:
        data = serialize(load_shape()).to_bytes()
        with pytest.raises(ValueError, match="Trailing data"):
            decode_artifact(data + b"\x00")

    def test_wrong_group_count(self) -> None:
        with pytest.raises(ValueError, match="Expected 11 groups"):
            decode_artifact(b"\x02\x00\x00\x00")

    def test_general_info(self) -> None:
        shape = load_shape(k=9)
        info = read_general_info(serialize(shape).group("General Info"))
        assert info.k == 9
        assert info.degree == shape.degree == 4
        assert info.max_num_query_of_advice_column == 2
        assert info.num_fixed_columns == 2
        assert info.num_instance_columns == 1
        assert info.advice_column_phase == (0, 0, 1)
        assert info.challenge_phase == (0,)
        assert info.query_width == IndexWidth.u8
        assert info.pool_width == IndexWidth.u8
        assert info.transcript_repr == shape.transcript_repr

    def test_shape_round_trip(self) -> None:
        """Everything but argument names survives encoding."""
        shape = load_shape()
        assert decode_shape(serialize(shape)) == without_names(shape)

    def test_wide_shape_round_trip(self) -> None:
        cs = ConstraintSystem()
        a = cs.advice_column()
        queries = [cs.query(a, r - 128) for r in range(300)]
        cs.create_gate("wide", [q * Constant(i) for i, q in enumerate(queries)])
        shape = build_circuit_shape(10, VerifyingKeyData(cs))
        artifact = serialize(shape)
        info = read_general_info(artifact.group("General Info"))
        assert info.query_width == IndexWidth.u32
        assert info.pool_width == IndexWidth.u32
        assert decode_shape(artifact) == without_names(shape)

    def test_malformed_pool_entry_rejected(self) -> None:
        artifact = serialize(load_shape())
        for bad in [b"\x10" * 31, b"\xff" * 32]:
            groups = tuple(
                ArtifactGroup(g.name, g.elements[:-1] + (bad,)) if g.name == "Fields Pool" else g
                for g in artifact.groups
            )
            with pytest.raises(ValueError, match="[Ff]ield repr"):
                decode_shape(ShapeArtifact(groups))
