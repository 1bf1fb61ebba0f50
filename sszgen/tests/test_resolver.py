from __future__ import annotations

import pytest

from sszgen.errors import (
    ConfigError,
    ErrorCode,
    MalformedAnnotation,
    MissingAnnotation,
    UnknownRecord,
    UnsupportedShape,
)
from sszgen.ir import Kind
from sszgen.resolver import ResolutionContext
from sszgen.scanner import scan_source

from .conftest import BEACON, source


def _ctx(body: str, path: str = "types.py") -> ResolutionContext:
    return ResolutionContext([scan_source(source(body), path)])


def _field(ctx: ResolutionContext, record: str, name: str):
    node = ctx.arena[ctx.resolve(record)]
    ref = next(f for f in node.fields if f.name == name)
    return ctx.arena[ref.node]


SHAPES = '''
@dataclass
class Shapes:
    a: uint8
    b: uint16
    c: uint32
    d: uint64
    flag: bool
    root: Annotated[bytes, 'ssz-size:"32"']
    extra: Annotated[bytes, 'ssz-max:"64"']
    bits: Annotated[Bitlist, 'ssz-max:"2048"']
    raw_bits: Annotated[bytes, 'ssz:"bitlist" ssz-max:"16"']
    bool_bits: Annotated[List[bool], 'ssz:"bitlist" ssz-max:"8"']
    open_bits: Bitlist
    committee: Annotated[Bitvector, 'ssz-size:"12"']
    roots: Annotated[List[bytes], 'ssz-size:"4,32"']
    ids: Annotated[List[uint64], 'ssz-size:"3"']
    balances: Annotated[list[uint64], 'ssz-max:"16"']
'''


def test_shape_table() -> None:
    ctx = _ctx(SHAPES)
    expect = {
        "a": (Kind.UINT, {"width": 1}),
        "b": (Kind.UINT, {"width": 2}),
        "c": (Kind.UINT, {"width": 4}),
        "d": (Kind.UINT, {"width": 8}),
        "flag": (Kind.BOOL, {"width": 1}),
        "root": (Kind.BYTES, {"length": 32, "limit": None}),
        "extra": (Kind.BYTES, {"length": None, "limit": 64}),
        "bits": (Kind.BITLIST, {"limit": 2048, "packed": False}),
        "raw_bits": (Kind.BITLIST, {"limit": 16, "packed": True}),
        "bool_bits": (Kind.BITLIST, {"limit": 8, "packed": False}),
        "open_bits": (Kind.BITLIST, {"limit": None}),
        "committee": (Kind.BITVECTOR, {"length": 12}),
        "roots": (Kind.VECTOR, {"length": 4}),
        "ids": (Kind.VECTOR, {"length": 3}),
        "balances": (Kind.LIST, {"limit": 16}),
    }
    for name, (kind, attrs) in expect.items():
        node = _field(ctx, "Shapes", name)
        assert node.kind is kind, name
        for attr, value in attrs.items():
            assert getattr(node, attr) == value, (name, attr)

    roots_elem = ctx.arena[_field(ctx, "Shapes", "roots").element]
    assert (roots_elem.kind, roots_elem.length) == (Kind.BYTES, 32)
    ids_elem = ctx.arena[_field(ctx, "Shapes", "ids").element]
    assert (ids_elem.kind, ids_elem.width) == (Kind.UINT, 8)


def test_dynamic_list_of_byte_vectors() -> None:
    ctx = _ctx(
        '''
        @dataclass
        class Block:
            roots: Annotated[List[bytes], 'ssz-size:"?,32" ssz-max:"10"']
        '''
    )
    node = _field(ctx, "Block", "roots")
    assert node.kind is Kind.LIST
    assert node.limit == 10
    elem = ctx.arena[node.element]
    assert (elem.kind, elem.length) == (Kind.BYTES, 32)


def test_dynamic_outer_without_max_is_an_error() -> None:
    ctx = _ctx(
        '''
        @dataclass
        class Block:
            roots: Annotated[List[bytes], 'ssz-size:"?,32"']
        '''
    )
    with pytest.raises(MissingAnnotation) as ei:
        ctx.resolve("Block")
    assert "ssz-max" in ei.value.message


def test_errors_carry_location() -> None:
    ctx = _ctx(
        '''
        @dataclass
        class Block:
            slot: uint64
            payload: bytes
        ''',
        path="chain/block.py",
    )
    with pytest.raises(MissingAnnotation) as ei:
        ctx.resolve("Block")
    err = ei.value
    assert err.code is ErrorCode.ANNOTATION_MISSING
    assert err.is_config
    assert err.data["path"] == "chain/block.py"
    assert err.data["record"] == "Block"
    assert err.data["field"] == "payload"
    assert err.data["shape"] == "bytes"
    assert err.location() == f"chain/block.py:{err.data['line']}"


@pytest.mark.parametrize(
    "decl, exc",
    [
        ("x: int", UnsupportedShape),
        ("x: str", UnsupportedShape),
        ("x: Optional[uint64]", UnsupportedShape),
        ("x: Dict[str, uint64]", UnsupportedShape),
        ("x: typing.Any", UnsupportedShape),
        ("x: Annotated[List[uint64], 'ssz-max:\"4\"'] | None", UnsupportedShape),
        ("x: Missing", UnknownRecord),
        ("x: Annotated[List[uint64], '']", MissingAnnotation),
        ("x: Bitvector", MissingAnnotation),
        ("x: Annotated[List[bytes], 'ssz-max:\"4\"']", MissingAnnotation),
        ("x: Annotated[bytes, 'ssz-size:\"0\"']", MalformedAnnotation),
        ("x: Annotated[List[uint64], 'ssz-size:\"0\"']", MalformedAnnotation),
        ("x: Annotated[List[bytes], 'ssz-size:\"2,0\"']", MalformedAnnotation),
        ("x: Annotated[bytes, 'ssz-max:\"lots\"']", MalformedAnnotation),
    ],
)
def test_unsupported_and_malformed_shapes(decl: str, exc: type) -> None:
    ctx = _ctx(f"\n@dataclass\nclass Rec:\n    {decl}\n")
    with pytest.raises(exc) as ei:
        ctx.resolve("Rec")
    assert isinstance(ei.value, ConfigError)
    assert ei.value.data["field"] == "x"


def test_unknown_target() -> None:
    ctx = _ctx(BEACON)
    with pytest.raises(UnknownRecord) as ei:
        ctx.resolve("Nope")
    assert ei.value.data["record_ref"] == "Nope"


def test_records_resolve_once_and_share_node() -> None:
    ctx = _ctx(BEACON)
    data = ctx.arena[ctx.resolve("AttestationData")]
    by_name = {f.name: f.node for f in data.fields}
    assert by_name["source"] == by_name["target"] == ctx.registry.get("Checkpoint")
    assert ctx.resolve("Checkpoint") == by_name["source"]
    assert ctx.registry.order == ["AttestationData", "Checkpoint"]


def test_registry_commits_nested_records() -> None:
    ctx = _ctx(BEACON)
    ctx.resolve("Attestation")
    assert set(ctx.registry.ids) == {"Attestation", "AttestationData", "Checkpoint"}
    with pytest.raises(ValueError):
        ctx.registry.put("Checkpoint", 0)


def test_self_reference_through_list() -> None:
    ctx = _ctx(
        '''
        @dataclass
        class Node:
            value: uint64
            children: Annotated[List["Node"], 'ssz-max:"8"']
        '''
    )
    nid = ctx.resolve("Node")
    children = _field(ctx, "Node", "children")
    assert children.kind is Kind.LIST
    assert children.element == nid


def test_failed_record_is_not_registered_and_poisons_referrers() -> None:
    ctx = _ctx(
        '''
        @dataclass
        class Good:
            x: uint64


        @dataclass
        class Bad:
            payload: bytes


        @dataclass
        class Outer:
            good: Good
            bad: Bad
        '''
    )
    with pytest.raises(MissingAnnotation):
        ctx.resolve("Outer")
    assert "Outer" not in ctx.registry
    assert "Good" not in ctx.registry
    with pytest.raises(MissingAnnotation) as ei:
        ctx.resolve("Outer")
    assert ei.value.data["record"] == "Bad"
    assert ctx.resolve("Good") is not None
    assert ctx.registry.order == ["Good"]


def test_duplicate_record_names_across_units() -> None:
    a = scan_source(source("\n@dataclass\nclass Rec:\n    x: uint64\n"), "a.py")
    b = scan_source(source("\n@dataclass\nclass Rec:\n    y: uint64\n"), "b.py")
    with pytest.raises(ConfigError) as ei:
        ResolutionContext([a, b])
    assert ei.value.data["record"] == "Rec"
