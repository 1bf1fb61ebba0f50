from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from sszgen import pipeline
from sszgen.assemble import OutputUnit, assemble, format_source, write_outputs
from sszgen.config import GeneratorConfig
from sszgen.errors import BatchError, FormatError, GenerationError, MissingAnnotation, NoOutput, WriteError

from .conftest import BEACON, Generated

LEAF = '''
@dataclass
class Leaf:
    value: uint16


@dataclass
class Outer:
    inner: "Inner"
    tag: uint8
'''

INNER = '''
@dataclass
class Inner:
    leaves: Annotated[List["Leaf"], 'ssz-max:"8"']
'''


def test_sentinels_defined_once(generate: Callable[..., Generated]) -> None:
    g = generate({"a": LEAF, "b": INNER})
    first, second = g.result.outputs
    assert (first.path.name, second.path.name) == ("a_encoding.py", "b_encoding.py")
    assert first.has_sentinels and not second.has_sentinels
    assert "class SSZError(ValueError):" in first.source
    assert "class SSZError" not in second.source
    assert "from .a_encoding import SSZError, OffsetError" in second.source


def test_mutually_dependent_units_import_each_other(generate: Callable[..., Generated]) -> None:
    g = generate({"a": LEAF, "b": INNER})
    a_types, b_types = g.module("a"), g.module("b")
    b_enc = g.module("b_encoding")
    a_enc = g.module("a_encoding")
    assert "from . import b_encoding" in g.text("a_encoding.py")
    assert "from . import a_encoding" in g.text("b_encoding.py")

    outer = a_types.Outer(inner=b_types.Inner(leaves=[a_types.Leaf(value=5), a_types.Leaf(value=6)]), tag=9)
    data = a_enc.marshal_outer(outer)
    assert data == (5).to_bytes(4, "little") + b"\x09" + (4).to_bytes(4, "little") + b"\x05\x00\x06\x00"
    assert a_enc.unmarshal_outer(data) == outer
    assert b_enc.SizeError is a_enc.SizeError
    with pytest.raises(a_enc.ListTooBigError):
        b_enc.unmarshal_inner((4).to_bytes(4, "little") + b"\x00\x00" * 9)


def test_plain_directory_uses_absolute_imports(generate: Callable[..., Generated]) -> None:
    g = generate({"a": LEAF, "b": INNER}, package=False)
    a_text, b_text = g.text("a_encoding.py"), g.text("b_encoding.py")
    assert "from a import Leaf, Outer" in a_text
    assert "import b_encoding" in a_text
    assert "from a_encoding import SSZError" in b_text
    enc = g.module("a_encoding")
    leaf = g.module("a").Leaf(value=513)
    assert enc.marshal_leaf(leaf) == b"\x01\x02"


def test_merged_output(generate: Callable[..., Generated]) -> None:
    g = generate({"a": LEAF, "b": INNER}, output="wire.py")
    (out,) = g.result.outputs
    assert out.path.name == "wire.py"
    assert out.records == ("Leaf", "Outer", "Inner")
    text = g.text("wire.py")
    assert "# source: a.py, b.py" in text
    assert "from .a import Leaf, Outer" in text
    assert "from .b import Inner" in text
    assert "from . import" not in text
    assert not (g.root / "a_encoding.py").exists()

    wire = g.module("wire")
    inner = g.module("b").Inner(leaves=[])
    assert wire.marshal_inner(inner) == b"\x04\x00\x00\x00"


def test_targets_pull_in_referenced_records(generate: Callable[..., Generated]) -> None:
    g = generate({"beacon": BEACON}, targets="AttestationData")
    assert g.result.records == ["Checkpoint", "AttestationData"]
    enc = g.module("beacon_encoding")
    assert hasattr(enc, "marshal_checkpoint")
    assert not hasattr(enc, "marshal_attestation")


def test_output_is_deterministic(beacon: Generated) -> None:
    again = pipeline.build(beacon.root)
    assert [o.source for o in again.outputs] == [o.source for o in beacon.result.outputs]
    assert beacon.text("beacon_encoding.py") == again.outputs[0].source


def test_regeneration_skips_previous_outputs(beacon: Generated) -> None:
    again = pipeline.build(beacon.root)
    assert [u.path.name for u in again.units] == ["__init__.py", "beacon.py"]


def test_only_used_helpers_are_emitted(beacon: Generated) -> None:
    text = beacon.text("beacon_encoding.py")
    assert "def _pack_bitlist(" in text
    assert "def _unpack_bitlist(" in text
    assert "def _dynamic_list_count(" not in text
    assert "def _decode_bool(" not in text


def test_dry_run_writes_nothing(generate: Callable[..., Generated]) -> None:
    g = generate({"beacon": BEACON}, dry_run=True)
    assert g.result.outputs
    assert g.result.written == []
    assert not (g.root / "beacon_encoding.py").exists()


def test_no_records_is_an_error(generate: Callable[..., Generated]) -> None:
    with pytest.raises(NoOutput):
        generate({"consts": "LIMIT = 4\n"})


def test_record_named_like_an_error_class(generate: Callable[..., Generated]) -> None:
    body = '''
    @dataclass
    class SizeError:
        x: uint8
    '''
    with pytest.raises(GenerationError):
        generate({"bad": body})


def test_records_with_colliding_routine_names(generate: Callable[..., Generated]) -> None:
    body = '''
    @dataclass
    class HTTPRequest:
        x: uint8


    @dataclass
    class HttpRequest:
        y: uint8
    '''
    with pytest.raises(GenerationError) as ei:
        generate({"http": body})
    assert "marshal_http_request" in ei.value.message


def test_unselected_dependency_is_rejected(beacon: Generated) -> None:
    result = beacon.result
    with pytest.raises(GenerationError) as ei:
        assemble(result.schema, result.units, ["Attestation"])
    assert ei.value.data["record_ref"] == "AttestationData"


BROKEN = '''
@dataclass
class Good:
    x: uint64


@dataclass
class Broken:
    payload: bytes


@dataclass
class UsesBroken:
    broken: Broken
'''


def test_fail_fast_writes_nothing(generate: Callable[..., Generated], tmp_path: Path) -> None:
    with pytest.raises(MissingAnnotation):
        generate({"mixed": BROKEN})
    assert not list(tmp_path.rglob("*_encoding.py"))


def test_best_effort_skips_failing_records(generate: Callable[..., Generated]) -> None:
    g = generate({"mixed": BROKEN}, config=GeneratorConfig(fail_fast=False))
    assert g.result.records == ["Good"]
    assert [e.data["record"] for e in g.result.errors] == ["Broken", "Broken"]
    assert g.module("mixed_encoding").marshal_good(g.module("mixed").Good(x=1)) == b"\x01" + b"\x00" * 7


def test_best_effort_with_nothing_left(generate: Callable[..., Generated]) -> None:
    body = '''
    @dataclass
    class Broken:
        payload: bytes
    '''
    with pytest.raises(BatchError) as ei:
        generate({"bad": body}, config=GeneratorConfig(fail_fast=False))
    assert len(ei.value.errors) == 1


# ---------------- format / write ----------------


def test_format_source_normalizes_layout() -> None:
    assert format_source("a = 1   \n\n\n\n\n\nb = 2") == "a = 1\n\n\nb = 2\n"


def test_format_source_rejects_invalid_code() -> None:
    with pytest.raises(FormatError) as ei:
        format_source("def broken(:\n    pass\n", "x_encoding.py")
    assert ei.value.data["path"] == "x_encoding.py"


def test_write_outputs_is_all_or_nothing(tmp_path: Path) -> None:
    (tmp_path / "blocker").write_text("not a directory")
    outputs = [
        OutputUnit(path=tmp_path / "ok_encoding.py", source="X = 1\n", records=("X",)),
        OutputUnit(path=tmp_path / "blocker" / "bad_encoding.py", source="Y = 1\n", records=("Y",)),
    ]
    with pytest.raises(WriteError):
        write_outputs(outputs)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["blocker"]


def test_write_outputs_replaces_existing(tmp_path: Path) -> None:
    dest = tmp_path / "x_encoding.py"
    dest.write_text("old\n")
    written = write_outputs([OutputUnit(path=dest, source="NEW = 1\n", records=("X",))])
    assert written == [dest]
    assert dest.read_text() == "NEW = 1\n"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["x_encoding.py"]
