"""
Emit ``marshal_<record>(obj) -> bytes`` and ``marshal_<record>_to(obj, buf)``.

The container layout is written in one pass: fixed fields inline, a zeroed
4-byte slot per dynamic field, then each dynamic field in declared order
with its slot patched to the current offset relative to the container start.
"""

from __future__ import annotations

from ..errors import GenerationError
from ..ir import BYTES_PER_LENGTH_OFFSET, Kind, Node, Schema
from .emit import Qualifier, Writer, marshal_fn, marshal_to_fn

_ZERO_OFFSET = 'b"\\x00\\x00\\x00\\x00"'


def encode(schema: Schema, node: Node, value: str, w: Writer, qualify: Qualifier, where: str) -> None:
    """Statements appending the encoding of `value` to ``buf``."""
    k = node.kind
    if k is Kind.UINT:
        bits = 8 * node.width
        with w.block(f"if not 0 <= {value} < 1 << {bits}:"):
            w.raise_("MarshalUintError", f'f"{where}: {{{value}}} does not fit uint{bits}"')
        w.line(f'buf += {value}.to_bytes({node.width}, "little")')
    elif k is Kind.BOOL:
        w.line(f'buf += b"\\x01" if {value} else b"\\x00"')
    elif k is Kind.BYTES:
        if node.length is not None:
            with w.block(f"if len({value}) != {node.length}:"):
                w.raise_("MarshalFixedBytesError", f'f"{where}: {{len({value})}} bytes, expected {node.length}"')
        else:
            with w.block(f"if len({value}) > {node.limit}:"):
                w.raise_("MarshalDynamicBytesError", f'f"{where}: {{len({value})}} bytes > {node.limit}"')
        w.line(f"buf += {value}")
    elif k is Kind.BITVECTOR:
        with w.block(f"if len({value}) != {node.length}:"):
            w.raise_("MarshalVectorError", f'f"{where}: {{len({value})}} bits, expected {node.length}"')
        w.line(f"buf += {w.use('_pack_bits')}({value}, {node.fixed_size})")
    elif k is Kind.BITLIST and node.packed:
        # wire bytes, delimiter included
        n = w.tmp()
        w.line(f"{n} = {w.use('_bitlist_len')}({value})")
        if node.limit is not None:
            with w.block(f"if {n} > {node.limit}:"):
                w.raise_("MarshalListError", f'f"{where}: {{{n}}} bits > {node.limit}"')
        w.line(f"buf += {value}")
    elif k is Kind.BITLIST:
        if node.limit is not None:
            with w.block(f"if len({value}) > {node.limit}:"):
                w.raise_("MarshalListError", f'f"{where}: {{len({value})}} bits > {node.limit}"')
        w.line(f"buf += {w.use('_pack_bitlist')}({value})")
    elif k is Kind.CONTAINER:
        w.line(f"{qualify(node.record)}{marshal_to_fn(node.record)}({value}, buf)")
    elif k is Kind.VECTOR:
        with w.block(f"if len({value}) != {node.length}:"):
            w.raise_("MarshalVectorError", f'f"{where}: {{len({value})}} elements, expected {node.length}"')
        _elements(schema, node, value, w, qualify, where)
    elif k is Kind.LIST:
        with w.block(f"if len({value}) > {node.limit}:"):
            w.raise_("MarshalListError", f'f"{where}: {{len({value})}} elements > {node.limit}"')
        _elements(schema, node, value, w, qualify, where)
    else:
        raise GenerationError(f"no marshal rule for {k.value} node", where=where)


def _elements(schema: Schema, node: Node, value: str, w: Writer, qualify: Qualifier, where: str) -> None:
    elem = schema.node(node.element)
    if elem.is_fixed:
        item = w.tmp()
        with w.block(f"for {item} in {value}:"):
            encode(schema, elem, item, w, qualify, f"{where}[]")
        return
    # offset table relative to the start of the sequence, then the elements
    start, i, item = w.tmp(), w.tmp(), w.tmp()
    w.line(f"{start} = len(buf)")
    w.line(f"buf += bytes({BYTES_PER_LENGTH_OFFSET} * len({value}))")
    with w.block(f"for {i}, {item} in enumerate({value}):"):
        w.line(f"{w.use('_put_offset')}(buf, {start} + {BYTES_PER_LENGTH_OFFSET} * {i}, {start})")
        encode(schema, elem, item, w, qualify, f"{where}[]")


def emit_marshal(schema: Schema, name: str, w: Writer, qualify: Qualifier) -> None:
    rec = schema.record(name)
    fields = schema.field_nodes(name)

    with w.block(f"def {marshal_fn(name)}(obj) -> bytes:"):
        w.line(f'"""SSZ encoding of a {name}."""')
        w.line(f"return bytes({marshal_to_fn(name)}(obj, bytearray()))")
    w.blank()
    w.blank()

    w.reset_tmp()
    with w.block(f"def {marshal_to_fn(name)}(obj, buf: bytearray) -> bytearray:"):
        w.line(f'"""Append the SSZ encoding of a {name} to buf."""')
        if rec.is_dynamic:
            w.line("start = len(buf)")
        for idx, (ref, node) in enumerate(fields):
            w.blank()
            if node.is_fixed:
                w.line(f"# Field ({idx}) '{ref.name}'")
                encode(schema, node, f"obj.{ref.name}", w, qualify, f"{name}.{ref.name}")
            else:
                w.line(f"# Offset ({idx}) '{ref.name}'")
                w.line(f"_o{idx} = len(buf)")
                w.line(f"buf += {_ZERO_OFFSET}")
        for idx, (ref, node) in enumerate(fields):
            if node.is_fixed:
                continue
            w.blank()
            w.line(f"# Field ({idx}) '{ref.name}'")
            w.line(f"{w.use('_put_offset')}(buf, _o{idx}, start)")
            encode(schema, node, f"obj.{ref.name}", w, qualify, f"{name}.{ref.name}")
        w.blank()
        w.line("return buf")


__all__ = ["emit_marshal", "encode"]
