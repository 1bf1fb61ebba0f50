"""
Emit ``unmarshal_<record>(buf) -> Record``.

The fixed region is read first; every offset is validated (first equals
the fixed-region size, the rest non-decreasing and within the buffer)
before any dynamic data is decoded. Dynamic field ``i`` spans from its
offset to the next dynamic field's offset, the last one to the end.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from ..errors import GenerationError
from ..ir import BYTES_PER_LENGTH_OFFSET, FieldRef, Kind, Node, Schema
from .emit import Qualifier, Writer, local, unmarshal_fn


def leaf_expr(node: Node, span: str, w: Writer, qualify: Qualifier) -> Optional[str]:
    """Decode expression for kinds that need no statements, else None."""
    k = node.kind
    if k is Kind.UINT:
        return f'int.from_bytes({span}, "little")'
    if k is Kind.BOOL:
        return f"{w.use('_decode_bool')}({span})"
    if k is Kind.BYTES:
        if node.length is not None:
            return f"bytes({span})"
        return f"{w.use('_decode_bytes')}({span}, {node.limit})"
    if k is Kind.BITVECTOR:
        return f"{w.use('_unpack_bitvector')}({span}, {node.length})"
    if k is Kind.BITLIST and node.packed:
        return f"{w.use('_decode_packed_bitlist')}({span}, {node.limit!r})"
    if k is Kind.BITLIST:
        return f"{w.use('_unpack_bitlist')}({span}, {node.limit!r})"
    if k is Kind.CONTAINER:
        return f"{qualify(node.record)}{unmarshal_fn(node.record)}({span})"
    return None


def decode(schema: Schema, node: Node, span: str, target: str, w: Writer, qualify: Qualifier) -> None:
    """Statements binding `target` to the value decoded from `span`."""
    leaf = leaf_expr(node, span, w, qualify)
    if leaf is not None:
        w.line(f"{target} = {leaf}")
        return
    if node.kind not in (Kind.VECTOR, Kind.LIST):
        raise GenerationError(f"no unmarshal rule for {node.kind.value} node")

    elem = schema.node(node.element)
    data = w.tmp()
    w.line(f"{data} = {span}")

    if elem.is_fixed:
        step = elem.fixed_size
        if not step:
            raise GenerationError("sequence of zero-size elements cannot be decoded", record=elem.record)
        if node.kind is Kind.VECTOR:
            count = str(node.length)
        else:
            count = w.tmp()
            w.line(f"{count} = {w.use('_fixed_list_count')}(len({data}), {step}, {node.limit})")
        i = w.tmp()
        item_span = f"{data}[{i} * {step}:({i} + 1) * {step}]"
        iterate = f"for {i} in range({count})"
    else:
        if node.kind is Kind.VECTOR:
            count = str(node.length)
        else:
            count = w.tmp()
            w.line(f"{count} = {w.use('_dynamic_list_count')}({data}, {node.limit})")
        lo, hi = w.tmp(), w.tmp()
        item_span = f"{data}[{lo}:{hi}]"
        iterate = f"for {lo}, {hi} in {w.use('_offset_spans')}({data}, {count})"

    item_leaf = leaf_expr(elem, item_span, w, qualify)
    if item_leaf is not None:
        w.line(f"{target} = [{item_leaf} {iterate}]")
        return
    item = w.tmp()
    w.line(f"{target} = []")
    with w.block(f"{iterate}:"):
        decode(schema, elem, item_span, item, w, qualify)
        w.line(f"{target}.append({item})")


def emit_unmarshal(schema: Schema, name: str, w: Writer, qualify: Qualifier) -> None:
    rec = schema.record(name)
    fixed = rec.fixed_size
    w.reset_tmp()

    with w.block(f"def {unmarshal_fn(name)}(buf) -> {name}:"):
        w.line(f'"""Decode a {name} from its SSZ encoding."""')
        w.line("buf = memoryview(buf)")
        w.line("size = len(buf)")
        if rec.is_fixed:
            with w.block(f"if size != {fixed}:"):
                w.raise_("SizeError", f'f"{name}: {{size}} bytes, expected {fixed}"')
        else:
            with w.block(f"if size < {fixed}:"):
                w.raise_("SizeError", f'f"{name}: {{size}} bytes, expected at least {fixed}"')

        dynamic: List[Tuple[int, FieldRef, Node]] = []
        pos = 0
        for idx, (ref, node) in enumerate(schema.field_nodes(name)):
            w.blank()
            if node.is_fixed:
                w.line(f"# Field ({idx}) '{ref.name}'")
                decode(schema, node, f"buf[{pos}:{pos + node.fixed_size}]", local(ref.name), w, qualify)
                pos += node.fixed_size
                continue
            off = f"_o{idx}"
            w.line(f"# Offset ({idx}) '{ref.name}'")
            w.line(f'{off} = int.from_bytes(buf[{pos}:{pos + BYTES_PER_LENGTH_OFFSET}], "little")')
            if not dynamic:
                with w.block(f"if {off} != {fixed}:"):
                    w.raise_("OffsetError", f'f"{name}.{ref.name}: first offset {{{off}}} != {fixed}"')
            else:
                prev = f"_o{dynamic[-1][0]}"
                with w.block(f"if {off} < {prev} or {off} > size:"):
                    w.raise_("OffsetError", f'f"{name}.{ref.name}: offset {{{off}}}"')
            dynamic.append((idx, ref, node))
            pos += BYTES_PER_LENGTH_OFFSET

        for j, (idx, ref, node) in enumerate(dynamic):
            end = f"_o{dynamic[j + 1][0]}" if j + 1 < len(dynamic) else "size"
            w.blank()
            w.line(f"# Field ({idx}) '{ref.name}'")
            decode(schema, node, f"buf[_o{idx}:{end}]", local(ref.name), w, qualify)

        w.blank()
        args = ", ".join(f"{ref.name}={local(ref.name)}" for ref in rec.fields)
        w.line(f"return {name}({args})")


__all__ = ["emit_unmarshal", "decode", "leaf_expr"]
