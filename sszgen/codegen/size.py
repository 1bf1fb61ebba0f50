"""Emit ``size_<record>(obj) -> int``."""

from __future__ import annotations

from ..errors import GenerationError
from ..ir import BYTES_PER_LENGTH_OFFSET, Kind, Node, Schema
from .emit import Qualifier, Writer, size_fn


def size_expr(schema: Schema, node: Node, value: str, w: Writer, qualify: Qualifier) -> str:
    """Encoded byte length of `value`, a value of `node`, as an expression."""
    if node.is_fixed:
        return str(node.fixed_size)
    k = node.kind
    if k is Kind.BYTES:
        return f"len({value})"
    if k is Kind.BITLIST and node.packed:
        return f"len({value})"
    if k is Kind.BITLIST:
        return f"(len({value}) // 8 + 1)"
    if k is Kind.CONTAINER:
        return f"{qualify(node.record)}{size_fn(node.record)}({value})"
    if k in (Kind.LIST, Kind.VECTOR):
        elem = schema.node(node.element)
        if elem.is_fixed:
            return f"len({value}) * {elem.fixed_size}"
        item = w.tmp()
        inner = size_expr(schema, elem, item, w, qualify)
        return f"sum({BYTES_PER_LENGTH_OFFSET} + {inner} for {item} in {value})"
    raise GenerationError(f"no size rule for dynamic {k.value} node", record=node.record)


def emit_size(schema: Schema, name: str, w: Writer, qualify: Qualifier) -> None:
    rec = schema.record(name)
    w.reset_tmp()
    with w.block(f"def {size_fn(name)}(obj) -> int:"):
        w.line(f'"""Encoded size of a {name} in bytes."""')
        if rec.is_fixed:
            w.line(f"return {rec.fixed_size}")
            return
        w.line(f"size = {rec.fixed_size}")
        for ref, node in schema.field_nodes(name):
            if node.is_dynamic:
                w.line(f"size += {size_expr(schema, node, f'obj.{ref.name}', w, qualify)}")
        w.line("return size")


__all__ = ["emit_size", "size_expr"]
