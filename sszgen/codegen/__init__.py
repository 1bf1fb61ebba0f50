"""
sszgen.codegen
==============

Emits the three routines of every record (marshal, unmarshal, size) as
Python source. Routines of records living in another generated unit are
reached through `qualify`, which returns the module prefix to call them
with ("" for the unit being written).
"""

from __future__ import annotations

from typing import Iterable

from ..ir import Schema
from .emit import Qualifier, Writer, marshal_fn, marshal_to_fn, size_fn, snake, unmarshal_fn
from .marshal import emit_marshal
from .size import emit_size
from .unmarshal import emit_unmarshal


def _local(_: str) -> str:
    return ""


def generate_record(schema: Schema, name: str, w: Writer, qualify: Qualifier = _local) -> None:
    emit_marshal(schema, name, w, qualify)
    w.blank()
    w.blank()
    emit_unmarshal(schema, name, w, qualify)
    w.blank()
    w.blank()
    emit_size(schema, name, w, qualify)


def generate_records(schema: Schema, names: Iterable[str], qualify: Qualifier = _local) -> Writer:
    """All routines of `names`, separated by two blank lines."""
    w = Writer()
    for i, name in enumerate(names):
        if i:
            w.blank()
            w.blank()
        generate_record(schema, name, w, qualify)
    return w


def public_names(name: str) -> list:
    return [marshal_fn(name), marshal_to_fn(name), unmarshal_fn(name), size_fn(name)]


__all__ = [
    "Writer",
    "generate_record",
    "generate_records",
    "public_names",
    "snake",
]
