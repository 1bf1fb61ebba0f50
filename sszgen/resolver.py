"""
Type resolver (IR builder)

Converts scanned declarations into IR nodes:

- Record references resolve recursively and are memoized by name in the
  context's `Registry`; later references get the same node id.
- A record's id is reserved before its fields expand, so self and mutual
  references (through lists) terminate.
- Records completed while an outer record is still open are committed to
  the registry only when the outermost resolution succeeds; a failure
  leaves no half-built record behind.
- Every unsupported shape or bad annotation is reported as a configuration
  error that names the unit, record, field, line and shape.

The context lives for one generation run; there is no module-level state.
"""

from __future__ import annotations

import ast
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import (
    ConfigError,
    MalformedAnnotation,
    MissingAnnotation,
    SszgenError,
    UnknownRecord,
    UnsupportedShape,
)
from .ir import Arena, FieldRef, Kind, Node, NodeId, Registry
from .logging import get_logger
from .scanner import CompilationUnit, FieldDecl, RecordDecl, unquote
from .tags import TAG_MAX, TAG_SIZE, Tags
from .types import UINT_WIDTHS

log = get_logger(__name__)

BYTE_NAMES = {"bytes", "bytearray"}
SEQUENCE_NAMES = {"List", "list", "Sequence", "MutableSequence"}
BITLIST_NAMES = {"Bitlist"}
BITVECTOR_NAMES = {"Bitvector"}
# builtins that look like primitives but carry no SSZ width
_WIDTHLESS = {"int", "float", "complex", "str", "object", "Any", "dict", "set", "tuple", "Optional", "Union"}


class ResolutionContext:
    """Explicit resolution state for one run: arena, registry and declarations."""

    def __init__(self, units: Sequence[CompilationUnit]) -> None:
        self.units: List[CompilationUnit] = list(units)
        self.arena = Arena()
        self.registry = Registry()
        self.failed: Dict[str, SszgenError] = {}
        self._decls: Dict[str, RecordDecl] = {}
        self._open: Dict[str, NodeId] = {}
        for unit in self.units:
            for rec in unit.records:
                prev = self._decls.get(rec.name)
                if prev is not None:
                    raise ConfigError(
                        f"record {rec.name!r} is declared twice",
                        record=rec.name,
                        path=rec.path,
                        line=rec.line,
                        first=f"{prev.path}:{prev.line}",
                    )
                self._decls[rec.name] = rec

    # ---------------- Public API ----------------

    def declared(self) -> List[str]:
        """All record names in unit order, then declaration order."""
        return [r.name for u in self.units for r in u.records]

    def declaration(self, name: str) -> RecordDecl:
        decl = self._decls.get(name)
        if decl is None:
            raise UnknownRecord(name)
        return decl

    def resolve(self, name: str) -> NodeId:
        """Resolve a record by name; memoized, returns the record's node id."""
        nid = self.registry.get(name)
        if nid is not None:
            return nid
        if name in self._open:
            return self._open[name]
        if name in self.failed:
            raise self.failed[name]
        decl = self.declaration(name)

        outermost = not self._open
        nid = self.arena.add(Node(kind=Kind.CONTAINER, record=name))
        self._open[name] = nid
        try:
            fields = tuple(self._field(decl, f) for f in decl.fields)
        except SszgenError as e:
            err = e.with_context(record=name, path=decl.path)
            if outermost:
                self._open.clear()
                self.failed[name] = err
            raise err
        self.arena._fill(nid, Node(kind=Kind.CONTAINER, record=name, fields=fields))

        if outermost:
            for done, done_id in self._open.items():
                self.registry.put(done, done_id)
            self._open.clear()
            log.debug("resolved record", extra={"record": name, "fields": len(fields)})
        return nid

    def resolve_all(self, names: Optional[Iterable[str]] = None) -> List[NodeId]:
        return [self.resolve(n) for n in (names if names is not None else self.declared())]

    # ---------------- Internals ----------------

    def _field(self, decl: RecordDecl, f: FieldDecl) -> FieldRef:
        try:
            tags = Tags.parse(f.annotation)
            nid = self._shape(f.shape, tags)
        except SszgenError as e:
            raise e.with_context(
                path=decl.path,
                record=decl.name,
                field=f.name,
                line=f.line,
                shape=f.shape_text(),
            ) from e
        return FieldRef(name=f.name, node=nid, line=f.line)

    def _shape(self, expr: ast.expr, tags: Tags) -> NodeId:
        expr = unquote(expr)
        if isinstance(expr, ast.Subscript):
            head = _head(expr.value)
            if head not in SEQUENCE_NAMES:
                raise UnsupportedShape(f"unsupported generic type {head or ast.unparse(expr.value)!r}")
            if isinstance(expr.slice, ast.Tuple):
                raise UnsupportedShape("sequence expects a single element type")
            return self._sequence(expr.slice, tags)

        if not isinstance(expr, (ast.Name, ast.Attribute)):
            raise UnsupportedShape(f"unsupported field shape {ast.unparse(expr)!r}")

        name = _head(expr)
        if name in BYTE_NAMES:
            return self._bytes(tags)
        if name in UINT_WIDTHS:
            return self.arena.add(Node(kind=Kind.UINT, width=UINT_WIDTHS[name]))
        if name == "bool":
            return self.arena.add(Node(kind=Kind.BOOL, width=1))
        if name in BITLIST_NAMES:
            return self.arena.add(Node(kind=Kind.BITLIST, limit=tags.max()))
        if name in BITVECTOR_NAMES:
            bits = tags.size()
            if bits is None:
                raise MissingAnnotation(f"Bitvector expects {TAG_SIZE} (bit length)")
            if bits == 0:
                raise MalformedAnnotation(f"Bitvector {TAG_SIZE} must be positive")
            return self.arena.add(Node(kind=Kind.BITVECTOR, length=bits))
        if isinstance(expr, ast.Attribute):
            raise UnsupportedShape(f"unsupported type {ast.unparse(expr)!r}")
        if name in _WIDTHLESS:
            raise UnsupportedShape(f"{name!r} has no SSZ encoding; use uint8/16/32/64, bool or bytes")
        return self.resolve(name)  # type: ignore[arg-type]

    def _bytes(self, tags: Tags) -> NodeId:
        if tags.is_bitlist:
            return self.arena.add(Node(kind=Kind.BITLIST, limit=tags.max(), packed=True))
        size = tags.size()
        if size is not None:
            if size == 0:
                raise MalformedAnnotation(f"{TAG_SIZE} must be positive")
            return self.arena.add(Node(kind=Kind.BYTES, length=size))
        limit = tags.max()
        if limit is None:
            raise MissingAnnotation(f'bytes expects either {TAG_MAX}, {TAG_SIZE} or ssz:"bitlist"')
        return self.arena.add(Node(kind=Kind.BYTES, limit=limit))

    def _sequence(self, elem: ast.expr, tags: Tags) -> NodeId:
        elem = unquote(elem)
        if _head(elem) in BYTE_NAMES and not isinstance(elem, ast.Subscript):
            return self._byte_vectors(tags)
        if _head(elem) == "bool" and tags.is_bitlist:
            return self.arena.add(Node(kind=Kind.BITLIST, limit=tags.max()))

        elem_id = self._shape(elem, tags)
        size = tags.size()
        if size is not None:
            if size == 0:
                raise MalformedAnnotation(f"vector {TAG_SIZE} must be positive")
            return self.arena.add(Node(kind=Kind.VECTOR, length=size, element=elem_id))
        limit = tags.max()
        if limit is None:
            raise MissingAnnotation(f"sequence expects either {TAG_MAX} or {TAG_SIZE}")
        return self.arena.add(Node(kind=Kind.LIST, limit=limit, element=elem_id))

    def _byte_vectors(self, tags: Tags) -> NodeId:
        shape = tags.size_tuple()
        if shape is None:
            raise MissingAnnotation(f'sequence of bytes expects {TAG_SIZE}:"F,S"')
        if shape.inner == 0:
            raise MalformedAnnotation(f"{TAG_SIZE} inner byte length must be positive")
        inner = self.arena.add(Node(kind=Kind.BYTES, length=shape.inner))
        if not shape.is_list:
            return self.arena.add(Node(kind=Kind.VECTOR, length=shape.outer, element=inner))
        limit = tags.max()
        if limit is None:
            raise MissingAnnotation(f"{TAG_MAX} not set after '?' in {TAG_SIZE}")
        return self.arena.add(Node(kind=Kind.LIST, limit=limit, element=inner))


def _head(expr: ast.expr) -> Optional[str]:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return None


__all__ = ["ResolutionContext", "BYTE_NAMES", "SEQUENCE_NAMES"]
