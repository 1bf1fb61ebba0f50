"""
SSZ classifier.

Computes, bottom-up and memoized, whether each node is fixed or dynamic and
its fixed size:

    UINT, BOOL   fixed, width
    BITVECTOR    fixed, (bits + 7) // 8
    BYTES        fixed iff ssz-size set, that length
    VECTOR       fixed iff element fixed, length * element size
    CONTAINER    fixed iff no dynamic child; fixed_size is always the fixed
                 region (dynamic children count as a 4-byte offset)
    LIST,BITLIST always dynamic

The input arena is left untouched; classified copies go into a new arena
with the same ids.

A list boundary breaks recursion: a record met again below a list is known
to be dynamic (it contains that list), so its size is not needed. Meeting a
record again without crossing a list means the type has no finite size.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import InfiniteSize, SszgenError
from .ir import BYTES_PER_LENGTH_OFFSET, Arena, Kind, Node, NodeId, Schema
from .logging import get_logger
from .resolver import ResolutionContext

log = get_logger(__name__)

_DYNAMIC: Tuple[bool, Optional[int]] = (True, None)


class Classifier:
    def __init__(self, arena: Arena) -> None:
        self.src = arena
        self.done: Dict[NodeId, Node] = {}
        # ids being classified; None marks a list boundary
        self._stack: List[Optional[NodeId]] = []

    def visit(self, nid: NodeId) -> Tuple[bool, Optional[int]]:
        """(is_dynamic, fixed_size) of node `nid`."""
        node = self.done.get(nid)
        if node is not None:
            return bool(node.is_dynamic), node.fixed_size
        if nid in self._stack:
            if nid in self._segment():
                raise InfiniteSize(self._cycle(nid))
            return _DYNAMIC

        node = self.src[nid]
        self._stack.append(nid)
        try:
            dynamic, size = self._classify(node)
        finally:
            self._stack.pop()
        self.done[nid] = replace(node, is_dynamic=dynamic, fixed_size=size)
        return dynamic, size

    def arena(self) -> Arena:
        """A new arena; nodes never visited are carried over unclassified."""
        return Arena([self.done.get(nid, node) for nid, node in self.src])

    def _classify(self, node: Node) -> Tuple[bool, Optional[int]]:
        k = node.kind
        if k in (Kind.UINT, Kind.BOOL):
            return False, node.width
        if k is Kind.BITVECTOR:
            return False, (node.length + 7) // 8
        if k is Kind.BYTES:
            return (False, node.length) if node.length is not None else _DYNAMIC
        if k in (Kind.LIST, Kind.BITLIST):
            if node.element is not None:
                self._stack.append(None)
                try:
                    self.visit(node.element)
                finally:
                    self._stack.pop()
            return _DYNAMIC
        if k is Kind.VECTOR:
            dynamic, size = self.visit(node.element)
            if dynamic:
                return _DYNAMIC
            return False, node.length * size
        if k is Kind.CONTAINER:
            dynamic, total = False, 0
            for f in node.fields:
                child_dynamic, size = self.visit(f.node)
                if child_dynamic:
                    dynamic = True
                    total += BYTES_PER_LENGTH_OFFSET
                else:
                    total += size
            return dynamic, total
        raise ValueError(f"unknown node kind {k!r}")

    def _segment(self) -> List[Optional[NodeId]]:
        """Stack entries above the innermost list boundary."""
        for i in range(len(self._stack) - 1, -1, -1):
            if self._stack[i] is None:
                return self._stack[i + 1:]
        return self._stack

    def _cycle(self, nid: NodeId) -> List[str]:
        path = self._stack[self._stack.index(nid):] + [nid]
        return [self.src[i].record for i in path if i is not None and self.src[i].record]


def classify(arena: Arena, roots: Optional[Iterable[NodeId]] = None) -> Arena:
    """Classify every node (or those reachable from `roots`) into a new arena."""
    c = Classifier(arena)
    for nid in (roots if roots is not None else range(len(arena))):
        c.visit(nid)
    return c.arena()


def build_schema(
    ctx: ResolutionContext,
    names: Optional[Iterable[str]] = None,
    *,
    errors: Optional[List[SszgenError]] = None,
) -> Schema:
    """
    Classify the registered records (or `names`) of a resolution context.

    With an `errors` list, records of infinite size are collected there and
    left out of the schema instead of aborting; records that reach them
    fail the same way.
    """
    wanted = list(names) if names is not None else list(ctx.registry.order)
    c = Classifier(ctx.arena)
    keep = set()
    for name in wanted:
        try:
            c.visit(ctx.registry.ids[name])
        except InfiniteSize as e:
            decl = ctx.declaration(name)
            err = e.with_context(record=name, path=decl.path, line=decl.line)
            if errors is None:
                raise err from None
            log.warning("skipping record", extra={"record": name, "error": err.message})
            errors.append(err)
            continue
        keep.add(name)
    order = tuple(n for n in ctx.registry.order if n in keep)
    log.debug("classified records", extra={"records": len(order)})
    return Schema(arena=c.arena(), records={n: ctx.registry.ids[n] for n in order}, order=order)


__all__ = ["Classifier", "classify", "build_schema"]
