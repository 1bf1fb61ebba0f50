"""
SSZ intermediate representation
===============================

Nodes live in an append-only `Arena` and are addressed by integer ids.
A record is resolved once; every field that uses it holds a `FieldRef`
(local name + node id), so use-site attributes never leak into the shared
node and no copying is needed.

Kinds:
  - UINT / BOOL: `width` bytes
  - BYTES: fixed when `length` (ssz-size) is set, else bounded by `limit` (ssz-max)
  - BITVECTOR: `length` bits
  - BITLIST: optional `limit` bits; `packed` when the value is the wire
    bytes themselves (a `bytes` field), else a sequence of bools
  - VECTOR: `length` elements of `element`
  - LIST: at most `limit` elements of `element`
  - CONTAINER: ordered `fields` of `record`

`fixed_size` and `is_dynamic` are None until the classifier has run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

NodeId = int

BYTES_PER_LENGTH_OFFSET = 4


class Kind(str, Enum):
    UINT = "uint"
    BOOL = "bool"
    BYTES = "bytes"
    BITVECTOR = "bitvector"
    BITLIST = "bitlist"
    VECTOR = "vector"
    LIST = "list"
    CONTAINER = "container"


@dataclass(frozen=True)
class FieldRef:
    """A container field: its wire name plus a reference to the shared node."""

    name: str
    node: NodeId
    line: int = 0


@dataclass(frozen=True)
class Node:
    kind: Kind
    width: Optional[int] = None
    length: Optional[int] = None
    limit: Optional[int] = None
    element: Optional[NodeId] = None
    fields: Tuple[FieldRef, ...] = ()
    record: Optional[str] = None
    packed: bool = False
    fixed_size: Optional[int] = None
    is_dynamic: Optional[bool] = None

    @property
    def is_fixed(self) -> bool:
        if self.is_dynamic is None:
            raise ValueError(f"{self.kind.value} node has not been classified")
        return not self.is_dynamic

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value}
        for k in ("width", "length", "limit", "element", "record", "fixed_size", "is_dynamic"):
            v = getattr(self, k)
            if v is not None:
                out[k] = v
        if self.packed:
            out["packed"] = True
        if self.kind is Kind.CONTAINER:
            out["fields"] = [{"name": f.name, "node": f.node} for f in self.fields]
        return out


class Arena:
    """Append-only node store."""

    def __init__(self, nodes: Optional[List[Node]] = None) -> None:
        self._nodes: List[Node] = list(nodes or [])

    def add(self, node: Node) -> NodeId:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def get(self, nid: NodeId) -> Node:
        return self._nodes[nid]

    def __getitem__(self, nid: NodeId) -> Node:
        return self._nodes[nid]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Tuple[NodeId, Node]]:
        return iter(enumerate(self._nodes))

    def _fill(self, nid: NodeId, node: Node) -> None:
        # only the resolver completes a reserved container placeholder
        placeholder = self._nodes[nid]
        if placeholder.kind is not Kind.CONTAINER or placeholder.fields:
            raise ValueError(f"node {nid} is not an open placeholder")
        self._nodes[nid] = node


@dataclass
class Registry:
    """
    Record name -> node id, write-once, plus the explicit order in which
    records were resolved.
    """

    ids: Dict[str, NodeId] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[NodeId]:
        return self.ids.get(name)

    def put(self, name: str, nid: NodeId) -> None:
        if name in self.ids:
            raise ValueError(f"record {name!r} already registered")
        self.ids[name] = nid
        self.order.append(name)

    def __contains__(self, name: object) -> bool:
        return name in self.ids


@dataclass(frozen=True)
class Schema:
    """Classified IR handed to code generation."""

    arena: Arena
    records: Dict[str, NodeId]
    order: Tuple[str, ...]

    def node(self, nid: NodeId) -> Node:
        return self.arena.get(nid)

    def record(self, name: str) -> Node:
        return self.arena.get(self.records[name])

    def field_nodes(self, name: str) -> List[Tuple[FieldRef, Node]]:
        return [(f, self.arena.get(f.node)) for f in self.record(name).fields]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": {name: self.records[name] for name in self.order},
            "nodes": [n.to_dict() for _, n in self.arena],
        }


__all__ = [
    "NodeId",
    "Kind",
    "FieldRef",
    "Node",
    "Arena",
    "Registry",
    "Schema",
    "BYTES_PER_LENGTH_OFFSET",
]
