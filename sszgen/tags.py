"""
Field annotation grammar.

Annotations use the struct-tag syntax: space separated ``key:"value"``
pairs, e.g. ``ssz-size:"?,32" ssz-max:"16"``. Three keys are meaningful:

- ``ssz``       marker values, currently only ``bitlist``
- ``ssz-size``  ``N`` or the tuple ``F,S`` (``F`` may be ``?``)
- ``ssz-max``   ``N``

Unknown keys are kept (other tools share the same annotation string) but
never interpreted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import MalformedAnnotation

TAG_SSZ = "ssz"
TAG_SIZE = "ssz-size"
TAG_MAX = "ssz-max"

BITLIST_MARKER = "bitlist"

_PAIR_RE = re.compile(r'\s*([^\s:"]+):"((?:[^"\\]|\\.)*)"')
_UINT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class SizeTuple:
    """``ssz-size:"F,S"``; ``outer`` is None when ``F`` is ``?``."""

    outer: Optional[int]
    inner: int

    @property
    def is_list(self) -> bool:
        return self.outer is None


@dataclass(frozen=True)
class Tags:
    raw: str
    values: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def parse(cls, raw: str) -> "Tags":
        """Parse an annotation string; malformed syntax is a configuration error."""
        text = raw.strip().strip("`")
        pairs: Dict[str, str] = {}
        pos = 0
        while pos < len(text):
            if text[pos].isspace():
                pos += 1
                continue
            m = _PAIR_RE.match(text, pos)
            if not m:
                raise MalformedAnnotation(
                    "annotation is not a list of key:\"value\" pairs",
                    annotation=raw,
                    at=pos,
                )
            key, value = m.group(1), m.group(2)
            # first occurrence wins, as with struct tags
            pairs.setdefault(key, value)
            pos = m.end()
        return cls(raw=raw, values=tuple(pairs.items()))

    def get(self, key: str) -> Optional[str]:
        for k, v in self.values:
            if k == key:
                return v
        return None

    @property
    def is_bitlist(self) -> bool:
        return self.get(TAG_SSZ) == BITLIST_MARKER

    def size(self) -> Optional[int]:
        """``ssz-size:"N"`` as an int, or None when absent."""
        v = self.get(TAG_SIZE)
        if v is None:
            return None
        if "," in v:
            raise MalformedAnnotation(
                f"{TAG_SIZE} expects a single value here, got a tuple",
                annotation=self.raw,
            )
        return _parse_uint(TAG_SIZE, v, self.raw)

    def size_tuple(self) -> Optional[SizeTuple]:
        """``ssz-size:"F,S"``; None when absent."""
        v = self.get(TAG_SIZE)
        if v is None:
            return None
        parts = [p.strip() for p in v.split(",")]
        if len(parts) != 2:
            raise MalformedAnnotation(
                f"{TAG_SIZE} expects two comma separated values (outer,inner)",
                annotation=self.raw,
            )
        outer = None if parts[0] == "?" else _parse_uint(TAG_SIZE, parts[0], self.raw)
        if outer == 0:
            raise MalformedAnnotation(
                f"{TAG_SIZE} outer dimension must be positive; use '?' with {TAG_MAX} for a list",
                annotation=self.raw,
            )
        inner = _parse_uint(TAG_SIZE, parts[1], self.raw)
        return SizeTuple(outer=outer, inner=inner)

    def max(self) -> Optional[int]:
        """``ssz-max:"N"`` as an int, or None when absent."""
        v = self.get(TAG_MAX)
        if v is None:
            return None
        return _parse_uint(TAG_MAX, v, self.raw)


def _parse_uint(key: str, value: str, raw: str) -> int:
    v = value.strip()
    if not _UINT_RE.fullmatch(v):
        raise MalformedAnnotation(
            f"{key} expects a non-negative integer, got {value!r}",
            annotation=raw,
        )
    return int(v, 10)


__all__ = ["Tags", "SizeTuple", "TAG_SSZ", "TAG_SIZE", "TAG_MAX", "BITLIST_MARKER"]
