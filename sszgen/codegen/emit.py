"""
Source emitter primitives shared by the size / marshal / unmarshal emitters.

`Writer` accumulates indented lines, hands out collision-free temporaries
(``_t0``, ``_t1``...) and remembers which runtime helpers the emitted code
calls so the assembler only includes those.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, List, Set

INDENT = "    "

# record name -> qualified routine prefix ("" or "other_encoding.")
Qualifier = Callable[[str], str]


def snake(s: str) -> str:
    """``BeaconBlockHeader`` -> ``beacon_block_header``; ``HTTPRequest`` -> ``http_request``."""
    out: List[str] = []
    for i, ch in enumerate(s):
        if not ch.isalnum():
            out.append("_")
            continue
        if ch.isupper() and i > 0:
            prev = s[i - 1]
            nxt = s[i + 1] if i + 1 < len(s) else ""
            if prev.islower() or prev.isdigit() or (prev.isupper() and nxt.islower()):
                out.append("_")
        out.append(ch.lower())
    name = "".join(out).strip("_")
    while "__" in name:
        name = name.replace("__", "_")
    if not name:
        name = "record"
    if name[0].isdigit():
        name = "_" + name
    return name


def size_fn(record: str) -> str:
    return f"size_{snake(record)}"


def marshal_fn(record: str) -> str:
    return f"marshal_{snake(record)}"


def marshal_to_fn(record: str) -> str:
    return f"marshal_{snake(record)}_to"


def unmarshal_fn(record: str) -> str:
    return f"unmarshal_{snake(record)}"


def local(field: str) -> str:
    """Decoded-field local; the leading underscore keeps it clear of record names."""
    return f"_v_{field}"


class Writer:
    def __init__(self) -> None:
        self.lines: List[str] = []
        self.helpers: Set[str] = set()
        self._depth = 0
        self._tmp = 0

    def line(self, text: str = "") -> None:
        self.lines.append(f"{INDENT * self._depth}{text}" if text else "")

    def blank(self) -> None:
        self.lines.append("")

    @contextmanager
    def block(self, header: str) -> Iterator[None]:
        self.line(header)
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1

    def tmp(self) -> str:
        name = f"_t{self._tmp}"
        self._tmp += 1
        return name

    def reset_tmp(self) -> None:
        self._tmp = 0

    def use(self, helper: str) -> str:
        self.helpers.add(helper)
        return helper

    def raise_(self, exc: str, detail: str) -> None:
        self.line(f"raise {exc}({detail})")

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


__all__ = [
    "Writer",
    "Qualifier",
    "snake",
    "size_fn",
    "marshal_fn",
    "marshal_to_fn",
    "unmarshal_fn",
    "local",
]
