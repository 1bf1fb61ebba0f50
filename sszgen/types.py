"""
Marker types for record declarations.

Declaration modules import these so their annotations carry an explicit
SSZ width; the scanner recognises them by name, so any alias with the same
name works as well.

    from dataclasses import dataclass, field
    from typing import Annotated, List

    from sszgen.types import Bitlist, uint64

    @dataclass
    class Attestation:
        aggregation_bits: Annotated[Bitlist, 'ssz-max:"2048"']
        slot: uint64 = 0
"""

from __future__ import annotations

from typing import List, NewType

uint8 = NewType("uint8", int)
uint16 = NewType("uint16", int)
uint32 = NewType("uint32", int)
uint64 = NewType("uint64", int)

# Logical bits, one bool per bit; the delimiter / padding only exists on the wire.
Bitlist = List[bool]
Bitvector = List[bool]

UINT_WIDTHS = {
    "uint8": 1,
    "uint16": 2,
    "uint32": 4,
    "uint64": 8,
}

__all__ = ["uint8", "uint16", "uint32", "uint64", "Bitlist", "Bitvector", "UINT_WIDTHS"]
