"""
Source text that generated modules carry with them.

Generated code depends only on the standard library: the sentinel error
classes are emitted once per run (into the first unit with content) and
every unit gets private copies of the helpers it calls.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

ROOT_ERROR = "SSZError"

# (class name, message), emitted in this order
SENTINELS: List[Tuple[str, str]] = [
    ("OffsetError", "incorrect offset"),
    ("SizeError", "incorrect size"),
    ("MarshalVectorError", "incorrect vector marshalling"),
    ("MarshalListError", "incorrect vector list"),
    ("MarshalFixedBytesError", "incorrect fixed bytes marshalling"),
    ("MarshalDynamicBytesError", "incorrect dynamic bytes marshalling"),
    ("MarshalUintError", "incorrect uint marshalling"),
    ("DivideIntError", "incorrect int divide"),
    ("ListTooBigError", "incorrect list size, too big"),
    ("BitfieldError", "incorrect bitfield encoding"),
    ("BoolError", "incorrect bool encoding"),
]


def sentinel_names() -> List[str]:
    return [ROOT_ERROR] + [name for name, _ in SENTINELS]


def sentinel_source() -> str:
    out = [
        f"class {ROOT_ERROR}(ValueError):",
        '    """Raised when a value cannot be encoded or a buffer cannot be decoded."""',
        "",
        '    message = "ssz error"',
        "",
        '    def __init__(self, detail: str = "") -> None:',
        '        super().__init__(f"{self.message}: {detail}" if detail else self.message)',
    ]
    for name, message in SENTINELS:
        out += ["", "", f"class {name}({ROOT_ERROR}):", f"    message = {message!r}"]
    return "\n".join(out) + "\n"


# name -> source; dict order is emission order
HELPERS: Dict[str, str] = {
    "_put_offset": '''
def _put_offset(buf: bytearray, pos: int, start: int) -> None:
    buf[pos:pos + 4] = (len(buf) - start).to_bytes(4, "little")
''',
    "_pack_bits": '''
def _pack_bits(bits, nbytes: int) -> bytes:
    out = bytearray(nbytes)
    for i, bit in enumerate(bits):
        if bit:
            out[i >> 3] |= 1 << (i & 7)
    return bytes(out)
''',
    "_pack_bitlist": '''
def _pack_bitlist(bits) -> bytes:
    n = len(bits)
    out = bytearray(n // 8 + 1)
    for i, bit in enumerate(bits):
        if bit:
            out[i >> 3] |= 1 << (i & 7)
    out[n >> 3] |= 1 << (n & 7)
    return bytes(out)
''',
    "_bitlist_len": '''
def _bitlist_len(data) -> int:
    if not len(data) or data[-1] == 0:
        raise BitfieldError("bitlist delimiter bit is missing")
    return (len(data) - 1) * 8 + data[-1].bit_length() - 1
''',
    "_unpack_bitvector": '''
def _unpack_bitvector(span, nbits: int) -> list:
    if nbits & 7 and span[-1] >> (nbits & 7):
        raise BitfieldError("bitvector padding bits are not zero")
    return [bool(span[i >> 3] >> (i & 7) & 1) for i in range(nbits)]
''',
    "_unpack_bitlist": '''
def _unpack_bitlist(span, limit) -> list:
    if not len(span) or span[-1] == 0:
        raise BitfieldError("bitlist delimiter bit is missing")
    n = (len(span) - 1) * 8 + span[-1].bit_length() - 1
    if limit is not None and n > limit:
        raise ListTooBigError(f"{n} bits > {limit}")
    return [bool(span[i >> 3] >> (i & 7) & 1) for i in range(n)]
''',
    "_decode_packed_bitlist": '''
def _decode_packed_bitlist(span, limit) -> bytes:
    if not len(span) or span[-1] == 0:
        raise BitfieldError("bitlist delimiter bit is missing")
    n = (len(span) - 1) * 8 + span[-1].bit_length() - 1
    if limit is not None and n > limit:
        raise ListTooBigError(f"{n} bits > {limit}")
    return bytes(span)
''',
    "_decode_bool": '''
def _decode_bool(span) -> bool:
    if span[0] > 1:
        raise BoolError(f"byte {span[0]:#04x}")
    return span[0] == 1
''',
    "_decode_bytes": '''
def _decode_bytes(span, limit: int) -> bytes:
    if len(span) > limit:
        raise ListTooBigError(f"{len(span)} bytes > {limit}")
    return bytes(span)
''',
    "_fixed_list_count": '''
def _fixed_list_count(size: int, elem_size: int, limit: int) -> int:
    count, rem = divmod(size, elem_size)
    if rem:
        raise DivideIntError(f"{size} bytes is not a multiple of {elem_size}")
    if count > limit:
        raise ListTooBigError(f"{count} elements > {limit}")
    return count
''',
    "_dynamic_list_count": '''
def _dynamic_list_count(span, limit: int) -> int:
    if not len(span):
        return 0
    if len(span) < 4:
        raise OffsetError("list shorter than its first offset")
    first = int.from_bytes(span[0:4], "little")
    if first == 0 or first % 4:
        raise OffsetError(f"first list offset {first}")
    count = first // 4
    if count > limit:
        raise ListTooBigError(f"{count} elements > {limit}")
    return count
''',
    "_offset_spans": '''
def _offset_spans(span, count: int) -> list:
    size = len(span)
    if size < 4 * count:
        raise OffsetError(f"offset table of {count} entries exceeds {size} bytes")
    offsets = [int.from_bytes(span[4 * i:4 * i + 4], "little") for i in range(count)]
    if count and offsets[0] != 4 * count:
        raise OffsetError(f"first offset {offsets[0]} != {4 * count}")
    offsets.append(size)
    for i in range(count):
        if offsets[i] > offsets[i + 1]:
            raise OffsetError(f"offset {offsets[i]} out of order")
    return [(offsets[i], offsets[i + 1]) for i in range(count)]
''',
}


def helper_blocks(names: Iterable[str]) -> List[str]:
    """Source blocks of the requested helpers, in a fixed order."""
    wanted = set(names)
    unknown = wanted - set(HELPERS)
    if unknown:
        raise KeyError(f"unknown runtime helpers: {sorted(unknown)}")
    return [HELPERS[n].strip("\n") + "\n" for n in HELPERS if n in wanted]


__all__ = ["ROOT_ERROR", "SENTINELS", "HELPERS", "sentinel_names", "sentinel_source", "helper_blocks"]
