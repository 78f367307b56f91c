"""Best-effort protobuf wire reader.

Every read returns `None` instead of raising, so a corrupt or truncated blob
can only shorten the list of decoded fields, never break the caller.
"""
from typing import Callable, Iterator

VARINT = 0
I64 = 1
LEN = 2
I32 = 5

# 2**53 - same precision as a double, bigger values treated as corrupt
MAX_SHIFT = 53


# https://developers.google.com/protocol-buffers/docs/encoding#varints
def read_varint(raw: bytes, pos: int) -> tuple[int, int] | None:
    res = 0
    shift = 0
    while pos < len(raw) and shift < MAX_SHIFT:
        b = raw[pos]
        res += (b & 0x7F) << shift
        pos += 1
        if b & 0x80 == 0:
            return res, pos
        shift += 7
    return None


def read_length_delimited(raw: bytes, pos: int) -> tuple[bytes, int] | None:
    if not (info := read_varint(raw, pos)):
        return None
    length, start = info
    end = start + length
    if end > len(raw):
        return None
    return raw[start:end], end


def skip_field(raw: bytes, wire_type: int, pos: int) -> int | None:
    if wire_type == VARINT:
        info = read_varint(raw, pos)
    elif wire_type == LEN:
        info = read_length_delimited(raw, pos)
    elif wire_type == I64:
        return pos + 8 if pos + 8 <= len(raw) else None
    elif wire_type == I32:
        return pos + 4 if pos + 4 <= len(raw) else None
    else:
        return None
    return info[1] if info else None


def iter_fields(raw: bytes) -> Iterator[tuple[int, int, int | bytes]]:
    """Yield `(field_number, wire_type, value)` until the end of the message
    or the first tag/payload that can't be decoded.

    VARINT values are ints, everything else is the raw payload bytes.
    """
    pos = 0
    while pos < len(raw):
        if not (info := read_varint(raw, pos)):
            return
        key, pos = info
        tag = key >> 3
        typ = key & 0b111

        if typ == VARINT:
            info = read_varint(raw, pos)
        elif typ == LEN:
            info = read_length_delimited(raw, pos)
        elif (end := skip_field(raw, typ, pos)) is not None:
            info = raw[pos:end], end
        else:
            return

        if not info:
            return

        v, pos = info
        yield tag, typ, v


def for_each_field(raw: bytes, on_field: Callable[[int, int, int | bytes], None]):
    for tag, typ, v in iter_fields(raw):
        on_field(tag, typ, v)


def append_varint(b: bytearray, i: int):
    while i >= 0x80:
        b.append(0x80 | (i & 0x7F))
        i >>= 7
    b.append(i)


def append_field(b: bytearray, tag: int, value):
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        append_varint(b, tag << 3 | VARINT)
        append_varint(b, value)
        return
    if isinstance(value, dict):
        value = dumps(value)
    elif isinstance(value, str):
        value = value.encode()
    elif not isinstance(value, (bytes, bytearray)):
        raise NotImplementedError(type(value))
    append_varint(b, tag << 3 | LEN)
    append_varint(b, len(value))
    b.extend(value)


def dumps(data: dict) -> bytes:
    """Minimal encoder: int, str, bytes, nested dict or list of them."""
    b = bytearray()
    for tag, value in data.items():
        assert isinstance(tag, int)
        for v in value if isinstance(value, list) else [value]:
            append_field(b, tag, v)
    return bytes(b)
