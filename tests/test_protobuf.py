from windsurf_status.core.protobuf import (
    append_varint,
    dumps,
    for_each_field,
    iter_fields,
    read_length_delimited,
    read_varint,
    skip_field,
)


def test_varint():
    assert read_varint(b"\x01", 0) == (1, 1)
    assert read_varint(b"\x96\x01", 0) == (150, 2)
    assert read_varint(b"\x00\x96\x01", 1) == (150, 3)

    # no terminating byte
    assert read_varint(b"\x96", 0) is None
    assert read_varint(b"", 0) is None
    assert read_varint(b"\x01", 1) is None


def test_varint_precision():
    assert read_varint(b"\xff" * 7 + b"\x01", 0) == (2**50 - 1, 8)
    # ninth group goes beyond 53 bits
    assert read_varint(b"\xff" * 8 + b"\x01", 0) is None
    assert read_varint(b"\xff" * 10 + b"\x01", 0) is None


def test_length_delimited():
    assert read_length_delimited(b"\x03abc", 0) == (b"abc", 4)
    assert read_length_delimited(b"\x00", 0) == (b"", 1)
    assert read_length_delimited(b"\x03abcdef", 0) == (b"abc", 4)

    assert read_length_delimited(b"\x03ab", 0) is None
    assert read_length_delimited(b"\x80", 0) is None
    assert read_length_delimited(b"\xff\xff\xff\x0f", 0) is None


def test_skip_field():
    assert skip_field(b"\x96\x01", 0, 0) == 2
    assert skip_field(b"\x00" * 8, 1, 0) == 8
    assert skip_field(b"\x00" * 7, 1, 0) is None
    assert skip_field(b"\x02ab", 2, 0) == 3
    assert skip_field(b"\x03ab", 2, 0) is None
    assert skip_field(b"\x00" * 4, 5, 0) == 4
    assert skip_field(b"\x00" * 3, 5, 0) is None

    # groups and unknown types are not supported
    assert skip_field(b"\x00" * 8, 3, 0) is None
    assert skip_field(b"\x00" * 8, 4, 0) is None
    assert skip_field(b"\x00" * 8, 7, 0) is None


def test_iter_fields():
    raw = dumps({1: 150, 2: "hi", 3: {1: 1}})
    assert raw == b"\x08\x96\x01\x12\x02hi\x1a\x02\x08\x01"
    assert list(iter_fields(raw)) == [(1, 0, 150), (2, 2, b"hi"), (3, 2, b"\x08\x01")]

    assert list(iter_fields(b"")) == []


def test_iter_fixed():
    raw = b"\x0d\x01\x02\x03\x04" + b"\x11" + b"\x00" * 8 + dumps({3: 7})
    assert list(iter_fields(raw)) == [
        (1, 5, b"\x01\x02\x03\x04"),
        (2, 1, b"\x00" * 8),
        (3, 0, 7),
    ]


def test_iter_stops_on_error():
    # wire type 3 (start group) halts the message
    raw = dumps({1: 1}) + b"\x0b\x00" + dumps({2: 2})
    assert list(iter_fields(raw)) == [(1, 0, 1)]

    # payload longer than buffer
    raw = dumps({1: 1}) + b"\x12\x05ab"
    assert list(iter_fields(raw)) == [(1, 0, 1)]

    # tag without value
    assert list(iter_fields(b"\x08")) == []
    assert list(iter_fields(b"\x80")) == []


def test_for_each_field():
    fields = []
    for_each_field(dumps({5: "a", 6: 1}), lambda *args: fields.append(args))
    assert fields == [(5, 2, b"a"), (6, 0, 1)]


def test_dumps():
    b = bytearray()
    append_varint(b, 300)
    assert b == b"\xac\x02"

    assert dumps({1: [1, 2]}) == b"\x08\x01\x08\x02"
    assert dumps({2: b"\x00"}) == b"\x12\x01\x00"
    assert dumps({1: "Привет"}) == b"\x0a\x0c" + "Привет".encode()
