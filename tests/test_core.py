import io

import pytest

from livestream.amf.core import (
    AMF0_NULL_MARKER,
    AMF0_STRING_MARKER,
    AmfError,
    Array,
    Object,
    Trait,
    TypedObject,
    assert_marker,
    dump,
    dump_bytes,
    read_byte,
    read_bytes,
    read_marker,
    write_byte,
    write_bytes,
    write_marker,
)


def test_read_bytes_exact():
    r = io.BytesIO(b"abcdef")
    assert read_bytes(r, 3) == b"abc"
    assert read_bytes(r, 3) == b"def"


def test_read_bytes_short_raises():
    with pytest.raises(AmfError):
        read_bytes(io.BytesIO(b"ab"), 3)


def test_read_bytes_at_end_raises():
    with pytest.raises(AmfError):
        read_byte(io.BytesIO(b""))


def test_read_byte_and_marker():
    r = io.BytesIO(bytes([0x02, 0x05]))
    assert read_byte(r) == AMF0_STRING_MARKER
    assert read_marker(r) == AMF0_NULL_MARKER


def test_write_round_trip():
    w = io.BytesIO()
    write_byte(w, 0x09)
    write_marker(w, 0x0A)
    n = write_bytes(w, b"foo")
    assert n == 3
    r = io.BytesIO(w.getvalue())
    assert read_byte(r) == 0x09
    assert read_marker(r) == 0x0A
    assert read_bytes(r, 3) == b"foo"


def test_assert_marker_match_consumes_byte():
    r = io.BytesIO(bytes([AMF0_NULL_MARKER, 0x01]))
    assert_marker(r, True, AMF0_NULL_MARKER)
    assert r.tell() == 1


def test_assert_marker_mismatch():
    with pytest.raises(AmfError, match="decode assert marker failed"):
        assert_marker(io.BytesIO(bytes([0x01])), True, AMF0_NULL_MARKER)


def test_assert_marker_unchecked_reads_nothing():
    r = io.BytesIO(bytes([0x01]))
    assert_marker(r, False, AMF0_NULL_MARKER)
    assert r.tell() == 0


def test_dump_bytes_output(capsys):
    dump_bytes("buf", bytes([0x01, 0xFF, 0x07]), 2)
    out = capsys.readouterr().out
    assert out == "Dumping buf (2 bytes):\n0x01 0xff \n"


def test_dump_round_trips_through_json(capsys):
    import json

    obj = Object(foo="bar", n=1.5)
    dump("obj", obj)
    out = capsys.readouterr().out
    header, body = out.split("\n", 1)
    assert header == "Dumping obj:"
    assert json.loads(body) == {"foo": "bar", "n": 1.5}


def test_dump_unserialisable_raises():
    with pytest.raises(AmfError, match="Error dumping x"):
        dump("x", object())


def test_value_types_defaults():
    to = TypedObject()
    assert to.type == ""
    assert to.object == {}
    assert isinstance(to.object, Object)
    trait = Trait()
    assert (trait.type, trait.externalizable, trait.dynamic, trait.properties) == ("", False, False, [])
    assert Array([1, "a"]) == [1, "a"]


def test_typed_objects_do_not_share_state():
    a = TypedObject()
    b = TypedObject()
    a.object["k"] = 1
    assert "k" not in b.object