import io

import pytest

from livestream.amf.core import AmfError, Array, Object, TypedObject
from livestream.amf.decoder import Decoder


def _three_ways(data, method):
    """Decode via the router, with marker, and without marker."""
    dec = Decoder()
    buf = io.BytesIO(data)
    results = [dec.decode_amf0(buf)]
    buf.seek(0)
    results.append(getattr(dec, method)(buf, True))
    buf.seek(1)
    results.append(getattr(dec, method)(buf, False))
    return results


def test_number():
    data = bytes([0x00, 0x3F, 0xF3, 0x33, 0x33, 0x33, 0x33, 0x33, 0x33])
    assert _three_ways(data, "decode_amf0_number") == [1.2, 1.2, 1.2]


def test_boolean_true():
    assert _three_ways(bytes([0x01, 0x01]), "decode_amf0_boolean") == [True, True, True]


def test_boolean_false():
    assert _three_ways(bytes([0x01, 0x00]), "decode_amf0_boolean") == [False, False, False]


def test_boolean_invalid_value():
    with pytest.raises(AmfError):
        Decoder().decode_amf0(io.BytesIO(bytes([0x01, 0x02])))


def test_string():
    data = bytes([0x02, 0x00, 0x03, 0x66, 0x6F, 0x6F])
    assert _three_ways(data, "decode_amf0_string") == ["foo", "foo", "foo"]


def test_object():
    data = bytes([0x03, 0x00, 0x03, 0x66, 0x6F, 0x6F, 0x02, 0x00, 0x03,
                  0x62, 0x61, 0x72, 0x00, 0x00, 0x09])
    for obj in _three_ways(data, "decode_amf0_object"):
        assert isinstance(obj, Object)
        assert obj == {"foo": "bar"}


def test_object_missing_end_marker():
    data = bytes([0x03, 0x00, 0x00, 0x05])
    with pytest.raises(AmfError):
        Decoder().decode_amf0(io.BytesIO(data))


def test_null():
    dec = Decoder()
    buf = io.BytesIO(bytes([0x05]))
    assert dec.decode_amf0(buf) is None
    buf.seek(0)
    assert dec.decode_amf0_null(buf, True) is None
    assert buf.tell() == 1


def test_undefined():
    dec = Decoder()
    buf = io.BytesIO(bytes([0x06]))
    assert dec.decode_amf0(buf) is None
    buf.seek(0)
    assert dec.decode_amf0_undefined(buf, True) is None
    assert buf.tell() == 1


def test_null_wrong_marker():
    with pytest.raises(AmfError):
        Decoder().decode_amf0_null(io.BytesIO(bytes([0x06])), True)


def test_ecma_array():
    data = bytes([0x08, 0x00, 0x00, 0x00, 0x01, 0x00, 0x03, 0x66, 0x6F, 0x6F,
                  0x02, 0x00, 0x03, 0x62, 0x61, 0x72, 0x00, 0x00, 0x09])
    for obj in _three_ways(data, "decode_amf0_ecma_array"):
        assert isinstance(obj, Object)
        assert obj["foo"] == "bar"


def test_strict_array():
    data = bytes([0x0A, 0x00, 0x00, 0x00, 0x03, 0x00, 0x40, 0x14, 0x00, 0x00, 0x00,
                  0x00, 0x00, 0x00, 0x02, 0x00, 0x03, 0x66, 0x6F, 0x6F, 0x05])
    for arr in _three_ways(data, "decode_amf0_strict_array"):
        assert isinstance(arr, Array)
        assert list(arr) == [5.0, "foo", None]


def test_date():
    data = bytes([0x0B, 0x40, 0x14, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    assert _three_ways(data, "decode_amf0_date") == [5.0, 5.0, 5.0]


def test_date_missing_trailer():
    data = bytes([0x0B, 0x40, 0x14, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
    with pytest.raises(AmfError):
        Decoder().decode_amf0(io.BytesIO(data))


def test_long_string():
    data = bytes([0x0C, 0x00, 0x00, 0x00, 0x03, 0x66, 0x6F, 0x6F])
    assert _three_ways(data, "decode_amf0_long_string") == ["foo", "foo", "foo"]


def test_unsupported():
    dec = Decoder()
    buf = io.BytesIO(bytes([0x0D]))
    assert dec.decode_amf0(buf) is None
    buf.seek(0)
    assert dec.decode_amf0_unsupported(buf, True) is None
    assert buf.tell() == 1


def test_xml_document():
    data = bytes([0x0F, 0x00, 0x00, 0x00, 0x03, 0x66, 0x6F, 0x6F])
    assert _three_ways(data, "decode_amf0_xml_document") == ["foo", "foo", "foo"]


def test_typed_object():
    data = bytes([0x10, 0x00, 0x0F]) + b"org.amf.ASClass" + bytes([
        0x00, 0x03]) + b"baz" + bytes([0x05, 0x00, 0x03]) + b"foo" + bytes([
        0x02, 0x00, 0x03]) + b"bar" + bytes([0x00, 0x00, 0x09])
    for tobj in _three_ways(data, "decode_amf0_typed_object"):
        assert isinstance(tobj, TypedObject)
        assert tobj.type == "org.amf.ASClass"
        assert tobj.object["foo"] == "bar"
        assert tobj.object["baz"] is None


@pytest.mark.parametrize("marker", [0x04, 0x07, 0x0E, 0x20])
def test_unsupported_markers_raise(marker):
    with pytest.raises(AmfError):
        Decoder().decode_amf0(io.BytesIO(bytes([marker, 0x00, 0x00])))


def test_amf3_switch_marker():
    data = bytes([0x11, 0x06, 0x07]) + b"foo"
    assert Decoder().decode_amf0(io.BytesIO(data)) == "foo"


def test_decode_dispatches_by_version():
    dec = Decoder()
    assert dec.decode(io.BytesIO(bytes([0x02, 0x00, 0x01]) + b"x"), 0) == "x"
    assert dec.decode(io.BytesIO(bytes([0x04, 0x05])), 3) == 5


def test_decode_unsupported_version():
    with pytest.raises(AmfError, match="unsupported version 2"):
        Decoder().decode(io.BytesIO(bytes([0x05])), 2)


def test_decode_batch_stops_at_end():
    data = bytes([0x02, 0x00, 0x03]) + b"foo" + bytes([0x01, 0x01, 0x05])
    assert Decoder().decode_batch(io.BytesIO(data), 0) == ["foo", True, None]


def test_decode_batch_empty():
    assert Decoder().decode_batch(io.BytesIO(b""), 0) == []


def test_truncated_number():
    with pytest.raises(AmfError):
        Decoder().decode_amf0(io.BytesIO(bytes([0x00, 0x3F, 0xF3])))