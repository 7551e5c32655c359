import io

import pytest

from livestream.av import AAC_RAW, AAC_SEQHDR
from livestream.codec.aac import AAC_RATES, AacError, AacParser


def _parser(config=bytes([0x12, 0x10])):
    p = AacParser()
    p.parse(config, AAC_SEQHDR, io.BytesIO())
    return p


def test_sequence_header_fields():
    p = _parser()
    assert p.object_type == 2
    assert p.sample_rate_index == 4
    assert p.channel == 2
    assert p.sample_rate() == 44100


def test_sample_rate_from_table():
    p = _parser(bytes([0x11, 0x90]))
    assert p.sample_rate() == 48000


def test_sample_rate_default_before_config():
    assert AacParser().sample_rate() == AAC_RATES[0] or AacParser().sample_rate() == 96000


def test_sample_rate_out_of_table_falls_back():
    p = _parser(bytes([0x16, 0x90]))  # index 13
    assert p.sample_rate_index == 13
    assert p.sample_rate() == 44100


def test_short_sequence_header_raises():
    with pytest.raises(AacError, match="mpegspecific"):
        AacParser().parse(b"\x12", AAC_SEQHDR, io.BytesIO())


def test_raw_before_config_raises():
    with pytest.raises(AacError):
        AacParser().parse(b"\x01\x02", AAC_RAW, io.BytesIO())


def test_empty_raw_raises():
    with pytest.raises(AacError):
        _parser().parse(b"", AAC_RAW, io.BytesIO())


@pytest.mark.parametrize("size", [1, 10, 200, 1500])
def test_adts_header_describes_frame(size):
    p = _parser()
    payload = bytes(range(256)) * 6
    payload = payload[:size]
    out = io.BytesIO()
    p.parse(payload, AAC_RAW, out)
    data = out.getvalue()
    header, body = data[:7], data[7:]
    assert body == payload
    assert header[0] == 0xFF and header[1] == 0xF1 and header[6] == 0xFC
    assert (header[2] >> 6) + 1 == p.object_type
    assert (header[2] >> 2) & 0x0F == p.sample_rate_index
    assert ((header[2] & 0x01) << 2) | (header[3] >> 6) == p.channel
    frame_len = ((header[3] & 0x03) << 11) | (header[4] << 3) | (header[5] >> 5)
    assert frame_len == len(data)
    assert header[5] & 0x1F == 0x1F


def test_unknown_packet_type_writes_nothing():
    out = io.BytesIO()
    _parser().parse(b"\x01\x02", 5, out)
    assert out.getvalue() == b""