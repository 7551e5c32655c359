import io

from livestream.amf.core import AMF0, Object
from livestream.amf.encoder import Encoder
from livestream.amf.metadata import ON_METADATA, SET_DATA_FRAME_BYTES
from livestream.av import TAG_AUDIO, TAG_SCRIPTDATAAMF0, TAG_VIDEO, Info, Packet
from livestream.container.flv_writer import FLV_HEADER, FlvDvr, FlvWriter


def _open(tmp_path):
    path = tmp_path / "out.flv"
    return path, FlvWriter("live", "room", "rtmp://localhost/live/room", open(path, "wb"))


def _tags(blob):
    body = blob[len(FLV_HEADER) + 4:]
    tags = []
    while body:
        type_id = body[0]
        size = int.from_bytes(body[1:4], "big")
        ts = int.from_bytes(body[4:7], "big") | (body[7] << 24)
        data = body[11:11 + size]
        prev = int.from_bytes(body[11 + size:15 + size], "big")
        tags.append((type_id, ts, data, prev, body[8:11]))
        body = body[15 + size:]
    return tags


def test_header_written_on_creation(tmp_path):
    path, writer = _open(tmp_path)
    writer.close()
    assert path.read_bytes() == b"FLV\x01\x05\x00\x00\x00\x09" + bytes(4)


def test_video_and_audio_tags(tmp_path):
    path, writer = _open(tmp_path)
    writer.write(Packet(is_video=True, timestamp=0x01020304, data=b"abc"))
    writer.write(Packet(is_audio=True, timestamp=40, data=b"xy"))
    writer.close()
    tags = _tags(path.read_bytes())
    assert [t[0] for t in tags] == [TAG_VIDEO, TAG_AUDIO]
    assert tags[0][1] == 0x01020304
    assert tags[0][2] == b"abc"
    assert tags[1][2] == b"xy"
    for _, _, data, prev, stream_id in tags:
        assert prev == len(data) + 11
        assert stream_id == bytes(3)


def test_metadata_prefix_is_stripped(tmp_path):
    buf = io.BytesIO()
    Encoder().encode_batch(buf, AMF0, ON_METADATA, Object(width=1.0))
    meta = buf.getvalue()
    path, writer = _open(tmp_path)
    writer.write(Packet(is_metadata=True, data=SET_DATA_FRAME_BYTES + meta))
    writer.close()
    [(type_id, _, data, _, _)] = _tags(path.read_bytes())
    assert type_id == TAG_SCRIPTDATAAMF0
    assert data == meta


def test_base_timestamp_shifts_tags(tmp_path):
    path, writer = _open(tmp_path)
    writer.write(Packet(is_video=True, timestamp=500, data=b"a"))
    writer.calc_base_timestamp()
    writer.write(Packet(is_video=True, timestamp=20, data=b"b"))
    writer.close()
    tags = _tags(path.read_bytes())
    assert [t[1] for t in tags] == [500, 520]


def test_wait_and_close(tmp_path):
    _, writer = _open(tmp_path)
    assert writer.wait(0.01) is False
    writer.close()
    writer.close()
    assert writer.wait(0.01) is True


def test_info(tmp_path):
    _, writer = _open(tmp_path)
    info = writer.info()
    writer.close()
    assert info.key == "live/room"
    assert info.url == "rtmp://localhost/live/room"
    assert info.uid == writer.uid


def test_alive_after_write(tmp_path):
    _, writer = _open(tmp_path)
    writer.write(Packet(is_video=True, data=b"z"))
    assert writer.alive() is True
    writer.close()


def test_dvr_creates_file(tmp_path):
    dvr = FlvDvr(str(tmp_path))
    writer = dvr.get_writer(Info(key="live/room", url="rtmp://localhost/live/room"))
    assert writer.info().key == "live/room"
    writer.close()
    files = list((tmp_path / "live").iterdir())
    assert len(files) == 1
    assert files[0].name.startswith("room_")
    assert files[0].suffix == ".flv"
    assert files[0].read_bytes().startswith(FLV_HEADER)


def test_dvr_rejects_key_without_app(tmp_path):
    assert FlvDvr(str(tmp_path)).get_writer(Info(key="room")) is None