"""Adding and removing the ``@setDataFrame`` prefix of stream metadata."""

from __future__ import annotations

import io

from livestream.amf.core import AMF0, AmfError
from livestream.amf.decoder import Decoder
from livestream.amf.encoder import Encoder

ADD = 0x0
DEL = 0x3

SET_DATA_FRAME = "@setDataFrame"
ON_METADATA = "onMetaData"


def _encode_set_data_frame() -> bytes:
    buf = io.BytesIO()
    Encoder().encode(buf, SET_DATA_FRAME, AMF0)
    return buf.getvalue()


SET_DATA_FRAME_BYTES = _encode_set_data_frame()


def metadata_reform(data: bytes, flag: int) -> bytes:
    """Prefix metadata with ``@setDataFrame`` (ADD) or strip that prefix (DEL)."""
    data = bytes(data)
    if flag not in (ADD, DEL):
        raise AmfError(f"invalid flag:{flag}")
    value = Decoder().decode(io.BytesIO(data), AMF0)
    if not isinstance(value, str):
        raise AmfError("setFrameFrame error" if flag == ADD else "metadata error")
    if flag == ADD:
        if value != SET_DATA_FRAME:
            return SET_DATA_FRAME_BYTES + data
        return data
    if value == SET_DATA_FRAME:
        return data[len(SET_DATA_FRAME_BYTES):]
    return data