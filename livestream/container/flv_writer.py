"""Writing media packets to FLV files."""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from typing import BinaryIO

from livestream.amf.metadata import DEL, metadata_reform
from livestream.av import TAG_AUDIO, TAG_SCRIPTDATAAMF0, TAG_VIDEO, Info, Packet, RWBaser

log = logging.getLogger(__name__)

FLV_HEADER = bytes((0x46, 0x4C, 0x56, 0x01, 0x05, 0x00, 0x00, 0x00, 0x09))
TAG_HEADER_LEN = 11
WRITER_TIMEOUT = 10.0


class FlvWriter(RWBaser):
    """Writes packets as FLV tags to an open binary file."""

    def __init__(self, app: str, title: str, url: str, ctx: BinaryIO) -> None:
        super().__init__(WRITER_TIMEOUT)
        self.uid = str(uuid.uuid4())
        self.app = app
        self.title = title
        self.url = url
        self._ctx = ctx
        self._closed = threading.Event()
        self._closed_writer = False
        ctx.write(FLV_HEADER)
        ctx.write(bytes(4))

    def write(self, packet: Packet) -> None:
        """Append one tag and its trailing previous-tag-size field."""
        self.set_pre_time()
        type_id = TAG_VIDEO
        if not packet.is_video:
            if packet.is_metadata:
                type_id = TAG_SCRIPTDATAAMF0
                packet.data = metadata_reform(packet.data, DEL)
            else:
                type_id = TAG_AUDIO
        data = packet.data
        timestamp = (packet.timestamp + self.base_timestamp()) & 0xFFFFFFFF
        self.rec_timestamp(timestamp, type_id)

        header = (
            bytes((type_id,))
            + (len(data) & 0xFFFFFF).to_bytes(3, "big")
            + (timestamp & 0xFFFFFF).to_bytes(3, "big")
            + bytes(((timestamp >> 24) & 0xFF,))
            + bytes(3)
        )
        self._ctx.write(header)
        self._ctx.write(data)
        self._ctx.write(((len(data) + TAG_HEADER_LEN) & 0xFFFFFFFF).to_bytes(4, "big"))

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the writer is closed; return False if ``timeout`` ran out."""
        return self._closed.wait(timeout)

    def close(self, error: BaseException | None = None) -> None:
        """Close the file once; later calls do nothing."""
        if self._closed_writer:
            return
        self._closed_writer = True
        self._ctx.close()
        self._closed.set()

    def info(self) -> Info:
        return Info(key=f"{self.app}/{self.title}", url=self.url, uid=self.uid)

    def __enter__(self) -> FlvWriter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close(exc)


class FlvDvr:
    """Creates FLV writers that record streams under ``flv_dir/APP/KEY_TIME.flv``."""

    def __init__(self, flv_dir: str = "tmp") -> None:
        self.flv_dir = flv_dir

    def get_writer(self, info: Info) -> FlvWriter | None:
        """Open a new recording for ``info``; return None if that fails."""
        paths = info.key.split("/", 1)
        if len(paths) != 2:
            log.warning("invalid info")
            return None
        try:
            os.makedirs(os.path.join(self.flv_dir, paths[0]), mode=0o755, exist_ok=True)
        except OSError as exc:
            log.error("mkdir error: %s", exc)
            return None
        file_name = f"{os.path.join(self.flv_dir, info.key)}_{int(time.time())}.flv"
        log.debug("flv dvr save stream to: %s", file_name)
        try:
            ctx = open(file_name, "wb")
        except OSError as exc:
            log.error("open file error: %s", exc)
            return None
        writer = FlvWriter(paths[0], paths[1], info.url, ctx)
        log.debug("new flv dvr: %s", writer.info())
        return writer