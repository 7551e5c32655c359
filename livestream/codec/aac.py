"""AAC audio parser that wraps raw frames in ADTS headers."""

from __future__ import annotations

from typing import BinaryIO

from livestream.av import AAC_RAW, AAC_SEQHDR

AAC_RATES = (96000, 88200, 64000, 48000, 44100, 32000, 24000, 22050, 16000, 12000, 11025, 8000, 7350)

ADTS_HEADER_LEN = 7


class AacError(ValueError):
    """Raised for malformed AAC configuration or frame data."""


class AacParser:
    """Tracks the AudioSpecificConfig and emits ADTS frames."""

    def __init__(self) -> None:
        self._got_specific = False
        self.object_type = 0
        self.sample_rate_index = 0
        self.channel = 0

    def _specific_info(self, data: bytes) -> None:
        if len(data) < 2:
            raise AacError("audio mpegspecific error")
        self._got_specific = True
        self.object_type = (data[0] >> 3) & 0xFF
        self.sample_rate_index = (((data[0] & 0x07) << 1) | (data[1] >> 7)) & 0xFF
        self.channel = (data[1] >> 3) & 0x0F

    def _adts_header(self, payload_len: int) -> bytes:
        frame_len = (payload_len + ADTS_HEADER_LEN) & 0xFFFF
        profile = (((self.object_type - 1) & 0xFF) << 6) & 0xFF
        b2 = profile | ((self.sample_rate_index << 2) & 0xFF)
        b3 = ((self.channel << 6) & 0xFF) | (((frame_len << 3) & 0xFFFF) >> 14)
        b4 = (((frame_len << 5) & 0xFFFF) >> 8) & 0xFF
        b5 = ((frame_len & 0x07) << 5) | 0x1F
        return bytes((0xFF, 0xF1, b2, b3, b4, b5, 0xFC))

    def _adts(self, data: bytes, w: BinaryIO) -> None:
        if not data or not self._got_specific:
            raise AacError("audiodata  invalid")
        w.write(self._adts_header(len(data)))
        w.write(data)

    def sample_rate(self) -> int:
        if self.sample_rate_index < len(AAC_RATES):
            return AAC_RATES[self.sample_rate_index]
        return 44100

    def parse(self, data: bytes, packet_type: int, w: BinaryIO) -> None:
        """Take a sequence header or write one raw frame with its ADTS header."""
        if packet_type == AAC_SEQHDR:
            self._specific_info(data)
        elif packet_type == AAC_RAW:
            self._adts(data, w)