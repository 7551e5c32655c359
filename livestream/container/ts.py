"""MPEG transport stream muxing: PES packetisation, PAT and PMT tables."""

from __future__ import annotations

from typing import BinaryIO

from livestream.av import Packet, VideoPacketHeader

TS_DEFAULT_DATA_LEN = 184
TS_PACKET_LEN = 188
H264_DEFAULT_HZ = 90

VIDEO_PID = 0x100
AUDIO_PID = 0x101
VIDEO_SID = 0xE0
AUDIO_SID = 0xC0

_CRC_POLY = 0x04C11DB7


def _crc_entry(index: int) -> int:
    crc = index << 24
    for _ in range(8):
        crc = ((crc << 1) ^ _CRC_POLY) if crc & 0x80000000 else crc << 1
        crc &= 0xFFFFFFFF
    return crc


_CRC_TABLE = tuple(_crc_entry(i) for i in range(256))


def gen_crc32(data: bytes) -> int:
    """CRC-32/MPEG-2 checksum used by PSI sections."""
    crc = 0xFFFFFFFF
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return crc


def _encode_timestamp(marker: int, ts: int) -> bytes:
    if ts > 0x1FFFFFFFF:
        ts -= 0x1FFFFFFFF
    first = ((marker << 4) | (((ts >> 30) & 0x07) << 1) | 1) & 0xFF
    middle = (((ts >> 15) & 0x7FFF) << 1) | 1
    last = ((ts & 0x7FFF) << 1) | 1
    return bytes((first, (middle >> 8) & 0xFF, middle & 0xFF, (last >> 8) & 0xFF, last & 0xFF))


def _pes_header(packet: Packet, pts: int, dts: int) -> bytes:
    sid = VIDEO_SID if packet.is_video else AUDIO_SID
    flag = 0x80
    header_size = 5
    with_dts = packet.is_video and pts != dts
    if with_dts:
        flag |= 0x40
        header_size += 5
    size = len(packet.data) + header_size + 3
    if size > 0xFFFF:
        size = 0
    out = bytearray((0x00, 0x00, 0x01, sid, (size >> 8) & 0xFF, size & 0xFF, 0x80, flag, header_size))
    out += _encode_timestamp(flag >> 6, pts)
    if with_dts:
        out += _encode_timestamp(1, dts)
    return bytes(out)


def _finish_section(ts_header: bytes, section: bytes) -> bytes:
    crc = gen_crc32(section).to_bytes(4, "big")
    body = ts_header + section + crc
    return body + b"\xff" * (TS_PACKET_LEN - len(body))


class Muxer:
    """Splits media packets into 188-byte transport stream packets."""

    def __init__(self) -> None:
        self._video_cc = 0
        self._audio_cc = 0
        self._pat_cc = 0
        self._pmt_cc = 0
        self._ts_packet = bytearray(TS_PACKET_LEN)

    def _next_cc(self, is_video: bool) -> int:
        if is_video:
            self._video_cc = (self._video_cc + 1) & 0x0F
            return self._video_cc
        self._audio_cc = (self._audio_cc + 1) & 0x0F
        return self._audio_cc

    def _write_pcr(self, start: int, pcr: int) -> None:
        self._ts_packet[start:start + 6] = bytes((
            (pcr >> 25) & 0xFF,
            (pcr >> 17) & 0xFF,
            (pcr >> 9) & 0xFF,
            (pcr >> 1) & 0xFF,
            ((pcr & 0x1) << 7) | 0x7E,
            0x00,
        ))

    def _init_adaptation(self, start: int, remain: int) -> None:
        buf = self._ts_packet
        buf[start] = (remain - 1) & 0xFF
        if remain != 1 and start + 1 < TS_PACKET_LEN:
            buf[start + 1] = 0x00
            fill_from = start + 2
            if fill_from < TS_PACKET_LEN:
                buf[fill_from:] = b"\xff" * (TS_PACKET_LEN - fill_from)

    def mux(self, packet: Packet, w: BinaryIO | None) -> None:
        """Write ``packet`` as transport stream packets to ``w``; ``None`` discards them."""
        dts = packet.timestamp * H264_DEFAULT_HZ
        pts = dts
        pid = AUDIO_PID
        video_header = None
        if packet.is_video:
            if not isinstance(packet.header, VideoPacketHeader):
                raise TypeError("video packet has no video header")
            video_header = packet.header
            pid = VIDEO_PID
            pts = dts + video_header.composition_time * H264_DEFAULT_HZ

        pes = _pes_header(packet, pts, dts)
        pes_remaining = len(pes)
        pes_index = 0
        data = packet.data
        written = 0
        remaining = len(data) + len(pes)
        buf = self._ts_packet
        first = True

        while remaining > 0:
            cc = self._next_cc(packet.is_video)
            buf[0] = 0x47
            buf[1] = ((pid >> 8) & 0xFF) | (0x40 if first else 0)
            buf[2] = pid & 0xFF
            buf[3] = 0x10 | cc
            i = 4

            if first and video_header is not None and video_header.is_key_frame():
                buf[3] |= 0x20
                buf[4] = 7
                buf[5] = 0x50
                self._write_pcr(6, dts)
                i = 12

            if remaining >= TS_DEFAULT_DATA_LEN:
                data_len = TS_DEFAULT_DATA_LEN
                if first:
                    data_len -= i - 4
            else:
                buf[3] |= 0x20
                data_len = remaining
                used = (i - 4) if first else 0
                remain = (TS_DEFAULT_DATA_LEN - data_len - used) & 0xFF
                self._init_adaptation(i, remain)
                i = (i + remain) & 0xFF

            if first and i < TS_PACKET_LEN and pes_remaining > 0:
                take = min(TS_PACKET_LEN - i, pes_remaining)
                buf[i:i + take] = pes[pes_index:pes_index + take]
                i += take
                remaining -= take
                data_len = (data_len - take) & 0xFF
                pes_remaining -= take
                pes_index += take

            if i < TS_PACKET_LEN:
                data_len = min(data_len, TS_PACKET_LEN - i)
                chunk = data[written:written + data_len]
                buf[i:i + len(chunk)] = chunk
                written += data_len
                remaining -= data_len

            if w is not None:
                w.write(bytes(buf))
            first = False

    def pat(self) -> bytes:
        """Return the next program association table packet."""
        if self._pat_cc > 0x0F:
            self._pat_cc = 0
        ts_header = bytes((0x47, 0x40, 0x00, 0x10 | (self._pat_cc & 0x0F), 0x00))
        self._pat_cc += 1
        section = bytes((0x00, 0xB0, 0x0D, 0x00, 0x01, 0xC1, 0x00, 0x00, 0x00, 0x01, 0xF0, 0x01))
        return _finish_section(ts_header, section)

    def pmt(self, sound_format: int, has_video: bool) -> bytes:
        """Return the next program map table packet."""
        pmt_header = bytearray((0x02, 0xB0, 0xFF, 0x00, 0x01, 0xC1, 0x00, 0x00, 0xE1, 0x00, 0xF0, 0x00))
        if has_video:
            prog_info = bytearray((0x1B, 0xE1, 0x00, 0xF0, 0x00, 0x0F, 0xE1, 0x01, 0xF0, 0x00))
        else:
            pmt_header[9] = 0x01
            prog_info = bytearray((0x0F, 0xE1, 0x01, 0xF0, 0x00))
        pmt_header[2] = (len(prog_info) + 9 + 4) & 0xFF

        if self._pmt_cc > 0x0F:
            self._pmt_cc = 0
        ts_header = bytes((0x47, 0x50, 0x01, 0x10 | (self._pmt_cc & 0x0F), 0x00))
        self._pmt_cc += 1

        if sound_format in (2, 14):
            prog_info[5 if has_video else 0] = 0x04

        return _finish_section(ts_header, bytes(pmt_header + prog_info))