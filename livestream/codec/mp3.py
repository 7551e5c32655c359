"""MP3 frame header parser for the sampling frequency."""

from __future__ import annotations

MP3_RATES = (44100, 48000, 32000)


class Mp3Error(ValueError):
    """Raised for malformed MP3 frame data."""


class Mp3Parser:
    """Reads the sampling frequency from MP3 frame headers."""

    def __init__(self) -> None:
        self._sampling_frequency = 0

    def parse(self, data: bytes) -> None:
        if len(data) < 3:
            raise Mp3Error("mp3data  invalid")
        index = (data[2] >> 2) & 0x3
        if index >= len(MP3_RATES):
            raise Mp3Error("invalid rate index")
        self._sampling_frequency = MP3_RATES[index]

    def sample_rate(self) -> int:
        if self._sampling_frequency == 0:
            self._sampling_frequency = 44100
        return self._sampling_frequency