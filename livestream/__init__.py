"""Building blocks for live streaming: packets, AMF, FLV, MPEG-TS, audio parsers and configuration."""

__version__ = "0.1.0"