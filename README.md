# livestream

Building blocks for a live video streaming server, in pure Python.

The package covers the parts of a streaming pipeline that deal with bytes
and settings rather than sockets:

- **AMF0 / AMF3** encoding and decoding, as used by RTMP commands and FLV
  script data (`livestream.amf`).
- **FLV** tag header parsing, demuxing and recording of streams to `.flv`
  files (`livestream.container.flv_tag`, `livestream.container.flv_writer`).
- **MPEG-TS** muxing with PAT/PMT generation and the MPEG-2 CRC32, the
  segment format used by HLS (`livestream.container.ts`).
- **AAC and MP3** audio parsing: ADTS framing and sample-rate detection
  (`livestream.codec.aac`, `livestream.codec.mp3`).
- **Media packets** and shared reader/writer timestamp state
  (`livestream.av`).
- **Server configuration** built from defaults, a YAML or JSON file,
  environment variables and command-line style options
  (`livestream.config`).

Python 3.10 or later is required; the only runtime dependency is PyYAML.

## Packets

`livestream.av.Packet` is a dataclass holding one audio, video or metadata
unit: `is_audio`, `is_video`, `is_metadata`, `timestamp`, `stream_id`,
`header` and `data`. `Info` identifies a stream (`key`, `url`, `uid`,
`inter`). `RWBaser` keeps the last audio and video timestamps, derives a
base timestamp from them with `calc_base_timestamp()`, and reports
`alive()` until its timeout has passed since the last `set_pre_time()`.

## AMF

```python
import io

from livestream.amf.core import Object
from livestream.amf.decoder import Decoder
from livestream.amf.encoder import Encoder

buf = io.BytesIO()
Encoder().encode(buf, Object({"foo": "bar"}), 0)   # version 0 = AMF0
buf.seek(0)
value = Decoder().decode(buf, 0)
assert value["foo"] == "bar"
```

Version `3` selects AMF3. `Decoder` handles both versions and keeps its
reference tables across calls; `decode_batch` reads values until the data
runs out. In AMF3, mappings are written as sealed objects whose properties
are the sorted keys; a `TypedObject` (a class name plus an `Object`) sets the
class name. Dates are `datetime` values with whole-second precision, in UTC.
Externalizable classes other than the built-in Flex message types can be
decoded by registering a callback with
`Amf3Decoder.register_external_handler(name, handler)`.

Malformed input and values that cannot be encoded raise
`livestream.amf.core.AmfError`.

`metadata_reform(data, flag)` in `livestream.amf.metadata` adds (`ADD`) or
strips (`DEL`) the `@setDataFrame` prefix that RTMP publishers put in front
of `onMetaData`.

## MPEG-TS

`livestream.container.ts.Muxer.mux(packet, w)` turns an audio or video
packet into 188-byte transport stream packets written to any object with a
`write` method; passing `None` for `w` discards them. Video packets must
carry a header with `composition_time` and `is_key_frame()`, such as a parsed
FLV `Tag`. `Muxer.pat()` and `Muxer.pmt(sound_format, has_video)` return the
program tables that start each segment, advancing their continuity counters
on every call. `gen_crc32` computes the MPEG-2 CRC used in those tables.

## FLV

`Tag.parse_media_tag_header(data, is_video)` reads the audio or video header
at the start of an FLV tag body and returns its length; the tag then exposes
the codec, sound fields, frame type and composition time. Short input raises
`FlvTagError`. `Demuxer.demux` attaches the parsed tag to a packet and strips
the header from its data, raising `AvcEndSequence` at the end of an AVC
sequence; `Demuxer.demux_header` only attaches the tag.

`FlvDvr(flv_dir).get_writer(info)` opens an `FlvWriter` at
`flv_dir/APP/KEY_<unix time>.flv` for a stream key of the form `APP/KEY`, and
returns `None` if the key is malformed or the file cannot be created. The
writer emits the FLV file header and then one tag per `write(packet)` call;
metadata packets are written as script data with `@setDataFrame` stripped.
`close()` closes the file once, `wait()` blocks until then, and the writer
can be used as a context manager.

## Audio parsers

`AacParser.parse(data, packet_type, w)` reads the AudioSpecificConfig from a
sequence header and writes raw AAC frames to `w` behind an ADTS header.
`Mp3Parser.parse(data)` picks the sample rate out of an MP3 frame header.
Both report `sample_rate()`, defaulting to 44100 Hz when nothing better is
known. Bad data raises `AacError` or `Mp3Error`.

## Configuration

```python
from livestream.config import load_config

config = load_config(["--rtmp_addr", ":1935"], {})
config.check_app_name("live")        # True when the "live" application is live
config.static_push_urls("live")      # relay targets for that application
```

`load_config(argv, environ)` starts from the defaults in `ServerConfig`,
reads the file named by `--config_file` (default `livego.yaml`; `.yaml`,
`.yml` and `.json` are understood, and a missing or unreadable file is
logged and skipped), then applies environment variables named after the
upper-cased settings (for example `RTMP_ADDR`, `GOP_NUM`, `JWT_SECRET`), and
finally the options given in `argv`. When `argv` or `environ` is `None`, the
process arguments and environment are used.

## What is not included

The package has no network servers: it does not accept RTMP, HTTP-FLV or HLS
connections, serve an HTTP management API, or relay streams, and it has no
command to start a server. There is no H.264 parser. `load_config` parses
server options, but nothing in the package listens on the addresses it
returns.

## Tests

The test suite uses pytest and lives in `tests/`; install the `test` extra
to get it.