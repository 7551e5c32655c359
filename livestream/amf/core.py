"""AMF markers, value types and low-level byte helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, BinaryIO

AMF0 = 0x00
AMF3 = 0x03

AMF0_NUMBER_MARKER = 0x00
AMF0_BOOLEAN_MARKER = 0x01
AMF0_STRING_MARKER = 0x02
AMF0_OBJECT_MARKER = 0x03
AMF0_MOVIECLIP_MARKER = 0x04
AMF0_NULL_MARKER = 0x05
AMF0_UNDEFINED_MARKER = 0x06
AMF0_REFERENCE_MARKER = 0x07
AMF0_ECMA_ARRAY_MARKER = 0x08
AMF0_OBJECT_END_MARKER = 0x09
AMF0_STRICT_ARRAY_MARKER = 0x0A
AMF0_DATE_MARKER = 0x0B
AMF0_LONG_STRING_MARKER = 0x0C
AMF0_UNSUPPORTED_MARKER = 0x0D
AMF0_RECORDSET_MARKER = 0x0E
AMF0_XML_DOCUMENT_MARKER = 0x0F
AMF0_TYPED_OBJECT_MARKER = 0x10
AMF0_ACMPLUS_OBJECT_MARKER = 0x11

AMF0_BOOLEAN_FALSE = 0x00
AMF0_BOOLEAN_TRUE = 0x01
AMF0_STRING_MAX = 65535
AMF3_INTEGER_MAX = 536870911

AMF3_UNDEFINED_MARKER = 0x00
AMF3_NULL_MARKER = 0x01
AMF3_FALSE_MARKER = 0x02
AMF3_TRUE_MARKER = 0x03
AMF3_INTEGER_MARKER = 0x04
AMF3_DOUBLE_MARKER = 0x05
AMF3_STRING_MARKER = 0x06
AMF3_XMLDOC_MARKER = 0x07
AMF3_DATE_MARKER = 0x08
AMF3_ARRAY_MARKER = 0x09
AMF3_OBJECT_MARKER = 0x0A
AMF3_XMLSTRING_MARKER = 0x0B
AMF3_BYTEARRAY_MARKER = 0x0C


class AmfError(Exception):
    """Raised when AMF data cannot be encoded or decoded."""


class Object(dict):
    """An AMF object: string keys mapped to values."""


class Array(list):
    """An AMF array of values."""


@dataclass
class TypedObject:
    """An object carrying a class name."""

    type: str = ""
    object: Object = field(default_factory=Object)


@dataclass
class Trait:
    """AMF3 class description shared by objects of one type."""

    type: str = ""
    externalizable: bool = False
    dynamic: bool = False
    properties: list[str] = field(default_factory=list)


def read_bytes(r: BinaryIO, n: int) -> bytes:
    """Read exactly ``n`` bytes or raise AmfError."""
    if n == 0:
        return b""
    data = r.read(n)
    if not data:
        raise AmfError("decode read bytes failed: end of data")
    if len(data) != n:
        raise AmfError(f"decode read bytes failed: expected {n} got {len(data)}")
    return bytes(data)


def read_byte(r: BinaryIO) -> int:
    return read_bytes(r, 1)[0]


def write_bytes(w: BinaryIO, data: bytes) -> int:
    written = w.write(data)
    return len(data) if written is None else written


def write_byte(w: BinaryIO, b: int) -> None:
    write_bytes(w, bytes((b & 0xFF,)))


def read_marker(r: BinaryIO) -> int:
    return read_byte(r)


def write_marker(w: BinaryIO, marker: int) -> None:
    write_byte(w, marker)


def assert_marker(r: BinaryIO, check_marker: bool, marker: int) -> None:
    """Read one marker byte and check it, unless ``check_marker`` is false."""
    if not check_marker:
        return
    got = read_marker(r)
    if got != marker:
        raise AmfError(f"decode assert marker failed: expected {marker} got {got}")


def dump_bytes(label: str, buf: bytes, size: int) -> None:
    print(f"Dumping {label} ({size} bytes):")
    print("".join(f"0x{b:02x} " for b in buf[:size]))


def dump(label: str, val: Any) -> None:
    try:
        text = json.dumps(val, indent=2, default=_json_default)
    except (TypeError, ValueError) as exc:
        raise AmfError(f"Error dumping {label}: {exc}") from exc
    print(f"Dumping {label}:\n{text}")


def _json_default(val: Any) -> Any:
    if isinstance(val, TypedObject):
        return {"Type": val.type, "Object": val.object}
    raise TypeError(f"cannot serialise {type(val).__name__}")