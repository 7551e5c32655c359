"""AMF0 and AMF3 value encoding."""

from __future__ import annotations

import struct
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Iterable

from livestream.amf.core import (
    AMF0,
    AMF0_ACMPLUS_OBJECT_MARKER,
    AMF0_BOOLEAN_FALSE,
    AMF0_BOOLEAN_MARKER,
    AMF0_BOOLEAN_TRUE,
    AMF0_ECMA_ARRAY_MARKER,
    AMF0_LONG_STRING_MARKER,
    AMF0_NULL_MARKER,
    AMF0_NUMBER_MARKER,
    AMF0_OBJECT_END_MARKER,
    AMF0_OBJECT_MARKER,
    AMF0_STRICT_ARRAY_MARKER,
    AMF0_STRING_MARKER,
    AMF0_STRING_MAX,
    AMF0_UNDEFINED_MARKER,
    AMF0_UNSUPPORTED_MARKER,
    AMF3,
    AMF3_ARRAY_MARKER,
    AMF3_BYTEARRAY_MARKER,
    AMF3_DATE_MARKER,
    AMF3_DOUBLE_MARKER,
    AMF3_FALSE_MARKER,
    AMF3_INTEGER_MARKER,
    AMF3_INTEGER_MAX,
    AMF3_NULL_MARKER,
    AMF3_OBJECT_MARKER,
    AMF3_STRING_MARKER,
    AMF3_TRUE_MARKER,
    AMF3_UNDEFINED_MARKER,
    AmfError,
    Array,
    Object,
    TypedObject,
    write_bytes,
    write_marker,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SEQUENCE_TYPES = (list, tuple, bytes, bytearray)


def _pack_double(val: float) -> bytes:
    try:
        return struct.pack(">d", float(val))
    except OverflowError as exc:
        raise AmfError(f"encode amf: number out of range: {exc}") from exc


def _as_object(val: Mapping, version: str) -> Mapping:
    if not all(isinstance(key, str) for key in val):
        raise AmfError(f"encode {version}: unable to create object from map")
    return val


def _unix_seconds(val: datetime) -> int:
    if val.tzinfo is None:
        val = val.replace(tzinfo=timezone.utc)
    return (val - _EPOCH) // timedelta(seconds=1)


class Encoder:
    """Writes AMF0 and AMF3 values; every method returns the bytes written."""

    def encode(self, w: BinaryIO, val: Any, version: int) -> int:
        """Encode one value in the given AMF version."""
        if version == AMF0:
            return self.encode_amf0(w, val)
        if version == AMF3:
            return self.encode_amf3(w, val)
        raise AmfError(f"encode amf: unsupported version {version}")

    def encode_batch(self, w: BinaryIO, version: int, *args: Any) -> int:
        """Encode each value in turn, stopping at the first failure."""
        return sum(self.encode(w, val, version) for val in args)

    # AMF0

    def encode_amf0(self, w: BinaryIO, val: Any) -> int:
        """Encode a value with its AMF0 marker, choosing the type from the value."""
        if val is None:
            return self.encode_amf0_null(w, True)
        if isinstance(val, bool):
            return self.encode_amf0_boolean(w, val, True)
        if isinstance(val, (int, float)):
            return self.encode_amf0_number(w, val, True)
        if isinstance(val, str):
            if len(val.encode("utf-8")) <= AMF0_STRING_MAX:
                return self.encode_amf0_string(w, val, True)
            return self.encode_amf0_long_string(w, val, True)
        if isinstance(val, TypedObject):
            raise AmfError("encode amf0: unsupported type typed object")
        if isinstance(val, Mapping):
            return self.encode_amf0_object(w, _as_object(val, "amf0"), True)
        if isinstance(val, _SEQUENCE_TYPES):
            return self.encode_amf0_strict_array(w, Array(val), True)
        raise AmfError(f"encode amf0: unsupported type {type(val).__name__}")

    def encode_amf0_number(self, w: BinaryIO, val: float, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF0_NUMBER_MARKER)
            n += 1
        return n + write_bytes(w, _pack_double(val))

    def encode_amf0_boolean(self, w: BinaryIO, val: bool, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF0_BOOLEAN_MARKER)
            n += 1
        flag = AMF0_BOOLEAN_TRUE if val else AMF0_BOOLEAN_FALSE
        return n + write_bytes(w, bytes((flag,)))

    def encode_amf0_string(self, w: BinaryIO, val: str, encode_marker: bool) -> int:
        """Encode a string with a 16-bit length prefix."""
        n = 0
        if encode_marker:
            write_marker(w, AMF0_STRING_MARKER)
            n += 1
        data = val.encode("utf-8")
        n += write_bytes(w, (len(data) & 0xFFFF).to_bytes(2, "big"))
        return n + write_bytes(w, data)

    def encode_amf0_object(self, w: BinaryIO, val: Mapping, encode_marker: bool) -> int:
        """Encode key/value pairs followed by the empty key and end marker."""
        n = 0
        if encode_marker:
            write_marker(w, AMF0_OBJECT_MARKER)
            n += 1
        for key, value in val.items():
            n += self.encode_amf0_string(w, key, False)
            try:
                n += self.encode_amf0(w, value)
            except AmfError as exc:
                raise AmfError(f"encode amf0: unable to encode object value: {exc}") from exc
        n += self.encode_amf0_string(w, "", False)
        write_marker(w, AMF0_OBJECT_END_MARKER)
        return n + 1

    def encode_amf0_null(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF0_NULL_MARKER)
            return 1
        return 0

    def encode_amf0_undefined(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF0_UNDEFINED_MARKER)
            return 1
        return 0

    def encode_amf0_ecma_array(self, w: BinaryIO, val: Mapping, encode_marker: bool) -> int:
        """Encode an associative array: a 32-bit count then the object body."""
        n = 0
        if encode_marker:
            write_marker(w, AMF0_ECMA_ARRAY_MARKER)
            n += 1
        n += write_bytes(w, (len(val) & 0xFFFFFFFF).to_bytes(4, "big"))
        try:
            n += self.encode_amf0_object(w, _as_object(val, "amf0"), False)
        except AmfError as exc:
            raise AmfError(f"encode amf0: unable to encode ecma array object: {exc}") from exc
        return n

    def encode_amf0_strict_array(self, w: BinaryIO, val: Iterable, encode_marker: bool) -> int:
        """Encode a 32-bit count followed by each element."""
        n = 0
        if encode_marker:
            write_marker(w, AMF0_STRICT_ARRAY_MARKER)
            n += 1
        items = list(val)
        n += write_bytes(w, (len(items) & 0xFFFFFFFF).to_bytes(4, "big"))
        for item in items:
            try:
                n += self.encode_amf0(w, item)
            except AmfError as exc:
                raise AmfError(f"encode amf0: unable to encode strict array element: {exc}") from exc
        return n

    def encode_amf0_long_string(self, w: BinaryIO, val: str, encode_marker: bool) -> int:
        """Encode a string with a 32-bit length prefix."""
        n = 0
        if encode_marker:
            write_marker(w, AMF0_LONG_STRING_MARKER)
            n += 1
        data = val.encode("utf-8")
        n += write_bytes(w, (len(data) & 0xFFFFFFFF).to_bytes(4, "big"))
        return n + write_bytes(w, data)

    def encode_amf0_unsupported(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF0_UNSUPPORTED_MARKER)
            return 1
        return 0

    def encode_amf0_amf3_marker(self, w: BinaryIO) -> None:
        """Write the marker that switches an AMF0 stream to AMF3."""
        write_marker(w, AMF0_ACMPLUS_OBJECT_MARKER)

    # AMF3

    def encode_amf3(self, w: BinaryIO, val: Any) -> int:
        """Encode a value with its AMF3 marker, choosing the type from the value."""
        if val is None:
            return self.encode_amf3_null(w, True)
        if isinstance(val, bool):
            if val:
                return self.encode_amf3_true(w, True)
            return self.encode_amf3_false(w, True)
        if isinstance(val, int):
            if 0 <= val <= AMF3_INTEGER_MAX:
                return self.encode_amf3_integer(w, val, True)
            return self.encode_amf3_double(w, val, True)
        if isinstance(val, float):
            return self.encode_amf3_double(w, val, True)
        if isinstance(val, str):
            return self.encode_amf3_string(w, val, True)
        if isinstance(val, datetime):
            return self.encode_amf3_date(w, val, True)
        if isinstance(val, TypedObject):
            return self.encode_amf3_object(w, val, True)
        if isinstance(val, Mapping):
            obj = Object(_as_object(val, "amf3"))
            return self.encode_amf3_object(w, TypedObject(object=obj), True)
        if isinstance(val, _SEQUENCE_TYPES):
            return self.encode_amf3_array(w, Array(val), True)
        raise AmfError(f"encode amf3: unsupported type {type(val).__name__}")

    def encode_amf3_undefined(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF3_UNDEFINED_MARKER)
            return 1
        return 0

    def encode_amf3_null(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF3_NULL_MARKER)
            return 1
        return 0

    def encode_amf3_false(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF3_FALSE_MARKER)
            return 1
        return 0

    def encode_amf3_true(self, w: BinaryIO, encode_marker: bool) -> int:
        if encode_marker:
            write_marker(w, AMF3_TRUE_MARKER)
            return 1
        return 0

    def encode_amf3_integer(self, w: BinaryIO, val: int, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF3_INTEGER_MARKER)
            n += 1
        return n + self.encode_u29(w, val)

    def encode_amf3_double(self, w: BinaryIO, val: float, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF3_DOUBLE_MARKER)
            n += 1
        return n + write_bytes(w, _pack_double(val))

    def encode_amf3_string(self, w: BinaryIO, val: str, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF3_STRING_MARKER)
            n += 1
        return n + self._encode_utf8(w, val)

    def encode_amf3_date(self, w: BinaryIO, val: datetime, encode_marker: bool) -> int:
        """Encode a date as whole-second milliseconds; naive datetimes count as UTC."""
        n = 0
        if encode_marker:
            write_marker(w, AMF3_DATE_MARKER)
            n += 1
        write_marker(w, 0x01)
        n += 1
        return n + write_bytes(w, _pack_double(_unix_seconds(val) * 1000.0))

    def encode_amf3_array(self, w: BinaryIO, val: Iterable, encode_marker: bool) -> int:
        """Encode a dense array: count, empty associative key, then elements."""
        n = 0
        if encode_marker:
            write_marker(w, AMF3_ARRAY_MARKER)
            n += 1
        items = list(val)
        try:
            n += self.encode_u29(w, (len(items) << 1) | 0x01)
        except AmfError as exc:
            raise AmfError(f"amf3 encode: cannot encode u29 for array: {exc}") from exc
        n += self._encode_utf8(w, "")
        for item in items:
            try:
                n += self.encode_amf3(w, item)
            except AmfError as exc:
                raise AmfError(f"amf3 encode: cannot encode array element: {exc}") from exc
        return n

    def encode_amf3_object(self, w: BinaryIO, val: TypedObject, encode_marker: bool) -> int:
        """Encode a sealed object whose properties are the sorted keys."""
        n = 0
        if encode_marker:
            write_marker(w, AMF3_OBJECT_MARKER)
            n += 1
        properties = sorted(val.object)
        header = 0x03 | (len(properties) << 4)
        try:
            n += self.encode_u29(w, header)
        except AmfError as exc:
            raise AmfError(f"amf3 encode: cannot encode trait header for object: {exc}") from exc
        n += self._encode_utf8(w, val.type)
        for prop in properties:
            n += self._encode_utf8(w, prop)
        for prop in properties:
            try:
                n += self.encode_amf3(w, val.object[prop])
            except AmfError as exc:
                raise AmfError(f"amf3 encode: cannot encode sealed object value: {exc}") from exc
        return n

    def encode_amf3_byte_array(self, w: BinaryIO, val: bytes, encode_marker: bool) -> int:
        n = 0
        if encode_marker:
            write_marker(w, AMF3_BYTEARRAY_MARKER)
            n += 1
        try:
            n += self.encode_u29(w, (len(val) << 1) | 1)
        except AmfError as exc:
            raise AmfError(f"amf3 encode: cannot encode u29 for bytearray: {exc}") from exc
        return n + write_bytes(w, bytes(val))

    def encode_u29(self, w: BinaryIO, val: int) -> int:
        """Write a variable-length unsigned 29-bit integer."""
        if val < 0 or val > 0x1FFFFFFF:
            raise AmfError(f"amf3 encode: cannot encode u29 with value {val} (out of range)")
        if val <= 0x7F:
            data = bytes((val,))
        elif val <= 0x3FFF:
            data = bytes(((val >> 7) | 0x80, val & 0x7F))
        elif val <= 0x1FFFFF:
            data = bytes(((val >> 14) | 0x80, ((val >> 7) & 0x7F) | 0x80, val & 0x7F))
        else:
            data = bytes((
                (val >> 22) | 0x80,
                ((val >> 15) & 0x7F) | 0x80,
                ((val >> 8) & 0x7F) | 0x80,
                val & 0xFF,
            ))
        return write_bytes(w, data)

    def _encode_utf8(self, w: BinaryIO, val: str) -> int:
        data = val.encode("utf-8")
        try:
            n = self.encode_u29(w, (len(data) << 1) | 0x01)
        except AmfError as exc:
            raise AmfError(f"amf3 encode: cannot encode u29 for string: {exc}") from exc
        return n + write_bytes(w, data)