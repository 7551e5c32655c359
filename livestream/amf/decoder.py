"""AMF0 value decoding and version-dispatching AMF decoder."""

from __future__ import annotations

import struct
from typing import Any, BinaryIO

from livestream.amf.core import (
    AMF0,
    AMF0_ACMPLUS_OBJECT_MARKER,
    AMF0_BOOLEAN_FALSE,
    AMF0_BOOLEAN_MARKER,
    AMF0_BOOLEAN_TRUE,
    AMF0_DATE_MARKER,
    AMF0_ECMA_ARRAY_MARKER,
    AMF0_LONG_STRING_MARKER,
    AMF0_MOVIECLIP_MARKER,
    AMF0_NULL_MARKER,
    AMF0_NUMBER_MARKER,
    AMF0_OBJECT_END_MARKER,
    AMF0_OBJECT_MARKER,
    AMF0_RECORDSET_MARKER,
    AMF0_REFERENCE_MARKER,
    AMF0_STRICT_ARRAY_MARKER,
    AMF0_STRING_MARKER,
    AMF0_TYPED_OBJECT_MARKER,
    AMF0_UNDEFINED_MARKER,
    AMF0_UNSUPPORTED_MARKER,
    AMF0_XML_DOCUMENT_MARKER,
    AMF3,
    AmfError,
    Array,
    Object,
    TypedObject,
    assert_marker,
    read_byte,
    read_bytes,
    read_marker,
)
from livestream.amf.decoder_amf3 import Amf3Decoder


def _read_uint(r: BinaryIO, size: int, what: str) -> int:
    try:
        return int.from_bytes(read_bytes(r, size), "big")
    except AmfError as exc:
        raise AmfError(f"decode amf0: unable to decode {what}: {exc}") from exc


def _read_text(r: BinaryIO, length: int, what: str) -> str:
    try:
        return read_bytes(r, length).decode("utf-8", errors="replace")
    except AmfError as exc:
        raise AmfError(f"decode amf0: unable to decode {what}: {exc}") from exc


class Decoder(Amf3Decoder):
    """Decodes AMF0 and AMF3 values, sharing reference tables across calls."""

    def __init__(self) -> None:
        super().__init__()
        self.ref_cache: list[Any] = []

    def decode(self, r: BinaryIO, version: int) -> Any:
        """Decode one value of the given AMF version."""
        if version == AMF0:
            return self.decode_amf0(r)
        if version == AMF3:
            return self.decode_amf3(r)
        raise AmfError(f"decode amf: unsupported version {version}")

    def decode_batch(self, r: BinaryIO, version: int) -> list[Any]:
        """Decode values until the data ends or a value cannot be decoded."""
        values = []
        while True:
            try:
                values.append(self.decode(r, version))
            except AmfError:
                return values

    def decode_amf0(self, r: BinaryIO) -> Any:
        """Read one marker-prefixed AMF0 value."""
        marker = read_marker(r)
        unsupported = {
            AMF0_MOVIECLIP_MARKER: "movieclip",
            AMF0_REFERENCE_MARKER: "reference",
            AMF0_RECORDSET_MARKER: "recordset",
        }
        if marker in unsupported:
            raise AmfError(f"decode amf0: unsupported type {unsupported[marker]}")
        if marker == AMF0_ACMPLUS_OBJECT_MARKER:
            return self.decode_amf3(r)
        route = {
            AMF0_NUMBER_MARKER: self.decode_amf0_number,
            AMF0_BOOLEAN_MARKER: self.decode_amf0_boolean,
            AMF0_STRING_MARKER: self.decode_amf0_string,
            AMF0_OBJECT_MARKER: self.decode_amf0_object,
            AMF0_NULL_MARKER: self.decode_amf0_null,
            AMF0_UNDEFINED_MARKER: self.decode_amf0_undefined,
            AMF0_ECMA_ARRAY_MARKER: self.decode_amf0_ecma_array,
            AMF0_STRICT_ARRAY_MARKER: self.decode_amf0_strict_array,
            AMF0_DATE_MARKER: self.decode_amf0_date,
            AMF0_LONG_STRING_MARKER: self.decode_amf0_long_string,
            AMF0_UNSUPPORTED_MARKER: self.decode_amf0_unsupported,
            AMF0_XML_DOCUMENT_MARKER: self.decode_amf0_xml_document,
            AMF0_TYPED_OBJECT_MARKER: self.decode_amf0_typed_object,
        }.get(marker)
        if route is None:
            raise AmfError(f"decode amf0: unsupported type {marker}")
        return route(r, False)

    def decode_amf0_number(self, r: BinaryIO, decode_marker: bool) -> float:
        """Decode an 8-byte big-endian double."""
        assert_marker(r, decode_marker, AMF0_NUMBER_MARKER)
        try:
            return struct.unpack(">d", read_bytes(r, 8))[0]
        except AmfError as exc:
            raise AmfError(f"amf0 decode: unable to read number: {exc}") from exc

    def decode_amf0_boolean(self, r: BinaryIO, decode_marker: bool) -> bool:
        assert_marker(r, decode_marker, AMF0_BOOLEAN_MARKER)
        b = read_byte(r)
        if b == AMF0_BOOLEAN_FALSE:
            return False
        if b == AMF0_BOOLEAN_TRUE:
            return True
        raise AmfError(f"decode amf0: unexpected value {b} for boolean")

    def decode_amf0_string(self, r: BinaryIO, decode_marker: bool) -> str:
        """Decode a string with a 16-bit length prefix."""
        assert_marker(r, decode_marker, AMF0_STRING_MARKER)
        length = _read_uint(r, 2, "string length")
        return _read_text(r, length, "string value")

    def decode_amf0_object(self, r: BinaryIO, decode_marker: bool) -> Object:
        """Decode key/value pairs up to the empty key and object end marker."""
        assert_marker(r, decode_marker, AMF0_OBJECT_MARKER)
        result = Object()
        self.ref_cache.append(result)
        while True:
            key = self.decode_amf0_string(r, False)
            if not key:
                try:
                    assert_marker(r, True, AMF0_OBJECT_END_MARKER)
                except AmfError as exc:
                    raise AmfError(f"decode amf0: expected object end marker: {exc}") from exc
                return result
            try:
                result[key] = self.decode_amf0(r)
            except AmfError as exc:
                raise AmfError(f"decode amf0: unable to decode object value: {exc}") from exc

    def decode_amf0_null(self, r: BinaryIO, decode_marker: bool) -> None:
        assert_marker(r, decode_marker, AMF0_NULL_MARKER)
        return None

    def decode_amf0_undefined(self, r: BinaryIO, decode_marker: bool) -> None:
        assert_marker(r, decode_marker, AMF0_UNDEFINED_MARKER)
        return None

    def decode_amf0_ecma_array(self, r: BinaryIO, decode_marker: bool) -> Object:
        """Decode an associative array; its declared length is not relied upon."""
        assert_marker(r, decode_marker, AMF0_ECMA_ARRAY_MARKER)
        _read_uint(r, 4, "ecma array length")
        try:
            return self.decode_amf0_object(r, False)
        except AmfError as exc:
            raise AmfError(f"decode amf0: unable to decode ecma array object: {exc}") from exc

    def decode_amf0_strict_array(self, r: BinaryIO, decode_marker: bool) -> Array:
        assert_marker(r, decode_marker, AMF0_STRICT_ARRAY_MARKER)
        length = _read_uint(r, 4, "strict array length")
        result = Array()
        self.ref_cache.append(result)
        for _ in range(length):
            try:
                result.append(self.decode_amf0(r))
            except AmfError as exc:
                raise AmfError(f"decode amf0: unable to decode strict array object: {exc}") from exc
        return result

    def decode_amf0_date(self, r: BinaryIO, decode_marker: bool) -> float:
        """Decode a date as its millisecond double, skipping the time zone bytes."""
        assert_marker(r, decode_marker, AMF0_DATE_MARKER)
        try:
            result = self.decode_amf0_number(r, False)
        except AmfError as exc:
            raise AmfError(f"decode amf0: unable to decode float in date: {exc}") from exc
        try:
            read_bytes(r, 2)
        except AmfError as exc:
            raise AmfError(f"decode amf0: unable to read 2 trail bytes in date: {exc}") from exc
        return result

    def decode_amf0_long_string(self, r: BinaryIO, decode_marker: bool) -> str:
        """Decode a string with a 32-bit length prefix."""
        assert_marker(r, decode_marker, AMF0_LONG_STRING_MARKER)
        length = _read_uint(r, 4, "long string length")
        return _read_text(r, length, "long string value")

    def decode_amf0_unsupported(self, r: BinaryIO, decode_marker: bool) -> None:
        assert_marker(r, decode_marker, AMF0_UNSUPPORTED_MARKER)
        return None

    def decode_amf0_xml_document(self, r: BinaryIO, decode_marker: bool) -> str:
        assert_marker(r, decode_marker, AMF0_XML_DOCUMENT_MARKER)
        return self.decode_amf0_long_string(r, False)

    def decode_amf0_typed_object(self, r: BinaryIO, decode_marker: bool) -> TypedObject:
        """Decode a class name followed by an object body."""
        assert_marker(r, decode_marker, AMF0_TYPED_OBJECT_MARKER)
        result = TypedObject()
        self.ref_cache.append(result)
        try:
            result.type = self.decode_amf0_string(r, False)
        except AmfError as exc:
            raise AmfError(f"decode amf0: typed object unable to determine type: {exc}") from exc
        try:
            result.object = self.decode_amf0_object(r, False)
        except AmfError as exc:
            raise AmfError(f"decode amf0: typed object unable to determine object: {exc}") from exc
        return result