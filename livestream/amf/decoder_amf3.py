"""AMF3 value decoding, including the Flex externalizable message types."""

from __future__ import annotations

import struct
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable

from livestream.amf.core import (
    AMF3_ARRAY_MARKER,
    AMF3_BYTEARRAY_MARKER,
    AMF3_DATE_MARKER,
    AMF3_DOUBLE_MARKER,
    AMF3_FALSE_MARKER,
    AMF3_INTEGER_MARKER,
    AMF3_NULL_MARKER,
    AMF3_OBJECT_MARKER,
    AMF3_STRING_MARKER,
    AMF3_TRUE_MARKER,
    AMF3_UNDEFINED_MARKER,
    AMF3_XMLDOC_MARKER,
    AMF3_XMLSTRING_MARKER,
    AmfError,
    Array,
    Object,
    Trait,
    assert_marker,
    read_byte,
    read_bytes,
    read_marker,
)

ExternalHandler = Callable[["Amf3Decoder", BinaryIO], Any]

_ABSTRACT_FIELDS = ["body", "clientId", "destination", "headers", "messageId", "timeStamp", "timeToLive"]
_ABSTRACT_BYTE_FIELDS = ["clientIdBytes", "messageIdBytes"]
_ASYNC_FIELDS = ["correlationId", "correlationIdBytes"]
_ARRAY_COLLECTION = "flex.messaging.io.ArrayCollection"


def _read_double(r: BinaryIO, what: str) -> float:
    try:
        return struct.unpack(">d", read_bytes(r, 8))[0]
    except AmfError as exc:
        raise AmfError(f"amf3 decode: unable to read {what}: {exc}") from exc


def _lookup(refs: list, index: int, what: str) -> Any:
    try:
        return refs[index]
    except IndexError:
        raise AmfError(f"amf3 decode: bad {what} reference {index} (have {len(refs)})") from None


def _read_flags(r: BinaryIO) -> list[int]:
    flags = []
    while True:
        try:
            flag = read_byte(r)
        except AmfError as exc:
            raise AmfError(f"unable to read flags: {exc}") from exc
        flags.append(flag)
        if not flag & 0x80:
            return flags


class Amf3Decoder:
    """Stateful AMF3 decoder keeping string, object and trait reference tables."""

    def __init__(self) -> None:
        self.string_refs: list[str] = []
        self.object_refs: list[Any] = []
        self.trait_refs: list[Trait] = []
        self.external_handlers: dict[str, ExternalHandler] = {}

    def register_external_handler(self, name: str, handler: ExternalHandler) -> None:
        """Decode externalizable objects of class ``name`` with ``handler(decoder, r)``."""
        self.external_handlers[name] = handler

    def decode_amf3(self, r: BinaryIO) -> Any:
        """Read one marker-prefixed AMF3 value."""
        marker = read_marker(r)
        route = {
            AMF3_UNDEFINED_MARKER: self.decode_amf3_undefined,
            AMF3_NULL_MARKER: self.decode_amf3_null,
            AMF3_FALSE_MARKER: self.decode_amf3_false,
            AMF3_TRUE_MARKER: self.decode_amf3_true,
            AMF3_INTEGER_MARKER: self.decode_amf3_integer,
            AMF3_DOUBLE_MARKER: self.decode_amf3_double,
            AMF3_STRING_MARKER: self.decode_amf3_string,
            AMF3_XMLDOC_MARKER: self.decode_amf3_xml,
            AMF3_DATE_MARKER: self.decode_amf3_date,
            AMF3_ARRAY_MARKER: self.decode_amf3_array,
            AMF3_OBJECT_MARKER: self.decode_amf3_object,
            AMF3_XMLSTRING_MARKER: self.decode_amf3_xml,
            AMF3_BYTEARRAY_MARKER: self.decode_amf3_byte_array,
        }.get(marker)
        if route is None:
            raise AmfError(f"decode amf3: unsupported type {marker}")
        return route(r, False)

    def decode_amf3_undefined(self, r: BinaryIO, decode_marker: bool) -> None:
        assert_marker(r, decode_marker, AMF3_UNDEFINED_MARKER)
        return None

    def decode_amf3_null(self, r: BinaryIO, decode_marker: bool) -> None:
        assert_marker(r, decode_marker, AMF3_NULL_MARKER)
        return None

    def decode_amf3_false(self, r: BinaryIO, decode_marker: bool) -> bool:
        assert_marker(r, decode_marker, AMF3_FALSE_MARKER)
        return False

    def decode_amf3_true(self, r: BinaryIO, decode_marker: bool) -> bool:
        assert_marker(r, decode_marker, AMF3_TRUE_MARKER)
        return True

    def decode_amf3_integer(self, r: BinaryIO, decode_marker: bool) -> int:
        """Decode a 29-bit signed integer."""
        assert_marker(r, decode_marker, AMF3_INTEGER_MARKER)
        u29 = self.decode_u29(r)
        if u29 > 0x0FFFFFFF:
            return u29 - 0x20000000
        return u29

    def decode_amf3_double(self, r: BinaryIO, decode_marker: bool) -> float:
        assert_marker(r, decode_marker, AMF3_DOUBLE_MARKER)
        return _read_double(r, "double")

    def decode_amf3_string(self, r: BinaryIO, decode_marker: bool) -> str:
        assert_marker(r, decode_marker, AMF3_STRING_MARKER)
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode string reference and length: {exc}") from exc
        if is_ref:
            return _lookup(self.string_refs, ref_val, "string")
        try:
            result = read_bytes(r, ref_val).decode("utf-8", errors="replace")
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to read string: {exc}") from exc
        if result:
            self.string_refs.append(result)
        return result

    def decode_amf3_date(self, r: BinaryIO, decode_marker: bool) -> datetime:
        """Decode a date as a UTC datetime with whole-second precision."""
        assert_marker(r, decode_marker, AMF3_DATE_MARKER)
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode date reference and length: {exc}") from exc
        if is_ref:
            res = _lookup(self.object_refs, ref_val, "date")
            if not isinstance(res, datetime):
                raise AmfError("amf3 decode: unable to extract time from date object references")
            return res
        millis = _read_double(r, "double")
        result = datetime.fromtimestamp(int(millis / 1000), tz=timezone.utc)
        self.object_refs.append(result)
        return result

    def decode_amf3_array(self, r: BinaryIO, decode_marker: bool) -> Array:
        """Decode a dense array; associative arrays are rejected."""
        assert_marker(r, decode_marker, AMF3_ARRAY_MARKER)
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode array reference and length: {exc}") from exc
        if is_ref:
            res = _lookup(self.object_refs, ref_val >> 1, "array")
            if not isinstance(res, Array):
                raise AmfError("amf3 decode: unable to extract array from object references")
            return res
        try:
            key = self.decode_amf3_string(r, False)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to read key for array: {exc}") from exc
        if key:
            raise AmfError("amf3 decode: array key is not empty, can't handle associative array")
        result = Array()
        for _ in range(ref_val):
            try:
                result.append(self.decode_amf3(r))
            except AmfError as exc:
                raise AmfError(f"amf3 decode: array element could not be decoded: {exc}") from exc
        self.object_refs.append(result)
        return result

    def _read_trait(self, r: BinaryIO, ref_val: int) -> Trait:
        if ref_val & 0x01 == 0:
            return _lookup(self.trait_refs, ref_val >> 1, "trait")
        trait = Trait(externalizable=bool(ref_val & 0x02), dynamic=bool(ref_val & 0x04))
        try:
            trait.type = self.decode_amf3_string(r, False)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to read trait type for object: {exc}") from exc
        for _ in range(ref_val >> 3):
            try:
                trait.properties.append(self.decode_amf3_string(r, False))
            except AmfError as exc:
                raise AmfError(f"amf3 decode: unable to read trait property for object: {exc}") from exc
        self.trait_refs.append(trait)
        return trait

    def _decode_externalizable(self, r: BinaryIO, class_name: str) -> Any:
        if class_name == "DSA":
            try:
                return self._decode_async_message(r)
            except AmfError as exc:
                raise AmfError(f"amf3 decode: unable to decode dsa: {exc}") from exc
        if class_name == "DSK":
            try:
                return self._decode_acknowledge_message(r)
            except AmfError as exc:
                raise AmfError(f"amf3 decode: unable to decode dsk: {exc}") from exc
        if class_name == _ARRAY_COLLECTION:
            try:
                result = self.decode_amf3(r)
            except AmfError as exc:
                raise AmfError(
                    f"amf3 decode: unable to decode ac: cannot decode child of array collection: {exc}"
                ) from exc
            self.object_refs.append(result)
            return result
        handler = self.external_handlers.get(class_name)
        if handler is None:
            raise AmfError(f"amf3 decode: unable to decode external type {class_name}, no handler")
        try:
            return handler(self, r)
        except AmfError as exc:
            raise AmfError(
                f"amf3 decode: unable to call external decoder for type {class_name}: {exc}"
            ) from exc

    def decode_amf3_object(self, r: BinaryIO, decode_marker: bool) -> Any:
        """Decode a sealed, dynamic or externalizable object."""
        assert_marker(r, decode_marker, AMF3_OBJECT_MARKER)
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode object reference and length: {exc}") from exc
        if is_ref:
            return _lookup(self.object_refs, ref_val >> 1, "object")

        trait = self._read_trait(r, ref_val)
        # The slot is reserved before the body is read, as the wire format numbers it.
        self.object_refs.append(None)

        if trait.externalizable:
            return self._decode_externalizable(r, trait.type)

        obj = Object()
        for key in trait.properties:
            try:
                obj[key] = self.decode_amf3(r)
            except AmfError as exc:
                raise AmfError(f"amf3 decode: unable to decode object property: {exc}") from exc

        if trait.dynamic:
            while True:
                try:
                    key = self.decode_amf3_string(r, False)
                except AmfError as exc:
                    raise AmfError(f"amf3 decode: unable to decode dynamic key: {exc}") from exc
                if not key:
                    break
                try:
                    obj[key] = self.decode_amf3(r)
                except AmfError as exc:
                    raise AmfError(f"amf3 decode: unable to decode dynamic value: {exc}") from exc
        return obj

    def decode_amf3_xml(self, r: BinaryIO, decode_marker: bool) -> str:
        """Decode an XML document or XML string as text."""
        if decode_marker:
            marker = read_marker(r)
            if marker not in (AMF3_XMLDOC_MARKER, AMF3_XMLSTRING_MARKER):
                raise AmfError(
                    f"decode assert marker failed: expected {AMF3_XMLDOC_MARKER} "
                    f"or {AMF3_XMLSTRING_MARKER}, got {marker}"
                )
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode xml reference and length: {exc}") from exc
        if is_ref:
            res = _lookup(self.object_refs, ref_val, "xml")
            if not isinstance(res, str):
                raise AmfError("amf3 decode: cannot coerce object reference into xml string")
            return res
        try:
            result = read_bytes(r, ref_val).decode("utf-8", errors="replace")
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to read xml string: {exc}") from exc
        if result:
            self.object_refs.append(result)
        return result

    def decode_amf3_byte_array(self, r: BinaryIO, decode_marker: bool) -> bytes:
        assert_marker(r, decode_marker, AMF3_BYTEARRAY_MARKER)
        try:
            is_ref, ref_val = self.decode_reference_int(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode byte array reference and length: {exc}") from exc
        if is_ref:
            res = _lookup(self.object_refs, ref_val, "byte array")
            if not isinstance(res, bytes):
                raise AmfError("amf3 decode: unable to convert object ref to bytes")
            return res
        try:
            result = read_bytes(r, ref_val)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to read bytearray: {exc}") from exc
        self.object_refs.append(result)
        return result

    def decode_u29(self, r: BinaryIO) -> int:
        """Read a variable-length unsigned 29-bit integer."""
        result = 0
        for _ in range(3):
            b = read_byte(r)
            result = (result << 7) + (b & 0x7F)
            if not b & 0x80:
                return result
        return (result << 8) + read_byte(r)

    def decode_reference_int(self, r: BinaryIO) -> tuple[bool, int]:
        """Return ``(is_reference, value)`` from a U29 with a low reference flag bit."""
        try:
            u29 = self.decode_u29(r)
        except AmfError as exc:
            raise AmfError(f"amf3 decode: unable to decode reference int: {exc}") from exc
        return u29 & 0x01 == 0, u29 >> 1

    def _decode_external(self, r: BinaryIO, obj: Object, *field_sets: list[str]) -> None:
        flag_set = _read_flags(r)
        for i, flags in enumerate(flag_set):
            field_names = field_sets[i] if i < len(field_sets) else []
            reserved = len(field_names)
            for p, name in enumerate(field_names):
                if flags & (1 << p):
                    try:
                        obj[name] = self.decode_amf3(r)
                    except AmfError as exc:
                        raise AmfError(f"unable to decode external field {name} {i} {p}: {exc}") from exc
            if flags >> reserved:
                for j in range(reserved, 6):
                    if (flags >> j) & 0x01:
                        try:
                            obj[f"extra_{i}_{j}"] = self.decode_amf3(r)
                        except AmfError as exc:
                            raise AmfError(f"unable to decode post-external field {i} {j}: {exc}") from exc

    def _decode_abstract_message(self, r: BinaryIO) -> Object:
        result = Object()
        try:
            self._decode_external(r, result, _ABSTRACT_FIELDS, _ABSTRACT_BYTE_FIELDS)
        except AmfError as exc:
            raise AmfError(f"unable to decode abstract external: {exc}") from exc
        return result

    def _decode_async_message(self, r: BinaryIO) -> Object:
        try:
            result = self._decode_abstract_message(r)
        except AmfError as exc:
            raise AmfError(f"unable to decode abstract for async: {exc}") from exc
        try:
            self._decode_external(r, result, _ASYNC_FIELDS)
        except AmfError as exc:
            raise AmfError(f"unable to decode async external: {exc}") from exc
        return result

    def _decode_acknowledge_message(self, r: BinaryIO) -> Object:
        try:
            result = self._decode_async_message(r)
        except AmfError as exc:
            raise AmfError(f"unable to decode async for ack: {exc}") from exc
        try:
            self._decode_external(r, result)
        except AmfError as exc:
            raise AmfError(f"unable to decode ack external: {exc}") from exc
        return result