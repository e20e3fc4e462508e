"""
memory_interpreter.py

Turns raw bytes into typed Values.

:func:`interpret` is a pure function of (descriptor, bytes, catalog): it
performs no I/O and keeps no state, so the same input always decodes to an
equal Value.
"""

from __future__ import annotations

import struct
from typing import Iterator, List, Optional, Tuple, Union

from memory_errors import MalformedLayout, MemvizError
from memory_model import (
    ArrayValue,
    InvalidValue,
    Padding,
    PointerValue,
    RecordValue,
    ScalarValue,
    TypeCatalog,
    TypeDescriptor,
    TypeKind,
    Value,
)

Label = Union[str, int, None]

_FLOAT_FORMATS = {4: "f", 8: "d"}


def interpret(descriptor: TypeDescriptor, data: bytes, catalog: TypeCatalog) -> Value:
    """Decode ``data`` as an instance of ``descriptor``.

    Args:
        descriptor: Type of the bytes
        data: Exactly ``catalog.size_of(descriptor)`` bytes
        catalog: Catalog used for nested types, pointer width and byte order

    Returns:
        The decoded Value

    Raises:
        MalformedLayout: If the span width does not match the type, or the
            record layout itself is inconsistent
        UnknownType: If the top-level type's width cannot be computed
    """
    expected = catalog.size_of(descriptor)
    if len(data) != expected:
        raise MalformedLayout(descriptor.type_id, "byte span does not match type width",
                              expected=expected, actual=len(data))
    data = bytes(data)

    if descriptor.kind is TypeKind.SCALAR:
        return _decode_scalar(descriptor, data, catalog.byte_order)
    if descriptor.kind is TypeKind.POINTER:
        address = int.from_bytes(data, catalog.byte_order, signed=False)
        return PointerValue(address, descriptor.pointee, data)
    if descriptor.kind is TypeKind.ARRAY:
        return _decode_array(descriptor, data, catalog)
    return _decode_record(descriptor, data, catalog)


def _decode_scalar(descriptor: TypeDescriptor, data: bytes, byte_order: str) -> ScalarValue:
    if descriptor.is_float:
        fmt = _FLOAT_FORMATS.get(len(data))
        if fmt is None:
            return ScalarValue(data, None)
        prefix = "<" if byte_order == "little" else ">"
        return ScalarValue(data, struct.unpack(prefix + fmt, data)[0])
    value = int.from_bytes(data, byte_order, signed=descriptor.signed)
    return ScalarValue(data, value, is_char=descriptor.is_char)


def printable_text(raw: bytes) -> str:
    """Best-effort string view of a character buffer.

    Stops at the first NUL when there is one; a buffer filled completely by
    the string has no terminator and is shown whole. Non-printable bytes
    become ``.``.
    """
    end = raw.find(b"\x00")
    if end >= 0:
        raw = raw[:end]
    return "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in raw)


def _decode_array(descriptor: TypeDescriptor, data: bytes, catalog: TypeCatalog) -> ArrayValue:
    element = catalog.get(descriptor.element)
    width = catalog.size_of(element)
    elements = tuple(
        _decode_member(element, data[i * width:(i + 1) * width], catalog)
        for i in range(descriptor.length)
    )
    text = None
    if element.kind is TypeKind.SCALAR and element.is_char and width == 1:
        text = printable_text(data)
    return ArrayValue(elements, data, text)


def _decode_record(descriptor: TypeDescriptor, data: bytes, catalog: TypeCatalog) -> RecordValue:
    members: List[Tuple[str, Value]] = []
    padding: List[Padding] = []
    cursor = 0
    # Set while the previous field has an unknown extent; the bytes up to
    # the next field belong to it and are not padding.
    open_ended = False
    for f in descriptor.fields:
        if f.offset < cursor or (open_ended and f.offset == cursor):
            raise MalformedLayout(descriptor.type_id, f"field '{f.name}' overlaps previous field")
        if f.offset > cursor and not open_ended:
            padding.append(Padding(cursor, data[cursor:f.offset]))
        try:
            field_type = catalog.get(f.type_id)
            end = f.offset + catalog.size_of(field_type)
        except MemvizError as e:
            members.append((f.name, InvalidValue(f.type_id, type(e).__name__, e.message)))
            cursor, open_ended = f.offset, True
            continue
        open_ended = False
        if end > len(data):
            members.append((f.name, InvalidValue(f.type_id, "MalformedLayout",
                                                 f"field '{f.name}' overruns record")))
            cursor = len(data)
            continue
        members.append((f.name, _decode_member(field_type, data[f.offset:end], catalog)))
        cursor = end
    if cursor < len(data) and not open_ended:
        padding.append(Padding(cursor, data[cursor:]))
    return RecordValue(tuple(members), tuple(padding), data)


def _decode_member(descriptor: TypeDescriptor, data: bytes, catalog: TypeCatalog) -> Value:
    try:
        return interpret(descriptor, data, catalog)
    except MemvizError as e:
        return InvalidValue(descriptor.type_id, type(e).__name__, e.message)


# ============================================================
#  Walking decoded values
# ============================================================

def join_label(prefix: Label, part: Union[str, int]) -> Union[str, int]:
    """Extend a field path: ``next``, ``[3]``, ``items[1].next``."""
    if prefix is None:
        return part
    prefix_str = f"[{prefix}]" if isinstance(prefix, int) else prefix
    if isinstance(part, int):
        return f"{prefix_str}[{part}]"
    return f"{prefix_str}.{part}"


def pointer_slots(value: Value, descriptor: TypeDescriptor,
                  catalog: TypeCatalog) -> Iterator[Tuple[Label, PointerValue, Optional[str]]]:
    """Yield every pointer inside a value in field/index order.

    Yields:
        (label, pointer, site) where ``site`` is ``"<record type>.<field>"``
        for record fields and None otherwise
    """
    yield from _slots(value, descriptor, catalog, None, None)


def _slots(value, descriptor, catalog, label, site):
    if isinstance(value, PointerValue):
        yield label, value, site
    elif isinstance(value, ArrayValue) and descriptor.kind is TypeKind.ARRAY:
        element = catalog.get(descriptor.element)
        if element.kind is TypeKind.SCALAR:
            return
        for index, item in enumerate(value.elements):
            yield from _slots(item, element, catalog, join_label(label, index), site)
    elif isinstance(value, RecordValue) and descriptor.kind is TypeKind.RECORD:
        for f in descriptor.fields:
            member = value.get(f.name)
            if member is None or isinstance(member, InvalidValue):
                continue
            yield from _slots(member, catalog.get(f.type_id), catalog,
                              join_label(label, f.name), f"{descriptor.type_id}.{f.name}")


def locate(catalog: TypeCatalog, type_id: str, offset: int,
           inner_type: Optional[str] = None) -> Optional[Union[str, int]]:
    """Map a byte offset inside an aggregate to a field/element path.

    Descends records and arrays until it reaches a member starting exactly at
    ``offset`` whose type is ``inner_type`` (any type when None). Returns
    None when no member starts there.
    """
    descriptor = catalog.get(type_id)
    label: Label = None
    while True:
        if offset == 0 and label is not None and (inner_type is None or
                                                  catalog.resolve_type(descriptor.type_id)
                                                  == catalog.resolve_type(inner_type)):
            return label
        if descriptor.kind is TypeKind.ARRAY:
            element = catalog.get(descriptor.element)
            width = catalog.size_of(element)
            if width == 0:
                return None
            index, offset = divmod(offset, width)
            if index >= descriptor.length:
                return None
            label = join_label(label, index)
            descriptor = element
        elif descriptor.kind is TypeKind.RECORD:
            found = None
            for f in descriptor.fields:
                if f.type_id not in catalog:
                    continue
                if f.offset <= offset < f.offset + catalog.size_of(f.type_id):
                    found = f
                    break
            if found is None:
                return None
            label = join_label(label, found.name)
            offset -= found.offset
            descriptor = catalog.get(found.type_id)
        else:
            return None
