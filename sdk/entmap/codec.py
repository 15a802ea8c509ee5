"""
Value codec for EntMap.

Converts native Python values to and from the backend's tagged-value form,
which is the DynamoDB attribute-value shape:

    str              -> {"S": "..."}
    int/float/Decimal-> {"N": "<decimal text>"}
    bool             -> {"BOOL": True}
    None             -> {"NULL": True}
    list/tuple       -> {"L": [<tagged>, ...]}
    dict/entity      -> {"M": {"name": <tagged>, ...}}

Nested entity instances are flattened into maps of their own fields. The
metadata registry is never consulted for nested values. Enum members, classes
and objects without public attributes are rejected.

Numbers decode to int when integral, to float when the float prints back to
the same decimal, and to Decimal otherwise.

Invariants:
    - Conversion is pure and side-effect free
    - Explicit None is stored as a NULL tag, never omitted
    - Numbers keep their exact value through a round trip
"""

from __future__ import annotations

import dataclasses
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping

TaggedValue = Dict[str, Any]
StoredRecord = Dict[str, TaggedValue]

STRING = "S"
NUMBER = "N"
BOOLEAN = "BOOL"
NULL = "NULL"
LIST = "L"
MAP = "M"


def to_tagged(value: Any) -> TaggedValue:
    """Convert a native value into its tagged form.

    Raises:
        TypeError: If the value's type has no tagged representation
    """
    if value is None:
        return {NULL: True}
    # bool is a subclass of int
    if isinstance(value, bool):
        return {BOOLEAN: value}
    if isinstance(value, str):
        return {STRING: value}
    if isinstance(value, int):
        return {NUMBER: str(value)}
    if isinstance(value, float):
        return {NUMBER: repr(value)}
    if isinstance(value, Decimal):
        return {NUMBER: str(value)}
    if isinstance(value, (list, tuple)):
        return {LIST: [to_tagged(item) for item in value]}
    if isinstance(value, Mapping):
        return {MAP: {str(k): to_tagged(v) for k, v in value.items()}}
    if isinstance(value, (type, Enum)):
        raise TypeError(f"Cannot convert value of type {type(value).__name__} to a tagged value")
    if dataclasses.is_dataclass(value):
        return {MAP: {f.name: to_tagged(getattr(value, f.name)) for f in dataclasses.fields(value)}}
    if hasattr(value, "__dict__"):
        public = {k: v for k, v in vars(value).items() if not k.startswith("_")}
        if not public:
            raise TypeError(
                f"Cannot convert value of type {type(value).__name__} to a tagged value: "
                "no public attributes"
            )
        return {MAP: {k: to_tagged(v) for k, v in public.items()}}
    raise TypeError(f"Cannot convert value of type {type(value).__name__} to a tagged value")


def from_tagged(tagged: TaggedValue) -> Any:
    """Convert a tagged value back into a native value.

    Nested entities come back as plain dicts.

    Raises:
        ValueError: If the tag is unknown
    """
    if len(tagged) != 1:
        raise ValueError(f"Tagged value must have exactly one tag, got {sorted(tagged)}")
    tag, payload = next(iter(tagged.items()))
    if tag == STRING:
        return payload
    if tag == NUMBER:
        return _parse_number(payload)
    if tag == BOOLEAN:
        return bool(payload)
    if tag == NULL:
        return None
    if tag == LIST:
        return [from_tagged(item) for item in payload]
    if tag == MAP:
        return {k: from_tagged(v) for k, v in payload.items()}
    raise ValueError(f"Unknown value tag: {tag}")


def _parse_number(text: str) -> int | float | Decimal:
    number = Decimal(text)
    if number == number.to_integral_value():
        return int(number)
    as_float = float(number)
    if Decimal(repr(as_float)) == number:
        return as_float
    return number


def encode_item(values: Mapping[str, Any]) -> StoredRecord:
    """Encode a field-name -> native value mapping into a stored record."""
    return {name: to_tagged(value) for name, value in values.items()}


def decode_item(record: Mapping[str, TaggedValue]) -> dict[str, Any]:
    """Decode a stored record into a field-name -> native value mapping."""
    return {name: from_tagged(value) for name, value in record.items()}
