"""
Body resolution: turn an arbitrary value into a transmittable byte stream.

A body value is matched against a closed set of shapes, in this order:

1. ``TEXT``: ``str``, sent as UTF-8
2. ``BYTES``: ``bytes`` / ``bytearray`` / ``memoryview``, sent as is
3. ``PAIRS``: form values (``{"k": ["v", ...]}`` or
   :class:`httpx.QueryParams`), sent URL-encoded
4. ``STREAM``: anything with a ``read()`` method, passed through
5. ``DISPLAYABLE``: objects whose class defines its own ``__str__``
6. ``CONVERTIBLE``: objects defining ``__bytes__``; a failing conversion
   propagates its own error
7. ``UNRECOGNIZED``: everything else, :class:`InvalidBodyError`

Numbers, booleans and containers that are not form values are never bodies.
A declared ``json`` or ``xml`` encoding skips shape matching entirely.
"""

from __future__ import annotations

import dataclasses
import enum
import io
import json
import numbers
import typing
from collections.abc import Mapping, Sequence, Set

import httpx

from ._exceptions import InvalidBodyError, SerializationError
from ._utils import encode_values, normalize_values
from ._xml import encode_xml

JSON = "json"
XML = "xml"

JSON_CONTENT_TYPE = "application/json"
XML_CONTENT_TYPE = "application/xml"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_CONTENT_TYPES = {JSON: JSON_CONTENT_TYPE, XML: XML_CONTENT_TYPE}

# Never bodies on their own, even though they all have a str() form.
_NOT_DISPLAYABLE = (numbers.Number, bool, type(None), type, Mapping, Set, Sequence)


class BodyShape(enum.Enum):
    TEXT = "text"
    BYTES = "bytes"
    PAIRS = "pairs"
    STREAM = "stream"
    DISPLAYABLE = "displayable"
    CONVERTIBLE = "convertible"
    UNRECOGNIZED = "unrecognized"


class Payload(typing.NamedTuple):
    """A resolved body.

    ``buffered`` payloads hold an :class:`io.BytesIO` built by requester;
    otherwise ``stream`` is the caller's own reader, read from its current
    position.
    """

    stream: typing.Any
    content_type: str | None = None
    buffered: bool = True


def is_form_values(value: typing.Any) -> bool:
    if isinstance(value, httpx.QueryParams):
        return True
    if not isinstance(value, Mapping):
        return False
    for key, item in value.items():
        if not isinstance(key, str):
            return False
        if isinstance(item, str):
            continue
        if not isinstance(item, (list, tuple)):
            return False
        if not all(isinstance(entry, str) for entry in item):
            return False
    return True


def body_shape(value: typing.Any) -> BodyShape:
    if isinstance(value, str):
        return BodyShape.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BodyShape.BYTES
    if is_form_values(value):
        return BodyShape.PAIRS
    if callable(getattr(value, "read", None)):
        return BodyShape.STREAM
    if isinstance(value, _NOT_DISPLAYABLE):
        return BodyShape.UNRECOGNIZED
    if type(value).__str__ is not object.__str__:
        return BodyShape.DISPLAYABLE
    if callable(getattr(type(value), "__bytes__", None)):
        return BodyShape.CONVERTIBLE
    return BodyShape.UNRECOGNIZED


def resolve_body(value: typing.Any, encoding: str | None = None) -> Payload:
    """Resolve ``value`` into a :class:`Payload`.

    Parameters
    ----------
    value:
        The bound body, or ``None`` for no body.
    encoding:
        ``"json"``, ``"xml"`` or ``None``.  A declared encoding serializes
        ``value`` whatever its shape and forces the matching content type.

    Raises
    ------
    SerializationError
        The declared encoder rejected ``value``.
    InvalidBodyError
        No encoding was declared and ``value`` has no recognized shape.
    """
    if value is None:
        return Payload(io.BytesIO())

    if encoding is not None:
        if encoding not in _CONTENT_TYPES:
            raise ValueError(f"invalid request body encoder: {encoding}")
        try:
            data = _encode_json(value) if encoding == JSON else encode_xml(value)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SerializationError(encoding, exc) from exc
        return Payload(io.BytesIO(data), _CONTENT_TYPES[encoding])

    shape = body_shape(value)
    if shape is BodyShape.TEXT:
        return Payload(io.BytesIO(value.encode("utf-8")))
    if shape is BodyShape.BYTES:
        return Payload(io.BytesIO(bytes(value)))
    if shape is BodyShape.PAIRS:
        encoded = encode_values(normalize_values(value))
        return Payload(io.BytesIO(encoded.encode("ascii")))
    if shape is BodyShape.STREAM:
        return Payload(value, buffered=False)
    if shape is BodyShape.DISPLAYABLE:
        return Payload(io.BytesIO(str(value).encode("utf-8")))
    if shape is BodyShape.CONVERTIBLE:
        return Payload(io.BytesIO(bytes(value)))
    raise InvalidBodyError(value)


def _json_default(value: typing.Any) -> typing.Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _encode_json(value: typing.Any) -> bytes:
    return json.dumps(
        value,
        default=_json_default,
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
    ).encode("utf-8")
