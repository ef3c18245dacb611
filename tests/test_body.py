from __future__ import annotations

import dataclasses
import io
import json
import uuid

import httpx
import pytest

import requester
from requester import BodyShape, body_shape, resolve_body


class Stringer:
    def __init__(self, value: str) -> None:
        self.value = value

    def __str__(self) -> str:
        return self.value


class TextMarshaler:
    def __init__(self, value: str) -> None:
        self.value = value

    def __bytes__(self) -> bytes:
        return self.value.encode("utf-8")


class FailingTextMarshaler:
    def __init__(self, message: str) -> None:
        self.message = message

    def __bytes__(self) -> bytes:
        raise LookupError(self.message)


class Opaque:
    pass


@dataclasses.dataclass
class Item:
    name: str
    tags: list[str]


def read_all(payload: requester.Payload) -> bytes:
    return payload.stream.read()


def test_no_body_is_an_empty_stream() -> None:
    payload = resolve_body(None)
    assert read_all(payload) == b""
    assert payload.content_type is None


def test_text_body() -> None:
    payload = resolve_body("TestBody")
    assert read_all(payload) == b"TestBody"
    assert payload.content_type is None


def test_text_body_is_utf8() -> None:
    assert read_all(resolve_body("grüße")) == "grüße".encode("utf-8")


@pytest.mark.parametrize("value", [b"bytes", bytearray(b"bytes"), memoryview(b"bytes")])
def test_raw_bytes_body(value) -> None:
    assert read_all(resolve_body(value)) == b"bytes"


def test_form_values_body() -> None:
    assert read_all(resolve_body({"url": ["values"]})) == b"url=values"


def test_form_values_are_sorted_and_escaped() -> None:
    body = {"z": "last", "a": ["1", "two words"], "m": ("x&y",)}
    assert read_all(resolve_body(body)) == b"a=1&a=two+words&m=x%26y&z=last"


def test_query_params_body() -> None:
    params = httpx.QueryParams([("b", "2"), ("a", "1"), ("b", "3")])
    assert read_all(resolve_body(params)) == b"a=1&b=2&b=3"


def test_stream_body_is_passed_through() -> None:
    reader = io.BytesIO(b"reader")
    payload = resolve_body(reader)
    assert payload.stream is reader
    assert not payload.buffered
    assert reader.tell() == 0


def test_text_stream_body_is_passed_through() -> None:
    reader = io.StringIO("reader")
    assert resolve_body(reader).stream is reader


def test_displayable_body() -> None:
    assert read_all(resolve_body(Stringer("stringer"))) == b"stringer"


def test_uuid_is_displayable() -> None:
    value = uuid.UUID(int=1)
    assert read_all(resolve_body(value)) == str(value).encode("ascii")


def test_convertible_body() -> None:
    assert read_all(resolve_body(TextMarshaler("text-marshaler"))) == b"text-marshaler"


def test_convertible_body_error_propagates_unchanged() -> None:
    with pytest.raises(LookupError, match="text-marshaler"):
        resolve_body(FailingTextMarshaler("text-marshaler"))


@pytest.mark.parametrize(
    "value",
    [100, 1.5, True, None.__class__, {"nested": {"a": 1}}, {"n": 1}, [1, 2], {1, 2}],
)
def test_unrecognized_body(value) -> None:
    with pytest.raises(requester.InvalidBodyError) as exc_info:
        resolve_body(value)
    assert exc_info.value.value is value


def test_integer_body_is_invalid() -> None:
    with pytest.raises(requester.InvalidBodyError):
        resolve_body(100)


def test_opaque_object_is_invalid() -> None:
    assert body_shape(Opaque()) is BodyShape.UNRECOGNIZED
    with pytest.raises(requester.InvalidBodyError):
        resolve_body(Opaque())


def test_shape_precedence() -> None:
    class ReadableStringer(Stringer):
        def read(self, size: int = -1) -> bytes:
            return b""

    class StringerMarshaler(Stringer, TextMarshaler):
        pass

    assert body_shape("text") is BodyShape.TEXT
    assert body_shape(b"raw") is BodyShape.BYTES
    assert body_shape({"k": "v"}) is BodyShape.PAIRS
    assert body_shape(ReadableStringer("s")) is BodyShape.STREAM
    assert body_shape(StringerMarshaler("s")) is BodyShape.DISPLAYABLE
    assert body_shape(TextMarshaler("s")) is BodyShape.CONVERTIBLE


@pytest.mark.parametrize("value", ["TestBody", b"raw", {"url": ["values"], "a": "b"}])
def test_resolve_is_idempotent(value) -> None:
    assert read_all(resolve_body(value)) == read_all(resolve_body(value))


def test_resolve_does_not_mutate_input() -> None:
    value = {"b": ["2", "1"], "a": "x"}
    resolve_body(value)
    assert value == {"b": ["2", "1"], "a": "x"}


def test_json_body() -> None:
    payload = resolve_body(["test"], "json")
    assert read_all(payload) == b'["test"]'
    assert payload.content_type == "application/json"


@pytest.mark.parametrize(
    "value",
    [
        {"name": "requester", "tags": ["a", "b"], "count": 3, "ok": True, "none": None},
        [1, 2.5, "three"],
        "just text",
        {"unicode": "grüße"},
    ],
)
def test_json_round_trip(value) -> None:
    assert json.loads(read_all(resolve_body(value, "json"))) == value


def test_json_overrides_shape() -> None:
    payload = resolve_body(100, "json")
    assert read_all(payload) == b"100"


def test_json_dataclass() -> None:
    payload = resolve_body(Item("x", ["a"]), "json")
    assert json.loads(read_all(payload)) == {"name": "x", "tags": ["a"]}


def test_json_serialization_error() -> None:
    with pytest.raises(requester.SerializationError) as exc_info:
        resolve_body(Opaque(), "json")
    assert exc_info.value.encoding == "json"
    assert isinstance(exc_info.value.cause, TypeError)
    assert exc_info.value.__cause__ is exc_info.value.cause


def test_json_rejects_nan() -> None:
    with pytest.raises(requester.SerializationError):
        resolve_body(float("nan"), "json")


def test_xml_body() -> None:
    payload = resolve_body({"note": {"to": "you", "body": "hi"}}, "xml")
    assert read_all(payload) == b"<note><to>you</to><body>hi</body></note>"
    assert payload.content_type == "application/xml"


def test_xml_serialization_error() -> None:
    with pytest.raises(requester.SerializationError) as exc_info:
        resolve_body(FailingTextMarshaler("text-marshaler"), "xml")
    assert exc_info.value.encoding == "xml"


def test_unknown_encoding() -> None:
    with pytest.raises(ValueError):
        resolve_body("x", "yaml")
