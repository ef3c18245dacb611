from __future__ import annotations

import time

import httpx
import pytest

import requester


def test_from_httpx_reads_and_closes() -> None:
    raw = httpx.Response(
        201,
        headers={"Content-Type": "application/json"},
        content=b'{"id": 1}',
    )
    response = requester.Response.from_httpx(raw)
    assert raw.is_closed
    assert response.status_code == 201
    assert response.status == "201 Created"
    assert response.headers["content-type"] == "application/json"
    assert response.body == b'{"id": 1}'
    assert response.json() == {"id": 1}
    assert len(response) == 9


def test_from_httpx_without_body() -> None:
    raw = httpx.Response(200, content=b"ignored")
    response = requester.Response.from_httpx(raw, no_body=True)
    assert raw.is_closed
    assert response.body == b""
    assert len(response) == 0


def test_from_httpx_past_deadline() -> None:
    request = httpx.Request("GET", "https://example.org")
    raw = httpx.Response(200, stream=httpx.ByteStream(b"late"), request=request)
    with pytest.raises(httpx.ReadTimeout) as exc_info:
        requester.Response.from_httpx(raw, deadline=time.monotonic() - 1)
    assert exc_info.value.request is request
    assert raw.is_closed


def test_from_httpx_within_deadline() -> None:
    request = httpx.Request("GET", "https://example.org")
    raw = httpx.Response(200, stream=httpx.ByteStream(b"early"), request=request)
    response = requester.Response.from_httpx(raw, deadline=time.monotonic() + 60)
    assert response.body == b"early"
    assert raw.is_closed


def test_unknown_status_has_no_reason() -> None:
    response = requester.Response.from_httpx(httpx.Response(599))
    assert response.status == "599"


@pytest.mark.anyio
async def test_from_httpx_async() -> None:
    raw = httpx.Response(200, stream=httpx.ByteStream(b"async"))
    response = await requester.Response.from_httpx_async(raw)
    assert response.text == "async"
    assert response.status == "200 OK"


def test_text_and_str() -> None:
    response = requester.new_response_from("grüße".encode("utf-8"))
    assert response.text == "grüße"
    assert str(response) == "grüße"
    assert requester.new_response_from(b"\xff").text == "�"


def test_xml() -> None:
    response = requester.new_response_from(b'<note lang="en"><to>you</to></note>')
    root = response.xml()
    assert root.tag == "note"
    assert root.get("lang") == "en"
    assert root.findtext("to") == "you"


def test_new_response_from_defaults() -> None:
    response = requester.new_response_from(b"body")
    assert response.status_code == 200
    assert response.status == "OK"
    assert len(response.headers) == 0

    response = requester.new_response_from(
        b"", headers={"X-Foo": "foo"}, status_code=404
    )
    assert response.status == "Not Found"
    assert response.headers["x-foo"] == "foo"

    response = requester.new_response_from(b"", status_code=418, status="teapot")
    assert response.status == "teapot"


def test_empty_response() -> None:
    response = requester.new_empty_response()
    assert isinstance(response, requester.EmptyResponse)
    assert response.status_code == 0
    assert response.status == ""
    assert response.body == b""
    assert len(response.headers) == 0
    with pytest.raises(requester.EmptyResponseError):
        response.json()
    with pytest.raises(requester.EmptyResponseError):
        response.xml()


def test_repr() -> None:
    assert repr(requester.new_response_from(b"")) == "<Response [OK]>"
    assert repr(requester.new_empty_response()) == "<Response [0]>"
