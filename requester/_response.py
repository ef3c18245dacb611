from __future__ import annotations

import json
import time
import typing
import xml.etree.ElementTree as ET

import httpx

from ._exceptions import EmptyResponseError
from ._xml import decode_xml

HeaderTypes = typing.Union[
    httpx.Headers,
    typing.Mapping[str, str],
    typing.Sequence[typing.Tuple[str, str]],
]


class Response:
    """A fully buffered HTTP response."""

    def __init__(
        self,
        status_code: int,
        status: str = "",
        headers: HeaderTypes | None = None,
        body: bytes = b"",
    ) -> None:
        self.status_code = status_code
        self.status = status
        self.headers = httpx.Headers(headers)
        self.body = body

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        no_body: bool = False,
        deadline: float | None = None,
    ) -> Response:
        """Read ``response`` to the end and wrap it.

        With ``no_body`` the body is discarded unread, as for HEAD requests.
        ``deadline`` is a :func:`time.monotonic` instant; reading past it
        raises :class:`httpx.ReadTimeout`.  The httpx response is closed in
        every case.
        """
        try:
            if no_body:
                body = b""
            elif deadline is None:
                body = response.read()
            else:
                body = _read_before(response, deadline)
        finally:
            response.close()
        status = f"{response.status_code} {response.reason_phrase}".rstrip()
        return cls(response.status_code, status, response.headers.copy(), body)

    @classmethod
    async def from_httpx_async(
        cls, response: httpx.Response, no_body: bool = False
    ) -> Response:
        try:
            body = b"" if no_body else await response.aread()
        finally:
            await response.aclose()
        status = f"{response.status_code} {response.reason_phrase}".rstrip()
        return cls(response.status_code, status, response.headers.copy(), body)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self, **kwargs: typing.Any) -> typing.Any:
        return json.loads(self.body, **kwargs)

    def xml(self) -> ET.Element:
        return decode_xml(self.body)

    def __len__(self) -> int:
        return len(self.body)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"<Response [{self.status or self.status_code}]>"


def _read_before(response: httpx.Response, deadline: float) -> bytes:
    chunks = []
    for chunk in response.iter_bytes():
        if time.monotonic() > deadline:
            raise httpx.ReadTimeout(
                "request deadline exceeded", request=response.request
            )
        chunks.append(chunk)
    return b"".join(chunks)


class EmptyResponse(Response):
    """Placeholder response with no status, headers or body."""

    def __init__(self) -> None:
        super().__init__(0)

    def json(self, **kwargs: typing.Any) -> typing.Any:
        raise EmptyResponseError()

    def xml(self) -> ET.Element:
        raise EmptyResponseError()


def new_response_from(
    body: bytes,
    headers: HeaderTypes | None = None,
    status_code: int = 200,
    status: str | None = None,
) -> Response:
    """Build a :class:`Response` by hand.

    ``status`` defaults to the standard reason phrase of ``status_code``.
    """
    if status is None:
        status = httpx.codes.get_reason_phrase(status_code)
    return Response(status_code, status, headers, body)


def new_empty_response() -> Response:
    return EmptyResponse()
