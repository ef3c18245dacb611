from __future__ import annotations

import typing

import httpx

from ._request import AsyncRequest, Request
from ._response import HeaderTypes, Response
from ._transports import default_http_client, new_default_async_http_client
from ._utils import TimeoutTypes, to_seconds

_C = typing.TypeVar("_C", bound="BaseClient")


class BaseClient:
    """Settings shared by every request a client creates.

    Parameters
    ----------
    timeout:
        Default timeout in seconds for requests that set none.  ``None`` or
        ``0`` means no timeout beyond the transport's own.
    headers:
        Common headers sent with every request.  A request header with the
        same name replaces the common one.
    """

    def __init__(
        self,
        *,
        timeout: TimeoutTypes = None,
        headers: HeaderTypes | None = None,
    ) -> None:
        self._timeout = to_seconds(timeout)
        self._headers = httpx.Headers(headers)

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def common_headers(self) -> httpx.Headers:
        return self._headers

    def set_timeout(self: _C, timeout: TimeoutTypes) -> _C:
        self._timeout = to_seconds(timeout)
        return self

    def set_common_header(self: _C, key: str, value: str) -> _C:
        """Set a common header; an empty ``value`` removes it."""
        if not value:
            if key in self._headers:
                del self._headers[key]
            return self
        self._headers[key] = value
        return self

    def set_common_headers(self: _C, headers: HeaderTypes | None) -> _C:
        """Replace all common headers with a copy of ``headers``."""
        self._headers = httpx.Headers(headers)
        return self


class Client(BaseClient):
    """Synchronous client.

    Without an explicit ``http`` transport, requests go through the shared
    :func:`~requester.default_http_client`.

    >>> client = requester.Client(timeout=10, headers={"User-Agent": "me"})
    >>> client.post_json("https://example.org/items", {"name": "x"}).status_code
    201
    """

    def __init__(
        self,
        http: httpx.Client | None = None,
        *,
        timeout: TimeoutTypes = None,
        headers: HeaderTypes | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers)
        self._http = http

    def set_http_client(self, http: httpx.Client | None) -> Client:
        """Use ``http`` for sending; ``None`` restores the shared default."""
        self._http = http
        return self

    def http_client(self) -> httpx.Client:
        return self._http if self._http is not None else default_http_client()

    def new(self, url: str | httpx.URL) -> Request:
        return Request(self, url)

    def do(
        self,
        url: str | httpx.URL,
        func: typing.Callable[[Request], Response | None],
    ) -> Response | None:
        """Call ``func`` with a fresh request for ``url`` and return its result.

        The request is cleared once ``func`` returns and must not be kept.
        """
        request = self.new(url)
        try:
            return func(request)
        finally:
            request.clear()

    def head(
        self, url: str | httpx.URL, params: typing.Mapping[str, typing.Any] | None = None
    ) -> Response:
        return self.new(url).with_queries(params).head()

    def get(
        self, url: str | httpx.URL, params: typing.Mapping[str, typing.Any] | None = None
    ) -> Response:
        return self.new(url).with_queries(params).get()

    def post(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return self.new(url).with_body(body).post()

    def post_json(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return self.new(url).with_json_body(body).post()

    def post_xml(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return self.new(url).with_xml_body(body).post()

    def post_form(
        self, url: str | httpx.URL, body: typing.Mapping[str, typing.Any]
    ) -> Response:
        return self.new(url).with_form_body(body).post()


class AsyncClient(BaseClient):
    """Asynchronous client.

    Owns an ``httpx.AsyncClient`` created on first use unless one is passed
    in; only an owned transport is closed by :meth:`aclose`.

    >>> async with requester.AsyncClient(timeout=10) as client:
    ...     response = await client.get("https://example.org/items")
    """

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        *,
        timeout: TimeoutTypes = None,
        headers: HeaderTypes | None = None,
    ) -> None:
        super().__init__(timeout=timeout, headers=headers)
        self._http = http
        self._owns_http = False

    def set_http_client(self, http: httpx.AsyncClient | None) -> AsyncClient:
        self._http = http
        self._owns_http = False
        return self

    async def http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = new_default_async_http_client()
            self._owns_http = True
        return self._http

    async def aclose(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
            self._owns_http = False

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, *args: typing.Any) -> None:
        await self.aclose()

    def new(self, url: str | httpx.URL) -> AsyncRequest:
        return AsyncRequest(self, url)

    async def do(
        self,
        url: str | httpx.URL,
        func: typing.Callable[[AsyncRequest], typing.Awaitable[Response | None]],
    ) -> Response | None:
        request = self.new(url)
        try:
            return await func(request)
        finally:
            request.clear()

    async def head(
        self, url: str | httpx.URL, params: typing.Mapping[str, typing.Any] | None = None
    ) -> Response:
        return await self.new(url).with_queries(params).head()

    async def get(
        self, url: str | httpx.URL, params: typing.Mapping[str, typing.Any] | None = None
    ) -> Response:
        return await self.new(url).with_queries(params).get()

    async def post(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return await self.new(url).with_body(body).post()

    async def post_json(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return await self.new(url).with_json_body(body).post()

    async def post_xml(self, url: str | httpx.URL, body: typing.Any) -> Response:
        return await self.new(url).with_xml_body(body).post()

    async def post_form(
        self, url: str | httpx.URL, body: typing.Mapping[str, typing.Any]
    ) -> Response:
        return await self.new(url).with_form_body(body).post()


def new() -> Client:
    return Client()
