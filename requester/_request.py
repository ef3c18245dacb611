from __future__ import annotations

import inspect
import logging
import time
import typing

import anyio
import anyio.to_thread
import httpx

from ._body import (
    FORM_CONTENT_TYPE,
    JSON,
    JSON_CONTENT_TYPE,
    XML,
    XML_CONTENT_TYPE,
    Payload,
    resolve_body,
)
from ._exceptions import EmptyRequestURLError, UnsupportedUploadMethodError
from ._multipart import CHUNK_SIZE, FormData, ReaderSource, assemble
from ._response import HeaderTypes, Response
from ._utils import (
    QueryValues,
    TimeoutTypes,
    merge_query,
    normalize_values,
    to_seconds,
    to_string,
)

if typing.TYPE_CHECKING:
    from ._client import AsyncClient, BaseClient, Client

logger = logging.getLogger("requester.request")

UPLOAD_METHODS = ("POST", "PUT")

_R = typing.TypeVar("_R", bound="BaseRequest")


def _iter_reader(reader: typing.Any) -> typing.Iterator[bytes]:
    while True:
        chunk = reader.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


async def _aiter_reader(reader: typing.Any) -> typing.AsyncIterator[bytes]:
    read = reader.read
    while True:
        if inspect.iscoroutinefunction(read):
            chunk = await read(CHUNK_SIZE)
        else:
            # Blocking readers run in a worker thread, off the event loop.
            chunk = await anyio.to_thread.run_sync(read, CHUNK_SIZE)
        if inspect.isawaitable(chunk):
            chunk = await chunk
        if not chunk:
            return
        yield chunk.encode("utf-8") if isinstance(chunk, str) else chunk


class BaseRequest:
    """Configuration shared by :class:`Request` and :class:`AsyncRequest`.

    A request is a single-owner builder: configure it, send it, optionally
    :meth:`clear` it and reuse it.  It must not be mutated from several
    threads at once.
    """

    def __init__(self, client: BaseClient, url: str | httpx.URL) -> None:
        self._client = client
        self.url = url
        self.clear()

    @property
    def method(self) -> str:
        return self._method

    @property
    def headers(self) -> httpx.Headers:
        return self._headers

    @property
    def query(self) -> dict[str, list[str]]:
        return self._query

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def body(self) -> typing.Any:
        return self._body

    @property
    def form(self) -> FormData:
        return self._form

    # ------------------------------------------------------------------
    # Method, headers, query, timeout
    # ------------------------------------------------------------------

    def with_method(self: _R, method: str) -> _R:
        self._method = method
        return self

    def with_header(self: _R, key: str, value: str) -> _R:
        """Set header ``key``; an empty ``value`` removes it instead."""
        if not value:
            if key in self._headers:
                del self._headers[key]
            return self
        self._headers[key] = value
        return self

    def with_content_type(self: _R, content_type: str) -> _R:
        return self.with_header("Content-Type", content_type)

    def with_headers(self: _R, headers: HeaderTypes | None) -> _R:
        """Replace all request headers."""
        self._headers = httpx.Headers(headers)
        return self

    def with_query(self: _R, key: str, value: str) -> _R:
        self._query[key] = [value]
        return self

    def with_query_value(self: _R, key: str, value: typing.Any) -> _R:
        return self.with_query(key, to_string(value))

    def with_queries(self: _R, queries: typing.Mapping[str, typing.Any] | None) -> _R:
        """Replace all query parameters."""
        self._query = normalize_values(queries)
        return self

    def with_timeout(self: _R, timeout: TimeoutTypes) -> _R:
        """Set the request timeout; zero falls back to the client timeout."""
        self._timeout = to_seconds(timeout)
        return self

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def _with_body(
        self: _R, body: typing.Any, encoder: str | None, body_type: str | None
    ) -> _R:
        self._body = body
        self._body_encoder = encoder
        self._body_type = body_type
        return self

    def with_body(self: _R, body: typing.Any) -> _R:
        return self._with_body(body, None, None)

    def with_json_body(self: _R, body: typing.Any) -> _R:
        return self._with_body(body, JSON, JSON_CONTENT_TYPE)

    def with_raw_json_body(self: _R, body: bytes) -> _R:
        return self._with_body(body, None, JSON_CONTENT_TYPE)

    def with_xml_body(self: _R, body: typing.Any) -> _R:
        return self._with_body(body, XML, XML_CONTENT_TYPE)

    def with_raw_xml_body(self: _R, body: bytes) -> _R:
        return self._with_body(body, None, XML_CONTENT_TYPE)

    def with_form_body(self: _R, body: QueryValues | httpx.QueryParams) -> _R:
        return self._with_body(body, None, FORM_CONTENT_TYPE)

    # ------------------------------------------------------------------
    # Upload form data
    # ------------------------------------------------------------------

    def with_form_data_field(self: _R, key: str, value: typing.Any) -> _R:
        """Add a plain form field; ``None`` removes every entry of ``key``."""
        if value is None:
            self._form.remove(key)
        else:
            self._form.add_field(key, to_string(value))
        return self

    def with_form_data_file(self: _R, key: str, source: typing.Any) -> _R:
        """Add a file to upload; ``None`` removes every entry of ``key``.

        ``source`` may be a path, an open file object or a received upload
        (anything with a ``filename`` and an ``open()`` method).  It is only
        inspected when the upload is assembled.
        """
        if source is None:
            self._form.remove(key)
        else:
            self._form.add_file(key, source)
        return self

    def with_form_data_file_from_reader(
        self: _R, key: str, filename: str, reader: typing.Any
    ) -> _R:
        if reader is None:
            self._form.remove(key)
            return self
        return self.with_form_data_file(key, ReaderSource(filename, reader))

    def clear_form_data(self: _R) -> _R:
        """Drop all upload form data.

        Clear between uploads when reusing a request: the read position of
        an already uploaded file object is not restored.
        """
        self._form = FormData()
        return self

    def clear(self: _R) -> _R:
        """Reset everything but the client and the URL."""
        self._method = ""
        self._headers = httpx.Headers()
        self._query: dict[str, list[str]] = {}
        self._timeout = 0.0
        self._body: typing.Any = None
        self._body_encoder: str | None = None
        self._body_type: str | None = None
        return self.clear_form_data()

    # ------------------------------------------------------------------
    # Preparing a send
    # ------------------------------------------------------------------

    def _check_url(self) -> None:
        if not self.url:
            raise EmptyRequestURLError()

    def _upload_method(self, method: str) -> str:
        self._check_url()
        method = method.upper()
        if method not in UPLOAD_METHODS:
            raise UnsupportedUploadMethodError(method)
        return method

    def _body_payload(self) -> Payload:
        self._check_url()
        payload = resolve_body(self._body, self._body_encoder)
        return payload._replace(content_type=self._body_type or payload.content_type)

    def _merged_headers(self, content_type: str | None) -> httpx.Headers:
        common = self._client.common_headers
        pairs = [
            (key, value)
            for key, value in common.multi_items()
            if key not in self._headers
        ]
        pairs.extend(self._headers.multi_items())
        headers = httpx.Headers(pairs)
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _deadline_seconds(self) -> float:
        return self._timeout if self._timeout > 0 else self._client.timeout

    def _timeout_value(self) -> typing.Any:
        seconds = self._deadline_seconds()
        return seconds if seconds > 0 else httpx.USE_CLIENT_DEFAULT

    def _build(
        self,
        http: httpx.Client | httpx.AsyncClient,
        method: str,
        payload: Payload,
        content: typing.Any,
    ) -> httpx.Request:
        url = merge_query(httpx.URL(str(self.url)), self._query)
        return http.build_request(
            method,
            url,
            headers=self._merged_headers(payload.content_type),
            content=content,
            timeout=self._timeout_value(),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}({self._method or 'GET'}, {str(self.url)!r})>"


class Request(BaseRequest):
    """Fluent builder for a single synchronous request.

    >>> client = requester.Client()
    >>> response = client.new("https://example.org/items").with_query("page", "2").get()
    >>> response.status_code
    200
    """

    _client: Client

    def _content(self, payload: Payload) -> typing.Any:
        if payload.buffered:
            return payload.stream.getvalue() or None
        return _iter_reader(payload.stream)

    def _transmit(self, method: str, payload: Payload) -> Response:
        """Send and read the whole response within the request deadline.

        httpx applies the timeout to each connect, write and read step; the
        deadline also bounds the total time, body included.
        """
        seconds = self._deadline_seconds()
        deadline = time.monotonic() + seconds if seconds > 0 else None
        http = self._client.http_client()
        request = self._build(http, method, payload, self._content(payload))
        logger.debug("requester: %s %s", method, request.url)
        response = http.send(request, stream=True)
        logger.debug(
            "requester: %s %s -> %s", method, request.url, response.status_code
        )
        return Response.from_httpx(
            response, no_body=method == "HEAD", deadline=deadline
        )

    def send(self) -> Response:
        return self.send_by(self._method)

    def send_by(self, method: str) -> Response:
        payload = self._body_payload()
        return self._transmit((method or "GET").upper(), payload)

    def head(self) -> Response:
        return self.send_by("HEAD")

    def get(self) -> Response:
        return self.send_by("GET")

    def post(self) -> Response:
        return self.send_by("POST")

    def upload(self) -> Response:
        return self.upload_by("POST")

    def upload_by(self, method: str) -> Response:
        """Send the form data as ``multipart/form-data`` with POST or PUT."""
        method = self._upload_method(method)
        stream, content_type = assemble(self._form)
        return self._transmit(method, Payload(stream, content_type))


class AsyncRequest(BaseRequest):
    """Async variant of :class:`Request`.

    Sends are cancellable like any other awaitable, e.g. with
    ``anyio.fail_after`` or ``asyncio.wait_for``.  Blocking reads of upload
    files and stream bodies run in worker threads.
    """

    _client: AsyncClient

    def _content(self, payload: Payload) -> typing.Any:
        if payload.buffered:
            return payload.stream.getvalue() or None
        return _aiter_reader(payload.stream)

    async def _transmit(self, method: str, payload: Payload) -> Response:
        http = await self._client.http_client()
        request = self._build(http, method, payload, self._content(payload))
        seconds = self._deadline_seconds()
        if seconds <= 0:
            return await self._exchange(http, method, request)
        with anyio.move_on_after(seconds):
            return await self._exchange(http, method, request)
        logger.debug("requester: %s %s deadline exceeded", method, request.url)
        raise httpx.ReadTimeout("request deadline exceeded", request=request)

    async def _exchange(
        self, http: httpx.AsyncClient, method: str, request: httpx.Request
    ) -> Response:
        logger.debug("requester: %s %s", method, request.url)
        response = await http.send(request, stream=True)
        logger.debug(
            "requester: %s %s -> %s", method, request.url, response.status_code
        )
        return await Response.from_httpx_async(response, no_body=method == "HEAD")

    async def send(self) -> Response:
        return await self.send_by(self._method)

    async def send_by(self, method: str) -> Response:
        payload = self._body_payload()
        return await self._transmit((method or "GET").upper(), payload)

    async def head(self) -> Response:
        return await self.send_by("HEAD")

    async def get(self) -> Response:
        return await self.send_by("GET")

    async def post(self) -> Response:
        return await self.send_by("POST")

    async def upload(self) -> Response:
        return await self.upload_by("POST")

    async def upload_by(self, method: str) -> Response:
        method = self._upload_method(method)
        # Files are read in a worker thread, off the event loop.
        stream, content_type = await anyio.to_thread.run_sync(assemble, self._form)
        return await self._transmit(method, Payload(stream, content_type))
