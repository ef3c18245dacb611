import asyncio
import hashlib
import threading
import time
import typing

import httpx
import pytest
from starlette.applications import Starlette
from starlette.datastructures import UploadFile
from starlette.requests import Request as StarletteRequest
from starlette.responses import (
    JSONResponse,
    PlainTextResponse,
    Response,
    StreamingResponse,
)
from starlette.routing import Route
from uvicorn.config import Config
from uvicorn.server import Server

import requester


# requester's async tests only run on asyncio
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_default_http_client():
    """Every test starts with a fresh shared transport."""
    requester.set_default_http_client(None)
    yield
    requester.set_default_http_client(None)


async def hello_world(request: StarletteRequest) -> Response:
    return PlainTextResponse("Hello, world!")


async def hello_world_json(request: StarletteRequest) -> Response:
    return JSONResponse({"Hello": "world!"})


async def hello_world_xml(request: StarletteRequest) -> Response:
    return Response(
        b"<greeting><to>world</to></greeting>", media_type="application/xml"
    )


async def slow_response(request: StarletteRequest) -> Response:
    await asyncio.sleep(1.0)  # Allow triggering a read timeout.
    return PlainTextResponse("Hello, world!")


async def drip(request: StarletteRequest) -> Response:
    async def body() -> typing.AsyncIterator[bytes]:
        for _ in range(6):
            await asyncio.sleep(0.3)
            yield b"x"

    # Each chunk arrives well within a read timeout, the whole body does not.
    return StreamingResponse(body(), media_type="text/plain")


async def status_code(request: StarletteRequest) -> Response:
    return PlainTextResponse("Hello, world!", status_code=request.path_params["code"])


async def echo_body(request: StarletteRequest) -> Response:
    body = await request.body()
    return Response(body, media_type="text/plain")


async def echo(request: StarletteRequest) -> Response:
    query: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        query.setdefault(key, []).append(value)
    body = await request.body()
    return JSONResponse(
        {
            "method": request.method,
            "query": query,
            "headers": dict(request.headers),
            "body": body.decode("utf-8", errors="replace"),
        }
    )


async def echo_form(request: StarletteRequest) -> Response:
    fields: dict[str, list[str]] = {}
    files: dict[str, list[dict[str, typing.Any]]] = {}
    async with request.form() as form:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                content = await value.read()
                files.setdefault(key, []).append(
                    {
                        "filename": value.filename,
                        "content": content.decode("utf-8", errors="replace"),
                        "size": len(content),
                        "md5": hashlib.md5(content).hexdigest(),
                    }
                )
            else:
                fields.setdefault(key, []).append(value)
    return JSONResponse(
        {"method": request.method, "fields": fields, "files": files}
    )


app = Starlette(
    routes=[
        Route("/", hello_world),
        Route("/json", hello_world_json),
        Route("/xml", hello_world_xml),
        Route("/slow_response", slow_response),
        Route("/drip", drip),
        Route("/status/{code:int}", status_code),
        Route("/echo_body", echo_body, methods=["POST", "PUT", "PATCH"]),
        Route("/echo", echo, methods=["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH"]),
        Route("/form", echo_form, methods=["POST", "PUT"]),
    ]
)


class TestServer(Server):
    def install_signal_handlers(self) -> None:
        # Disable the default installation of handlers for signals such as SIGTERM,
        # because it can only be done in the main thread.
        pass

    @property
    def url(self) -> httpx.URL:
        protocol = "https" if self.config.is_ssl else "http"
        port = self.servers[0].sockets[0].getsockname()[1]
        return httpx.URL(f"{protocol}://{self.config.host}:{port}/")


def serve_in_thread(server: TestServer) -> typing.Iterator[TestServer]:
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    try:
        while not server.started:
            time.sleep(1e-3)
        yield server
    finally:
        server.should_exit = True
        thread.join()


@pytest.fixture(scope="session")
def server() -> typing.Iterator[TestServer]:
    config = Config(app=app, lifespan="off", loop="asyncio", host="127.0.0.1", port=0)
    server = TestServer(config=config)
    yield from serve_in_thread(server)
