# ruff: noqa: I001
from ._body import BodyShape, Payload, body_shape, resolve_body
from ._client import AsyncClient, BaseClient, Client, new
from ._exceptions import (
    EmptyRequestURLError,
    EmptyResponseError,
    EmptyUploadBodyError,
    InvalidBodyError,
    InvalidUploadBodyError,
    NotRegularFileError,
    RequesterError,
    SerializationError,
    UnsupportedUploadMethodError,
)
from ._multipart import (
    FormData,
    HandleSource,
    PathSource,
    ReaderSource,
    ReceivedUpload,
    UploadSource,
    assemble,
    file_source,
)
from ._request import AsyncRequest, BaseRequest, Request
from ._response import EmptyResponse, Response, new_empty_response, new_response_from
from ._transports import (
    default_http_client,
    new_default_http_client,
    set_default_http_client,
)
from ._utils import to_string

__title__ = "requester"
__description__ = "Fluent HTTP requests on top of httpx."
__version__ = "0.1.0"

try:
    from .cli import main
except ImportError:

    def main() -> None:  # type: ignore[misc]
        import sys

        print(
            'The "requester" command requires the CLI extra. '
            'Install it with: pip install "requester[cli]"',
            file=sys.stderr,
        )
        sys.exit(1)


_EXCLUDED_FROM_ALL = {"cli", "main"}

__all__ = sorted(  # pyright: ignore[reportUnsupportedDunderAll]
    (
        member
        for member in list(vars().keys())
        if (
            not member.startswith("_")
            or member in ["__description__", "__title__", "__version__"]
        )
        and member not in _EXCLUDED_FROM_ALL
    ),
    key=str.casefold,
)
