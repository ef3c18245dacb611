from __future__ import annotations

import os
import typing


class RequesterError(Exception):
    """Base class for every error raised by requester itself."""


class EmptyRequestURLError(RequesterError):
    def __init__(self, message: str = "empty request url") -> None:
        super().__init__(message)


class InvalidBodyError(RequesterError):
    """The bound request body has no recognized shape."""

    def __init__(self, value: typing.Any) -> None:
        super().__init__(
            f"invalid request body: {type(value).__name__!r} cannot be sent as a body"
        )
        self.value = value


class SerializationError(RequesterError):
    """Structured (JSON or XML) encoding of a body failed."""

    def __init__(self, encoding: str, cause: BaseException) -> None:
        super().__init__(f"cannot encode request body as {encoding}: {cause}")
        self.encoding = encoding
        self.cause = cause


class EmptyUploadBodyError(RequesterError):
    def __init__(self, message: str = "empty upload body") -> None:
        super().__init__(message)


class NotRegularFileError(RequesterError):
    def __init__(self, path: str | os.PathLike[str]) -> None:
        super().__init__(f"upload target file {os.fspath(path)} is not a regular file")
        self.path = path


class InvalidUploadBodyError(RequesterError):
    def __init__(self, value: typing.Any) -> None:
        super().__init__(
            f"invalid upload body: {type(value).__name__!r} is not a file source"
        )
        self.value = value


class UnsupportedUploadMethodError(RequesterError, ValueError):
    def __init__(self, method: str) -> None:
        super().__init__(f"unsupported upload method: {method}")
        self.method = method


class EmptyResponseError(RequesterError):
    def __init__(self, message: str = "empty response") -> None:
        super().__init__(message)
