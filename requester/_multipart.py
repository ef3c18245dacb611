from __future__ import annotations

import contextlib
import dataclasses
import enum
import io
import os
import re
import stat
import typing

from ._exceptions import EmptyUploadBodyError, InvalidUploadBodyError, NotRegularFileError

CHUNK_SIZE = 64 * 1024

BOUNDARY_REGEX = re.compile(r"[0-9A-Za-z'()+_,\-./:=? ]{0,69}[0-9A-Za-z'()+_,\-./:=?]")


class ReceivedUpload(typing.Protocol):
    """A file received by a server, e.g. a downstream multipart upload.

    ``open()`` must return a new binary handle each time it is called.
    """

    filename: str

    def open(self) -> typing.BinaryIO: ...


# ---------------------------------------------------------------------------
# File sources
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class PathSource:
    path: str | os.PathLike[str]


@dataclasses.dataclass(frozen=True)
class HandleSource:
    handle: typing.IO[typing.Any]


@dataclasses.dataclass(frozen=True)
class ReaderSource:
    filename: str
    reader: typing.Any


@dataclasses.dataclass(frozen=True)
class UploadSource:
    upload: ReceivedUpload


FileSource = typing.Union[PathSource, HandleSource, ReaderSource, UploadSource]

_FILE_SOURCES = (PathSource, HandleSource, ReaderSource, UploadSource)


def file_source(value: typing.Any) -> FileSource:
    """Classify ``value`` as one of the recognized file sources.

    Strings and path-like objects are paths, open file objects with a
    ``fileno()`` are handles and objects with a ``filename`` and an
    ``open()`` method are received uploads.  Server-side upload objects
    exposing a ``filename`` and an already open ``file`` (Starlette's
    ``UploadFile``, for one) are read from ``file`` like a
    :class:`ReaderSource`.  Other in-memory readers carry no filename and
    must be wrapped in :class:`ReaderSource` by the caller.
    """
    if isinstance(value, _FILE_SOURCES):
        return value
    if isinstance(value, (str, os.PathLike)):
        return PathSource(value)
    if (
        callable(getattr(value, "read", None))
        and callable(getattr(value, "fileno", None))
        and hasattr(value, "name")
    ):
        return HandleSource(value)
    if isinstance(getattr(value, "filename", None), str) and callable(
        getattr(value, "open", None)
    ):
        return UploadSource(value)
    if isinstance(getattr(value, "filename", None), str) and callable(
        getattr(getattr(value, "file", None), "read", None)
    ):
        return ReaderSource(value.filename, value.file)
    raise InvalidUploadBodyError(value)


# ---------------------------------------------------------------------------
# Form field set
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class FormField:
    value: str


@dataclasses.dataclass(frozen=True)
class FormFile:
    source: typing.Any


FormEntry = typing.Union[FormField, FormFile]


class FormData:
    """Upload fields and files keyed by form name.

    A key can hold several entries; they keep the order they were added in.
    Iteration yields keys in sorted order.
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[FormEntry]] = {}

    def add_field(self, key: str, value: str) -> None:
        self._entries.setdefault(key, []).append(FormField(value))

    def add_file(self, key: str, source: typing.Any) -> None:
        self._entries.setdefault(key, []).append(FormFile(source))

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def get(self, key: str) -> list[FormEntry]:
        return list(self._entries.get(key, ()))

    def items(self) -> typing.Iterator[tuple[str, list[FormEntry]]]:
        for key in sorted(self._entries):
            yield key, self._entries[key]

    def __iter__(self) -> typing.Iterator[str]:
        return iter(sorted(self._entries))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def __repr__(self) -> str:
        return f"FormData({dict(self.items())!r})"


# ---------------------------------------------------------------------------
# Multipart writer
# ---------------------------------------------------------------------------


class WriterState(enum.Enum):
    IDLE = "idle"
    WRITING = "writing"
    SEALED = "sealed"


def _escape_quotes(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class MultipartWriter:
    def __init__(self, buffer: typing.BinaryIO, boundary: str | None = None) -> None:
        if boundary is None:
            boundary = os.urandom(30).hex()
        elif not BOUNDARY_REGEX.fullmatch(boundary):
            raise ValueError(f"invalid multipart boundary: {boundary!r}")
        self._buffer = buffer
        self._boundary = boundary
        self.state = WriterState.IDLE

    @property
    def boundary(self) -> str:
        return self._boundary

    @property
    def content_type(self) -> str:
        boundary = self._boundary
        if any(char in boundary for char in "()<>@,;:\\\"/[]?= "):
            boundary = f'"{boundary}"'
        return f"multipart/form-data; boundary={boundary}"

    def _start_part(self, headers: list[tuple[str, str]]) -> None:
        if self.state is WriterState.SEALED:
            raise RuntimeError("multipart writer is already closed")
        prefix = "\r\n" if self.state is WriterState.WRITING else ""
        lines = [f"{prefix}--{self._boundary}\r\n"]
        lines.extend(f"{name}: {value}\r\n" for name, value in headers)
        lines.append("\r\n")
        self._buffer.write("".join(lines).encode("utf-8"))
        self.state = WriterState.WRITING

    def write_field(self, name: str, value: str) -> None:
        disposition = f'form-data; name="{_escape_quotes(name)}"'
        self._start_part([("Content-Disposition", disposition)])
        self._buffer.write(value.encode("utf-8"))

    def write_file(self, name: str, filename: str, reader: typing.Any) -> None:
        disposition = (
            f'form-data; name="{_escape_quotes(name)}"; '
            f'filename="{_escape_quotes(filename)}"'
        )
        self._start_part(
            [
                ("Content-Disposition", disposition),
                ("Content-Type", "application/octet-stream"),
            ]
        )
        while True:
            chunk = reader.read(CHUNK_SIZE)
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            self._buffer.write(chunk)

    def close(self) -> None:
        if self.state is WriterState.SEALED:
            return
        prefix = "\r\n" if self.state is WriterState.WRITING else ""
        self._buffer.write(f"{prefix}--{self._boundary}--\r\n".encode("ascii"))
        self.state = WriterState.SEALED


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def _basename(path: typing.Any) -> str:
    return os.path.basename(os.fsdecode(path))


def _handle_filename(handle: typing.Any, key: str) -> str:
    # Handles opened from a descriptor (e.g. tempfile.TemporaryFile) are named
    # by an int; fall back to the form key.
    name = handle.name
    if isinstance(name, (str, bytes, os.PathLike)):
        return _basename(name) or key
    return key


def _write_source(writer: MultipartWriter, key: str, source: FileSource) -> None:
    if isinstance(source, PathSource):
        if not stat.S_ISREG(os.stat(source.path).st_mode):
            raise NotRegularFileError(source.path)
        with open(source.path, "rb") as f:
            writer.write_file(key, _basename(source.path), f)
    elif isinstance(source, HandleSource):
        handle = source.handle
        if not stat.S_ISREG(os.fstat(handle.fileno()).st_mode):
            raise NotRegularFileError(str(handle.name))
        # Read from the current position and leave the handle open.
        writer.write_file(key, _handle_filename(handle, key), handle)
    elif isinstance(source, ReaderSource):
        writer.write_file(key, _basename(source.filename), source.reader)
    else:
        upload = source.upload
        with contextlib.closing(upload.open()) as f:
            writer.write_file(key, _basename(upload.filename), f)


def assemble(form: FormData, boundary: str | None = None) -> tuple[io.BytesIO, str]:
    """Encode ``form`` as a ``multipart/form-data`` body.

    Returns the fully buffered body, rewound to the start, and the content
    type carrying the boundary.  Keys are written in sorted order and the
    entries of a key in the order they were added, so two assemblies of the
    same form differ only by their boundary.

    Raises :class:`EmptyUploadBodyError` for a form without entries,
    :class:`NotRegularFileError` and :class:`InvalidUploadBodyError` for bad
    file entries.  Errors from opening, stat-ing or reading files propagate
    unchanged; files opened here are closed on every path.
    """
    if not form:
        raise EmptyUploadBodyError()

    buffer = io.BytesIO()
    writer = MultipartWriter(buffer, boundary)
    for key, entries in form.items():
        for entry in entries:
            if isinstance(entry, FormField):
                writer.write_field(key, entry.value)
            else:
                _write_source(writer, key, file_source(entry.source))
    writer.close()
    buffer.seek(0)
    return buffer, writer.content_type
