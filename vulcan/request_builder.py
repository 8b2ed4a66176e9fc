"""
request_builder.py

Responsibility: Model the two kinds of build submission and encode them as
multipart/form-data bodies.

- `NewBuild` uploads the source tarball together with the build command,
  install prefix and shared secret to `/make`.
- `Rebuild` re-runs an earlier build by id and only sends the secret; the id
  lives in the request path.

The archive is never read into memory: `MultipartBody` is a file-like object
that interleaves pre-rendered part headers with reads from the open archive
handle, and reports its exact length so `requests` sends a Content-Length
instead of a chunked upload.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Union
from urllib.parse import quote

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary

CODE_FILENAME = "input.tgz"
CODE_CONTENT_TYPE = "application/octet-stream"

_BLOCK_SIZE = 64 * 1024


@dataclass(frozen=True)
class BuildSpec:
    """What to build and how: the source, the build command and the install prefix."""

    source: Path
    command: str
    prefix: str
    name: str

    @classmethod
    def from_options(
        cls,
        *,
        source: str | Path | None = None,
        name: str | None = None,
        command: str | None = None,
        prefix: str | None = None,
    ) -> "BuildSpec":
        src = Path(source) if source else Path.cwd()
        name = name or src.resolve().name
        prefix = prefix or f"/app/vendor/{name}"
        command = command or f"./configure --prefix {prefix} && make install"
        return cls(source=src, command=command, prefix=prefix, name=name)


@dataclass(frozen=True)
class Credentials:
    secret: str

    def __repr__(self) -> str:
        return "Credentials(secret=***)"


@dataclass(frozen=True)
class NewBuild:
    spec: BuildSpec
    credentials: Credentials

    @property
    def path(self) -> str:
        return "/make"


@dataclass(frozen=True)
class Rebuild:
    build_id: str
    credentials: Credentials

    @property
    def path(self) -> str:
        return f"/rebuild/{quote(self.build_id, safe='')}"


BuildRequest = Union[NewBuild, Rebuild]


class MultipartBody:
    """
    A multipart/form-data body that streams file parts from open handles.

    Each part is either a text value or a binary file handle; handles are read
    from their current position and are not closed here.
    """

    def __init__(self, boundary: str | None = None) -> None:
        self.boundary = boundary or choose_boundary()
        self.field_names: list[str] = []
        self._segments: list[bytes | BinaryIO] = []
        self._length = 0
        self._closed = False
        self._index = 0
        self._offset = 0

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def _add_bytes(self, data: bytes) -> None:
        self._segments.append(data)
        self._length += len(data)

    def _add_headers(self, field: RequestField) -> None:
        self._add_bytes(f"--{self.boundary}\r\n".encode("utf-8"))
        self._add_bytes(field.render_headers().encode("utf-8"))

    def add_field(self, name: str, value: str) -> None:
        if self._closed:
            raise ValueError("Cannot add fields after the body is finalized")
        field = RequestField(name=name, data=value)
        field.make_multipart()
        self._add_headers(field)
        self._add_bytes(value.encode("utf-8") + b"\r\n")
        self.field_names.append(name)

    def add_file(self, name: str, handle: BinaryIO, *, filename: str, content_type: str) -> None:
        if self._closed:
            raise ValueError("Cannot add fields after the body is finalized")
        field = RequestField(name=name, data=b"", filename=filename)
        field.make_multipart(content_type=content_type)
        self._add_headers(field)
        self._segments.append(handle)
        self._length += os.fstat(handle.fileno()).st_size - handle.tell()
        self._add_bytes(b"\r\n")
        self.field_names.append(name)

    def finalize(self) -> "MultipartBody":
        if not self._closed:
            self._add_bytes(f"--{self.boundary}--\r\n".encode("utf-8"))
            self._closed = True
        return self

    def __len__(self) -> int:
        return self._length

    def read(self, size: int | None = -1) -> bytes:
        if size is None or size < 0:
            return b"".join(iter(lambda: self.read(_BLOCK_SIZE), b""))

        out = bytearray()
        while len(out) < size and self._index < len(self._segments):
            segment = self._segments[self._index]
            wanted = size - len(out)
            if isinstance(segment, bytes):
                piece = segment[self._offset : self._offset + wanted]
                self._offset += len(piece)
                if self._offset >= len(segment):
                    self._index += 1
                    self._offset = 0
            else:
                piece = segment.read(wanted)
                if not piece:
                    self._index += 1
                    continue
            out += piece
        return bytes(out)

    def __iter__(self) -> Iterator[bytes]:
        return iter(lambda: self.read(_BLOCK_SIZE), b"")


def new_build_body(request: NewBuild, archive: BinaryIO) -> MultipartBody:
    """
    Encode a NewBuild as `code`, `command`, `prefix`, `secret`.
    """
    body = MultipartBody()
    body.add_file("code", archive, filename=CODE_FILENAME, content_type=CODE_CONTENT_TYPE)
    body.add_field("command", request.spec.command)
    body.add_field("prefix", request.spec.prefix)
    body.add_field("secret", request.credentials.secret)
    return body.finalize()


def rebuild_body(request: Rebuild) -> MultipartBody:
    body = MultipartBody()
    body.add_field("secret", request.credentials.secret)
    return body.finalize()
