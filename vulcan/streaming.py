"""
streaming.py

Responsibility: Forward the live build log to an output sink as it arrives,
and read the build id once the log has finished.
"""

from __future__ import annotations

from typing import BinaryIO, Iterable

from vulcan.errors import MissingBuildIdError, StreamError
from vulcan.transport import BUILD_ID_HEADER, BuildResponse


class ProgressSink:
    """
    Binary output shared by the remote build log and vulcan's own `>>` lines,
    so both appear in the order they were produced.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def write_chunk(self, chunk: bytes) -> None:
        self.stream.write(chunk)
        self.stream.flush()

    def say(self, message: str) -> None:
        self.write_chunk(f"{message}\n".encode("utf-8"))


def stream_progress(chunks: Iterable[bytes], sink: ProgressSink) -> int:
    total = 0
    for chunk in chunks:
        sink.write_chunk(chunk)
        total += len(chunk)
    return total


def extract_build_id(response: BuildResponse) -> str:
    if not response.exhausted:
        raise StreamError("Build output must be fully read before looking up the build id")
    build_id = (response.headers.get(BUILD_ID_HEADER) or "").strip()
    if not build_id:
        raise MissingBuildIdError(
            f"Unknown error, no build output given (server answered {response.status_line} without {BUILD_ID_HEADER})"
        )
    return build_id
