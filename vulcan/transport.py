"""
transport.py

Responsibility: Isolate all direct HTTP interaction with the build server.

This module must be the only place that:
- Builds URLs against the server endpoint
- Sends HTTP requests with `requests`
- Translates `requests` connection/read failures into vulcan errors

The build log is streamed: `submit` returns as soon as the response headers
arrive, and the body is pulled chunk by chunk through `BuildResponse`.
"""

from __future__ import annotations

import logging
from typing import Iterator
from urllib.parse import quote

import requests

from vulcan import __version__
from vulcan.config import ServerEndpoint
from vulcan.errors import StreamError, TransportError
from vulcan.request_builder import MultipartBody

log = logging.getLogger(__name__)

BUILD_ID_HEADER = "X-Make-Id"
CHUNK_SIZE = 8192


class BuildResponse:
    """
    A live build/rebuild response.

    `iter_chunks` may only be consumed once. Headers are readable at any time,
    but the build id is only meaningful once the body has been exhausted.
    """

    def __init__(self, response: requests.Response, endpoint: ServerEndpoint) -> None:
        self._response = response
        self._endpoint = endpoint
        self._started = False
        self.exhausted = False

    @property
    def headers(self):
        return self._response.headers

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def status_line(self) -> str:
        return f"{self._response.status_code} {self._response.reason or ''}".strip()

    def iter_chunks(self) -> Iterator[bytes]:
        if self._started:
            raise StreamError("Build output stream has already been consumed")
        self._started = True
        return self._chunks()

    def _chunks(self) -> Iterator[bytes]:
        try:
            for chunk in self._response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            raise StreamError(f"Lost connection to build server {self._endpoint} while reading build output: {e}") from e
        self.exhausted = True

    def close(self) -> None:
        self._response.close()

    def __enter__(self) -> "BuildResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class BuildServerClient:
    def __init__(self, endpoint: ServerEndpoint, session: requests.Session | None = None) -> None:
        self.endpoint = endpoint
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": f"vulcan/{__version__}"}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self.endpoint.url(path)
        log.debug("%s %s", method, url)
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        try:
            return self._session.request(method, url, headers=headers, stream=True, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"Could not connect to build server: {self.endpoint}", str(self.endpoint)) from e

    def submit(self, path: str, body: MultipartBody) -> BuildResponse:
        """
        POST a build/rebuild body and return once the response headers arrive.
        """
        response = self._request("POST", path, data=body, headers={"Content-Type": body.content_type})
        log.debug("Build server answered %s %s", response.status_code, response.reason)
        return BuildResponse(response, self.endpoint)

    def artifact_url(self, build_id: str) -> str:
        return self.endpoint.url(f"/output/{quote(build_id, safe='')}")

    def open_artifact(self, build_id: str) -> requests.Response:
        return self._request("GET", f"/output/{quote(build_id, safe='')}")

    def close(self) -> None:
        self._session.close()
