"""
pipeline.py

Responsibility: Run one build (or rebuild) cycle end to end.

    IDLE -> PACKAGING -> REQUESTING -> STREAMING -> CORRELATING -> FETCHING_ARTIFACT -> DONE

A rebuild starts at REQUESTING. Any failure up to and including CORRELATING
moves the run to FAILED and re-raises. A failed artifact download is printed and
recorded on the outcome but the run still ends in DONE.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from vulcan.artifacts import download_artifact
from vulcan.errors import ArtifactFetchError, VulcanError
from vulcan.packager import package_source
from vulcan.request_builder import BuildRequest, MultipartBody, NewBuild, Rebuild, new_build_body, rebuild_body
from vulcan.streaming import ProgressSink, extract_build_id, stream_progress
from vulcan.transport import BuildServerClient

log = logging.getLogger(__name__)


class BuildState(enum.Enum):
    IDLE = "idle"
    PACKAGING = "packaging"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    CORRELATING = "correlating"
    FETCHING_ARTIFACT = "fetching_artifact"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOutcome:
    state: BuildState
    build_id: str
    output: Path
    artifact_bytes: int = 0
    artifact_error: ArtifactFetchError | None = None

    @property
    def partial(self) -> bool:
        return self.artifact_error is not None


class BuildPipeline:
    def __init__(self, client: BuildServerClient, sink: ProgressSink) -> None:
        self.client = client
        self.sink = sink
        self.state = BuildState.IDLE

    def _enter(self, state: BuildState) -> None:
        log.debug("build state %s -> %s", self.state.value, state.value)
        self.state = state

    def run(self, request: BuildRequest, output: str | Path) -> BuildOutcome:
        try:
            build_id = self._build(request)
        except VulcanError:
            self._enter(BuildState.FAILED)
            raise
        return self._fetch(build_id, Path(output))

    def _build(self, request: BuildRequest) -> str:
        if isinstance(request, NewBuild):
            return self._upload_and_build(request)
        if isinstance(request, Rebuild):
            return self._rebuild(request)
        raise TypeError(f"Unsupported build request: {request!r}")

    def _upload_and_build(self, request: NewBuild) -> str:
        self._enter(BuildState.PACKAGING)

        def announce(tarball: Path) -> None:
            self.sink.say(f">> Packaging local directory to {tarball}")

        with package_source(request.spec.source, announce=announce) as tarball:
            self.sink.say(">> Uploading code for build")
            with open(tarball, "rb") as archive:
                body = new_build_body(request, archive)
                self.sink.say(f">> Building with: {request.spec.command} on {self.client.endpoint}")
                return self._submit(request.path, body)

    def _rebuild(self, request: Rebuild) -> str:
        body = rebuild_body(request)
        self.sink.say(f">> Rebuilding {request.build_id} on {self.client.endpoint}")
        return self._submit(request.path, body)

    def _submit(self, path: str, body: MultipartBody) -> str:
        self._enter(BuildState.REQUESTING)
        with self.client.submit(path, body) as response:
            self._enter(BuildState.STREAMING)
            received = stream_progress(response.iter_chunks(), self.sink)
            log.debug("Streamed %d bytes of build output (%s)", received, response.status_line)
            self._enter(BuildState.CORRELATING)
            return extract_build_id(response)

    def _fetch(self, build_id: str, output: Path) -> BuildOutcome:
        self._enter(BuildState.FETCHING_ARTIFACT)
        self.sink.say(f">> Downloading build artifacts {self.client.artifact_url(build_id)} to: {output}")
        try:
            written = download_artifact(self.client, build_id, output)
        except ArtifactFetchError as e:
            self.sink.say(f"!! {e}")
            self._enter(BuildState.DONE)
            return BuildOutcome(state=self.state, build_id=build_id, output=output, artifact_error=e)
        self._enter(BuildState.DONE)
        return BuildOutcome(state=self.state, build_id=build_id, output=output, artifact_bytes=written)
