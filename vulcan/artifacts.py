"""
artifacts.py

Responsibility: Download the build output for a build id into a local file.

The output file is opened (and truncated) before the request is sent, so a
failed download leaves it empty or partially written.
"""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from vulcan.errors import ArtifactFetchError, TransportError
from vulcan.transport import CHUNK_SIZE, BuildServerClient

log = logging.getLogger(__name__)


def download_artifact(client: BuildServerClient, build_id: str, output: str | Path) -> int:
    """
    Write the artifact for `build_id` to `output` and return the bytes written.
    """
    written = 0
    try:
        with open(output, "wb") as stream, client.open_artifact(build_id) as resp:
            resp.raise_for_status()
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    stream.write(chunk)
                    written += len(chunk)
    except (requests.RequestException, TransportError, OSError) as e:
        raise ArtifactFetchError(f"Could not download {client.artifact_url(build_id)} to {output}: {e}") from e
    log.debug("Wrote %d artifact bytes to %s", written, output)
    return written
