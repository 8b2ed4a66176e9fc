"""
vulcan package

Client for a remote build server: package local source, submit it, stream the
build log back, and download the resulting artifact.

Key responsibilities are split across modules:
- `config.py`: persisted key-value config and server endpoint resolution
- `packager.py`: turn a source directory into a tarball (or pass a tarball through)
- `request_builder.py`: build/rebuild request variants and the streamed multipart body
- `transport.py`: isolated HTTP interaction with the build server
- `streaming.py`: forward the live build log and read the build id header
- `artifacts.py`: download build output for a build id
- `pipeline.py`: drive one build/rebuild/download cycle
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
