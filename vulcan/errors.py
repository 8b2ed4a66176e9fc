"""
errors.py

Responsibility: the error taxonomy shared by every vulcan module.

Everything raised on purpose derives from `VulcanError` so the CLI can report it
with a single handler. `ArtifactFetchError` is the one error the pipeline does
not treat as fatal.
"""

from __future__ import annotations


class VulcanError(RuntimeError):
    pass


class ConfigError(VulcanError):
    pass


class PackagingError(VulcanError):
    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(f"{message}\n\n{output}".rstrip() if output else message)
        self.output = output


class TransportError(VulcanError):
    def __init__(self, message: str, endpoint: str) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class StreamError(VulcanError):
    pass


class MissingBuildIdError(VulcanError):
    pass


class ArtifactFetchError(VulcanError):
    pass
