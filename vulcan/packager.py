"""
packager.py

Responsibility: Produce a single compressed archive for a build source.

- A directory is archived with `tar` into a temporary directory that only lives
  for the duration of the `with` block.
- An existing file is assumed to already be a tarball and is used as-is.

This module intentionally does NOT know about HTTP or multipart encoding.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from vulcan.errors import PackagingError

log = logging.getLogger(__name__)

ARCHIVE_NAME = "input.tgz"


def _run(cmd: list[str], *, cwd: Path) -> str:
    """
    Run the archiver, raising a PackagingError carrying its output on failure.
    """
    try:
        proc = subprocess.run(cmd, cwd=str(cwd), check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except subprocess.CalledProcessError as e:
        raise PackagingError(f"Command failed: {' '.join(cmd)}", e.stdout or "") from e
    except OSError as e:
        raise PackagingError(f"Could not run {cmd[0]}: {e}") from e
    return proc.stdout


def archive_directory(source: Path, destination: Path) -> Path:
    output = _run(["tar", "czvf", str(destination), "."], cwd=source)
    log.debug("tar output for %s:\n%s", source, output)
    return destination


@contextmanager
def package_source(source: str | Path, *, announce: Callable[[Path], None] | None = None) -> Iterator[Path]:
    """
    Yield the path of a tarball for `source`.

    `announce` is called with the archive path before a directory is packaged.
    """
    src = Path(source)
    if src.is_dir():
        with tempfile.TemporaryDirectory(prefix="vulcan-") as tmp:
            tarball = Path(tmp) / ARCHIVE_NAME
            if announce is not None:
                announce(tarball)
            archive_directory(src, tarball)
            yield tarball
    elif src.is_file():
        yield src
    else:
        raise PackagingError(f"Source does not exist: {src}")
