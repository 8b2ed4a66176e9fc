"""
cli.py

Responsibility: CLI entrypoint for vulcan.

Commands:
- `build`: package + upload + stream the build log + download the artifact,
  or `--rebuild ID` to re-run an earlier build without uploading anything.
- `configure`: record the build server app name and shared secret.

This module reads the environment and config file, then hands explicit values
to the pipeline:
- Config and endpoint resolution: `config.py`
- Build cycle: `pipeline.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import secrets
import sys
import tempfile
from pathlib import Path
from typing import BinaryIO

from vulcan import __version__
from vulcan.config import HOSTING_DOMAIN, SERVER_ENV_VAR, load_config, resolve_endpoint, write_config
from vulcan.errors import VulcanError
from vulcan.logger import setup_logging
from vulcan.pipeline import BuildPipeline
from vulcan.request_builder import BuildRequest, BuildSpec, Credentials, NewBuild, Rebuild
from vulcan.streaming import ProgressSink
from vulcan.transport import BuildServerClient

log = logging.getLogger(__name__)


def _build_request(args: argparse.Namespace, credentials: Credentials) -> tuple[BuildRequest, str]:
    spec = BuildSpec.from_options(source=args.source, name=args.name, command=args.command, prefix=args.prefix)
    if args.rebuild:
        return Rebuild(build_id=str(args.rebuild), credentials=credentials), spec.name
    return NewBuild(spec=spec, credentials=credentials), spec.name


def build_cmd(args: argparse.Namespace, out: BinaryIO) -> int:
    config = load_config(args.config)
    endpoint = resolve_endpoint(config, args.server or os.environ.get(SERVER_ENV_VAR))

    secret = config.secret
    if secret is None:
        log.warning("No secret configured; the build server will likely reject the request")
    request, name = _build_request(args, Credentials(secret=secret or ""))
    output = Path(args.output) if args.output else Path(tempfile.gettempdir()) / f"{name}.tgz"

    client = BuildServerClient(endpoint)
    try:
        outcome = BuildPipeline(client, ProgressSink(out)).run(request, output)
    finally:
        client.close()

    if outcome.partial:
        log.info("Build %s finished but its artifact could not be downloaded", outcome.build_id)
    return 0


def configure_cmd(args: argparse.Namespace, out: BinaryIO) -> int:
    secret = args.secret or secrets.token_hex(20)
    host = f"{args.app}.{HOSTING_DOMAIN}"
    write_config(args.config, app=args.app, host=host, secret=secret)
    ProgressSink(out).say(f">> Configured build server {args.app} ({host})")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="vulcan", description="Build software on a remote build server")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    p.add_argument("--config", default=None, help="Config file (default: $VULCAN_CONFIG or ~/.vulcan)")
    sub = p.add_subparsers(dest="command_name", required=True)

    b = sub.add_parser(
        "build",
        help="Build a piece of software on the build server",
        description="Build a piece of software using COMMAND as the build command; "
        "if no COMMAND is given a configure/make install default is used",
    )
    b.add_argument("-c", "--command", default=None, help="The command to run for compilation")
    b.add_argument("-n", "--name", default=None, help="The name of the library (defaults to the directory name)")
    b.add_argument("-o", "--output", default=None, help="Output build artifacts to this file")
    b.add_argument("-p", "--prefix", default=None, help="The build/install --prefix of the software")
    b.add_argument("-s", "--source", default=None, help="The source directory or tarball to build from")
    b.add_argument("-r", "--rebuild", default=None, metavar="ID", help="Rebuild the provided build id")
    b.add_argument("--server", default=None, help=f"Build server URL (overrides ${SERVER_ENV_VAR} and the config)")
    b.set_defaults(func=build_cmd)

    c = sub.add_parser("configure", help="Record the build server app name and shared secret")
    c.add_argument("app", help="Build server app name")
    c.add_argument("--secret", default=None, help="Shared secret (default: generate a new one)")
    c.set_defaults(func=configure_cmd)
    return p


def main(argv: list[str] | None = None, out: BinaryIO | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    out = out if out is not None else sys.stdout.buffer
    try:
        return int(args.func(args, out))
    except VulcanError as e:
        ProgressSink(out).say(f"!! {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
