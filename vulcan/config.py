"""
config.py

Responsibility: Load and write the persisted vulcan config, and resolve the
build server endpoint for one invocation.

The config file is a small YAML mapping (`app`, `host`, `secret`). Anything that
is not a mapping is read as an empty config rather than an error, so a damaged
file can simply be rewritten with `vulcan configure`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from vulcan.errors import ConfigError

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VULCAN_CONFIG"
SERVER_ENV_VAR = "MAKE_SERVER"
HOSTING_DOMAIN = "herokuapp.com"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path("~/.vulcan").expanduser()


@dataclass(frozen=True)
class Config:
    """Read-only view over the persisted key-value config."""

    values: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        value = self.values.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def app(self) -> str | None:
        return self.get("app")

    @property
    def secret(self) -> str | None:
        return self.get("secret")


@dataclass(frozen=True)
class ServerEndpoint:
    host: str
    port: int
    scheme: str = "http"

    @property
    def netloc_host(self) -> str:
        # IPv6 literals need brackets inside a URL
        return f"[{self.host}]" if ":" in self.host else self.host

    @property
    def base_url(self) -> str:
        if _DEFAULT_PORTS.get(self.scheme) == self.port:
            return f"{self.scheme}://{self.netloc_host}"
        return f"{self.scheme}://{self.netloc_host}:{self.port}"

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def __str__(self) -> str:
        return f"{self.netloc_host}:{self.port}"


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        log.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: str | Path | None = None) -> Config:
    config_path = Path(path) if path is not None else default_config_path()
    return Config(values=_read_mapping(config_path))


def write_config(path: str | Path | None = None, **updates: Any) -> Config:
    """
    Merge `updates` into the config file at `path` and return the new config.
    """
    config_path = Path(path) if path is not None else default_config_path()
    merged = {**_read_mapping(config_path), **updates}
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.safe_dump(merged, default_flow_style=False), encoding="utf-8")
    log.debug("Wrote config keys %s to %s", sorted(updates), config_path)
    return Config(values=merged)


def parse_server_url(url: str) -> ServerEndpoint:
    # Bare host names ("build.example.com:5000") are accepted as http.
    parts = urlsplit(url if "://" in url else f"http://{url}")
    scheme = parts.scheme or "http"
    if not parts.hostname:
        raise ConfigError(f"Invalid build server URL: {url}")
    try:
        port = parts.port
    except ValueError as e:
        raise ConfigError(f"Invalid build server URL: {url}") from e
    return ServerEndpoint(host=parts.hostname, port=port or _DEFAULT_PORTS.get(scheme, 80), scheme=scheme)


def resolve_endpoint(config: Config, override: str | None = None) -> ServerEndpoint:
    """
    Return the build server endpoint for this invocation.

    An explicit server URL wins over the `{app}.herokuapp.com` address derived
    from the configured app name.
    """
    if override:
        return parse_server_url(override)
    app = config.app
    if not app:
        raise ConfigError("No build server configured, use `vulcan configure APP_NAME` first")
    return ServerEndpoint(host=f"{app}.{HOSTING_DOMAIN}", port=80)
