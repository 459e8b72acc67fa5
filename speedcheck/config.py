"""
User configuration file support.

Reads/writes ``~/.speedcheck/config.json``.

Supported keys::

    owner = "local"              # owner id stamped on every result
    multi_connection = false     # default measurement mode
    history_file = ""            # JSON-lines result store ("" = default)
    csv_file = ""                # auto-append CSV path
    log_level = "WARNING"
    ip_lookup = true             # look up ISP / region before a run

Endpoint lists may be overridden with ``primary_download_urls``,
``small_download_urls``, ``alternative_download_urls``, ``upload_urls``,
``small_upload_urls``, ``alternative_upload_urls`` (lists of URLs) and
``test_servers`` (list of ``{"name", "base_url", "location"}`` objects).
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from . import constants
from .api import TestServer, default_test_servers, servers_from_dicts

_CONFIG_DIR = os.path.join(Path.home(), ".speedcheck")
_CONFIG_FILE = "config.json"

LOG_LEVEL_ENV = "SPEEDCHECK_LOG_LEVEL"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


def default_history_path() -> str:
    return os.path.join(_CONFIG_DIR, "history.jsonl")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "owner": "local",
    "multi_connection": False,
    "history_file": "",
    "csv_file": "",
    "log_level": "WARNING",
    "ip_lookup": True,
}


# ---------------------------------------------------------------------------
# Endpoint registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Endpoints:
    """Read-only endpoint registry handed to the prober and the chains."""

    tcp_probe_hosts: Tuple[str, ...] = constants.TCP_PROBE_HOSTS
    tcp_probe_port: int = constants.TCP_PROBE_PORT
    http_probe_urls: Tuple[str, ...] = constants.HTTP_PROBE_URLS
    primary_download_urls: Tuple[str, ...] = constants.PRIMARY_DOWNLOAD_URLS
    small_download_urls: Tuple[str, ...] = constants.SMALL_DOWNLOAD_URLS
    alternative_download_urls: Tuple[str, ...] = constants.ALTERNATIVE_DOWNLOAD_URLS
    upload_urls: Tuple[str, ...] = constants.UPLOAD_URLS
    small_upload_urls: Tuple[str, ...] = constants.SMALL_UPLOAD_URLS
    alternative_upload_urls: Tuple[str, ...] = constants.ALTERNATIVE_UPLOAD_URLS
    test_servers: Tuple[TestServer, ...] = default_test_servers()


_URL_KEYS = (
    "tcp_probe_hosts",
    "http_probe_urls",
    "primary_download_urls",
    "small_download_urls",
    "alternative_download_urls",
    "upload_urls",
    "small_upload_urls",
    "alternative_upload_urls",
)


def endpoints_from_config(config: Optional[Dict[str, Any]] = None) -> Endpoints:
    """Build an ``Endpoints`` registry, applying any overrides in *config*."""
    if not config:
        return Endpoints()

    overrides: Dict[str, Any] = {}
    for key in _URL_KEYS:
        value = config.get(key)
        if isinstance(value, list) and value:
            overrides[key] = tuple(str(v) for v in value)

    servers = config.get("test_servers")
    if isinstance(servers, list) and servers:
        overrides["test_servers"] = servers_from_dicts(
            [s for s in servers if isinstance(s, dict)]
        )

    if "tcp_probe_port" in config:
        overrides["tcp_probe_port"] = int(config["tcp_probe_port"])

    return Endpoints(**overrides)


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def resolve_log_level(cli_level: Optional[str], config: Dict[str, Any]) -> str:
    """CLI flag, then environment, then config file."""
    level = cli_level or os.environ.get(LOG_LEVEL_ENV) or config.get("log_level") or "WARNING"
    return str(level).upper()


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()
