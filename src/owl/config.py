"""Project-wide configuration constants and config-file loading.

Central place for tuneable parameters shared across modules.
Import individual names where needed.

Example:
    >>> from owl.config import load_config
    >>> cfg = load_config("owl.toml")
    >>> cfg["http_port"]
    8080
"""

import os
import tomllib

from owl.packet import NUM_CHANNELS
from owl.telemetry import DEFAULT_PREFIX, validate_prefix

# Receive timeout in seconds for the listener loop.
RECV_TIMEOUT_S = 0.5

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

CONFIG_NAME = "owl.toml"
CONFIG_ENV = "OWL_CONFIG"
ETC_DIR = "/etc/owl"


def find_config(explicit: str | None = None) -> str | None:
    """Locate the config file, or return None to run on defaults.

    Lookup order: *explicit*, then ``$OWL_CONFIG``, then ``./owl.toml``,
    then ``/etc/owl/owl.toml``.  A path given explicitly or through the
    environment must exist; the two default locations are optional.

    Raises:
        FileNotFoundError: If an explicit or environment path is missing.
    """
    chosen = explicit or os.environ.get(CONFIG_ENV)
    if chosen:
        path = os.path.abspath(chosen)
        if not os.path.isfile(path):
            raise FileNotFoundError("config file not found: %s" % path)
        return path

    for candidate in (CONFIG_NAME, os.path.join(ETC_DIR, CONFIG_NAME)):
        if os.path.isfile(candidate):
            return os.path.abspath(candidate)
    return None


def load_config(path: str | None) -> dict:
    """Read a TOML config file and validate it.

    Every key is optional.  Top level: ``prefix`` (str, a valid
    Prometheus metric name).
    ``[telemetry]`` section: ``channel`` (int, 0-2).
    ``[http]`` section: ``host`` (str), ``port`` (int, 1-65535).

    A *path* of None returns the defaults.

    Raises:
        ValueError: If a key has the wrong type or is out of range.
    """
    raw: dict = {}
    if path is not None:
        with open(path, "rb") as f:
            raw = tomllib.load(f)

    _optional_str(raw, "prefix")
    telemetry = _section(raw, "telemetry")
    _optional_int(telemetry, "channel", "telemetry.channel")
    http = _section(raw, "http")
    _optional_str(http, "host", "http.host")
    _optional_int(http, "port", "http.port")

    result = {
        "prefix": raw.get("prefix", DEFAULT_PREFIX),
        "channel": telemetry.get("channel", 0),
        "http_host": http.get("host", DEFAULT_HOST),
        "http_port": http.get("port", DEFAULT_PORT),
    }

    validate_prefix(result["prefix"])
    if not 0 <= result["channel"] < NUM_CHANNELS:
        raise ValueError(
            "telemetry.channel must be 0-%d, got %d"
            % (NUM_CHANNELS - 1, result["channel"])
        )
    if not 1 <= result["http_port"] <= 65535:
        raise ValueError("http.port must be 1-65535, got %d" % result["http_port"])

    return result


def _section(raw: dict[str, object], name: str) -> dict:
    """Return table *name* from *raw*, or an empty dict if absent."""
    if name not in raw:
        return {}
    section = raw[name]
    if not isinstance(section, dict):
        raise ValueError("[%s] must be a table" % name)
    return section


def _optional_str(raw: dict[str, object], key: str, label: str = "") -> None:
    """Validate that *key*, if present, is a str."""
    if key in raw and not isinstance(raw[key], str):
        raise ValueError(
            "%s must be str, got %s" % (label or key, type(raw[key]).__name__)
        )


def _optional_int(raw: dict[str, object], key: str, label: str = "") -> None:
    """Validate that *key*, if present, is an int (bools rejected)."""
    if key in raw and (
        not isinstance(raw[key], int) or isinstance(raw[key], bool)
    ):
        raise ValueError(
            "%s must be int, got %s" % (label or key, type(raw[key]).__name__)
        )
