"""
splitstore_agent.config
AUTHOR: carter-vin

Agent configuration: built once at startup, never mutated

Contract:
- interval accepts Go-style duration strings ("10m", "1h30m", "500ms")
- repo_path must be an existing, readable directory
- metrics_endpoint is host:port (":8080" binds all interfaces)
- metrics_path is an absolute URL path
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from splitstore_agent.server import parse_address

DEFAULT_INTERVAL = "10m"
DEFAULT_METRICS_ENDPOINT = ":8080"
DEFAULT_METRICS_PATH = "/metrics"

# Seconds per unit, same unit set as Go's time.ParseDuration
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(ValueError):
    """Invalid startup configuration; the agent must not start."""


@dataclass(frozen=True)
class AgentConfig:
    """
    Startup configuration
    - interval_s: tick period in seconds (> 0)
    - repo_path: root holding chain/ and splitstore/
    """

    interval_s: float
    repo_path: Path
    metrics_endpoint: str = DEFAULT_METRICS_ENDPOINT
    metrics_path: str = DEFAULT_METRICS_PATH


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration string into seconds

    "1h30m" -> 5400.0, "1.5s" -> 1.5, "0" -> 0.0
    """
    raw = text.strip()
    if not raw:
        raise ConfigError("invalid duration: empty string")

    sign = 1.0
    body = raw
    if body[0] in "+-":
        if body[0] == "-":
            sign = -1.0
        body = body[1:]

    if body == "0":
        return 0.0
    if not body:
        raise ConfigError(f"invalid duration: {text!r}")

    total = 0.0
    pos = 0
    while pos < len(body):
        match = _COMPONENT_RE.match(body, pos)
        if match is None:
            raise ConfigError(f"invalid duration: {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    return sign * total


def build_config(
    *,
    interval: str,
    repo_path: str | None,
    metrics_endpoint: str = DEFAULT_METRICS_ENDPOINT,
    metrics_path: str = DEFAULT_METRICS_PATH,
) -> AgentConfig:
    """
    Validate raw options and build the immutable config

    Raises ConfigError on the first invalid field.
    """
    interval_s = parse_duration(interval)
    if interval_s <= 0:
        raise ConfigError(f"interval must be positive, got {interval!r}")

    if not repo_path:
        raise ConfigError("repo-path is required")
    root = Path(repo_path)
    if not root.is_dir():
        raise ConfigError(f"repo-path is not a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise ConfigError(f"repo-path is not readable: {root}")

    try:
        parse_address(metrics_endpoint)
    except ValueError as e:
        raise ConfigError(f"metrics-endpoint: {e}") from e

    if not metrics_path.startswith("/"):
        raise ConfigError(f"metrics-path must start with '/', got {metrics_path!r}")

    return AgentConfig(
        interval_s=interval_s,
        repo_path=root,
        metrics_endpoint=metrics_endpoint,
        metrics_path=metrics_path,
    )
