"""Load and validate TriggerBrew configuration from YAML."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_YAML = """\
app_name: "{name}"

database:
  path: "data/triggerbrew.db"

server:
  host: "127.0.0.1"
  port: 8430

triggers:
  # Minimum gap between two scheduled runs of the same agent.
  default_interval_minutes: 60

runner:
  # Endpoint that executes an agent (model + prompt + inputs).
  url: ""
  timeout_seconds: 30
  max_attempts: 3
  backoff_seconds: 1.0

auth:
  enabled: false
  tokens: []
"""


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _get_required(data: dict, key: str, context: str = "config") -> Any:
    """Look up a dotted *key* in *data*, raising ValueError when missing."""
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            raise ValueError(f"Missing required key '{key}' in {context}")
        current = current[part]
    return current


def _validate_range(
    value: Any, name: str, minimum: float = 1, maximum: float | None = None,
) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
        raise ValueError(f"Config '{name}' must be >= {minimum}, got {value!r}")
    if maximum is not None and value > maximum:
        raise ValueError(f"Config '{name}' must be <= {maximum}, got {value!r}")


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class RunnerConfig:
    """Where and how fired agents are executed."""

    url: str = ""
    timeout_seconds: float = 30
    max_attempts: int = 3
    backoff_seconds: float = 1.0


@dataclass
class AuthConfig:
    enabled: bool = False
    tokens: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    app_name: str
    db_path: str
    host: str = "127.0.0.1"
    port: int = 8430
    default_interval_minutes: int = 60
    runner: RunnerConfig = field(default_factory=RunnerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)


def parse_config(data: dict | None, context: str = "config") -> AppConfig:
    """Build an :class:`AppConfig` from already-parsed YAML *data*."""
    if not isinstance(data, dict):
        raise ValueError(f"{context} must be a mapping")

    server = data.get("server", {}) or {}
    triggers = data.get("triggers", {}) or {}
    runner_raw = data.get("runner", {}) or {}
    auth_raw = data.get("auth", {}) or {}

    db_path = os.environ.get("TRIGGERBREW_DB_PATH") or _get_required(
        data, "database.path", context
    )
    runner = RunnerConfig(
        url=os.environ.get("TRIGGERBREW_RUNNER_URL") or runner_raw.get("url", "") or "",
        timeout_seconds=runner_raw.get("timeout_seconds", 30),
        max_attempts=runner_raw.get("max_attempts", 3),
        backoff_seconds=runner_raw.get("backoff_seconds", 1.0),
    )
    auth = AuthConfig(
        enabled=bool(auth_raw.get("enabled", False)),
        tokens=[str(t) for t in auth_raw.get("tokens", []) or []],
    )
    if auth.enabled and not auth.tokens:
        logger.warning("Auth is enabled in %s but no tokens are configured", context)

    config = AppConfig(
        app_name=_get_required(data, "app_name", context),
        db_path=str(Path(db_path).expanduser()) if db_path != ":memory:" else db_path,
        host=server.get("host", "127.0.0.1"),
        port=server.get("port", 8430),
        default_interval_minutes=triggers.get("default_interval_minutes", 60),
        runner=runner,
        auth=auth,
    )

    _validate_range(config.port, "server.port", 1, 65535)
    _validate_range(config.default_interval_minutes, "triggers.default_interval_minutes", 1)
    _validate_range(config.runner.timeout_seconds, "runner.timeout_seconds", 1)
    _validate_range(config.runner.max_attempts, "runner.max_attempts", 1, 10)
    _validate_range(config.runner.backoff_seconds, "runner.backoff_seconds", 0)
    return config


def load_config(path: Path) -> AppConfig:
    """Load configuration from a YAML file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If a required key is missing or a value is out of range.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f)
    return parse_config(data, context=path.name)


def default_config(name: str = "TriggerBrew") -> AppConfig:
    return parse_config(yaml.safe_load(DEFAULT_CONFIG_YAML.format(name=name)))
