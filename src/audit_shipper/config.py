"""Configuration loading for the audit shipper."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping
import os

import yaml


def default_home() -> Path:
    """Get the audit shipper home directory (~/.audit-shipper)."""
    return Path.home() / ".audit-shipper"


def get_config_path() -> Path:
    return default_home() / "config.yaml"


@dataclass(frozen=True)
class ShipperConfig:
    """
    Audit shipper settings.

    Fields:
    - batch_threshold: Queue length that triggers an immediate flush
    - flush_interval: Seconds between periodic flushes
    - page_size: Default page size for log queries
    - state_dir: Directory holding the offline queue snapshot
    - sink_url: PostgREST base URL (None selects the in-memory sink)
    - sink_api_key: PostgREST API key
    - table: Target table name
    - request_timeout: HTTP transport timeout in seconds
    """
    batch_threshold: int = 10
    flush_interval: float = 30.0
    page_size: int = 50
    state_dir: Path = field(default_factory=lambda: default_home() / "state")
    sink_url: str | None = None
    sink_api_key: str = ""
    table: str = "audit_logs"
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.batch_threshold < 1:
            raise ValueError(f"batch_threshold must be at least 1, got {self.batch_threshold}")
        if self.flush_interval <= 0:
            raise ValueError(f"flush_interval must be positive, got {self.flush_interval}")
        if self.page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {self.page_size}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")


# Environment variable -> (field, parser)
_ENV_OVERRIDES = {
    "AUDIT_SHIPPER_SINK_URL": ("sink_url", str),
    "AUDIT_SHIPPER_API_KEY": ("sink_api_key", str),
    "AUDIT_SHIPPER_BATCH_THRESHOLD": ("batch_threshold", int),
    "AUDIT_SHIPPER_FLUSH_INTERVAL": ("flush_interval", float),
    "AUDIT_SHIPPER_STATE_DIR": ("state_dir", Path),
}

_FIELD_TYPES = {
    "batch_threshold": int,
    "flush_interval": float,
    "page_size": int,
    "state_dir": lambda value: Path(str(value)).expanduser(),
    "sink_url": str,
    "sink_api_key": str,
    "table": str,
    "request_timeout": float,
}


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from disk, returning an empty mapping if missing."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def _coerce(values: Mapping[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(ShipperConfig)}
    coerced: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            raise ValueError(f"Unknown config key: {key}")
        if value is None:
            coerced[key] = None
            continue
        try:
            coerced[key] = _FIELD_TYPES[key](value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid value for {key}: {value!r}") from e
    return coerced


def load_config(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ShipperConfig:
    """
    Load configuration.

    Precedence (lowest to highest): defaults, YAML file, environment.

    Args:
        path: YAML file (defaults to ~/.audit-shipper/config.yaml; missing is fine)
        env: Environment mapping (defaults to os.environ)

    Raises:
        ValueError: If the file is not a mapping, a key is unknown, or a
            value is out of range
    """
    env = os.environ if env is None else env
    config = replace(ShipperConfig(), **_coerce(_load_yaml(path or get_config_path())))

    overrides: dict[str, Any] = {}
    for var, (name, parse) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[name] = parse(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from e

    return replace(config, **overrides) if overrides else config
