"""Runtime configuration: defaults, YAML/JSON files and environment overrides."""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import ConfigurationError

DEFAULT_STS_PATH = "nist/sts-2.1.2/sts-2.1.2/assess"

# environment variable -> config field
ENV_OVERRIDES = {
    "HOST": "host",
    "PORT": "port",
    "RNGVALIDATOR_STS_PATH": "sts_path",
    "RNGVALIDATOR_STS_HOME": "sts_home",
    "RNGVALIDATOR_WORK_DIR": "work_dir",
    "RNGVALIDATOR_TIMEOUT": "timeout",
    "RNGVALIDATOR_SUITE_ENABLED": "suite_enabled",
    "RNGVALIDATOR_LOG_LEVEL": "log_level",
    "RNGVALIDATOR_LOG_PATH": "log_path",
    "RNGVALIDATOR_DEBUG_DIR": "debug_dir",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class ValidatorConfig:
    """Settings shared by the engine, the HTTP server and the CLI."""

    host: str = "0.0.0.0"
    port: int = 3000
    sts_path: str = DEFAULT_STS_PATH
    sts_home: Optional[str] = None
    work_dir: Optional[str] = None
    timeout: float = 300.0
    suite_enabled: bool = True
    alpha: float = 0.01
    validity_threshold: float = 0.8
    log_level: str = "INFO"
    log_path: Optional[str] = None
    debug_dir: str = "debug"

    def __post_init__(self):
        self.port = _coerce(int, "port", self.port)
        self.timeout = _coerce(float, "timeout", self.timeout)
        self.alpha = _coerce(float, "alpha", self.alpha)
        self.validity_threshold = _coerce(float, "validity_threshold", self.validity_threshold)
        self.suite_enabled = _as_bool("suite_enabled", self.suite_enabled)
        self.log_level = str(self.log_level).upper()

        if not (0 < self.port < 65536):
            raise ConfigurationError(f"port must be between 1 and 65535, got {self.port}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if not (0.0 < self.alpha < 1.0):
            raise ConfigurationError(f"alpha must be between 0 and 1, got {self.alpha}")
        if not (0.0 <= self.validity_threshold <= 1.0):
            raise ConfigurationError(f"validity_threshold must be between 0 and 1, got {self.validity_threshold}")
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[Union[str, Path]] = None, env: Optional[Mapping[str, str]] = None,
                overrides: Optional[Mapping[str, Any]] = None) -> ValidatorConfig:
    """Build a ValidatorConfig from an optional file, then environment overrides.

    YAML is used for ``.yaml``/``.yml`` files, JSON otherwise. ``env``
    defaults to ``os.environ``; unset or empty variables are ignored.
    ``overrides`` (command line options) win over both; ``None`` values are
    skipped.
    """
    values: Dict[str, Any] = {}
    if path:
        values.update(read_config_file(path))
    if env is None:
        env = os.environ
    for var, key in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is not None and raw.strip() != "":
            values[key] = raw.strip()
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    return from_mapping(values)


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    _, ext = os.path.splitext(str(path).lower())
    try:
        with open(path, "r", encoding="utf-8") as cf:
            if ext in (".yaml", ".yml"):
                data = yaml.safe_load(cf) or {}
            else:
                data = json.load(cf) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def from_mapping(values: Mapping[str, Any]) -> ValidatorConfig:
    known = {f.name for f in fields(ValidatorConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
    return ValidatorConfig(**dict(values))


def _coerce(kind, name: str, value):
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e


def _as_bool(name: str, value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")
