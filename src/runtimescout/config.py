"""Application configuration for the runtimescout command line.

Values are layered: dataclass defaults, then a JSON config file, then
``RUNTIMESCOUT_*`` environment variables. :meth:`ApplicationConfig.build`
turns the raw string hints into native options and rejects invalid
combinations.

Example config file::

    {
        "output": "json",
        "scope": "all-layers",
        "workers": 8,
        "log": {"level": "info", "structured": false, "colors": true, "file": null}
    }
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple, Union

from .core.cataloger import DEFAULT_WORKERS
from .core.errors import ConfigurationError
from .source.resolver import Scope

APPLICATION_NAME = "runtimescout"
ENV_PREFIX = "RUNTIMESCOUT_"
OUTPUT_FORMATS: Tuple[str, ...] = ("table", "json")
LOCAL_CONFIG_NAME = ".runtimescout.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}
_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _parse_bool(value: Any, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_int(value: Any, *, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


@dataclass
class LoggingConfig:
    """Logging options available through the config file or environment."""

    structured: bool = False
    colors: bool = False
    level: str = ""
    file: Optional[Path] = None
    level_opt: int = logging.WARNING

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "LoggingConfig":
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise ConfigurationError("'log' must be an object")
        log_file = payload.get("file")
        return cls(
            structured=_parse_bool(payload.get("structured", False), name="log.structured"),
            colors=_parse_bool(payload.get("colors", False), name="log.colors"),
            level=str(payload.get("level") or ""),
            file=Path(os.path.expandvars(str(log_file))).expanduser() if log_file else None,
        )


@dataclass
class ApplicationConfig:
    """Resolved application settings.

    ``output``, ``scope`` and ``log.level`` hold the user supplied hints;
    ``scope_opt`` and ``log.level_opt`` are filled in by :meth:`build`.
    ``verbosity`` only comes from the command line.
    """

    config_path: Optional[Path] = None
    output: str = "table"
    scope: str = Scope.SQUASHED.value
    scope_opt: Scope = Scope.SQUASHED
    quiet: bool = False
    workers: int = DEFAULT_WORKERS
    log: LoggingConfig = field(default_factory=LoggingConfig)
    verbosity: int = 0

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "ApplicationConfig":
        config = cls()
        config.update(payload or {})
        return config

    def update(self, payload: Mapping[str, Any]) -> None:
        """Overlay values from a config file mapping."""

        if not isinstance(payload, Mapping):
            raise ConfigurationError("configuration payload must be a JSON object")
        if "output" in payload:
            self.output = str(payload["output"])
        if "scope" in payload:
            self.scope = str(payload["scope"])
        if "quiet" in payload:
            self.quiet = _parse_bool(payload["quiet"], name="quiet")
        if "workers" in payload:
            self.workers = _parse_int(payload["workers"], name="workers")
        if "log" in payload:
            self.log = LoggingConfig.from_dict(payload["log"])

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        """Overlay ``RUNTIMESCOUT_*`` environment variables."""

        def _get(key: str) -> Optional[str]:
            return environ.get(ENV_PREFIX + key)

        if _get("OUTPUT") is not None:
            self.output = str(_get("OUTPUT"))
        if _get("SCOPE") is not None:
            self.scope = str(_get("SCOPE"))
        if _get("QUIET") is not None:
            self.quiet = _parse_bool(_get("QUIET"), name=ENV_PREFIX + "QUIET")
        if _get("WORKERS") is not None:
            self.workers = _parse_int(_get("WORKERS"), name=ENV_PREFIX + "WORKERS")
        if _get("LOG_LEVEL") is not None:
            self.log.level = str(_get("LOG_LEVEL"))
        if _get("LOG_STRUCTURED") is not None:
            self.log.structured = _parse_bool(
                _get("LOG_STRUCTURED"), name=ENV_PREFIX + "LOG_STRUCTURED"
            )
        if _get("LOG_COLORS") is not None:
            self.log.colors = _parse_bool(_get("LOG_COLORS"), name=ENV_PREFIX + "LOG_COLORS")
        if _get("LOG_FILE"):
            self.log.file = Path(str(_get("LOG_FILE"))).expanduser()

    def build(self) -> "ApplicationConfig":
        """Validate hints and derive native options in place.

        Raises:
            ConfigurationError: For unknown output formats, scopes or log
                levels, a non-positive worker count, or an explicit log level
                combined with ``-v``.
        """

        output = self.output.strip().lower()
        if output not in OUTPUT_FORMATS:
            raise ConfigurationError(f"bad --output value {self.output!r}")
        self.output = output

        self.scope_opt = Scope.parse(self.scope)

        if self.workers < 1:
            raise ConfigurationError("workers must be a positive integer")

        if self.quiet:
            # quiet wins over every other logging option, file logging included
            self.log.level_opt = logging.CRITICAL
        elif self.log.level:
            if self.verbosity > 0:
                raise ConfigurationError(
                    "cannot explicitly set log level (config file or env var)"
                    " and use -v flag together"
                )
            level = _LEVELS.get(self.log.level.strip().lower())
            if level is None:
                raise ConfigurationError(f"bad log level configured ({self.log.level!r})")
            self.log.level_opt = level
        elif self.verbosity >= 2:
            self.log.level_opt = logging.DEBUG
        elif self.verbosity == 1:
            self.log.level_opt = logging.INFO
        else:
            self.log.level_opt = logging.WARNING
        return self


def _discover_config_path(environ: Mapping[str, str]) -> Optional[Path]:
    local = Path.cwd() / LOCAL_CONFIG_NAME
    if local.is_file():
        return local
    xdg_home = environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_home) if xdg_home else Path("~/.config").expanduser()
    candidate = base / APPLICATION_NAME / "config.json"
    if candidate.is_file():
        return candidate
    return None


def _read_config_file(path: Path) -> Mapping[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"unable to read config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"unable to parse config {path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"config {path} must contain a JSON object")
    return payload


def load_config(
    path: Optional[Union[str, Path]] = None,
    *,
    verbosity: int = 0,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ApplicationConfig:
    """Load, layer and validate the application configuration.

    Args:
        path: Explicit config file. It must exist when given; otherwise the
            local ``.runtimescout.json`` or the user config directory is
            used when present.
        verbosity: ``-v`` count from the command line.
        environ: Environment mapping, ``os.environ`` by default.
        overrides: Values from command line flags, applied last.
    """

    env = os.environ if environ is None else environ
    config = ApplicationConfig(verbosity=verbosity)

    config_path: Optional[Path]
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.is_file():
            raise ConfigurationError(f"config file does not exist: {config_path}")
    else:
        config_path = _discover_config_path(env)
    if config_path is not None:
        config.update(_read_config_file(config_path))
        config.config_path = config_path

    config.apply_environment(env)
    if overrides:
        config.update({key: value for key, value in overrides.items() if value is not None})
    return config.build()


__all__ = [
    "ApplicationConfig",
    "ENV_PREFIX",
    "LoggingConfig",
    "OUTPUT_FORMATS",
    "load_config",
]
