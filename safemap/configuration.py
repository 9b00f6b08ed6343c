"""Typed helpers for parsing safemap configuration dictionaries."""

from __future__ import annotations

import os

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from safemap.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path("configs/default_config.yaml")
DEFAULT_CACHE_DIR = Path(".safemap_cache")
CACHE_DIR_ENV = "SAFEMAP_CACHE_DIR"
PARALLEL_BACKENDS = ("thread", "process")


def _ensure_path(
    value: Optional[str | Path],
    *,
    config_root: Path,
    default: Optional[Path] = None,
) -> Path:
    if value is None:
        if default is None:
            raise ConfigurationError("Path value is required")
        return default
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (config_root / path).resolve()
    return path


def _positive_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer: {value!r}") from exc
    if isinstance(value, bool) or number < 1:
        raise ConfigurationError(f"{name} must be a positive integer: {value!r}")
    return number


def _seconds(name: str, value: Any, *, allow_zero: bool) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number: {value!r}") from exc
    if number < 0 or (number == 0 and not allow_zero):
        bound = "non-negative" if allow_zero else "positive"
        raise ConfigurationError(f"{name} must be {bound}: {value!r}")
    return number


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    raise ConfigurationError(f"{name} must be a boolean: {value!r}")


@dataclass(frozen=True)
class EngineSettings:
    """Explicit configuration passed into every engine entry point."""

    batch_size: int = 50
    retry_attempts: int = 3
    auto_recover: bool = True
    cache_dir: Path = DEFAULT_CACHE_DIR
    retry_delay: float = 1.0
    lock_timeout: float = 60.0
    lock_poll_interval: float = 0.1
    parallel_backend: str = "thread"
    max_workers: Optional[int] = None
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "batch_size", _positive_int("batch_size", self.batch_size)
        )
        object.__setattr__(
            self,
            "retry_attempts",
            _positive_int("retry_attempts", self.retry_attempts),
        )
        object.__setattr__(
            self, "auto_recover", _coerce_bool("auto_recover", self.auto_recover)
        )
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        object.__setattr__(
            self,
            "retry_delay",
            _seconds("retry_delay", self.retry_delay, allow_zero=True),
        )
        object.__setattr__(
            self,
            "lock_timeout",
            _seconds("lock_timeout", self.lock_timeout, allow_zero=False),
        )
        object.__setattr__(
            self,
            "lock_poll_interval",
            _seconds(
                "lock_poll_interval", self.lock_poll_interval, allow_zero=False
            ),
        )
        if self.parallel_backend not in PARALLEL_BACKENDS:
            raise ConfigurationError(
                f"parallel_backend must be one of {PARALLEL_BACKENDS}: "
                f"{self.parallel_backend!r}"
            )
        if self.max_workers is not None:
            object.__setattr__(
                self,
                "max_workers",
                _positive_int("max_workers", self.max_workers),
            )
        if self.log_file is not None:
            object.__setattr__(self, "log_file", Path(self.log_file))

    def replace(self, **changes: Any) -> "EngineSettings":
        """Return a copy with ``changes`` applied (validated again)."""

        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "retry_attempts": self.retry_attempts,
            "auto_recover": self.auto_recover,
            "cache_dir": str(self.cache_dir),
            "retry_delay": self.retry_delay,
            "lock_timeout": self.lock_timeout,
            "lock_poll_interval": self.lock_poll_interval,
            "parallel_backend": self.parallel_backend,
            "max_workers": self.max_workers,
            "log_file": str(self.log_file) if self.log_file else None,
        }


def build_engine_settings(
    config: Dict[str, Any], *, config_root: Path
) -> EngineSettings:
    """Build settings from the ``engine`` section of a config mapping."""

    engine_cfg = config.get("engine") or {}
    if not isinstance(engine_cfg, dict):
        raise ConfigurationError("'engine' section must be a mapping")
    defaults = EngineSettings()
    cache_dir = _ensure_path(
        engine_cfg.get("cache_dir"),
        config_root=config_root,
        default=defaults.cache_dir,
    )
    log_file_value = engine_cfg.get("log_file")
    log_file = (
        _ensure_path(log_file_value, config_root=config_root)
        if log_file_value
        else None
    )
    return EngineSettings(
        batch_size=engine_cfg.get("batch_size", defaults.batch_size),
        retry_attempts=engine_cfg.get(
            "retry_attempts", defaults.retry_attempts
        ),
        auto_recover=engine_cfg.get("auto_recover", defaults.auto_recover),
        cache_dir=cache_dir,
        retry_delay=engine_cfg.get("retry_delay", defaults.retry_delay),
        lock_timeout=engine_cfg.get("lock_timeout", defaults.lock_timeout),
        lock_poll_interval=engine_cfg.get(
            "lock_poll_interval", defaults.lock_poll_interval
        ),
        parallel_backend=str(
            engine_cfg.get("parallel_backend", defaults.parallel_backend)
        ),
        max_workers=engine_cfg.get("max_workers"),
        log_file=log_file,
    )


def load_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file '{config_path}' not found.")
    data = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file '{config_path}' must contain a mapping"
        )
    return data


def load_settings(
    config_path: Optional[Path] = None,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> EngineSettings:
    """Load settings from YAML, the environment and explicit overrides.

    A missing file is only an error when ``config_path`` was given explicitly;
    the default path falls back to built-in defaults.
    """

    if config_path is not None:
        path = Path(config_path)
        config = load_config(path)
        config_root = path.resolve().parent
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config(DEFAULT_CONFIG_PATH)
        config_root = DEFAULT_CONFIG_PATH.resolve().parent
    else:
        config = {}
        config_root = Path.cwd()
    settings = build_engine_settings(config, config_root=config_root)
    env_cache_dir = os.getenv(CACHE_DIR_ENV)
    if env_cache_dir:
        settings = settings.replace(cache_dir=Path(env_cache_dir).expanduser())
    if overrides:
        changes = {
            key: value for key, value in overrides.items() if value is not None
        }
        if changes:
            settings = settings.replace(**changes)
    return settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "build_engine_settings",
    "load_config",
    "load_settings",
]
