from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

from .record import DEFAULT_FETCH_INTERVAL, DEFAULT_SCORE, FETCH_INTERVAL_KEY, SCORE_KEY, OverrideKeys


STORAGE_BACKENDS = {"memory", "file"}

T = TypeVar("T")


class ConfigError(Exception):
    """Raised when the CrawlDB configuration file is missing or malformed."""


def load_yaml_config(path: str) -> Dict[str, Any]:
    """Read a CrawlDB configuration file.

    Raises:
        ConfigError: if the file is missing, is not valid YAML, or its root
            is not a mapping
    """
    config_path = Path(path).expanduser()
    if not config_path.exists():
        raise ConfigError(f"CrawlDB configuration not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: configuration root must be a mapping")
    return data


def build_section(config: Dict[str, Any], section: str, section_cls: Type[T]) -> T:
    """Build one configuration section dataclass from its mapping.

    A missing or empty section gives the defaults.

    Raises:
        ConfigError: if the section is not a mapping or has unknown keys
    """
    value = config.get(section)
    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")

    unknown = sorted(str(k) for k in set(value) - {f.name for f in fields(section_cls)})
    if unknown:
        raise ConfigError(f"Unknown key(s) in section '{section}': {', '.join(unknown)}")
    return section_cls(**value)


@dataclass
class InjectorSettings:
    default_score: float = DEFAULT_SCORE
    default_fetch_interval: int = DEFAULT_FETCH_INTERVAL
    score_key: str = SCORE_KEY
    fetch_interval_key: str = FETCH_INTERVAL_KEY
    max_redirects: int = 20

    def __post_init__(self):
        if self.default_fetch_interval < 0:
            raise ValueError("injector.default_fetch_interval must be >= 0")
        if self.max_redirects < 1:
            raise ValueError("injector.max_redirects must be >= 1")
        if not self.score_key or not self.fetch_interval_key:
            raise ValueError("injector override keys cannot be empty")
        if self.score_key == self.fetch_interval_key:
            raise ValueError("injector.score_key and injector.fetch_interval_key must differ")

    @property
    def override_keys(self) -> OverrideKeys:
        return OverrideKeys(score=self.score_key, fetch_interval=self.fetch_interval_key)


@dataclass
class StorageConfig:
    backend: str = "memory"
    path: Optional[str] = None
    compress: bool = False

    def __post_init__(self):
        if self.backend not in STORAGE_BACKENDS:
            raise ValueError(f"storage.backend must be one of: {', '.join(sorted(STORAGE_BACKENDS))}")
        if self.backend == "file" and not self.path:
            raise ValueError("storage.path is required for the file backend")


@dataclass
class LogsConfig:
    log_file: Optional[str] = "logs/injector.log"
    log_level: str = "INFO"


@dataclass
class CrawlDbConfig:
    crawl_id: str = ""
    workspace: str = "."
    injector: InjectorSettings = field(default_factory=InjectorSettings)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logs: LogsConfig = field(default_factory=LogsConfig)

    def __post_init__(self):
        self.crawl_id = (self.crawl_id or "").strip()
        if any(ch in self.crawl_id for ch in "/\\"):
            raise ValueError("crawl_id cannot contain path separators")

    def get_workspace_path(self) -> Path:
        return Path(self.workspace).resolve()

    def resolve(self, path: str) -> Path:
        """Resolve a configured path relative to the workspace."""
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.get_workspace_path() / p

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrawlDbConfig":
        return cls(
            crawl_id=data.get("crawl_id", "") or "",
            workspace=data.get("workspace", ".") or ".",
            injector=build_section(data, "injector", InjectorSettings),
            storage=build_section(data, "storage", StorageConfig),
            logs=build_section(data, "logs", LogsConfig),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "CrawlDbConfig":
        return cls.from_dict(load_yaml_config(config_path))
