"""Configuration loading and management."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from chat_central.logging import DEFAULT_LOG_DIR


@dataclass
class PlatformConfig:
    enabled: bool = True


@dataclass
class LoggingConfig:
    log_dir: Path = field(default_factory=lambda: DEFAULT_LOG_DIR)
    level: str = "INFO"

    @property
    def level_number(self) -> int:
        """Numeric logging level, INFO when the name is unknown."""
        value = getattr(logging, self.level.upper(), None)
        return value if isinstance(value, int) else logging.INFO


@dataclass
class Config:
    platforms: dict[str, PlatformConfig] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def is_enabled(self, platform: str) -> bool:
        """Platforms absent from the config are enabled."""
        platform_config = self.platforms.get(platform)
        return platform_config is None or platform_config.enabled


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "chat-central" / "config.yaml",
            Path("/etc/chat-central/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    platforms = {}
    for name, platform_data in (data.get("platforms") or {}).items():
        platform_data = platform_data or {}
        platforms[name] = PlatformConfig(enabled=bool(platform_data.get("enabled", True)))

    log_dir = data.get("log_dir")
    logging_config = LoggingConfig(
        log_dir=expand_path(log_dir) if log_dir else DEFAULT_LOG_DIR,
        level=expand_env_var(str(data.get("log_level", "INFO"))),
    )

    return Config(platforms=platforms, logging=logging_config)
