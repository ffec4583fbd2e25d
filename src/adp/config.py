"""Configuration management for adp."""

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .constants import (
    ADB_TIMEOUT,
    BOOT_ATTEMPTS,
    BOOT_INTERVAL,
    ENUMERATION_RETRIES,
    GRACE_PERIOD,
    MAX_POLL_INTERVAL,
    POLL_BACKOFF,
    POLL_INTERVAL,
    POLL_JITTER,
    SERIAL_ENV_VAR,
)
from .errors import ConfigError

CONFIG_FILE = "config.toml"


class AdbConfig(BaseModel):
    """Configuration for the adb executable."""

    exec: str = "adb"
    timeout: int = Field(default=ADB_TIMEOUT, gt=0)


class BootConfig(BaseModel):
    """Configuration for waiting on an acquired device to finish booting."""

    wait: bool = True
    attempts: int = Field(default=BOOT_ATTEMPTS, ge=1)
    interval: float = Field(default=BOOT_INTERVAL, ge=0)


class WaitConfig(BaseModel):
    """Configuration for the wait loop while every device is taken."""

    poll_interval: float = Field(default=POLL_INTERVAL, gt=0)
    max_interval: float = Field(default=MAX_POLL_INTERVAL, gt=0)
    backoff: float = Field(default=POLL_BACKOFF, ge=1)
    jitter: float = Field(default=POLL_JITTER, ge=0)
    enumeration_retries: int = Field(default=ENUMERATION_RETRIES, ge=0)


class RunnerConfig(BaseModel):
    """Configuration for launching the wrapped command."""

    serial_env: str = SERIAL_ENV_VAR
    grace_period: float = Field(default=GRACE_PERIOD, ge=0)


class AdpConfig(BaseModel):
    """Root configuration for adp."""

    runtime_dir: Path | None = None
    adb: AdbConfig = Field(default_factory=AdbConfig)
    boot: BootConfig = Field(default_factory=BootConfig)
    wait: WaitConfig = Field(default_factory=WaitConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)


def default_config_path() -> Path:
    """Get the per-user config file location."""
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "adp" / CONFIG_FILE


def load_config(path: Path | None = None) -> AdpConfig:
    """Load config from a TOML file.

    Args:
        path: Explicit config file. Must exist when given.

    Returns:
        Loaded configuration, or defaults if no config file exists

    Raises:
        ConfigError: If the file is missing (explicit path), unreadable or invalid
    """
    if path is None:
        path = default_config_path()
        if not path.exists():
            return AdpConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to read {path}: {e}") from e

    try:
        return AdpConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
