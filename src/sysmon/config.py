"""Configuration for sysmon."""

from dataclasses import dataclass, field
from pathlib import Path

import psutil
import tomlkit

MIN_INTERVAL = 0.1


class ConfigError(ValueError):
    """Configuration file could not be read or holds an invalid value."""


@dataclass
class SamplingConfig:
    """Tick cadence and data source."""

    interval: float = 2.0  # Seconds the input read waits before a tick
    warmup: float = 0.1  # Pause after the throwaway startup sample
    procfs_root: str = psutil.PROCFS_PATH


@dataclass
class DisplayConfig:
    """Layout settings."""

    bar_width: int = 20  # Cells in the CPU and memory bars
    pid_capacity: int = 19  # Max digits accepted by the kill prompt


@dataclass
class LoggingConfig:
    """Log file settings."""

    level: str = "WARNING"
    max_bytes: int = 1024 * 1024
    backup_count: int = 2


def _get(data: dict, key: str, default, kind: type):
    value = data.get(key, default)
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        value = float(value)
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ConfigError(f"{key} must be {kind.__name__}, got {value!r}")
    return value


@dataclass
class Config:
    """Main configuration container."""

    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Clamp timings and reject unusable layout values."""
        self.sampling.interval = max(MIN_INTERVAL, self.sampling.interval)
        self.sampling.warmup = max(0.0, self.sampling.warmup)
        if self.display.bar_width < 1:
            raise ConfigError("bar_width must be at least 1")
        if self.display.pid_capacity < 1:
            raise ConfigError("pid_capacity must be at least 1")

    @property
    def config_dir(self) -> Path:
        """Directory holding the config file."""
        return Path.home() / ".config" / "sysmon"

    @property
    def config_path(self) -> Path:
        """Default config file location."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """Directory for the log file."""
        return Path.home() / ".local" / "state" / "sysmon"

    @property
    def log_path(self) -> Path:
        """Rotating log file location."""
        return self.state_dir / "sysmon.log"

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from a TOML file, using defaults for anything missing."""
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except (OSError, tomlkit.exceptions.TOMLKitError) as e:
            raise ConfigError(f"Failed to read config file {path}: {e}") from e

        sampling = data.get("sampling", {})
        display = data.get("display", {})
        logging = data.get("logging", {})
        sd, dd, ld = defaults.sampling, defaults.display, defaults.logging

        return cls(
            sampling=SamplingConfig(
                interval=_get(sampling, "interval", sd.interval, float),
                warmup=_get(sampling, "warmup", sd.warmup, float),
                procfs_root=_get(sampling, "procfs_root", sd.procfs_root, str),
            ),
            display=DisplayConfig(
                bar_width=_get(display, "bar_width", dd.bar_width, int),
                pid_capacity=_get(display, "pid_capacity", dd.pid_capacity, int),
            ),
            logging=LoggingConfig(
                level=_get(logging, "level", ld.level, str).upper(),
                max_bytes=_get(logging, "max_bytes", ld.max_bytes, int),
                backup_count=_get(logging, "backup_count", ld.backup_count, int),
            ),
        )

    def save(self, path: Path | None = None) -> None:
        """Write the config as TOML."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("sampling", "display", "logging"):
            table = tomlkit.table()
            for key, value in vars(getattr(self, name)).items():
                table.add(key, value)
            doc.add(name, table)
        path.write_text(tomlkit.dumps(doc))
