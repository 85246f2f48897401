"""
Configuration management for tonecurve.

Engine defaults can be stored in a JSON file and overridden with
environment variables prefixed with TONECURVE_.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any

from tonecurve.core.types import (
    Acceleration,
    ProcessingOptions,
)

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """
    Defaults for a CurveEngine.

    Example:
        config = EngineConfig.load("tonecurve.json")
        engine = CurveEngine(config)
    """
    lut_size: int | None = None
    acceleration: str = "parallel"
    thread_count: int = 0
    quality: float = 1.0
    rows_per_batch: int = 64
    use_optimizer: bool = False
    optimizer_timeout: float = 2.0
    cache_size: int = 32

    @classmethod
    def load(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        return load_config(path)

    def save(self, path: str | Path) -> None:
        """Save configuration to a JSON file."""
        save_config(self, path)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_options(self) -> ProcessingOptions:
        """ProcessingOptions carrying these defaults."""
        return ProcessingOptions(
            acceleration=Acceleration(self.acceleration),
            thread_count=self.thread_count,
            quality=self.quality,
            lut_size=self.lut_size,
            rows_per_batch=self.rows_per_batch,
        )

    def with_env(self, prefix: str = "TONECURVE_") -> "EngineConfig":
        """Return a copy with environment overrides applied."""
        data = self.to_dict()
        data.update(_coerce(get_env_config(prefix)))
        return config_from_dict(data)


def config_from_dict(data: dict[str, Any]) -> EngineConfig:
    """
    Build an EngineConfig from a dictionary, ignoring unknown keys.

    Raises:
        ValueError: If the acceleration mode is unknown
    """
    known = {f.name for f in fields(EngineConfig)}
    unknown = set(data) - known
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", sorted(unknown))
    config = EngineConfig(**{k: v for k, v in data.items() if k in known})
    # Validate eagerly so a bad file fails at load time
    Acceleration(config.acceleration)
    return config


def load_config(path: str | Path) -> EngineConfig:
    """
    Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Parsed EngineConfig

    Raises:
        FileNotFoundError: If the config file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    return config_from_dict(data.get("engine", data))


def save_config(config: EngineConfig, path: str | Path) -> None:
    """Save configuration to a JSON file."""
    path = Path(path)
    with open(path, "w") as f:
        json.dump({"engine": config.to_dict()}, f, indent=2)


def get_env_config(prefix: str = "TONECURVE_") -> dict[str, Any]:
    """
    Get configuration from environment variables.

    Variable names are converted to lowercase with the prefix removed.

    Example:
        TONECURVE_THREAD_COUNT=4 -> {"thread_count": "4"}
    """
    config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            config[key[len(prefix):].lower()] = value
    return config


def _coerce(raw: dict[str, str]) -> dict[str, Any]:
    """Convert environment strings to the field types of EngineConfig."""
    result: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("thread_count", "rows_per_batch", "cache_size"):
            result[key] = int(value)
        elif key == "lut_size":
            result[key] = int(value) if value.lower() not in ("", "none") else None
        elif key in ("quality", "optimizer_timeout"):
            result[key] = float(value)
        elif key == "use_optimizer":
            result[key] = value.lower() in ("true", "yes", "1", "on")
        else:
            result[key] = value
    return result
