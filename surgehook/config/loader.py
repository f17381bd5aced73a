"""
Surge Hook TOML Configuration Loader

Loads ``surgehook.toml`` with environment variable overrides, following the
dataclass + from_dict + from_file pattern.

Environment variable mapping:
    [logging] level                      → SURGEHOOK_LOG_LEVEL
    [logging] file_output                → SURGEHOOK_LOG_FILE_OUTPUT
    [surge] default_max_surge_fee_percentage → SURGEHOOK_MAX_SURGE_FEE_PERCENTAGE
    [surge] default_threshold_percentage → SURGEHOOK_THRESHOLD_PERCENTAGE
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    DEFAULT_MAX_SURGE_FEE_PERCENTAGE,
    DEFAULT_SURGE_THRESHOLD_PERCENTAGE,
    LOG_LEVEL,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(f"{name} is not a number: {value!r}") from None


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = str(LOG_LEVEL)
    console_output: bool = True
    file_output: bool = False
    file: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", str(LOG_LEVEL))).upper(),
            console_output=data.get("console_output", True),
            file_output=data.get("file_output", False),
            file=data.get("file", ""),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SURGEHOOK_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("SURGEHOOK_LOG_FILE_OUTPUT"):
            self.file_output = _bool(v)


@dataclass
class PoolSurgeConfig:
    """[[surge.pools]] entry: per-pool overrides applied at registration."""
    pool: str
    threshold_percentage: Optional[Decimal] = None
    max_surge_fee_percentage: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolSurgeConfig":
        if "pool" not in data:
            raise ConfigurationError("[[surge.pools]] entry without 'pool'")
        threshold = data.get("threshold_percentage")
        max_fee = data.get("max_surge_fee_percentage")
        return cls(
            pool=str(data["pool"]),
            threshold_percentage=None if threshold is None else _decimal(threshold, "threshold_percentage"),
            max_surge_fee_percentage=None if max_fee is None else _decimal(max_fee, "max_surge_fee_percentage"),
        )


@dataclass
class SurgeConfig:
    """[surge] section."""
    default_max_surge_fee_percentage: Decimal = DEFAULT_MAX_SURGE_FEE_PERCENTAGE
    default_threshold_percentage: Decimal = DEFAULT_SURGE_THRESHOLD_PERCENTAGE
    version: str = ""
    pools: List[PoolSurgeConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurgeConfig":
        return cls(
            default_max_surge_fee_percentage=_decimal(
                data.get("default_max_surge_fee_percentage", DEFAULT_MAX_SURGE_FEE_PERCENTAGE),
                "default_max_surge_fee_percentage",
            ),
            default_threshold_percentage=_decimal(
                data.get("default_threshold_percentage", DEFAULT_SURGE_THRESHOLD_PERCENTAGE),
                "default_threshold_percentage",
            ),
            version=data.get("version", ""),
            pools=[PoolSurgeConfig.from_dict(p) for p in data.get("pools", [])],
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SURGEHOOK_MAX_SURGE_FEE_PERCENTAGE"):
            self.default_max_surge_fee_percentage = _decimal(v, "SURGEHOOK_MAX_SURGE_FEE_PERCENTAGE")
        if v := os.environ.get("SURGEHOOK_THRESHOLD_PERCENTAGE"):
            self.default_threshold_percentage = _decimal(v, "SURGEHOOK_THRESHOLD_PERCENTAGE")

    def pool_overrides(self, pool: str) -> Optional[PoolSurgeConfig]:
        for entry in self.pools:
            if entry.pool == pool:
                return entry
        return None


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------

@dataclass
class HookConfig:
    """Complete configuration of a surge hook deployment."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    surge: SurgeConfig = field(default_factory=SurgeConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HookConfig":
        return cls(
            logging=LoggingConfig.from_dict(data.get("logging", {})),
            surge=SurgeConfig.from_dict(data.get("surge", {})),
        )

    @classmethod
    def from_file(cls, path: str) -> "HookConfig":
        """
        Load from a TOML file, then apply env overrides.

        A missing file yields the defaults (with env overrides).
        """
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomli.load(f)
            config = cls.from_dict(data)
            logger.info("Loaded config from %s", config_path)
        else:
            config = cls()
            logger.debug("Config file %s not found, using defaults", config_path)
        config.apply_env()
        config.validate()
        return config

    def apply_env(self) -> None:
        self.logging.apply_env()
        self.surge.apply_env()

    def validate(self) -> bool:
        """
        Raises:
            ConfigurationError: on invalid values
        """
        if self.logging.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        threshold = self.surge.default_threshold_percentage
        if threshold <= 0 or threshold > 1:
            raise ConfigurationError(f"default_threshold_percentage out of (0, 1]: {threshold}")
        max_fee = self.surge.default_max_surge_fee_percentage
        if max_fee < 0 or max_fee > 1:
            raise ConfigurationError(f"default_max_surge_fee_percentage out of [0, 1]: {max_fee}")
        seen = set()
        for entry in self.surge.pools:
            if entry.pool in seen:
                raise ConfigurationError(f"Duplicate pool override: {entry.pool}")
            seen.add(entry.pool)
        return True

    def configure_logging(self) -> None:
        """Apply the [logging] section to the process-wide log manager."""
        from ..logger import LogManager

        LogManager().configure(
            log_level=self.logging.level,
            log_file=Path(self.logging.file) if self.logging.file else None,
            console_output=self.logging.console_output,
            file_output=self.logging.file_output,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "logging": {
                "level": self.logging.level,
                "console_output": self.logging.console_output,
                "file_output": self.logging.file_output,
                "file": self.logging.file,
            },
            "surge": {
                "default_max_surge_fee_percentage": str(self.surge.default_max_surge_fee_percentage),
                "default_threshold_percentage": str(self.surge.default_threshold_percentage),
                "version": self.surge.version,
                "pools": [
                    {
                        "pool": p.pool,
                        "threshold_percentage": None if p.threshold_percentage is None
                        else str(p.threshold_percentage),
                        "max_surge_fee_percentage": None if p.max_surge_fee_percentage is None
                        else str(p.max_surge_fee_percentage),
                    }
                    for p in self.surge.pools
                ],
            },
        }


def load_config(path: Optional[str] = None) -> HookConfig:
    """
    Load hook configuration.

    Resolution order:
        1. Explicit *path* argument
        2. SURGEHOOK_CONFIG env var
        3. ./surgehook.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("SURGEHOOK_CONFIG", "surgehook.toml")
    return HookConfig.from_file(path)
