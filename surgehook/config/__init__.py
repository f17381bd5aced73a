"""
Surge Hook Configuration

Loads surgehook.toml; environment variables override TOML values.
"""

from .loader import (
    HookConfig,
    LoggingConfig,
    PoolSurgeConfig,
    SurgeConfig,
    load_config,
)

__all__ = [
    "HookConfig",
    "LoggingConfig",
    "PoolSurgeConfig",
    "SurgeConfig",
    "load_config",
]
