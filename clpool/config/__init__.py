"""
clpool Configuration

Loads all sections of clpool.toml.
Environment variables override TOML values.
"""

from .loader import (
    PoolConfig,
    PoolSectionConfig,
    FeesSectionConfig,
    RoutersSectionConfig,
    LoggingSectionConfig,
    configure_logging,
    load_config,
)

__all__ = [
    "PoolConfig",
    "PoolSectionConfig",
    "FeesSectionConfig",
    "RoutersSectionConfig",
    "LoggingSectionConfig",
    "configure_logging",
    "load_config",
]
