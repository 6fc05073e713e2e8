"""
clpool TOML Configuration Loader

Loads every section of clpool.toml with environment variable overrides.
Each section is a dataclass with ``from_dict`` and ``apply_env``.

Environment variable mapping:
    [pool] fee              → CLPOOL_FEE
    [pool] tick_spacing     → CLPOOL_TICK_SPACING
    [pool] owner            → CLPOOL_OWNER
    [fees] protocol0/1      → CLPOOL_FEE_PROTOCOL0 / CLPOOL_FEE_PROTOCOL1
    [fees] referrer0/1      → CLPOOL_FEE_REFERRER0 / CLPOOL_FEE_REFERRER1
    [routers] trusted       → CLPOOL_TRUSTED_ROUTERS (comma separated)
    [logging] level         → CLPOOL_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..address import normalize_address
from ..constants import FEE_PIPS_DENOMINATOR, FEE_TIER_TICK_SPACINGS, LOG_LEVELS
from ..exceptions import ConfigurationError, InvalidAddressError
from ..exchange.fees import validate_protocol_fee, validate_referrer_fee
from ..logger import LogManager

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of clpool.example.toml
# ---------------------------------------------------------------------------


@dataclass
class PoolSectionConfig:
    """[pool] section. ``tick_spacing = 0`` means the fee tier's default."""
    fee: int = 3000
    tick_spacing: int = 0
    owner: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolSectionConfig":
        return cls(
            fee=data.get("fee", 3000),
            tick_spacing=data.get("tick_spacing", 0),
            owner=data.get("owner", ""),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("CLPOOL_FEE"):
            self.fee = int(v)
        if v := os.environ.get("CLPOOL_TICK_SPACING"):
            self.tick_spacing = int(v)
        if v := os.environ.get("CLPOOL_OWNER"):
            self.owner = v

    def resolved_tick_spacing(self) -> int:
        if self.tick_spacing:
            return self.tick_spacing
        spacing = FEE_TIER_TICK_SPACINGS.get(self.fee)
        if spacing is None:
            raise ConfigurationError(f"No default tick_spacing for fee {self.fee}; set it explicitly")
        return spacing


@dataclass
class FeesSectionConfig:
    """[fees] section: default denominators applied to new pools."""
    protocol0: int = 0
    protocol1: int = 0
    referrer0: int = 0
    referrer1: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeesSectionConfig":
        return cls(
            protocol0=data.get("protocol0", 0),
            protocol1=data.get("protocol1", 0),
            referrer0=data.get("referrer0", 0),
            referrer1=data.get("referrer1", 0),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("CLPOOL_FEE_PROTOCOL0"):
            self.protocol0 = int(v)
        if v := os.environ.get("CLPOOL_FEE_PROTOCOL1"):
            self.protocol1 = int(v)
        if v := os.environ.get("CLPOOL_FEE_REFERRER0"):
            self.referrer0 = int(v)
        if v := os.environ.get("CLPOOL_FEE_REFERRER1"):
            self.referrer1 = int(v)

    def validate(self) -> None:
        """Raises InvalidFeeConfig for any out-of-range denominator."""
        validate_protocol_fee(self.protocol0)
        validate_protocol_fee(self.protocol1)
        validate_referrer_fee(self.referrer0)
        validate_referrer_fee(self.referrer1)


@dataclass
class RoutersSectionConfig:
    """[routers] section."""
    trusted: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoutersSectionConfig":
        return cls(trusted=list(data.get("trusted", [])))

    def apply_env(self) -> None:
        if v := os.environ.get("CLPOOL_TRUSTED_ROUTERS"):
            self.trusted = [r.strip() for r in v.split(",") if r.strip()]


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("CLPOOL_LOG_LEVEL"):
            self.level = v.upper()


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class PoolConfig:
    """Complete pool configuration loaded from clpool.toml."""
    pool: PoolSectionConfig = field(default_factory=PoolSectionConfig)
    fees: FeesSectionConfig = field(default_factory=FeesSectionConfig)
    routers: RoutersSectionConfig = field(default_factory=RoutersSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        return cls(
            pool=PoolSectionConfig.from_dict(data.get("pool", {})),
            fees=FeesSectionConfig.from_dict(data.get("fees", {})),
            routers=RoutersSectionConfig.from_dict(data.get("routers", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "PoolConfig":
        """
        Load configuration from a TOML file.

        A missing file yields defaults (plus env overrides). The result is
        validated either way.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
        else:
            with open(path, "rb") as f:
                try:
                    raw = tomli.load(f)
                except tomli.TOMLDecodeError as e:
                    raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
            cfg = cls.from_dict(raw)

        cfg.apply_env()
        cfg.validate()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.pool.apply_env()
        self.fees.apply_env()
        self.routers.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: invalid pool, router or logging settings
            InvalidFeeConfig: fee denominator out of range
        """
        if not 0 <= self.pool.fee < FEE_PIPS_DENOMINATOR:
            raise ConfigurationError(f"fee must be in [0, {FEE_PIPS_DENOMINATOR}), got {self.pool.fee}")
        if self.pool.tick_spacing < 0 or self.pool.tick_spacing >= 16384:
            raise ConfigurationError(f"tick_spacing must be in [0, 16384), got {self.pool.tick_spacing}")
        self.pool.resolved_tick_spacing()
        try:
            if self.pool.owner:
                normalize_address(self.pool.owner)
            for router in self.routers.trusted:
                normalize_address(router)
        except InvalidAddressError as e:
            raise ConfigurationError(str(e)) from e
        self.fees.validate()
        if self.logging.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "pool": {
                "fee": self.pool.fee,
                "tick_spacing": self.pool.tick_spacing,
                "owner": self.pool.owner,
            },
            "fees": {
                "protocol0": self.fees.protocol0,
                "protocol1": self.fees.protocol1,
                "referrer0": self.fees.referrer0,
                "referrer1": self.fees.referrer1,
            },
            "routers": {"trusted": list(self.routers.trusted)},
            "logging": {"level": self.logging.level},
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> PoolConfig:
    """
    Load pool configuration.

    Resolution order:
        1. Explicit *path* argument
        2. CLPOOL_CONFIG env var
        3. ./clpool.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("CLPOOL_CONFIG", "clpool.toml")

    return PoolConfig.from_file(path)


def configure_logging(cfg: PoolConfig, log_file: Optional[Path] = None) -> LogManager:
    """
    Apply the ``[logging]`` section to the process-wide :class:`LogManager`.

    Installs the console (and, with ``LOG_TO_FILE``, the file) handler on
    first use; afterwards only the level changes.
    """
    manager = LogManager()
    manager.configure(log_level=cfg.logging.level, log_file=log_file)
    logger.info("Log level set to %s", cfg.logging.level)
    return manager
