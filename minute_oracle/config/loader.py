"""
Minute Oracle TOML Configuration Loader

Loads oracle.toml with environment variable overrides
(dataclass + from_dict + from_file + apply_env).

Environment variable mapping:
    [oracle]  observations_limit → MINUTE_ORACLE_OBSERVATIONS_LIMIT
    [logging] level              → MINUTE_ORACLE_LOG_LEVEL
    [logging] file               → MINUTE_ORACLE_LOG_FILE
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    try:
        import tomli  # type: ignore[no-redef]
    except ImportError:
        tomli = None  # type: ignore[assignment]

from ..constants import LOG_FILE_OUTPUT, LOG_LEVEL, OBSERVATIONS_LIMIT
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class OracleSectionConfig:
    """[oracle] section."""
    observations_limit: int = OBSERVATIONS_LIMIT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OracleSectionConfig":
        return cls(
            observations_limit=data.get("observations_limit", OBSERVATIONS_LIMIT),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("MINUTE_ORACLE_OBSERVATIONS_LIMIT"):
            try:
                self.observations_limit = int(v)
            except ValueError as e:
                raise ConfigurationError(
                    f"MINUTE_ORACLE_OBSERVATIONS_LIMIT is not an integer: {v!r}"
                ) from e

    def validate(self) -> None:
        limit = self.observations_limit
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ConfigurationError(f"observations_limit must be an integer, got {limit!r}")
        if not 1 <= limit <= OBSERVATIONS_LIMIT:
            raise ConfigurationError(
                f"observations_limit must be in [1, {OBSERVATIONS_LIMIT}], got {limit}"
            )


@dataclass
class LoggingConfig:
    """[logging] section."""
    level: str = str(LOG_LEVEL)
    file: str = ""
    console_output: bool = True
    file_output: bool = bool(LOG_FILE_OUTPUT)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", str(LOG_LEVEL))).upper(),
            file=data.get("file", ""),
            console_output=data.get("console_output", True),
            file_output=data.get("file_output", bool(LOG_FILE_OUTPUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("MINUTE_ORACLE_LOG_LEVEL"):
            self.level = v.upper()
        if v := os.environ.get("MINUTE_ORACLE_LOG_FILE"):
            self.file = v
            self.file_output = True

    def validate(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class OracleConfig:
    """
    Unified oracle configuration.

    Loads every section of oracle.toml and applies environment variable
    overrides.
    """
    oracle: OracleSectionConfig = field(default_factory=OracleSectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OracleConfig":
        """Create OracleConfig from a parsed TOML dict."""
        return cls(
            oracle=OracleSectionConfig.from_dict(data.get("oracle", {})),
            logging=LoggingConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "OracleConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults (with env overrides) are used.

        Args:
            config_path: Path to oracle.toml

        Returns:
            OracleConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        if tomli is None:
            raise ConfigurationError(
                "tomli is required for TOML config loading on Python < 3.11. "
                "Install it: pip install tomli"
            )

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.oracle.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        self.oracle.validate()
        self.logging.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "oracle": {
                "observations_limit": self.oracle.observations_limit,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "console_output": self.logging.console_output,
                "file_output": self.logging.file_output,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: str = None) -> OracleConfig:
    """
    Load and validate oracle configuration.

    Resolution order:
        1. Explicit *path* argument
        2. MINUTE_ORACLE_CONFIG env var
        3. ./oracle.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("MINUTE_ORACLE_CONFIG", "oracle.toml")

    cfg = OracleConfig.from_file(path)
    cfg.validate()
    return cfg
