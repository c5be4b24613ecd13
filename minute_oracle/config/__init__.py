"""
Minute Oracle Configuration

Loads oracle.toml; environment variables override TOML values.
"""

from .loader import (
    OracleConfig,
    OracleSectionConfig,
    LoggingConfig,
    load_config,
)

__all__ = [
    "OracleConfig",
    "OracleSectionConfig",
    "LoggingConfig",
    "load_config",
]
