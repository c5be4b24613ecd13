"""
Minute Oracle Package

Core imports are lazily loaded so that importing a submodule (for example
the configuration loader) does not pull in the whole engine.
For direct module access, import from submodules:

    from minute_oracle.twap import TWAPOracle
    from minute_oracle.exceptions import OutOfRange
"""

__version__ = "1.0.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'TWAPOracle':
        from .twap import TWAPOracle
        return TWAPOracle
    elif name == 'OracleHook':
        from .twap import OracleHook
        return OracleHook
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'minute_oracle' has no attribute {name!r}")

__all__ = ['TWAPOracle', 'OracleHook', 'load_config']
