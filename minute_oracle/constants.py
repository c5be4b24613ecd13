"""
Minute Oracle Constants

This module consolidates the oracle's protocol constants and the environment
configuration used by the logging subsystem. Constants are organized by
category for easy reference and maintenance.
"""
import ast
from decimal import Context, Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW DEFINE THE NUMERIC BEHAVIOUR OF THE ORACLE. INDEPENDENT
# VERIFIERS REPRODUCE ACCUMULATOR VALUES BIT FOR BIT, SO CHANGING ANY OF THEM
# PRODUCES HISTORIES THAT NO LONGER MATCH THE ONES COMPUTED BY OTHER NODES.

# ==================================================================================
# TIME
# ==================================================================================
SECONDS_PER_MINUTE = 60


# ==================================================================================
# OBSERVATION STORAGE
# ==================================================================================
# Maximum number of stored observations (u16 index space, ~45 days of minutes)
OBSERVATIONS_LIMIT = 65535


# ==================================================================================
# FIXED-POINT REPRESENTATION
# ==================================================================================
# Fractional digits of logs, accumulators and geometric means
DECIMAL_PLACES = 18
# Fractional digits of price_sqrt inputs
PRECISE_DECIMAL_PLACES = 36
# Working precision of the arithmetic context (significant digits)
FIXED_POINT_PRECISION = 80
# Largest magnitude an 18-digit value may take (signed 192-bit integer of atto-units)
DECIMAL_MAX = Decimal(2**191 - 1).scaleb(-DECIMAL_PLACES, context=Context(prec=FIXED_POINT_PRECISION))


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
