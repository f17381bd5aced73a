"""
Surge Hook Constants

This module consolidates global constants and environment configuration used
throughout the package. Values in the ENVIRONMENT section may be overridden
from a local ``.env`` file; everything else is fixed protocol arithmetic.
"""
import ast
from decimal import Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

SURGE_DEFAULTS = {
    'SURGE_DEFAULT_MAX_SURGE_FEE_PERCENTAGE': '0.95',
    'SURGE_DEFAULT_THRESHOLD_PERCENTAGE':     '0.3',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# FIXED-POINT ARITHMETIC
# ==================================================================================
# Balances, fees and imbalance scores are 18-decimal fixed-point values.
FP_DECIMALS = 18
FP_ONE = Decimal(1)
FP_ZERO = Decimal(0)
FP_QUANTUM = Decimal(1).scaleb(-FP_DECIMALS)  # 1e-18


# ==================================================================================
# SURGE POLICY LIMITS
# ==================================================================================
# Static swap fee bounds accepted by the ledger engine
MIN_STATIC_SWAP_FEE = Decimal('0.000001')  # 0.0001%
MAX_STATIC_SWAP_FEE = Decimal('0.10')      # 10%


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
DEFAULTS = SURGE_DEFAULTS | LOGGER_DEFAULTS
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

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)


# Decimal views of the surge defaults used by the registry and the hook
DEFAULT_MAX_SURGE_FEE_PERCENTAGE = Decimal(str(namespace['SURGE_DEFAULT_MAX_SURGE_FEE_PERCENTAGE']))
DEFAULT_SURGE_THRESHOLD_PERCENTAGE = Decimal(str(namespace['SURGE_DEFAULT_THRESHOLD_PERCENTAGE']))
