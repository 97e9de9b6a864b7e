"""
Darkpool Engine Constants

This module consolidates the protocol constants of the confidential pool
engine and the environment-driven settings of the logging subsystem.
Environment values are read once from ``.env`` at import time.
"""
import ast
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
    'LOG_CONSOLE_OUTPUT':              'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW ARE PART OF THE PUBLIC SURFACE OF EVERY POOL.
# CHANGING DUMMY_DELTA OR DUMMY_RESERVE ON A LIVE DEPLOYMENT MAKES OLD AND NEW
# PUBLIC SIGNALS DISTINGUISHABLE.

# ==================================================================================
# FIXED-POINT / INTEGER BOUNDS
# ==================================================================================
TOKEN_DECIMALS = 18
UNIT = 10 ** TOKEN_DECIMALS  # one whole token in base units
MAX_UINT256 = 2 ** 256 - 1
MAX_INT128 = 2 ** 127 - 1
MIN_INT128 = -(2 ** 127)


# ==================================================================================
# MASKING CONSTANTS
# ==================================================================================
DUMMY_DELTA = 1 * UNIT
DUMMY_RESERVE = 1_000_000 * UNIT
DUMMY_FEE_TAG = 0


# ==================================================================================
# FEE PARAMETERS
# ==================================================================================
BPS_DENOMINATOR = 10_000
DEFAULT_FEE_BPS = 10  # 0.10%
DEFAULT_PROTOCOL_SHARE_BPS = 0
# Host-side LP fee override returned from beforeSwap (the engine charges its own fee)
NO_FEE_OVERRIDE = 0
MAX_HOST_FEE = 1_000_000  # host fee unit is pips (hundredths of a bip)


# ==================================================================================
# CIRCUIT BREAKER BOUNDS
# ==================================================================================
DEFAULT_MAX_RATIO_BPS = 7_000
DEFAULT_MIN_RATIO_BPS = 3_000
MAX_RATIO_UPPER_BOUND = 9_500
MAX_RATIO_LOWER_BOUND = 5_000


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

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Only known literals reach ast.literal_eval.
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
