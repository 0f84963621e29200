"""
govbox Constants

This module consolidates the global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from pathlib import Path

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

PROJECT_DEFAULTS = {
    'GOVBOX_CONFIG':                   'govbox.toml',
    'GOVBOX_BUILD_DIR':                'build',
    'GOVBOX_CACHE_DIR':                str(Path.home() / '.cache' / 'govbox'),
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'True',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# PROJECT LAYOUT
# ==================================================================================
PROJECT_ROOT = Path(__file__).parent.parent
CONTRACTS_DIR = PROJECT_ROOT / "contracts"

# Contracts produced by a compile run, in deployment order
CONTRACT_NAMES = ("GovernanceToken", "TimeLock", "MyGovernance", "Box")


# ==================================================================================
# COMPILER
# ==================================================================================
SOLC_VERSION = '0.8.24'
EVM_VERSION = 'shanghai'
OPTIMIZER_RUNS = 200
OPENZEPPELIN_VERSION = '4.9.6'
OPENZEPPELIN_ARCHIVE_URL = (
    'https://github.com/OpenZeppelin/openzeppelin-contracts/archive/refs/tags/v{version}.tar.gz'
)
OPENZEPPELIN_REMAPPING = '@openzeppelin/contracts/'
DOWNLOAD_TIMEOUT = 60.0  # seconds


# ==================================================================================
# GOVERNANCE PARAMETERS
# ==================================================================================
TOKEN_NAME = 'GovernanceToken'
TOKEN_SYMBOL = 'GT'
TOKEN_DECIMALS = 18
TOKEN_INITIAL_SUPPLY = 1_000_000 * 10 ** TOKEN_DECIMALS  # minted to the deployer

MIN_DELAY = 3600  # timelock delay, seconds
QUORUM_FRACTION = 4  # percent of total supply
VOTING_DELAY = 1  # blocks
VOTING_PERIOD = 5  # blocks

ADDRESS_ZERO = '0x0000000000000000000000000000000000000000'


# ==================================================================================
# CHAIN
# ==================================================================================
DEFAULT_RPC_URL = 'http://127.0.0.1:8545'
DEFAULT_CONFIRMATIONS = 1
RECEIPT_TIMEOUT = 120  # seconds
RECEIPT_POLL_LATENCY = 0.5  # seconds

# Chain ids of development nodes that accept evm_* RPC calls
DEV_CHAIN_IDS = (1337, 31337)


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
DEFAULTS = PROJECT_DEFAULTS | LOGGER_DEFAULTS
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
