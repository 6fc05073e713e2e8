"""
clpool Constants

Environment settings (read once from ``.env``) and the protocol constants of
the pool engine, grouped by category.
"""
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_env = dotenv_values(".env")


def _env_flag(key: str, default: bool) -> bool:
    """Read a true/false switch from .env; anything unrecognised keeps the default."""
    raw = (_env.get(key) or "").strip().casefold()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

LOG_LEVEL = (_env.get('LOG_LEVEL') or 'INFO').upper()
LOG_FORMAT = _env.get('LOG_FORMAT') or DEFAULT_LOG_FORMAT
LOG_DATE_FORMAT = _env.get('LOG_DATE_FORMAT') or DEFAULT_LOG_DATE_FORMAT
LOG_CONSOLE_HIGHLIGHTING = _env_flag('LOG_CONSOLE_HIGHLIGHTING', True)
LOG_TO_FILE = _env_flag('LOG_TO_FILE', False)

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE VALUES BELOW MIRROR THE ON-CHAIN AMM THIS ENGINE REPRODUCES. CHANGING THEM
# PRODUCES PRICES, TICKS AND FEE GROWTH THAT NO LONGER MATCH THE REFERENCE POOL.

# ==================================================================================
# FIXED-POINT ENCODING
# ==================================================================================
Q96 = 2 ** 96
Q128 = 2 ** 128

UINT128_MAX = 2 ** 128 - 1
UINT160_MAX = 2 ** 160 - 1
UINT256_MAX = 2 ** 256 - 1
INT256_MAX = 2 ** 255 - 1
INT256_MIN = -(2 ** 255)


# ==================================================================================
# TICK / PRICE BOUNDS
# ==================================================================================
MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739                                          # sqrt(1.0001^MIN_TICK) * 2^96
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342   # sqrt(1.0001^MAX_TICK) * 2^96


# ==================================================================================
# FEES
# ==================================================================================
# Swap fee in hundredths of a bip (1e-6)
FEE_PIPS_DENOMINATOR = 1_000_000

# Fee tiers enabled by default, mapped to their tick spacing
FEE_TIER_TICK_SPACINGS = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}

# Fee denominators: 0 disables the tier, otherwise share = fee // denominator
PROTOCOL_FEE_DENOMINATOR_MIN = 4
PROTOCOL_FEE_DENOMINATOR_MAX = 255
REFERRER_FEE_DENOMINATOR_MIN = 4
REFERRER_FEE_DENOMINATOR_MAX = 15


# ==================================================================================
# IDENTITIES
# ==================================================================================
ZERO_ADDRESS = '0x' + '0' * 40


