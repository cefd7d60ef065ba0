"""
tokengen constants

Time units, token precision and the default genesis parameters shared by the
allocation, vesting and distribution modules.

NOTE: Changes to the month approximation alter every vesting schedule built
from a month-based configuration. Coordinate with beneficiaries before
modifying it.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24

# Business approximation: every month is exactly 30 days.
DAYS_PER_MONTH: Final[int] = 30
SECONDS_PER_MONTH: Final[int] = DAYS_PER_MONTH * SECONDS_PER_DAY  # 2592000

# =============================================================================
# TOKEN PRECISION
# =============================================================================

TOKEN_DECIMALS: Final[int] = 18
MAX_TOKEN_DECIMALS: Final[int] = 36

# =============================================================================
# ALLOCATION
# =============================================================================

PERCENT_DENOMINATOR: Final[int] = 100

REMAINDER_STRATEGY_LARGEST: Final[str] = "largest"
REMAINDER_STRATEGY_BUCKET: Final[str] = "bucket"
REMAINDER_STRATEGY_SINK: Final[str] = "sink"

# =============================================================================
# ADDRESSES
# =============================================================================

ADDRESS_HEX_LENGTH: Final[int] = 40
ZERO_ADDRESS: Final[str] = "0x" + "0" * ADDRESS_HEX_LENGTH

# =============================================================================
# DISTRIBUTION
# =============================================================================

DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_BASE_DELAY: Final[float] = 1.0
DEFAULT_RETRY_MAX_DELAY: Final[float] = 60.0

# State files written to the state directory
ALLOCATION_PLAN_FILE: Final[str] = "allocation_plan.json"
VESTING_STORE_FILE: Final[str] = "vesting_store.json"
STEP_LOG_FILE: Final[str] = "distribution_steps.json"
