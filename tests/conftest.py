"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add project root and src to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(project_root))
sys.path.insert(0, str(src_path))

import pytest

from tokengen.vesting.scheduler import VestingScheduler
from tokengen.vesting.store import VestingScheduleStore

BENEFICIARY = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OTHER_BENEFICIARY = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"

SOURCE = "0x1000000000000000000000000000000000000001"
VESTING_POOL = "0x2000000000000000000000000000000000000002"


@pytest.fixture
def funded_store():
    """In-memory store whose vesting pool holds one million units."""
    store = VestingScheduleStore()
    store.record_deposit("genesis", 1_000_000)
    return store


@pytest.fixture
def scheduler(funded_store):
    return VestingScheduler(funded_store, time_provider=lambda: 0)


@pytest.fixture
def genesis_data():
    """Raw configuration mapping for a 1,000,000,000 token genesis."""
    return {
        "token": {"symbol": "GEN", "decimals": 18, "total_supply": 1_000_000_000},
        "tge": 1_000_000,
        "source": SOURCE,
        "vesting_pool": VESTING_POOL,
        "buckets": [
            {
                "name": "public_sale",
                "percentage": 20,
                "kind": "unlocked",
                "destination": "0x3000000000000000000000000000000000000003",
            },
            {
                "name": "team",
                "percentage": 12,
                "kind": "vested",
                "destination": "0x4000000000000000000000000000000000000004",
                "cliff_months": 12,
                "vesting_months": 36,
            },
            {
                "name": "treasury",
                "percentage": 13,
                "kind": "vested",
                "destination": "0x5000000000000000000000000000000000000005",
                "tge_unlock_percent": 10,
                "vesting_months": 36,
            },
            {
                "name": "partnerships",
                "percentage": 10,
                "kind": "vested",
                "destination": "0x6000000000000000000000000000000000000006",
                "cliff_months": 3,
                "vesting_months": 15,
                "revocable": True,
            },
            {
                "name": "ecosystem",
                "percentage": 35,
                "kind": "vested",
                "destination": "0x8000000000000000000000000000000000000008",
                "vesting_months": 48,
            },
            {
                "name": "liquidity",
                "percentage": 10,
                "kind": "liquidity",
                "destination": "0x7000000000000000000000000000000000000007",
                "lock_months": 12,
            },
        ],
    }
