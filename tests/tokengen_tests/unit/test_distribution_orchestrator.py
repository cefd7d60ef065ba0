import copy
import json

import pytest

from tokengen.blockchain.in_memory_ledger import InMemoryLedger
from tokengen.blockchain.liquidity_locker import LiquidityLocker
from tokengen.core.config import config_from_dict
from tokengen.core.exceptions import (
    ConfigurationError,
    PermanentTransferError,
    PlanMismatchError,
    TransientTransferError,
)
from tokengen.distribution.orchestrator import DistributionOrchestrator
from tokengen.distribution.retry import RetryStrategy
from tokengen.distribution.step_log import StepStatus

UNIT = 10**18
SOURCE = "0x1000000000000000000000000000000000000001"
VESTING_POOL = "0x2000000000000000000000000000000000000002"
PUBLIC_SALE = "0x3000000000000000000000000000000000000003"
TEAM = "0x4000000000000000000000000000000000000004"
LIQUIDITY = "0x7000000000000000000000000000000000000007"
SINK = "0x9000000000000000000000000000000000000009"

ALL_STEPS = [
    "transfer:public_sale",
    "fund:team",
    "schedule:team",
    "tge_unlock:treasury",
    "fund:treasury",
    "schedule:treasury",
    "fund:partnerships",
    "schedule:partnerships",
    "fund:ecosystem",
    "schedule:ecosystem",
    "transfer:liquidity",
    "lock:liquidity",
]


class FlakyLedger(InMemoryLedger):
    """Confirmation fails ``failures`` times before the ledger answers."""

    def __init__(self, balances, failures):
        super().__init__(balances)
        self.failures = failures
        self.confirm_calls = 0

    def confirm(self, tx_hash):
        self.confirm_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientTransferError("RPC timeout", tx_hash=tx_hash)
        return super().confirm(tx_hash)


class RejectingLedger(InMemoryLedger):
    """Rejects transfers to one recipient until ``rejected`` is cleared."""

    def __init__(self, balances, rejected):
        super().__init__(balances)
        self.rejected = rejected

    def transfer(self, sender, recipient, amount):
        if self.rejected and recipient.lower() == self.rejected.lower():
            raise PermanentTransferError(f"Recipient {recipient} is blacklisted")
        return super().transfer(sender, recipient, amount)


@pytest.fixture
def config(genesis_data):
    return config_from_dict(genesis_data)


@pytest.fixture
def retry():
    delays = []
    return RetryStrategy(max_retries=2, jitter=False, sleep=delays.append)


def supply_ledger(config, cls=InMemoryLedger, **kwargs):
    return cls({config.source: config.total_supply_units}, **kwargs)


def make_orchestrator(config, ledger, state_dir, retry, locker=None):
    return DistributionOrchestrator(
        config,
        ledger,
        locker=locker or LiquidityLocker(),
        state_dir=str(state_dir),
        retry_strategy=retry,
        time_provider=lambda: config.tge,
    )


def test_full_distribution(config, tmp_path, retry):
    ledger = supply_ledger(config)
    locker = LiquidityLocker()
    orchestrator = make_orchestrator(config, ledger, tmp_path, retry, locker)

    report = orchestrator.run()

    assert report.ok
    assert report.completed == ALL_STEPS
    assert ledger.balance_of(SOURCE) == 0
    assert ledger.balance_of(PUBLIC_SALE) == 200_000_000 * UNIT
    assert ledger.balance_of("0x5000000000000000000000000000000000000005") == 13_000_000 * UNIT
    assert ledger.balance_of(VESTING_POOL) == 687_000_000 * UNIT
    assert ledger.balance_of(LIQUIDITY) == 100_000_000 * UNIT

    funding = orchestrator.store.funding
    assert funding.funded == funding.committed == 687_000_000 * UNIT
    team = orchestrator.scheduler.find(TEAM, "team")
    assert team.total_amount == 120_000_000 * UNIT
    assert team.start == config.tge
    assert locker.get_total_locked_liquidity() == 100_000_000 * UNIT

    assert all(r.status == StepStatus.COMPLETED for r in orchestrator.step_log.records())
    assert (tmp_path / "allocation_plan.json").exists()
    json.dumps(report.to_dict())


def test_rerun_skips_completed_steps(config, tmp_path, retry):
    ledger = supply_ledger(config)
    locker = LiquidityLocker()
    make_orchestrator(config, ledger, tmp_path, retry, locker).run()
    transactions = len(ledger.transactions)

    report = make_orchestrator(config, ledger, tmp_path, retry, locker).run()

    assert report.ok
    assert report.completed == []
    assert report.skipped == ALL_STEPS
    assert len(ledger.transactions) == transactions


def test_transient_confirmation_failures_are_retried(config, tmp_path):
    delays = []
    retry = RetryStrategy(max_retries=3, base_delay=1.0, jitter=False, sleep=delays.append)
    ledger = supply_ledger(config, FlakyLedger, failures=2)

    report = make_orchestrator(config, ledger, tmp_path, retry).run()

    assert report.ok
    assert delays == [1.0, 2.0]
    assert ledger.balance_of(PUBLIC_SALE) == 200_000_000 * UNIT
    # re-confirmed, not re-sent
    assert len(ledger.transactions) == 7


def test_in_flight_transfer_is_confirmed_on_resume(config, tmp_path):
    ledger = supply_ledger(config, FlakyLedger, failures=1)
    no_retry = RetryStrategy(max_retries=0, sleep=lambda _: None)

    first = make_orchestrator(config, ledger, tmp_path, no_retry).run()
    assert first.failed_step == "transfer:public_sale"
    record = make_orchestrator(config, ledger, tmp_path, no_retry).step_log.get("transfer:public_sale")
    assert record.status == StepStatus.FAILED
    assert record.tx_hash is not None
    assert record.recoverable

    second = make_orchestrator(config, ledger, tmp_path, no_retry).run()

    assert second.ok
    assert second.completed == ALL_STEPS
    assert ledger.balance_of(PUBLIC_SALE) == 200_000_000 * UNIT
    assert len(ledger.transactions) == 7


def test_permanent_failure_stops_run_and_resumes(config, tmp_path, retry):
    ledger = supply_ledger(config, RejectingLedger, rejected=LIQUIDITY)
    locker = LiquidityLocker()

    report = make_orchestrator(config, ledger, tmp_path, retry, locker).run()

    assert not report.ok
    assert report.failed_step == "transfer:liquidity"
    assert isinstance(report.error, PermanentTransferError)
    assert report.completed == ALL_STEPS[:10]
    record = make_orchestrator(config, ledger, tmp_path, retry, locker).step_log.get("transfer:liquidity")
    assert record.status == StepStatus.FAILED
    assert record.error["error"] == "PermanentTransferError"
    assert record.attempts == 1
    assert record.tx_hash is None

    ledger.rejected = None
    resumed = make_orchestrator(config, ledger, tmp_path, retry, locker).run()
    assert resumed.ok
    assert resumed.completed == ["transfer:liquidity", "lock:liquidity"]
    assert resumed.skipped == ALL_STEPS[:10]


def test_deferred_bucket_runs_once_address_is_known(genesis_data, tmp_path, retry):
    data = copy.deepcopy(genesis_data)
    data["buckets"][4]["destination"] = "0x0000000000000000000000000000000000000000"
    pending = config_from_dict(data)
    ledger = supply_ledger(pending)
    locker = LiquidityLocker()

    report = make_orchestrator(pending, ledger, tmp_path, retry, locker).run()
    assert report.ok
    assert report.deferred == ["fund:ecosystem", "schedule:ecosystem"]
    assert ledger.balance_of(SOURCE) == 350_000_000 * UNIT
    orchestrator = make_orchestrator(pending, ledger, tmp_path, retry, locker)
    assert orchestrator.step_log.get("fund:ecosystem").status == StepStatus.DEFERRED

    ready = config_from_dict(genesis_data)
    resumed = make_orchestrator(ready, ledger, tmp_path, retry, locker).run()
    assert resumed.ok
    assert resumed.completed == ["fund:ecosystem", "schedule:ecosystem"]
    assert ledger.balance_of(SOURCE) == 0


def test_plan_mismatch_is_refused(genesis_data, config, tmp_path, retry):
    ledger = supply_ledger(config)
    make_orchestrator(config, ledger, tmp_path, retry).run(buckets=["public_sale"])

    data = copy.deepcopy(genesis_data)
    data["buckets"][0]["percentage"] = 15
    data["buckets"][4]["percentage"] = 40
    changed = config_from_dict(data)
    with pytest.raises(PlanMismatchError):
        make_orchestrator(changed, ledger, tmp_path, retry).run()


def test_selected_buckets_only(config, tmp_path, retry):
    ledger = supply_ledger(config)
    orchestrator = make_orchestrator(config, ledger, tmp_path, retry)

    report = orchestrator.run(buckets=["team"])
    assert report.completed == ["fund:team", "schedule:team"]
    assert ledger.balance_of(PUBLIC_SALE) == 0

    with pytest.raises(ConfigurationError):
        orchestrator.run(buckets=["nope"])


def test_lock_step_requires_locker(config, tmp_path, retry):
    orchestrator = DistributionOrchestrator(
        config, supply_ledger(config), state_dir=str(tmp_path), retry_strategy=retry
    )
    with pytest.raises(ConfigurationError):
        orchestrator.run()


def test_sink_remainder(genesis_data, tmp_path, retry):
    data = copy.deepcopy(genesis_data)
    data["token"]["total_supply"] = "0.000000000000000101"
    data["remainder"] = {"strategy": "sink", "sink": SINK}
    config = config_from_dict(data)
    ledger = supply_ledger(config)

    report = make_orchestrator(config, ledger, tmp_path, retry).run()

    assert report.ok
    assert report.completed[-1] == "transfer:remainder"
    assert ledger.balance_of(SINK) == 1
    assert ledger.balance_of(SOURCE) == 0


def test_in_memory_run_without_state_dir(config, retry):
    ledger = supply_ledger(config)
    orchestrator = DistributionOrchestrator(
        config, ledger, locker=LiquidityLocker(), retry_strategy=retry
    )
    assert orchestrator.run().ok
    assert orchestrator.run().skipped == ALL_STEPS
