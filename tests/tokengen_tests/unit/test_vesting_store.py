import dataclasses
import json

import pytest

from tokengen.core.exceptions import NothingToReleaseError, ScheduleNotFoundError
from tokengen.vesting.funding import FundingLedger
from tokengen.vesting.schedule import VestingSchedule
from tokengen.vesting.scheduler import VestingScheduler
from tokengen.vesting import store as store_module
from tokengen.vesting.store import StoreUpdate, VestingScheduleStore

BENEFICIARY = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
T = 10_000


def candidate(**overrides):
    values = dict(
        schedule_id="",
        beneficiary=BENEFICIARY,
        total_amount=1200,
        start=T,
        cliff_duration=300,
        vesting_duration=1200,
        revocable=True,
    )
    values.update(overrides)
    return VestingSchedule(**values)


def test_insert_assigns_sequential_ids(funded_store):
    first, created = funded_store.insert(candidate())
    second, _ = funded_store.insert(candidate())
    assert created
    assert (first.schedule_id, second.schedule_id) == ("vesting_1", "vesting_2")
    assert len(funded_store) == 2


def test_get_missing_schedule(funded_store):
    with pytest.raises(ScheduleNotFoundError):
        funded_store.get("vesting_42")


def test_transact_exception_leaves_schedule_untouched(funded_store):
    schedule, _ = funded_store.insert(candidate())

    def fail(current):
        raise NothingToReleaseError("nothing")

    with pytest.raises(NothingToReleaseError):
        funded_store.transact(schedule.schedule_id, fail)
    assert funded_store.get(schedule.schedule_id) == schedule
    assert funded_store.funding.disbursed == 0


def test_transact_rejects_id_change(funded_store):
    schedule, _ = funded_store.insert(candidate())
    with pytest.raises(ValueError):
        funded_store.transact(
            schedule.schedule_id,
            lambda current: StoreUpdate(dataclasses.replace(current, schedule_id="other"), None),
        )


def test_deposits_are_idempotent(funded_store):
    assert funded_store.record_deposit("fund:team", 500) is True
    assert funded_store.record_deposit("fund:team", 500) is False
    assert funded_store.funding.funded == 1_000_500
    with pytest.raises(ValueError):
        funded_store.record_deposit("fund:team", 600)


def test_state_survives_reload(tmp_path):
    path = str(tmp_path / "vesting_store.json")
    store = VestingScheduleStore(path)
    store.record_deposit("fund:team", 5000)
    scheduler = VestingScheduler(store, time_provider=lambda: 1)
    schedule_id = scheduler.create(BENEFICIARY, 1200, T, 300, 1200, revocable=True, idempotency_key="team")
    scheduler.release(BENEFICIARY, schedule_id, now=T + 600)

    reloaded = VestingScheduleStore(path)
    schedule = reloaded.get(schedule_id)
    assert schedule.released == 600
    assert schedule.idempotency_key == "team"
    assert reloaded.find(BENEFICIARY, "team").schedule_id == schedule_id
    assert reloaded.funding.funded == 5000
    assert reloaded.funding.committed == 1200
    assert reloaded.funding.disbursed == 600

    # counter continues after reload
    again = VestingScheduler(reloaded).create(BENEFICIARY, 100, T, 0, 100)
    assert again == "vesting_2"


def test_large_amounts_persist_as_strings(tmp_path):
    path = tmp_path / "vesting_store.json"
    amount = 120_000_000 * 10**18
    store = VestingScheduleStore(str(path))
    store.record_deposit("fund:team", amount)
    store.insert(candidate(total_amount=amount))

    raw = json.loads(path.read_text())
    assert raw["schedules"][0]["total_amount"] == str(amount)
    assert VestingScheduleStore(str(path)).funding.committed == amount


def test_unsupported_format_version(tmp_path):
    path = tmp_path / "vesting_store.json"
    path.write_text(json.dumps({"version": 99, "schedules": []}))
    with pytest.raises(ValueError):
        VestingScheduleStore(str(path))


def test_failed_persist_rolls_back_insert(tmp_path, monkeypatch):
    store = VestingScheduleStore(str(tmp_path / "vesting_store.json"))
    store.record_deposit("genesis", 5000)

    def broken_write(path, payload):
        raise OSError("disk full")

    monkeypatch.setattr("tokengen.vesting.store.write_json_atomic", broken_write)
    with pytest.raises(OSError):
        store.insert(candidate())
    assert len(store) == 0
    assert store.funding.committed == 0


def test_failed_persist_rolls_back_deposit(tmp_path, monkeypatch):
    path = tmp_path / "vesting_store.json"
    store = VestingScheduleStore(str(path))
    real_write = store_module.write_json_atomic
    calls = []

    def write_once_broken(target, payload):
        calls.append(target)
        if len(calls) == 1:
            raise OSError("disk full")
        real_write(target, payload)

    monkeypatch.setattr("tokengen.vesting.store.write_json_atomic", write_once_broken)
    with pytest.raises(OSError):
        store.record_deposit("fund:team", 5000)
    assert store.funding.funded == 0
    assert "fund:team" not in store.funding.deposits

    assert store.record_deposit("fund:team", 5000) is True
    reloaded = VestingScheduleStore(str(path))
    assert reloaded.funding.funded == 5000
    assert reloaded.funding.deposits == {"fund:team": 5000}


def test_inconsistent_funding_change_leaves_schedule_untouched():
    store = VestingScheduleStore()
    store.record_deposit("genesis", 1200)
    schedule, _ = store.insert(candidate())

    with pytest.raises(ValueError):
        store.transact(
            schedule.schedule_id,
            lambda current: StoreUpdate(
                dataclasses.replace(current, released=1200), 1200, disbursed=5000
            ),
        )
    assert store.get(schedule.schedule_id).released == 0
    assert (store.funding.committed, store.funding.disbursed) == (1200, 0)


def test_funding_ledger_guards():
    ledger = FundingLedger()
    ledger.record_deposit("a", 100)
    ledger.reserve(60)
    assert ledger.available == 40
    with pytest.raises(ValueError):
        ledger.adjust(disbursed_delta=101)
    with pytest.raises(ValueError):
        ledger.adjust(committed_delta=-61)
    restored = FundingLedger.from_dict(ledger.snapshot())
    assert (restored.funded, restored.committed, restored.deposits) == (100, 60, {"a": 100})
