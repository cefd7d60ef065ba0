import json

from tokengen.core.exceptions import PermanentTransferError, TransientTransferError
from tokengen.distribution.step_log import StepLog, StepStatus
from tokengen.distribution.steps import STEP_TRANSFER, DistributionStep

STEP = DistributionStep(
    key="transfer:public_sale",
    kind=STEP_TRANSFER,
    bucket="public_sale",
    amount=200 * 10**24,
    recipient="0x3000000000000000000000000000000000000003",
)


def test_lifecycle_is_persisted(tmp_path):
    path = str(tmp_path / "distribution_steps.json")
    log = StepLog(path)
    log.mark_in_flight(STEP, "0xabc")
    assert log.get(STEP.key).status == StepStatus.IN_FLIGHT

    log.mark_confirmed(STEP, "0xabc")
    log.mark_completed(STEP)

    reloaded = StepLog(path)
    record = reloaded.get(STEP.key)
    assert record.status == StepStatus.COMPLETED
    assert record.tx_hash == "0xabc"
    assert record.amount == str(STEP.amount)
    assert reloaded.is_completed(STEP.key)

    raw = json.loads((tmp_path / "distribution_steps.json").read_text())
    assert raw["steps"][0]["status"] == "completed"


def test_recoverable_failure_keeps_tx_hash():
    log = StepLog()
    log.mark_in_flight(STEP, "0xabc")
    log.mark_failed(STEP, TransientTransferError("timeout"))
    record = log.get(STEP.key)
    assert record.status == StepStatus.FAILED
    assert record.tx_hash == "0xabc"
    assert record.recoverable
    assert record.attempts == 1


def test_permanent_failure_drops_unconfirmed_tx_hash():
    log = StepLog()
    log.mark_in_flight(STEP, "0xabc")
    log.mark_failed(STEP, PermanentTransferError("reverted"))
    record = log.get(STEP.key)
    assert record.tx_hash is None
    assert not record.recoverable


def test_confirmed_transfer_survives_later_failure():
    log = StepLog()
    log.mark_confirmed(STEP, "0xabc")
    log.mark_failed(STEP, ValueError("deposit mismatch"))
    log.mark_failed(STEP, ValueError("deposit mismatch"))
    record = log.get(STEP.key)
    assert record.tx_hash == "0xabc"
    assert record.confirmed
    assert record.attempts == 2
    assert record.error == {"error": "ValueError", "message": "deposit mismatch", "recoverable": False}


def test_deferred():
    log = StepLog()
    log.mark_deferred(STEP)
    assert log.get(STEP.key).status == StepStatus.DEFERRED
    assert not log.is_completed(STEP.key)
    assert [r.key for r in log.records()] == [STEP.key]
