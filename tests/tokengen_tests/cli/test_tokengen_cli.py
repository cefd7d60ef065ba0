import json
import logging
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from tokengen.cli.main import cli

UNIT = 10**18
EXAMPLE_CONFIG = Path(__file__).resolve().parents[3] / "config" / "genesis.example.yaml"


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger("tokengen").handlers = []


def invoke(*args):
    runner = CliRunner()
    return runner.invoke(cli, ["--log-level", "ERROR", *args])


def test_plan_json():
    result = invoke("--json-output", "plan", str(EXAMPLE_CONFIG))
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    amounts = {b["name"]: int(b["amount"]) for b in payload["buckets"]}
    assert amounts["ecosystem"] == 350_000_000 * UNIT
    assert sum(amounts.values()) == int(payload["total_supply"])
    assert payload["remainder"] == "0"
    assert len(payload["fingerprint"]) == 64
    steps = {step["key"]: step for step in payload["steps"]}
    assert steps["schedule:team"]["depends_on"] == ["fund:team"]
    assert steps["fund:ecosystem"]["deferred"]


def test_plan_table():
    result = invoke("plan", str(EXAMPLE_CONFIG))
    assert result.exit_code == 0, result.output
    assert "public_sale" in result.output


def test_preview_json():
    result = invoke("--json-output", "preview", str(EXAMPLE_CONFIG), "--month", "0", "--month", "12")
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["months"] == [0, 12]
    assert payload["buckets"]["team"] == ["0", str(40_000_000 * UNIT)]
    assert payload["buckets"]["liquidity"] == ["0", str(100_000_000 * UNIT)]
    assert payload["total"][0] == str(213_000_000 * UNIT)


def test_simulate_then_status(tmp_path):
    state_dir = tmp_path / "state"
    result = invoke("--json-output", "simulate", str(EXAMPLE_CONFIG), "--state-dir", str(state_dir))
    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["ok"]
    assert report["deferred"] == ["fund:ecosystem", "schedule:ecosystem"]
    assert "lock:liquidity" in report["completed"]

    rerun = invoke("--json-output", "simulate", str(EXAMPLE_CONFIG), "--state-dir", str(state_dir))
    assert rerun.exit_code == 0, rerun.output
    assert json.loads(rerun.output)["completed"] == []

    status = invoke("--json-output", "status", "--state-dir", str(state_dir))
    assert status.exit_code == 0, status.output
    payload = json.loads(status.output)
    assert payload["plan_fingerprint"] == report["plan_fingerprint"]
    assert {s["key"] for s in payload["steps"]} >= {"transfer:public_sale", "schedule:team"}
    assert len(payload["vesting"]["schedules"]) == 3


def test_status_table(tmp_path):
    state_dir = tmp_path / "state"
    invoke("simulate", str(EXAMPLE_CONFIG), "--state-dir", str(state_dir))
    result = invoke("status", "--state-dir", str(state_dir))
    assert result.exit_code == 0, result.output
    assert "Vesting schedules" in result.output


def test_status_missing_state_dir(tmp_path):
    result = invoke("status", "--state-dir", str(tmp_path / "missing"))
    assert result.exit_code == 1


def test_invalid_config_exits_non_zero(tmp_path):
    data = yaml.safe_load(EXAMPLE_CONFIG.read_text())
    data["buckets"][0]["percentage"] = 25
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump(data))

    result = invoke("plan", str(path))
    assert result.exit_code == 1
    assert "Invalid genesis configuration" in result.output
