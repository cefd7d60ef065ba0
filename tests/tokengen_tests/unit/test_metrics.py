from prometheus_client import REGISTRY

from tokengen.core import metrics


def _sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_release_counter_ignores_empty_release():
    before = _sample("tokengen_tokens_released_total")
    metrics.record_release(0)
    metrics.record_release(250)
    assert _sample("tokengen_tokens_released_total") == before + 250


def test_step_outcomes_are_labelled():
    labels = {"kind": "fund", "status": "completed"}
    before = _sample("tokengen_distribution_steps_total", labels)
    metrics.record_step_outcome("fund", "completed")
    assert _sample("tokengen_distribution_steps_total", labels) == before + 1


def test_vesting_pool_gauges():
    metrics.update_vesting_pool(funded=1000, committed=600, disbursed=100)
    assert _sample("tokengen_vesting_pool_units", {"field": "funded"}) == 1000
    assert _sample("tokengen_vesting_pool_units", {"field": "committed"}) == 600
    assert _sample("tokengen_vesting_pool_units", {"field": "disbursed"}) == 100
