# tests/test_planner.py
import pytest

from tradedata_export.config import ConcurrencyPolicy
from tradedata_export.planner import available_parallelism, plan_workers


def test_small_batch_scenario():
    assert plan_workers(5, available=16) == 2


def test_large_batch_scenario():
    assert plan_workers(200, available=8) == 7


def test_single_combination_uses_one_worker():
    assert plan_workers(1, available=16) == 1


def test_medium_batch_uses_half_the_cores_up_to_four():
    assert plan_workers(50, available=16) == 4
    assert plan_workers(50, available=4) == 2


def test_large_batch_capped_at_eight():
    assert plan_workers(1000, available=64) == 8


def test_zero_combinations_plans_nothing():
    assert plan_workers(0, available=8) == 0


@pytest.mark.parametrize("available", [1, 2])
def test_result_never_below_one(available):
    assert plan_workers(500, available=available) >= 1
    assert plan_workers(50, available=available) >= 1


def test_override_caps_but_never_raises():
    assert plan_workers(200, available=8, override=3) == 3
    assert plan_workers(5, available=16, override=10) == 2


def test_result_never_exceeds_total():
    policy = ConcurrencyPolicy(small_batch_threshold=1, medium_batch_threshold=2)
    assert plan_workers(3, available=64, policy=policy) == 3


def test_policy_thresholds_are_configurable():
    policy = ConcurrencyPolicy(small_batch_workers=4)
    assert plan_workers(8, available=16, policy=policy) == 4


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        ConcurrencyPolicy(small_batch_threshold=200, medium_batch_threshold=100)


def test_available_parallelism_positive():
    assert available_parallelism() >= 1
