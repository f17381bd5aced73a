"""
Test suite for surge detection and dynamic fee interpolation.
"""

from decimal import Decimal

import pytest

from surgehook.exchange.imbalance import calculate_imbalance
from surgehook.exchange.registry import SurgeFeeData
from surgehook.exchange.surge import compute_swap_fee, is_surging, is_surging_transition

ZERO = Decimal("0")
ONE = Decimal("1")
STATIC = Decimal("0.01")
MAX_FEE = Decimal("0.95")
THRESHOLD = Decimal("0.3")


# ============================================================================
#  SURGE DETECTION
# ============================================================================

class TestSurgeTransition:

    @pytest.mark.parametrize("old,new,expected", [
        ("0.1", "0.5", True),     # crosses threshold, increases
        ("0.4", "0.5", True),     # already above, increases further
        ("0.5", "0.4", False),    # above threshold but improving
        ("0.5", "0.5", False),    # unchanged
        ("0.1", "0.2", False),    # increases but stays below threshold
        ("0.1", "0.3", False),    # exactly at threshold is not above it
        ("0", "0", False),
    ])
    def test_truth_table(self, old, new, expected):
        assert is_surging_transition(Decimal(old), Decimal(new), THRESHOLD) is expected

    def test_zero_new_imbalance_never_surges(self):
        assert not is_surging_transition(ZERO, ZERO, ZERO)


class TestIsSurging:

    def test_uses_surge_fee_data_threshold(self):
        data = SurgeFeeData(threshold_percentage=THRESHOLD, max_surge_fee_percentage=MAX_FEE)
        current = [Decimal(100), Decimal(100)]
        assert is_surging(data, current, Decimal("0.5"))
        assert not is_surging(data, current, Decimal("0.2"))

    def test_accepts_bare_threshold(self):
        assert is_surging(THRESHOLD, [Decimal(100), Decimal(100)], Decimal("0.31"))

    def test_improvement_in_skewed_pool_not_surging(self):
        current = [Decimal(10), Decimal(100000)]
        better = calculate_imbalance([Decimal(1010), Decimal(100000)])
        assert better > THRESHOLD
        assert not is_surging(THRESHOLD, current, better)

    def test_worsening_in_skewed_pool_surging(self):
        current = [Decimal(10), Decimal(100000)]
        worse = calculate_imbalance([Decimal(10), Decimal(101000)])
        assert is_surging(THRESHOLD, current, worse)

    def test_proportional_change_not_surging(self):
        current = [Decimal(10), Decimal(100000)]
        scaled = calculate_imbalance([Decimal(11), Decimal(110000)])
        assert not is_surging(THRESHOLD, current, scaled)


# ============================================================================
#  DYNAMIC FEE
# ============================================================================

class TestComputeSwapFee:

    def test_static_fee_below_threshold(self):
        assert compute_swap_fee(STATIC, MAX_FEE, ZERO, Decimal("0.2"), THRESHOLD) == STATIC

    def test_static_fee_at_threshold(self):
        assert compute_swap_fee(STATIC, MAX_FEE, ZERO, THRESHOLD, THRESHOLD) == STATIC

    def test_static_fee_when_not_increasing(self):
        assert compute_swap_fee(STATIC, MAX_FEE, Decimal("0.8"), Decimal("0.7"), THRESHOLD) == STATIC

    def test_midpoint_interpolation(self):
        # (0.65 - 0.3) / 0.7 = 0.5 -> 0.01 + 0.94 * 0.5
        fee = compute_swap_fee(STATIC, MAX_FEE, Decimal("0.1"), Decimal("0.65"), THRESHOLD)
        assert fee == Decimal("0.48")

    def test_full_imbalance_hits_max(self):
        assert compute_swap_fee(STATIC, MAX_FEE, ZERO, ONE, THRESHOLD) == MAX_FEE

    def test_threshold_one_never_surges(self):
        assert compute_swap_fee(STATIC, MAX_FEE, ZERO, ONE, ONE) == STATIC

    def test_max_below_static_returns_static(self):
        fee = compute_swap_fee(Decimal("0.05"), Decimal("0.01"), ZERO, Decimal("0.9"), THRESHOLD)
        assert fee == Decimal("0.05")

    def test_monotonic_and_bounded(self):
        previous = STATIC
        for i in range(0, 101):
            new = THRESHOLD + (ONE - THRESHOLD) * Decimal(i) / Decimal(100)
            fee = compute_swap_fee(STATIC, MAX_FEE, ZERO, new, THRESHOLD)
            assert STATIC <= fee <= MAX_FEE
            assert fee >= previous
            previous = fee
        assert previous == MAX_FEE

    def test_rounds_down(self):
        # 0.3 / 0.7 is not representable; the fee must not exceed the exact value
        fee = compute_swap_fee(STATIC, MAX_FEE, ZERO, Decimal("0.6"), THRESHOLD)
        exact = STATIC + (MAX_FEE - STATIC) * (Decimal("0.3") / Decimal("0.7"))
        assert fee <= exact
        assert exact - fee < Decimal("1e-17")
