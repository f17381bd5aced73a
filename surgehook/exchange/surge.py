"""
Surge detection and surge fee interpolation.

An operation is *surging* when it moves the pool past the threshold and makes
it more imbalanced than before. Operations that reduce imbalance are never
surging, even in a pool that is already above the threshold.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence, Union

from ..fixed_point import ONE, ZERO, clamp, complement, div_down, mul_down
from .imbalance import calculate_imbalance
from .registry import SurgeFeeData

logger = logging.getLogger(__name__)


def _threshold_of(surge: Union[SurgeFeeData, Decimal]) -> Decimal:
    if isinstance(surge, SurgeFeeData):
        return surge.threshold_percentage
    return surge


def is_surging_transition(old_imbalance: Decimal, new_imbalance: Decimal, threshold: Decimal) -> bool:
    """Truth table of the surge rule on precomputed scores."""
    if new_imbalance == ZERO:
        return False
    return new_imbalance > old_imbalance and new_imbalance > threshold


def is_surging(
    surge: Union[SurgeFeeData, Decimal],
    current_balances: Sequence[Decimal],
    new_imbalance: Decimal,
    weights: Optional[Sequence[Decimal]] = None,
) -> bool:
    """
    Decide whether moving from ``current_balances`` to a state with
    ``new_imbalance`` is surging.

    Args:
        surge: the pool's SurgeFeeData, or a bare threshold
        current_balances: balances before the operation
        new_imbalance: imbalance of the balances after the operation
        weights: target composition forwarded to the imbalance metric
    """
    old_imbalance = calculate_imbalance(current_balances, weights)
    return is_surging_transition(old_imbalance, new_imbalance, _threshold_of(surge))


def compute_swap_fee(
    static_fee_percentage: Decimal,
    max_surge_fee_percentage: Decimal,
    old_imbalance: Decimal,
    new_imbalance: Decimal,
    threshold: Decimal,
) -> Decimal:
    """
    Swap fee for a trade moving imbalance from ``old_imbalance`` to ``new_imbalance``.

    Non-surging trades pay the static fee. Surging trades pay

        static + (max - static) * (new - threshold) / (1 - threshold)

    rounded down and clamped to [static, max]. A threshold of one can never be
    exceeded, so it never surges.
    """
    if threshold >= ONE or not is_surging_transition(old_imbalance, new_imbalance, threshold):
        return static_fee_percentage

    ceiling = max_surge_fee_percentage if max_surge_fee_percentage > static_fee_percentage \
        else static_fee_percentage
    progress = div_down(new_imbalance - threshold, complement(threshold))
    fee = static_fee_percentage + mul_down(ceiling - static_fee_percentage, progress)
    fee = clamp(fee, static_fee_percentage, ceiling)
    logger.debug(
        "Surge fee: imbalance %s -> %s (threshold %s), fee %s -> %s",
        old_imbalance, new_imbalance, threshold, static_fee_percentage, fee,
    )
    return fee
