"""
Median-based pool imbalance.

    imbalance = sum(|x_i - median(x)|) / sum(x_i)

where ``x_i`` is each balance normalised by its target share. Measuring
deviation from the median rather than the mean means a single drained or
flooded asset dominates the score instead of being averaged away. The score is
always in [0, 1] because the median minimises total absolute deviation, so the
numerator is never larger than the deviation from zero, which is the
denominator.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from ..fixed_point import ONE, ZERO, abs_sub, div_down, to_fixed, total


def find_median(values: Sequence[Decimal]) -> Decimal:
    """Median of ``values``; the mean of the two middle values for even counts."""
    if not values:
        raise ValueError("Median of an empty sequence")
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 1:
        return ordered[mid]
    return div_down(total(ordered[mid - 1:mid + 1]), Decimal(2))


def normalize_balances(
    balances: Sequence[Decimal],
    weights: Optional[Sequence[Decimal]] = None,
) -> List[Decimal]:
    """
    Scale each balance by its target share so a balanced pool has equal entries.

    With no ``weights`` every asset targets an equal share and balances are
    returned unchanged (as fixed-point values).
    """
    fixed = [to_fixed(b) for b in balances]
    for b in fixed:
        if b < 0:
            raise ValueError(f"Negative balance: {b}")
    if weights is None:
        return fixed
    if len(weights) != len(fixed):
        raise ValueError(f"Expected {len(fixed)} weights, got {len(weights)}")
    w = [to_fixed(x) for x in weights]
    if any(x <= 0 for x in w):
        raise ValueError("Target weights must be positive")
    weight_sum = total(w)
    # Balance per unit of target share; a balanced pool maps to the same value everywhere
    return [div_down(b, div_down(x, weight_sum)) for b, x in zip(fixed, w)]


def calculate_imbalance(
    balances: Sequence[Decimal],
    weights: Optional[Sequence[Decimal]] = None,
) -> Decimal:
    """
    Imbalance score of ``balances`` in [0, 1].

    Args:
        balances: per-asset balances, index-aligned with the pool tokens
        weights: optional target composition; equal shares when omitted

    Returns:
        0 for an exactly balanced or an empty (all-zero) pool, approaching 1
        as value concentrates in a minority of assets.
    """
    normalized = normalize_balances(balances, weights)
    if not normalized:
        return ZERO
    pool_total = total(normalized)
    if pool_total == 0:
        return ZERO

    median = find_median(normalized)
    total_diff = total(abs_sub(x, median) for x in normalized)
    imbalance = div_down(total_diff, pool_total)
    # Rounding in the normalisation step can push a hair past one
    return imbalance if imbalance <= ONE else ONE
