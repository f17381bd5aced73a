"""
Reference swap math used with the vault.

Pool invariants are external to the surge hook; these two pools exist so the
dynamic fee callback has real post-swap balances to work with.
"""

from __future__ import annotations

from decimal import Decimal

from ..fixed_point import div_down, div_up, mul_down
from .types import PoolSwapParams, SwapKind


class ConstantProductPool:
    """Equal-weight ``x * y = k`` math between any two tokens of the pool."""

    def on_swap(self, params: PoolSwapParams) -> Decimal:
        balance_in = params.balances[params.index_in]
        balance_out = params.balances[params.index_out]
        if params.kind == SwapKind.EXACT_IN:
            # out = b_out * a_in / (b_in + a_in)
            return div_down(mul_down(balance_out, params.amount_given), balance_in + params.amount_given)
        if params.amount_given >= balance_out:
            raise ValueError("Swap would drain pool")
        # in = b_in * a_out / (b_out - a_out)
        return div_up(balance_in * params.amount_given, balance_out - params.amount_given)


class ConstantSumPool:
    """One-for-one math; every token is worth the same."""

    def on_swap(self, params: PoolSwapParams) -> Decimal:
        # Exact in and exact out coincide at a 1:1 rate
        if params.amount_given > params.balances[params.index_out]:
            raise ValueError("Swap would drain pool")
        return params.amount_given
