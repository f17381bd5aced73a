"""
Stable Surge Hook

Hook invoked by the vault around pool operations:
  - onComputeDynamicSwapFee: raises the swap fee for trades that push the
    pool past its imbalance threshold
  - onAfterAddLiquidity / onAfterRemoveLiquidity: reject unbalanced
    liquidity changes that would make the pool surge

Proportional liquidity changes cannot increase imbalance and are always
admitted. Every callback is re-evaluated from the balances it receives; the
hook keeps no per-operation state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Flag, auto
from typing import Dict, List, Optional, Sequence

from ..config.loader import HookConfig, PoolSurgeConfig
from ..constants import DEFAULT_MAX_SURGE_FEE_PERCENTAGE, DEFAULT_SURGE_THRESHOLD_PERCENTAGE
from ..exceptions import SenderIsNotVault, VaultNotSet
from ..guard import ReentrancyGuard, non_reentrant
from .authorizer import Authorizer
from .imbalance import calculate_imbalance
from .registry import SurgeFeeData, SurgeFeeRegistry
from .surge import compute_swap_fee, is_surging
from .types import (
    AddLiquidityKind,
    LedgerEngine,
    PoolSwapParams,
    RemoveLiquidityKind,
    SwapKind,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Hook flags: which callbacks the vault must invoke
# ---------------------------------------------------------------------------

class HookFlags(Flag):
    NONE = 0
    BEFORE_SWAP = auto()
    AFTER_SWAP = auto()
    COMPUTE_DYNAMIC_SWAP_FEE = auto()
    BEFORE_ADD_LIQUIDITY = auto()
    AFTER_ADD_LIQUIDITY = auto()
    BEFORE_REMOVE_LIQUIDITY = auto()
    AFTER_REMOVE_LIQUIDITY = auto()


@dataclass
class HookResult:
    """Result from a hook callback."""
    allow: bool = True        # False = the vault reverts the operation
    reason: str = ""
    modified_fee: Optional[Decimal] = None


# ---------------------------------------------------------------------------
# Stable Surge Hook
# ---------------------------------------------------------------------------

class StableSurgeHook:
    """
    Surge-fee hook bound to a single vault.

    Pools registered through ``on_register`` start with the hook-level
    defaults; their swap fee manager (or governance) tunes them afterwards
    through the registry setters exposed here.
    """

    def __init__(
        self,
        vault: Optional[LedgerEngine],
        default_max_surge_fee_percentage: Decimal = DEFAULT_MAX_SURGE_FEE_PERCENTAGE,
        default_threshold_percentage: Decimal = DEFAULT_SURGE_THRESHOLD_PERCENTAGE,
        version: str = "",
        registry: Optional[SurgeFeeRegistry] = None,
        authorizer: Optional[Authorizer] = None,
    ):
        self._vault = vault
        self.version = version
        self.registry = registry or SurgeFeeRegistry(
            authorizer=authorizer,
            default_max_surge_fee_percentage=default_max_surge_fee_percentage,
            default_threshold_percentage=default_threshold_percentage,
        )
        self._guard = ReentrancyGuard("stable_surge_hook")
        self._pool_overrides: Dict[str, PoolSurgeConfig] = {}

    @classmethod
    def from_config(
        cls,
        vault: Optional[LedgerEngine],
        config: HookConfig,
        authorizer: Optional[Authorizer] = None,
    ) -> "StableSurgeHook":
        """Build a hook from the [surge] section, including per-pool overrides."""
        hook = cls(
            vault,
            default_max_surge_fee_percentage=config.surge.default_max_surge_fee_percentage,
            default_threshold_percentage=config.surge.default_threshold_percentage,
            version=config.surge.version,
            authorizer=authorizer,
        )
        hook._pool_overrides = {p.pool: p for p in config.surge.pools}
        return hook

    @property
    def vault(self) -> Optional[LedgerEngine]:
        return self._vault

    @property
    def flags(self) -> HookFlags:
        return (
            HookFlags.COMPUTE_DYNAMIC_SWAP_FEE
            | HookFlags.AFTER_ADD_LIQUIDITY
            | HookFlags.AFTER_REMOVE_LIQUIDITY
        )

    # -- Registration -------------------------------------------------------

    def on_register(self, sender, factory: str, pool: str, tokens: Sequence[str], pool_name: str = "") -> bool:
        """Called by the vault when a pool using this hook is registered."""
        if self._vault is None:
            raise VaultNotSet(pool)
        self._only_vault(sender)
        overrides = self._pool_overrides.get(pool)
        self.registry.register_pool(
            self._vault,
            pool,
            max_surge_fee_percentage=overrides.max_surge_fee_percentage if overrides else None,
            threshold_percentage=overrides.threshold_percentage if overrides else None,
            pool_name=pool_name,
        )
        logger.info("Hook registered for pool=%s (factory=%s, %d tokens)", pool, factory, len(tokens))
        return True

    # -- Queries ------------------------------------------------------------

    def get_surge_fee_data(self, pool: str) -> SurgeFeeData:
        return self.registry.get_surge_fee_data(pool)

    def get_surge_threshold_percentage(self, pool: str) -> Decimal:
        return self.registry.get_surge_threshold_percentage(pool)

    def get_max_surge_fee_percentage(self, pool: str) -> Decimal:
        return self.registry.get_max_surge_fee_percentage(pool)

    # -- Privileged setters -------------------------------------------------

    def set_surge_threshold_percentage(self, caller: str, pool: str, value: Decimal) -> None:
        self.registry.set_surge_threshold_percentage(caller, pool, value)

    def set_max_surge_fee_percentage(self, caller: str, pool: str, value: Decimal) -> None:
        self.registry.set_max_surge_fee_percentage(caller, pool, value)

    # -- Dynamic swap fee ---------------------------------------------------

    @non_reentrant
    def on_compute_dynamic_swap_fee(
        self,
        sender,
        params: PoolSwapParams,
        pool: str,
        static_swap_fee_percentage: Decimal,
    ) -> HookResult:
        """
        Swap fee for ``params`` given the pool's static fee.

        The post-swap balances come from the pool's own swap math; the fee
        rises linearly from the static fee at the threshold to the maximum
        surge fee at full imbalance.
        """
        self._only_vault(sender)
        data = self.registry.get_surge_fee_data(pool)
        balances = self._checked_balances(pool, params.balances)

        amount_calculated = self._vault.get_pool(pool).on_swap(params)
        new_balances = list(balances)
        if params.kind == SwapKind.EXACT_IN:
            new_balances[params.index_in] += params.amount_given
            new_balances[params.index_out] -= amount_calculated
        else:
            new_balances[params.index_in] += amount_calculated
            new_balances[params.index_out] -= params.amount_given

        fee = compute_swap_fee(
            static_swap_fee_percentage,
            data.max_surge_fee_percentage,
            calculate_imbalance(balances),
            calculate_imbalance(new_balances),
            data.threshold_percentage,
        )
        return HookResult(allow=True, modified_fee=fee)

    # -- Liquidity gate -----------------------------------------------------

    @non_reentrant
    def on_after_add_liquidity(
        self,
        sender,
        router: str,
        pool: str,
        kind: AddLiquidityKind,
        amounts_in: Sequence[Decimal],
        balances_after: Sequence[Decimal],
    ) -> HookResult:
        self._only_vault(sender)
        if kind == AddLiquidityKind.PROPORTIONAL:
            return HookResult(allow=True)

        balances_after = self._checked_balances(pool, balances_after)
        if len(amounts_in) != len(balances_after):
            raise ValueError("amounts_in and balances length mismatch")
        balances_before = [b - a for b, a in zip(balances_after, amounts_in)]
        return self._gate(pool, "add", router, balances_before, balances_after)

    @non_reentrant
    def on_after_remove_liquidity(
        self,
        sender,
        router: str,
        pool: str,
        kind: RemoveLiquidityKind,
        amounts_out: Sequence[Decimal],
        balances_after: Sequence[Decimal],
    ) -> HookResult:
        self._only_vault(sender)
        if kind == RemoveLiquidityKind.PROPORTIONAL:
            return HookResult(allow=True)

        balances_after = self._checked_balances(pool, balances_after)
        if len(amounts_out) != len(balances_after):
            raise ValueError("amounts_out and balances length mismatch")
        balances_before = [b + a for b, a in zip(balances_after, amounts_out)]
        return self._gate(pool, "remove", router, balances_before, balances_after)

    # -- Internal -----------------------------------------------------------

    def _gate(
        self,
        pool: str,
        operation: str,
        router: str,
        balances_before: List[Decimal],
        balances_after: List[Decimal],
    ) -> HookResult:
        data = self.registry.get_surge_fee_data(pool)
        new_imbalance = calculate_imbalance(balances_after)
        if is_surging(data, balances_before, new_imbalance):
            logger.info(
                "SURGING %s liquidity REJECTED: pool=%s router=%s imbalance=%s threshold=%s",
                operation, pool, router, new_imbalance, data.threshold_percentage,
            )
            return HookResult(
                allow=False,
                reason=f"imbalance {new_imbalance} exceeds threshold {data.threshold_percentage}",
            )
        return HookResult(allow=True)

    def _checked_balances(self, pool: str, balances: Sequence[Decimal]) -> List[Decimal]:
        expected = len(self._vault.get_pool_tokens(pool))
        if len(balances) != expected:
            raise ValueError(f"Pool {pool} has {expected} tokens, got {len(balances)} balances")
        return list(balances)

    def _only_vault(self, sender) -> None:
        if self._vault is None or sender is not self._vault:
            raise SenderIsNotVault(sender)
