"""
Surge-fee policy engine

Components:
  - Imbalance metric (median-based, normalised to [0, 1])
  - Surge fee registry (per-pool threshold and maximum surge fee)
  - Surge detection and dynamic fee interpolation
  - Stable surge hook (dynamic swap fee + liquidity gate)
  - Vault (ledger engine boundary with atomic, non-reentrant operations)
"""

from .types import (
    AddLiquidityKind,
    BasePool,
    LedgerEngine,
    PoolRoleAccounts,
    PoolSwapParams,
    RemoveLiquidityKind,
    SwapKind,
)
from .imbalance import (
    calculate_imbalance,
    find_median,
    normalize_balances,
)
from .authorizer import (
    Authorizer,
    ensure_swap_fee_manager_or_governance,
)
from .registry import (
    SurgeFeeData,
    SurgeFeeRegistry,
    SET_MAX_SURGE_FEE_ACTION,
    SET_THRESHOLD_ACTION,
)
from .surge import (
    compute_swap_fee,
    is_surging,
    is_surging_transition,
)
from .hooks import (
    HookFlags,
    HookResult,
    StableSurgeHook,
)
from .pools import (
    ConstantProductPool,
    ConstantSumPool,
)
from .vault import (
    PoolConfig,
    SwapResult,
    Vault,
    SET_STATIC_SWAP_FEE_ACTION,
)

__all__ = [
    # Types
    "AddLiquidityKind", "BasePool", "LedgerEngine", "PoolRoleAccounts",
    "PoolSwapParams", "RemoveLiquidityKind", "SwapKind",
    # Imbalance
    "calculate_imbalance", "find_median", "normalize_balances",
    # Access control
    "Authorizer", "ensure_swap_fee_manager_or_governance",
    # Registry
    "SurgeFeeData", "SurgeFeeRegistry", "SET_MAX_SURGE_FEE_ACTION", "SET_THRESHOLD_ACTION",
    # Surge
    "compute_swap_fee", "is_surging", "is_surging_transition",
    # Hook
    "HookFlags", "HookResult", "StableSurgeHook",
    # Pools
    "ConstantProductPool", "ConstantSumPool",
    # Vault
    "PoolConfig", "SwapResult", "Vault", "SET_STATIC_SWAP_FEE_ACTION",
]
