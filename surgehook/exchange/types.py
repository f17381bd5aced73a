"""
Types shared between the ledger engine and the hook callbacks.

The ledger engine and the pool math are external collaborators; only the
surface the hook relies on is described here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Protocol, Sequence


class SwapKind(Enum):
    EXACT_IN = "exact_in"
    EXACT_OUT = "exact_out"


class AddLiquidityKind(Enum):
    PROPORTIONAL = "proportional"
    UNBALANCED = "unbalanced"
    SINGLE_TOKEN_EXACT_OUT = "single_token_exact_out"


class RemoveLiquidityKind(Enum):
    PROPORTIONAL = "proportional"
    SINGLE_TOKEN_EXACT_IN = "single_token_exact_in"
    SINGLE_TOKEN_EXACT_OUT = "single_token_exact_out"


@dataclass(frozen=True)
class PoolRoleAccounts:
    """Accounts holding per-pool roles; an empty string means unassigned."""
    swap_fee_manager: str = ""
    pool_creator: str = ""
    pause_manager: str = ""


@dataclass
class PoolSwapParams:
    """
    Swap request as seen by a pool and its hook.

    ``balances`` are the pool balances before the swap, ``amount_given`` is the
    exact-in or exact-out amount depending on ``kind``.
    """
    kind: SwapKind
    amount_given: Decimal
    balances: List[Decimal]
    index_in: int
    index_out: int
    router: str = ""
    user_data: Dict[str, Any] = field(default_factory=dict)


class BasePool(Protocol):
    """Swap math supplied by the pool; the hook treats it as a black box."""

    def on_swap(self, params: PoolSwapParams) -> Decimal: ...


class LedgerEngine(Protocol):
    """The parts of the vault that the registry and the hook query."""

    def get_static_swap_fee(self, pool: str) -> Decimal: ...
    def get_pool_role_accounts(self, pool: str) -> PoolRoleAccounts: ...
    def get_pool_tokens(self, pool: str) -> Sequence[str]: ...
    def get_pool(self, pool: str) -> BasePool: ...
