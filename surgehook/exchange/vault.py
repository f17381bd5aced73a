"""
Vault: the ledger engine boundary.

Holds authoritative pool balances and invokes the pool's hook around swaps
and liquidity changes. Each public mutation is a top-level call:

  - guarded by the vault's reentrancy latch
  - executed against a snapshot, covering the hooks' surge fee registries,
    that is restored on any failure, so a rejected operation leaves no
    partial state behind
  - hook rejections surface as AfterAddLiquidityHookFailed /
    AfterRemoveLiquidityHookFailed

Token transfers, pool share accounting and settlement are outside this model.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..constants import FP_QUANTUM, MAX_STATIC_SWAP_FEE, MIN_STATIC_SWAP_FEE
from ..exceptions import (
    AfterAddLiquidityHookFailed,
    AfterRemoveLiquidityHookFailed,
    DynamicSwapFeeHookFailed,
    InvalidPercentage,
    PoolNotRegistered,
)
from ..fixed_point import ZERO, complement, div_down, div_up, mul_down, mul_up, to_fixed
from ..guard import ReentrancyGuard, non_reentrant
from .authorizer import Authorizer, ensure_swap_fee_manager_or_governance
from .hooks import HookFlags, StableSurgeHook
from .registry import SurgeFeeRegistry
from .types import (
    AddLiquidityKind,
    BasePool,
    PoolRoleAccounts,
    PoolSwapParams,
    RemoveLiquidityKind,
    SwapKind,
)

logger = logging.getLogger(__name__)

SET_STATIC_SWAP_FEE_ACTION = "setStaticSwapFeePercentage"

# Relative tolerance when checking that caller-supplied amounts are proportional
PROPORTIONAL_TOLERANCE = Decimal("1e-12")


@dataclass
class PoolConfig:
    """Vault-side record of a registered pool."""
    pool: str
    tokens: List[str]
    math: BasePool
    static_swap_fee: Decimal
    balances: List[Decimal]
    roles: PoolRoleAccounts = field(default_factory=PoolRoleAccounts)
    hook: Optional[StableSurgeHook] = None
    hook_flags: HookFlags = HookFlags.NONE


@dataclass
class SwapResult:
    amount_in: Decimal
    amount_out: Decimal
    fee_amount: Decimal
    fee_percentage: Decimal


class Vault:
    """Minimal multi-pool ledger engine with atomic, non-reentrant operations."""

    def __init__(self, authorizer: Optional[Authorizer] = None) -> None:
        self.authorizer = authorizer or Authorizer()
        self._pools: Dict[str, PoolConfig] = {}
        self._guard = ReentrancyGuard("vault")
        self._tx_depth: int = 0
        self._tx_registries: Dict[int, Tuple[SurgeFeeRegistry, Dict[str, Any]]] = {}

    # -- Atomicity ----------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Run a block atomically.

        Nested transactions join the outermost one; only the outermost restores
        the snapshot on failure.
        """
        if self._tx_depth > 0:
            self._tx_depth += 1
            try:
                yield
            finally:
                self._tx_depth -= 1
            return

        snapshot = self._take_snapshot()
        self._tx_depth = 1
        try:
            yield
        except BaseException as e:
            self._restore_snapshot(snapshot)
            logger.warning("Vault call reverted (%s): state restored", type(e).__name__)
            raise
        finally:
            self._tx_depth = 0
            self._tx_registries = {}

    def _take_snapshot(self) -> Dict[str, Any]:
        self._tx_registries = {}
        for cfg in self._pools.values():
            if cfg.hook is not None:
                self._track_registry(cfg.hook.registry)
        return {
            pool: (list(cfg.balances), cfg.static_swap_fee)
            for pool, cfg in self._pools.items()
        }

    def _track_registry(self, registry: SurgeFeeRegistry) -> None:
        """Snapshot a hook's registry the first time the open transaction reaches it."""
        if id(registry) not in self._tx_registries:
            self._tx_registries[id(registry)] = (registry, registry.snapshot())

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        for pool in list(self._pools):
            if pool not in snapshot:
                del self._pools[pool]
        for pool, (balances, static_fee) in snapshot.items():
            cfg = self._pools[pool]
            cfg.balances = list(balances)
            cfg.static_swap_fee = static_fee
        for registry, registry_snapshot in self._tx_registries.values():
            registry.restore(registry_snapshot)

    @property
    def is_unlocked(self) -> bool:
        """True while a guarded vault operation is executing."""
        return self._guard.entered

    # -- Registration -------------------------------------------------------

    @non_reentrant
    def register_pool(
        self,
        pool: str,
        tokens: Sequence[str],
        math: BasePool,
        static_swap_fee: Decimal,
        initial_balances: Optional[Sequence[Decimal]] = None,
        hook: Optional[StableSurgeHook] = None,
        roles: Optional[PoolRoleAccounts] = None,
        factory: str = "",
        pool_name: str = "",
    ) -> PoolConfig:
        if pool in self._pools:
            raise ValueError(f"Pool {pool} already registered")
        if len(tokens) < 2:
            raise ValueError("A pool needs at least two tokens")
        static_swap_fee = self._validate_static_fee(static_swap_fee)
        balances = [to_fixed(b) for b in (initial_balances or [ZERO] * len(tokens))]
        if len(balances) != len(tokens):
            raise ValueError("initial_balances must match tokens")
        if any(b < 0 for b in balances):
            raise ValueError("Balances must be non-negative")

        with self.transaction():
            cfg = PoolConfig(
                pool=pool,
                tokens=list(tokens),
                math=math,
                static_swap_fee=static_swap_fee,
                balances=balances,
                roles=roles or PoolRoleAccounts(),
                hook=hook,
                hook_flags=hook.flags if hook is not None else HookFlags.NONE,
            )
            self._pools[pool] = cfg
            if hook is not None:
                self._track_registry(hook.registry)
                hook.on_register(self, factory, pool, list(tokens), pool_name)
        logger.info("Pool registered: pool=%s tokens=%s static_fee=%s", pool, ",".join(tokens), static_swap_fee)
        return cfg

    # -- Queries (LedgerEngine surface) --------------------------------------

    def get_pool_balances(self, pool: str) -> List[Decimal]:
        return list(self._config(pool).balances)

    def get_pool_tokens(self, pool: str) -> List[str]:
        return list(self._config(pool).tokens)

    def get_pool(self, pool: str) -> BasePool:
        return self._config(pool).math

    def get_pool_role_accounts(self, pool: str) -> PoolRoleAccounts:
        return self._config(pool).roles

    def get_static_swap_fee(self, pool: str) -> Decimal:
        return self._config(pool).static_swap_fee

    def is_pool_registered(self, pool: str) -> bool:
        return pool in self._pools

    # -- Static fee ---------------------------------------------------------

    @non_reentrant
    def set_static_swap_fee(self, caller: str, pool: str, fee: Decimal) -> None:
        cfg = self._config(pool)
        ensure_swap_fee_manager_or_governance(self.authorizer, cfg.roles, SET_STATIC_SWAP_FEE_ACTION, caller)
        cfg.static_swap_fee = self._validate_static_fee(fee)
        logger.info("Static swap fee changed: pool=%s fee=%s", pool, cfg.static_swap_fee)

    # -- Swap ---------------------------------------------------------------

    @non_reentrant
    def swap(
        self,
        router: str,
        pool: str,
        token_in: str,
        token_out: str,
        amount_given: Decimal,
        kind: SwapKind = SwapKind.EXACT_IN,
    ) -> SwapResult:
        """
        Swap against ``pool``; the fee is charged on the input token and stays in the pool.

        Raises:
            ValueError: unknown token, same token, non-positive amount
            DynamicSwapFeeHookFailed: the hook returned no fee
        """
        cfg = self._config(pool)
        index_in = self._token_index(cfg, token_in)
        index_out = self._token_index(cfg, token_out)
        if index_in == index_out:
            raise ValueError("Cannot swap a token for itself")
        amount_given = to_fixed(amount_given)
        if amount_given <= 0:
            raise ValueError("Swap amount must be positive")

        with self.transaction():
            fee_pct = self._swap_fee(cfg, kind, amount_given, index_in, index_out, router)

            if kind == SwapKind.EXACT_IN:
                fee_amount = mul_up(amount_given, fee_pct)
                amount_out = cfg.math.on_swap(self._swap_params(
                    cfg, kind, amount_given - fee_amount, index_in, index_out, router,
                ))
                amount_in = amount_given
            else:
                if fee_pct >= 1:
                    raise ValueError("Exact-out swap impossible at a 100% fee")
                amount_out = amount_given
                net_in = cfg.math.on_swap(self._swap_params(
                    cfg, kind, amount_given, index_in, index_out, router,
                ))
                amount_in = div_up(net_in, complement(fee_pct))
                fee_amount = amount_in - net_in

            if amount_out > cfg.balances[index_out]:
                raise ValueError("Swap would drain pool")
            cfg.balances[index_in] += amount_in
            cfg.balances[index_out] -= amount_out

        logger.debug(
            "Swap pool=%s %s %s -> %s %s fee=%s (%s)",
            pool, amount_in, token_in, amount_out, token_out, fee_amount, fee_pct,
        )
        return SwapResult(amount_in, amount_out, fee_amount, fee_pct)

    # -- Liquidity ----------------------------------------------------------

    def proportional_amounts(self, pool: str, fraction: Decimal) -> List[Decimal]:
        """Amounts that change every balance by the same ``fraction``."""
        return [mul_down(b, to_fixed(fraction)) for b in self._config(pool).balances]

    @non_reentrant
    def add_liquidity(
        self,
        router: str,
        pool: str,
        amounts_in: Sequence[Decimal],
        kind: AddLiquidityKind = AddLiquidityKind.UNBALANCED,
    ) -> List[Decimal]:
        """
        Add ``amounts_in`` to the pool and return the new balances.

        Raises:
            AfterAddLiquidityHookFailed: the hook rejected the operation; nothing is applied
        """
        cfg = self._config(pool)
        amounts = self._checked_amounts(cfg, amounts_in)
        if kind == AddLiquidityKind.PROPORTIONAL:
            self._ensure_proportional(cfg, amounts)

        with self.transaction():
            for i, amount in enumerate(amounts):
                cfg.balances[i] += amount

            if cfg.hook is not None and HookFlags.AFTER_ADD_LIQUIDITY in cfg.hook_flags:
                result = cfg.hook.on_after_add_liquidity(
                    self, router, pool, kind, list(amounts), list(cfg.balances),
                )
                if not result.allow:
                    raise AfterAddLiquidityHookFailed(pool, result.reason)
        return list(cfg.balances)

    @non_reentrant
    def remove_liquidity(
        self,
        router: str,
        pool: str,
        amounts_out: Sequence[Decimal],
        kind: RemoveLiquidityKind = RemoveLiquidityKind.SINGLE_TOKEN_EXACT_OUT,
    ) -> List[Decimal]:
        """
        Remove ``amounts_out`` from the pool and return the new balances.

        Raises:
            AfterRemoveLiquidityHookFailed: the hook rejected the operation; nothing is applied
        """
        cfg = self._config(pool)
        amounts = self._checked_amounts(cfg, amounts_out)
        if kind == RemoveLiquidityKind.PROPORTIONAL:
            self._ensure_proportional(cfg, amounts)
        for i, amount in enumerate(amounts):
            if amount > cfg.balances[i]:
                raise ValueError(f"Cannot remove {amount} of {cfg.tokens[i]}: balance {cfg.balances[i]}")

        with self.transaction():
            for i, amount in enumerate(amounts):
                cfg.balances[i] -= amount

            if cfg.hook is not None and HookFlags.AFTER_REMOVE_LIQUIDITY in cfg.hook_flags:
                result = cfg.hook.on_after_remove_liquidity(
                    self, router, pool, kind, list(amounts), list(cfg.balances),
                )
                if not result.allow:
                    raise AfterRemoveLiquidityHookFailed(pool, result.reason)
        return list(cfg.balances)

    # -- Internal -----------------------------------------------------------

    def _config(self, pool: str) -> PoolConfig:
        cfg = self._pools.get(pool)
        if cfg is None:
            raise PoolNotRegistered(pool)
        return cfg

    @staticmethod
    def _token_index(cfg: PoolConfig, token: str) -> int:
        try:
            return cfg.tokens.index(token)
        except ValueError:
            raise ValueError(f"Token {token} not in pool {cfg.pool}") from None

    @staticmethod
    def _validate_static_fee(fee: Decimal) -> Decimal:
        fee = to_fixed(fee)
        if fee < MIN_STATIC_SWAP_FEE or fee > MAX_STATIC_SWAP_FEE:
            raise InvalidPercentage("static_swap_fee", fee, MIN_STATIC_SWAP_FEE, MAX_STATIC_SWAP_FEE)
        return fee

    @staticmethod
    def _checked_amounts(cfg: PoolConfig, amounts: Sequence[Decimal]) -> List[Decimal]:
        if len(amounts) != len(cfg.tokens):
            raise ValueError(f"Pool {cfg.pool} has {len(cfg.tokens)} tokens, got {len(amounts)} amounts")
        fixed = [to_fixed(a) for a in amounts]
        if any(a < 0 for a in fixed):
            raise ValueError("Amounts must be non-negative")
        return fixed

    @staticmethod
    def _ensure_proportional(cfg: PoolConfig, amounts: List[Decimal]) -> None:
        if all(b == 0 for b in cfg.balances):
            return
        if any(a > 0 and b == 0 for a, b in zip(amounts, cfg.balances)):
            raise ValueError("Proportional amounts must be zero for empty balances")
        ratios = [div_down(a, b) for a, b in zip(amounts, cfg.balances) if b > 0]
        reference = max(ratios)
        if any(reference - r > reference * PROPORTIONAL_TOLERANCE + FP_QUANTUM for r in ratios):
            raise ValueError("Amounts are not proportional to pool balances")

    @staticmethod
    def _swap_params(cfg, kind, amount, index_in, index_out, router) -> PoolSwapParams:
        return PoolSwapParams(
            kind=kind,
            amount_given=amount,
            balances=list(cfg.balances),
            index_in=index_in,
            index_out=index_out,
            router=router,
        )

    def _swap_fee(self, cfg: PoolConfig, kind, amount_given, index_in, index_out, router) -> Decimal:
        if cfg.hook is None or HookFlags.COMPUTE_DYNAMIC_SWAP_FEE not in cfg.hook_flags:
            return cfg.static_swap_fee
        result = cfg.hook.on_compute_dynamic_swap_fee(
            self,
            self._swap_params(cfg, kind, amount_given, index_in, index_out, router),
            cfg.pool,
            cfg.static_swap_fee,
        )
        if not result.allow or result.modified_fee is None:
            raise DynamicSwapFeeHookFailed(cfg.pool, result.reason)
        return result.modified_fee
