"""
Test suite for the vault (ledger engine boundary).

Covers:
  - Pool registration and validation
  - Static-fee swaps (exact in / exact out)
  - Atomic rollback of failed operations and transactions
  - Reentrancy through hooks
  - Static fee access control
"""

from decimal import Decimal

import pytest

from surgehook.constants import DEFAULT_MAX_SURGE_FEE_PERCENTAGE, DEFAULT_SURGE_THRESHOLD_PERCENTAGE
from surgehook.exceptions import (
    AfterAddLiquidityHookFailed,
    InvalidPercentage,
    PoolNotRegistered,
    ReentrantCall,
    SenderNotAllowed,
)
from surgehook.exchange import (
    AddLiquidityKind,
    ConstantProductPool,
    ConstantSumPool,
    PoolRoleAccounts,
    RemoveLiquidityKind,
    SET_STATIC_SWAP_FEE_ACTION,
    StableSurgeHook,
    SwapKind,
    Vault,
)

D = Decimal
POOL = "pool-a"
TOKENS = ["QRDX", "USDC"]
ROUTER = "router_1"
STATIC_FEE = D("0.01")
MANAGER = "addr_manager"


def _vault(balances=(1000, 1000), math=None, hook_cls=None, roles=None) -> Vault:
    vault = Vault()
    hook = hook_cls(vault) if hook_cls else None
    vault.register_pool(
        POOL, TOKENS, math or ConstantProductPool(), STATIC_FEE,
        initial_balances=[D(b) for b in balances], hook=hook, roles=roles,
    )
    return vault


def _managed_surge_pool():
    vault = Vault()
    hook = StableSurgeHook(vault)
    vault.register_pool(
        POOL, TOKENS, ConstantSumPool(), STATIC_FEE, initial_balances=[D(1000), D(1000)],
        hook=hook, roles=PoolRoleAccounts(swap_fee_manager=MANAGER),
    )
    return vault, hook


class TestRegistration:

    def test_duplicate_pool(self):
        vault = _vault()
        with pytest.raises(ValueError, match="already registered"):
            vault.register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE)

    def test_single_token_pool_rejected(self):
        with pytest.raises(ValueError, match="two tokens"):
            Vault().register_pool(POOL, ["QRDX"], ConstantSumPool(), STATIC_FEE)

    @pytest.mark.parametrize("fee", ["0", "0.2"])
    def test_static_fee_bounds(self, fee):
        with pytest.raises(InvalidPercentage, match="static_swap_fee"):
            Vault().register_pool(POOL, TOKENS, ConstantSumPool(), D(fee))

    def test_balance_length_mismatch(self):
        with pytest.raises(ValueError, match="initial_balances"):
            Vault().register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE, initial_balances=[D(1)])

    def test_empty_pool_by_default(self):
        vault = Vault()
        vault.register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE)
        assert vault.get_pool_balances(POOL) == [D(0), D(0)]
        assert vault.get_pool_tokens(POOL) == TOKENS

    def test_unknown_pool_queries(self):
        with pytest.raises(PoolNotRegistered):
            Vault().get_pool_balances("nope")


class TestStaticSwaps:

    def test_exact_in(self):
        vault = _vault()
        result = vault.swap(ROUTER, POOL, "QRDX", "USDC", D(100))
        # fee 1, then 1000 * 99 / 1099
        assert result.fee_amount == D(1)
        assert result.amount_out == (D(99000) / D(1099)).quantize(D("1e-18"), rounding="ROUND_DOWN")
        assert vault.get_pool_balances(POOL) == [D(1100), D(1000) - result.amount_out]

    def test_exact_out(self):
        vault = _vault()
        result = vault.swap(ROUTER, POOL, "QRDX", "USDC", D(100), kind=SwapKind.EXACT_OUT)
        assert result.amount_out == D(100)
        assert result.amount_in > D(100)
        assert result.fee_amount > 0
        assert vault.get_pool_balances(POOL) == [D(1000) + result.amount_in, D(900)]

    def test_swap_validation(self):
        vault = _vault()
        with pytest.raises(ValueError, match="itself"):
            vault.swap(ROUTER, POOL, "QRDX", "QRDX", D(1))
        with pytest.raises(ValueError, match="positive"):
            vault.swap(ROUTER, POOL, "QRDX", "USDC", D(0))
        with pytest.raises(ValueError, match="not in pool"):
            vault.swap(ROUTER, POOL, "QRDX", "BTC", D(1))

    def test_drain_rejected_and_rolled_back(self):
        vault = _vault(math=ConstantSumPool())
        with pytest.raises(ValueError, match="drain"):
            vault.swap(ROUTER, POOL, "QRDX", "USDC", D(2000))
        assert vault.get_pool_balances(POOL) == [D(1000), D(1000)]


class TestLiquidity:

    def test_unbalanced_add_without_hook(self):
        vault = _vault()
        assert vault.add_liquidity(ROUTER, POOL, [D(5000), D(0)]) == [D(6000), D(1000)]

    def test_non_proportional_amounts_rejected(self):
        vault = _vault()
        with pytest.raises(ValueError, match="not proportional"):
            vault.add_liquidity(ROUTER, POOL, [D(10), D(20)], AddLiquidityKind.PROPORTIONAL)

    def test_proportional_into_empty_balance(self):
        vault = _vault(balances=(0, 100))
        with pytest.raises(ValueError, match="empty"):
            vault.add_liquidity(ROUTER, POOL, [D(1), D(1)], AddLiquidityKind.PROPORTIONAL)

    def test_remove_more_than_balance(self):
        vault = _vault()
        with pytest.raises(ValueError, match="Cannot remove"):
            vault.remove_liquidity(ROUTER, POOL, [D(1001), D(0)])

    def test_negative_amounts_rejected(self):
        vault = _vault()
        with pytest.raises(ValueError, match="non-negative"):
            vault.add_liquidity(ROUTER, POOL, [D(-1), D(0)])

    def test_amount_length_mismatch(self):
        vault = _vault()
        with pytest.raises(ValueError, match="amounts"):
            vault.remove_liquidity(ROUTER, POOL, [D(1)], RemoveLiquidityKind.PROPORTIONAL)


class TestAtomicity:

    def test_failed_block_restores_state(self):
        vault = _vault()
        with pytest.raises(RuntimeError):
            with vault.transaction():
                vault.add_liquidity(ROUTER, POOL, [D(10), D(10)])
                vault.swap(ROUTER, POOL, "QRDX", "USDC", D(5))
                raise RuntimeError("abort")
        assert vault.get_pool_balances(POOL) == [D(1000), D(1000)]

    def test_committed_block_keeps_state(self):
        vault = _vault()
        with vault.transaction():
            vault.add_liquidity(ROUTER, POOL, [D(10), D(10)])
        assert vault.get_pool_balances(POOL) == [D(1010), D(1010)]

    def test_nested_failure_rolls_back_outer(self):
        vault = _vault(hook_cls=StableSurgeHook)
        with pytest.raises(AfterAddLiquidityHookFailed):
            with vault.transaction():
                vault.add_liquidity(ROUTER, POOL, [D(10), D(10)], AddLiquidityKind.PROPORTIONAL)
                # 5000 / 1010 is far past the default threshold
                vault.add_liquidity(ROUTER, POOL, [D(4000), D(0)])
        assert vault.get_pool_balances(POOL) == [D(1000), D(1000)]

    def test_failed_registration_removed(self):
        vault = Vault()
        with pytest.raises(Exception):
            vault.register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE, hook=StableSurgeHook(None))
        assert not vault.is_pool_registered(POOL)

    def test_static_fee_change_rolled_back(self):
        vault = _vault(roles=PoolRoleAccounts(swap_fee_manager=MANAGER))
        with pytest.raises(RuntimeError):
            with vault.transaction():
                vault.set_static_swap_fee(MANAGER, POOL, D("0.05"))
                raise RuntimeError("abort")
        assert vault.get_static_swap_fee(POOL) == STATIC_FEE

    def test_aborted_registration_leaves_no_surge_entry(self):
        vault = Vault()
        hook = StableSurgeHook(vault)
        with pytest.raises(RuntimeError):
            with vault.transaction():
                vault.register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE,
                                    initial_balances=[D(1000), D(1000)], hook=hook)
                raise RuntimeError("abort")
        assert not vault.is_pool_registered(POOL)
        assert hook.registry.pools() == []
        assert hook.registry.events == []

        # The pool id is free again for the same hook
        vault.register_pool(POOL, TOKENS, ConstantSumPool(), STATIC_FEE,
                            initial_balances=[D(1000), D(1000)], hook=hook)
        assert hook.registry.pools() == [POOL]

    def test_surge_setting_change_rolled_back(self):
        vault, hook = _managed_surge_pool()
        with pytest.raises(RuntimeError):
            with vault.transaction():
                hook.set_surge_threshold_percentage(MANAGER, POOL, D("0.9"))
                hook.set_max_surge_fee_percentage(MANAGER, POOL, D("0.5"))
                raise RuntimeError("abort")
        assert hook.get_surge_threshold_percentage(POOL) == DEFAULT_SURGE_THRESHOLD_PERCENTAGE
        assert hook.get_max_surge_fee_percentage(POOL) == DEFAULT_MAX_SURGE_FEE_PERCENTAGE
        assert [e["event"] for e in hook.registry.events] == ["StableSurgeHookRegistered"]

    def test_committed_surge_setting_kept(self):
        vault, hook = _managed_surge_pool()
        with vault.transaction():
            hook.set_surge_threshold_percentage(MANAGER, POOL, D("0.9"))
        assert hook.get_surge_threshold_percentage(POOL) == D("0.9")


class _ReentrantHook(StableSurgeHook):
    """Hook that adds liquidity again from inside the after-add callback."""

    def on_after_add_liquidity(self, sender, router, pool, kind, amounts_in, balances_after):
        sender.add_liquidity(router, pool, amounts_in, kind)
        return super().on_after_add_liquidity(sender, router, pool, kind, amounts_in, balances_after)


class TestReentrancy:

    def test_hook_cannot_reenter_vault(self):
        vault = _vault(hook_cls=_ReentrantHook)
        with pytest.raises(ReentrantCall, match="add_liquidity"):
            vault.add_liquidity(ROUTER, POOL, [D(1), D(1)], AddLiquidityKind.PROPORTIONAL)
        assert not vault.is_unlocked
        assert vault.get_pool_balances(POOL) == [D(1000), D(1000)]

    def test_vault_usable_after_reentrancy_failure(self):
        vault = _vault(hook_cls=_ReentrantHook)
        with pytest.raises(ReentrantCall):
            vault.add_liquidity(ROUTER, POOL, [D(1), D(1)], AddLiquidityKind.PROPORTIONAL)
        result = vault.swap(ROUTER, POOL, "QRDX", "USDC", D(1))
        assert result.amount_out > 0

    def test_not_unlocked_outside_calls(self):
        assert not _vault().is_unlocked


class TestStaticFeeAccess:

    def test_manager_sets_fee(self):
        vault = _vault(roles=PoolRoleAccounts(swap_fee_manager=MANAGER))
        vault.set_static_swap_fee(MANAGER, POOL, D("0.02"))
        assert vault.get_static_swap_fee(POOL) == D("0.02")

    def test_stranger_rejected(self):
        vault = _vault(roles=PoolRoleAccounts(swap_fee_manager=MANAGER))
        with pytest.raises(SenderNotAllowed):
            vault.set_static_swap_fee("stranger", POOL, D("0.02"))

    def test_governance_without_manager(self):
        vault = _vault()
        vault.authorizer.grant_role(SET_STATIC_SWAP_FEE_ACTION, "gov")
        vault.set_static_swap_fee("gov", POOL, D("0.03"))
        assert vault.get_static_swap_fee(POOL) == D("0.03")

    def test_out_of_range(self):
        vault = _vault(roles=PoolRoleAccounts(swap_fee_manager=MANAGER))
        with pytest.raises(InvalidPercentage):
            vault.set_static_swap_fee(MANAGER, POOL, D("0.5"))
