"""
Per-pool surge fee configuration.

The registry exclusively owns each pool's ``SurgeFeeData``. The hook and the
fee calculator read it; only the two privileged setters change it after
registration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..constants import DEFAULT_MAX_SURGE_FEE_PERCENTAGE, DEFAULT_SURGE_THRESHOLD_PERCENTAGE
from ..exceptions import InvalidPercentage, PoolAlreadyRegistered, PoolNotRegistered, VaultNotSet
from ..fixed_point import ONE, ZERO, to_fixed
from .authorizer import Authorizer, ensure_swap_fee_manager_or_governance
from .types import LedgerEngine

logger = logging.getLogger(__name__)

SET_THRESHOLD_ACTION = "setSurgeThresholdPercentage"
SET_MAX_SURGE_FEE_ACTION = "setMaxSurgeFeePercentage"


@dataclass(frozen=True)
class SurgeFeeData:
    """Surge parameters of one pool."""
    threshold_percentage: Decimal
    max_surge_fee_percentage: Decimal


@dataclass
class _PoolEntry:
    vault: LedgerEngine
    data: SurgeFeeData
    pool_name: str = ""


def validate_threshold_percentage(value: Decimal) -> Decimal:
    """Thresholds live in (0, 1]."""
    value = to_fixed(value)
    if value <= ZERO or value > ONE:
        raise InvalidPercentage("threshold_percentage", value, "0 (exclusive)", ONE)
    return value


def validate_max_surge_fee_percentage(value: Decimal, static_fee: Decimal = ZERO) -> Decimal:
    """The surge ceiling lives in [static_fee, 1]."""
    value = to_fixed(value)
    if value < static_fee or value > ONE:
        raise InvalidPercentage("max_surge_fee_percentage", value, static_fee, ONE)
    return value


class SurgeFeeRegistry:
    """
    Keyed store: pool id -> SurgeFeeData.

    Every entry remembers the ledger engine that registered it so setters can
    resolve the pool's roles and current static fee.
    """

    def __init__(
        self,
        authorizer: Optional[Authorizer] = None,
        default_max_surge_fee_percentage: Decimal = DEFAULT_MAX_SURGE_FEE_PERCENTAGE,
        default_threshold_percentage: Decimal = DEFAULT_SURGE_THRESHOLD_PERCENTAGE,
    ) -> None:
        self.authorizer = authorizer or Authorizer()
        self.default_max_surge_fee_percentage = validate_max_surge_fee_percentage(
            default_max_surge_fee_percentage
        )
        self.default_threshold_percentage = validate_threshold_percentage(default_threshold_percentage)
        self._pools: Dict[str, _PoolEntry] = {}
        self.events: List[Dict[str, Any]] = []

    # -- Registration -------------------------------------------------------

    def register_pool(
        self,
        vault: Optional[LedgerEngine],
        pool: str,
        max_surge_fee_percentage: Optional[Decimal] = None,
        threshold_percentage: Optional[Decimal] = None,
        pool_name: str = "",
    ) -> SurgeFeeData:
        """
        Create the pool's entry, falling back to the registry defaults.

        Raises:
            VaultNotSet: ``vault`` is None; nothing is stored
            PoolAlreadyRegistered: the pool has an entry; its tuned values are kept
            InvalidPercentage: a parameter is out of range
        """
        if vault is None:
            raise VaultNotSet(pool)
        if pool in self._pools:
            raise PoolAlreadyRegistered(pool)

        static_fee = vault.get_static_swap_fee(pool)
        max_fee = validate_max_surge_fee_percentage(
            self.default_max_surge_fee_percentage if max_surge_fee_percentage is None
            else max_surge_fee_percentage,
            static_fee,
        )
        threshold = validate_threshold_percentage(
            self.default_threshold_percentage if threshold_percentage is None
            else threshold_percentage
        )

        data = SurgeFeeData(threshold_percentage=threshold, max_surge_fee_percentage=max_fee)
        self._pools[pool] = _PoolEntry(vault=vault, data=data, pool_name=pool_name)
        self._emit("StableSurgeHookRegistered", pool, pool_name=pool_name)
        logger.info(
            "Surge fee registered: pool=%s name=%r threshold=%s max_fee=%s",
            pool, pool_name, threshold, max_fee,
        )
        return data

    def is_registered(self, pool: str) -> bool:
        return pool in self._pools

    def pools(self) -> List[str]:
        return list(self._pools)

    # -- Queries ------------------------------------------------------------

    def get_surge_fee_data(self, pool: str) -> SurgeFeeData:
        return self._entry(pool).data

    def get_surge_threshold_percentage(self, pool: str) -> Decimal:
        return self._entry(pool).data.threshold_percentage

    def get_max_surge_fee_percentage(self, pool: str) -> Decimal:
        return self._entry(pool).data.max_surge_fee_percentage

    def get_pool_name(self, pool: str) -> str:
        return self._entry(pool).pool_name

    # -- Privileged setters -------------------------------------------------

    def set_surge_threshold_percentage(self, caller: str, pool: str, value: Decimal) -> None:
        entry = self._entry(pool)
        ensure_swap_fee_manager_or_governance(
            self.authorizer, entry.vault.get_pool_role_accounts(pool), SET_THRESHOLD_ACTION, caller,
        )
        threshold = validate_threshold_percentage(value)
        entry.data = replace(entry.data, threshold_percentage=threshold)
        self._emit("ThresholdSurgePercentageChanged", pool, new_threshold_percentage=threshold)
        logger.info("Surge threshold changed: pool=%s threshold=%s by %s", pool, threshold, caller)

    def set_max_surge_fee_percentage(self, caller: str, pool: str, value: Decimal) -> None:
        entry = self._entry(pool)
        ensure_swap_fee_manager_or_governance(
            self.authorizer, entry.vault.get_pool_role_accounts(pool), SET_MAX_SURGE_FEE_ACTION, caller,
        )
        max_fee = validate_max_surge_fee_percentage(value, entry.vault.get_static_swap_fee(pool))
        entry.data = replace(entry.data, max_surge_fee_percentage=max_fee)
        self._emit("MaxSurgeFeePercentageChanged", pool, new_max_surge_fee_percentage=max_fee)
        logger.info("Max surge fee changed: pool=%s max_fee=%s by %s", pool, max_fee, caller)

    # -- Rollback -----------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """Copy of every entry and the event log position, for ``restore``."""
        return {
            "pools": {pool: replace(entry) for pool, entry in self._pools.items()},
            "events": len(self.events),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """Drop every change made since ``snapshot`` was taken."""
        self._pools = {pool: replace(entry) for pool, entry in snapshot["pools"].items()}
        del self.events[snapshot["events"]:]

    # -- Internal -----------------------------------------------------------

    def _entry(self, pool: str) -> _PoolEntry:
        entry = self._pools.get(pool)
        if entry is None:
            raise PoolNotRegistered(pool)
        return entry

    def _emit(self, event: str, pool: str, **fields: Any) -> None:
        self.events.append({"event": event, "pool": pool, **fields})
