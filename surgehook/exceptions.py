"""
Surge Hook Exceptions

Custom exception classes for the surge-fee hook and its reentrancy guard.
Every error aborts the whole top-level call; none is recovered inside the core.
"""


class SurgeHookException(Exception):
    """Base exception for surgehook."""
    pass


# -- Configuration ----------------------------------------------------------

class ConfigurationError(SurgeHookException):
    """Configuration error."""
    pass


class VaultNotSet(ConfigurationError):
    """Pool registration attempted without a ledger engine reference."""

    def __init__(self, pool: str = ""):
        self.pool = pool
        super().__init__(f"Vault not set for pool {pool!r}" if pool else "Vault not set")


class PoolNotRegistered(ConfigurationError):
    """No surge fee data exists for the pool."""

    def __init__(self, pool: str):
        self.pool = pool
        super().__init__(f"Pool {pool!r} is not registered")


class PoolAlreadyRegistered(ConfigurationError):
    """Surge fee data already exists for the pool."""

    def __init__(self, pool: str):
        self.pool = pool
        super().__init__(f"Pool {pool!r} is already registered")


class InvalidPercentage(ConfigurationError):
    """A percentage parameter is outside its allowed range."""

    def __init__(self, name: str, value, low=None, high=None):
        self.name = name
        self.value = value
        bounds = f" (allowed {low}..{high})" if low is not None or high is not None else ""
        super().__init__(f"Invalid {name}: {value}{bounds}")


# -- Concurrency ------------------------------------------------------------

class ConcurrencyError(SurgeHookException):
    """Concurrency-safety violation."""
    pass


class ReentrantCall(ConcurrencyError):
    """A guarded operation was entered again before it returned."""

    def __init__(self, operation: str = ""):
        self.operation = operation
        super().__init__(f"Reentrant call: {operation}" if operation else "Reentrant call")


# -- Access control ---------------------------------------------------------

class AccessError(SurgeHookException):
    """Caller lacks the capability required by the operation."""
    pass


class SenderIsNotVault(AccessError):
    """Hook callback invoked by something other than its ledger engine."""

    def __init__(self, sender):
        self.sender = sender
        super().__init__(f"Sender {sender!r} is not the vault")


class SenderNotAllowed(AccessError):
    """Caller does not hold the pool's authorized role."""

    def __init__(self, sender: str, action: str = ""):
        self.sender = sender
        self.action = action
        super().__init__(f"Sender {sender!r} not allowed to call {action}" if action
                         else f"Sender {sender!r} not allowed")


# -- Policy rejections ------------------------------------------------------

class HookFailed(SurgeHookException):
    """A hook deliberately rejected the operation."""

    def __init__(self, pool: str = "", reason: str = ""):
        self.pool = pool
        self.reason = reason
        msg = type(self).__name__
        if pool:
            msg += f" for pool {pool!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AfterAddLiquidityHookFailed(HookFailed):
    """The after-add-liquidity hook rejected an unbalanced add."""
    pass


class AfterRemoveLiquidityHookFailed(HookFailed):
    """The after-remove-liquidity hook rejected an unbalanced remove."""
    pass


class DynamicSwapFeeHookFailed(HookFailed):
    """The dynamic swap fee hook did not return a fee."""
    pass
