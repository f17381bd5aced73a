"""
Surge Hook Package

Core imports are lazily loaded. For direct module access, import from submodules:

    from surgehook.exchange import StableSurgeHook, Vault
    from surgehook.guard import ReentrancyGuard
    from surgehook.exceptions import ReentrantCall
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == 'StableSurgeHook':
        from .exchange.hooks import StableSurgeHook
        return StableSurgeHook
    elif name == 'Vault':
        from .exchange.vault import Vault
        return Vault
    elif name == 'ReentrancyGuard':
        from .guard import ReentrancyGuard
        return ReentrancyGuard
    elif name == 'calculate_imbalance':
        from .exchange.imbalance import calculate_imbalance
        return calculate_imbalance
    raise AttributeError(f"module 'surgehook' has no attribute {name!r}")

__all__ = ['StableSurgeHook', 'Vault', 'ReentrancyGuard', 'calculate_imbalance']
