"""
Call-stack reentrancy guard.

Each guard owns a storage slot in a context-local latch set. Entering the
guard marks the slot, leaving it (normally or by exception) restores the
previous latch set, so nothing survives the protected call. The latch lives in
a ``contextvars.ContextVar``: every thread and every asyncio task starts with
an empty set, which means a new top-level call is never observed as entered.

    guard = ReentrancyGuard("vault")

    with guard.enter("swap"):
        ...                      # nested guard.enter() raises ReentrantCall

    class Vault:
        def __init__(self):
            self._guard = ReentrancyGuard("vault")

        @non_reentrant
        def swap(self, ...):
            ...
"""

from __future__ import annotations

import functools
import itertools
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, FrozenSet, Iterator, Optional, TypeVar

from .exceptions import ReentrantCall

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

# Slots currently entered in this call context.
_entered_slots: ContextVar[FrozenSet[str]] = ContextVar("surgehook_reentrancy_slots", default=frozenset())

_slot_sequence = itertools.count(1)


class ReentrancyGuard:
    """
    Boolean latch keyed by ``slot``.

    Two guards with the same slot share one latch; by default every guard gets
    a fresh slot so independent objects never block each other.
    """

    def __init__(self, name: str = "guard", slot: Optional[str] = None) -> None:
        self.name = name
        self.slot = slot or f"{name}#{next(_slot_sequence)}"

    @property
    def entered(self) -> bool:
        """True while a guarded call is executing in the current context."""
        return self.slot in _entered_slots.get()

    @contextmanager
    def enter(self, operation: str = "") -> Iterator[None]:
        slots = _entered_slots.get()
        if self.slot in slots:
            logger.warning("ReentrantCall blocked on %s (%s)", self.name, operation or "?")
            raise ReentrantCall(operation or self.name)
        token = _entered_slots.set(slots | {self.slot})
        try:
            yield
        finally:
            _entered_slots.reset(token)

    def __repr__(self) -> str:
        return f"ReentrancyGuard(name={self.name!r}, slot={self.slot!r}, entered={self.entered})"


def non_reentrant(func: F) -> F:
    """
    Guard a method with its instance's ``_guard`` attribute.

    The instance must expose a ``ReentrancyGuard`` as ``self._guard``.
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._guard.enter(func.__name__):
            return func(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def reentrancy_guard_entered(guard: ReentrancyGuard) -> bool:
    """Diagnostic query for callers asserting they are outside a guarded call."""
    return guard.entered
