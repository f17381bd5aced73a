"""
Governance grants for privileged pool actions.

Actions are plain strings (e.g. ``"setMaxSurgeFeePercentage"``). A pool's
swap fee manager, when assigned, takes precedence over governance for that
pool's fee parameters.
"""

from __future__ import annotations

import logging
from typing import Dict, Set

from ..exceptions import SenderNotAllowed
from .types import PoolRoleAccounts

logger = logging.getLogger(__name__)


class Authorizer:
    """Account grants per action."""

    def __init__(self) -> None:
        self._grants: Dict[str, Set[str]] = {}

    def grant_role(self, action: str, account: str) -> None:
        self._grants.setdefault(action, set()).add(account)
        logger.info("Granted %s to %s", action, account)

    def revoke_role(self, action: str, account: str) -> None:
        self._grants.get(action, set()).discard(account)

    def can_perform(self, action: str, account: str) -> bool:
        return account in self._grants.get(action, set())


def ensure_swap_fee_manager_or_governance(
    authorizer: Authorizer,
    roles: PoolRoleAccounts,
    action: str,
    caller: str,
) -> None:
    """
    Raise ``SenderNotAllowed`` unless ``caller`` may change the pool's fees.

    An assigned swap fee manager is the only account allowed; otherwise the
    governance grant for ``action`` decides.
    """
    if roles.swap_fee_manager:
        if caller != roles.swap_fee_manager:
            raise SenderNotAllowed(caller, action)
        return
    if not authorizer.can_perform(action, caller):
        raise SenderNotAllowed(caller, action)
