"""
Token Ledger

Host-side custody of the pool tokens: a balance table per token address.
Pools move tokens only through :meth:`TokenLedger.transfer`, and verify
payment by reading their own balance before and after a callback.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict

from ..address import normalize_address
from ..exceptions import InsufficientBalance, TokenError
from .fixed_point import checked_uint

logger = logging.getLogger(__name__)


class TokenLedger:
    """Balances of every token, keyed by token then holder."""

    def __init__(self) -> None:
        self._balances: Dict[str, Dict[str, int]] = {}

    def balance_of(self, token: str, holder: str) -> int:
        return self._balances.get(normalize_address(token), {}).get(normalize_address(holder), 0)

    def mint(self, token: str, to: str, amount: int) -> None:
        """Credit ``amount`` of ``token`` out of thin air (test and genesis funding)."""
        if amount < 0:
            raise TokenError(f"Mint amount must be non-negative, got {amount}")
        token = normalize_address(token)
        to = normalize_address(to)
        balances = self._balances.setdefault(token, {})
        balances[to] = checked_uint(balances.get(to, 0) + amount)

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> None:
        """
        Move ``amount`` of ``token`` from ``sender`` to ``recipient``.

        Raises:
            TokenError: negative amount
            InsufficientBalance: sender holds less than ``amount``
        """
        if amount < 0:
            raise TokenError(f"Transfer amount must be non-negative, got {amount}")
        token = normalize_address(token)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        balances = self._balances.setdefault(token, {})
        sender_balance = balances.get(sender, 0)
        if sender_balance < amount:
            raise InsufficientBalance(
                f"{sender} holds {sender_balance} of {token}, needs {amount}"
            )
        balances[sender] = sender_balance - amount
        balances[recipient] = balances.get(recipient, 0) + amount
        logger.debug("Transfer %d of %s: %s -> %s", amount, token, sender, recipient)

    # -- Snapshot / restore -------------------------------------------------

    def snapshot(self) -> Dict[str, Dict[str, int]]:
        return copy.deepcopy(self._balances)

    def restore(self, snapshot: Dict[str, Dict[str, int]]) -> None:
        self._balances = snapshot
