"""
Swap Fee Accounting

Every swap step's fee is split in a fixed order:

    1. protocol share  = fee // protocol_denominator
    2. referrer share  = (fee - protocol share) // referrer_denominator
    3. LP share        = whatever is left

The referrer share is taken from what the protocol left behind, not from the
gross fee. When the caller is not a trusted router, or no referrer was named,
the referrer share is folded into protocol revenue instead of being dropped.

Referrer and protocol shares are only ever *accrued* during a swap. They leave
the pool through separate collect calls (accumulate-then-collect), after the
swap's funding callback has completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple

from ..constants import (
    PROTOCOL_FEE_DENOMINATOR_MIN,
    PROTOCOL_FEE_DENOMINATOR_MAX,
    REFERRER_FEE_DENOMINATOR_MIN,
    REFERRER_FEE_DENOMINATOR_MAX,
)
from ..exceptions import InvalidFeeConfig
from .fixed_point import checked_uint

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _validate_denominator(kind: str, value: int, low: int, high: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFeeConfig(f"{kind} fee denominator must be an integer, got {value!r}")
    if value != 0 and not (low <= value <= high):
        raise InvalidFeeConfig(
            f"{kind} fee denominator {value} must be 0 or in [{low}, {high}]"
        )
    return value


def validate_protocol_fee(value: int) -> int:
    return _validate_denominator(
        "Protocol", value, PROTOCOL_FEE_DENOMINATOR_MIN, PROTOCOL_FEE_DENOMINATOR_MAX
    )


def validate_referrer_fee(value: int) -> int:
    return _validate_denominator(
        "Referrer", value, REFERRER_FEE_DENOMINATOR_MIN, REFERRER_FEE_DENOMINATOR_MAX
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class FeeConfig:
    """Per-token fee denominators. 0 disables a tier."""
    protocol_0: int = 0
    protocol_1: int = 0
    referrer_0: int = 0
    referrer_1: int = 0

    def __post_init__(self) -> None:
        validate_protocol_fee(self.protocol_0)
        validate_protocol_fee(self.protocol_1)
        validate_referrer_fee(self.referrer_0)
        validate_referrer_fee(self.referrer_1)

    def for_input(self, zero_for_one: bool) -> Tuple[int, int]:
        """(protocol, referrer) denominators for a swap paying in token0 or token1."""
        if zero_for_one:
            return self.protocol_0, self.referrer_0
        return self.protocol_1, self.referrer_1


@dataclass(frozen=True)
class FeeSplit:
    """One swap step's fee, split into its three tiers."""
    fee_amount: int
    protocol_share: int
    referrer_share: int
    lp_share: int
    referrer_permitted: bool

    @property
    def protocol_credit(self) -> int:
        """Amount accrued to the protocol account, including a folded referrer share."""
        if self.referrer_permitted:
            return self.protocol_share
        return self.protocol_share + self.referrer_share

    @property
    def referrer_credit(self) -> int:
        return self.referrer_share if self.referrer_permitted else 0


def split_fee(
    fee_amount: int,
    protocol_denominator: int,
    referrer_denominator: int,
    referrer_permitted: bool,
) -> FeeSplit:
    """Split ``fee_amount`` into protocol, referrer and LP shares (floor division)."""
    remaining = fee_amount

    protocol_share = 0
    if protocol_denominator > 0:
        protocol_share = remaining // protocol_denominator
        remaining -= protocol_share

    referrer_share = 0
    if referrer_denominator > 0:
        referrer_share = remaining // referrer_denominator
        remaining -= referrer_share

    return FeeSplit(
        fee_amount=fee_amount,
        protocol_share=protocol_share,
        referrer_share=referrer_share,
        lp_share=remaining,
        referrer_permitted=referrer_permitted,
    )


class FeeAccountant:
    """Applies a pool's fee configuration to individual swap steps."""

    def __init__(self, config: FeeConfig):
        self.config = config

    def split(self, fee_amount: int, zero_for_one: bool, referrer_permitted: bool) -> FeeSplit:
        protocol_denominator, referrer_denominator = self.config.for_input(zero_for_one)
        return split_fee(fee_amount, protocol_denominator, referrer_denominator, referrer_permitted)


# ---------------------------------------------------------------------------
# Accrued balances
# ---------------------------------------------------------------------------

@dataclass
class FeeAccount:
    """Accrued-but-uncollected balances of both pool tokens."""
    token0: int = 0
    token1: int = 0

    def accrue(self, amount0: int, amount1: int) -> None:
        self.token0 = checked_uint(self.token0 + amount0, 128)
        self.token1 = checked_uint(self.token1 + amount1, 128)

    def withdraw(self, amount0_requested: int, amount1_requested: int) -> Tuple[int, int]:
        """Debit up to the requested amounts; returns what was actually debited."""
        checked_uint(amount0_requested, 128)
        checked_uint(amount1_requested, 128)
        amount0 = min(amount0_requested, self.token0)
        amount1 = min(amount1_requested, self.token1)
        self.token0 -= amount0
        self.token1 -= amount1
        return amount0, amount1

    def drain(self) -> Tuple[int, int]:
        """Zero the account and return its full balance."""
        return self.withdraw(self.token0, self.token1)

    def as_tuple(self) -> Tuple[int, int]:
        return self.token0, self.token1


class ProtocolFeeAccount(FeeAccount):
    """The pool's protocol revenue, withdrawn by the owner."""


class ReferrerFeeStore:
    """
    Per-referrer accrued balances.

    Accounts are created on first accrual and never removed; a collected
    account simply reads (0, 0) afterwards.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, FeeAccount] = {}

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[Tuple[str, FeeAccount]]:
        for referrer in sorted(self._accounts):
            yield referrer, self._accounts[referrer]

    def accrue(self, referrer: str, amount0: int, amount1: int) -> None:
        account = self._accounts.get(referrer)
        if account is None:
            account = FeeAccount()
            self._accounts[referrer] = account
        account.accrue(amount0, amount1)

    def balance_of(self, referrer: str) -> Tuple[int, int]:
        account = self._accounts.get(referrer)
        if account is None:
            return 0, 0
        return account.as_tuple()

    def take_all(self, referrer: str) -> Tuple[int, int]:
        """Zero ``referrer``'s balance and return what it held."""
        account = self._accounts.get(referrer)
        if account is None:
            return 0, 0
        return account.drain()
