"""
Position Ledger

Positions are keyed by (owner, tick_lower, tick_upper). Each one remembers the
fee growth inside its range at its last touch; the difference to the current
inside growth, times its liquidity, is what it earned in between.

Entries are never deleted: a position drained to zero liquidity keeps its
owed tokens until collected and can be topped up again later.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

from ..constants import Q128
from ..exceptions import InvalidPosition
from .fixed_point import add_delta, checked_uint, mul_div, wrapping_sub


def position_key(owner: str, tick_lower: int, tick_upper: int) -> str:
    """Deterministic position key."""
    raw = f"{owner}:{tick_lower}:{tick_upper}".encode()
    return hashlib.blake2b(raw, digest_size=16).hexdigest()


@dataclass
class Position:
    """A concentrated-liquidity position."""
    owner: str
    tick_lower: int
    tick_upper: int
    liquidity: int = 0
    fee_growth_inside_0_last_x128: int = 0
    fee_growth_inside_1_last_x128: int = 0
    tokens_owed_0: int = 0
    tokens_owed_1: int = 0

    @property
    def key(self) -> str:
        return position_key(self.owner, self.tick_lower, self.tick_upper)


class PositionLedger:
    """Owns every position of one pool."""

    def __init__(self) -> None:
        self._positions: Dict[str, Position] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions.values())

    def get(self, owner: str, tick_lower: int, tick_upper: int) -> Optional[Position]:
        return self._positions.get(position_key(owner, tick_lower, tick_upper))

    def get_or_create(self, owner: str, tick_lower: int, tick_upper: int) -> Position:
        key = position_key(owner, tick_lower, tick_upper)
        position = self._positions.get(key)
        if position is None:
            position = Position(owner=owner, tick_lower=tick_lower, tick_upper=tick_upper)
            self._positions[key] = position
        return position

    @staticmethod
    def update(
        position: Position,
        liquidity_delta: int,
        fee_growth_inside_0_x128: int,
        fee_growth_inside_1_x128: int,
    ) -> Tuple[int, int]:
        """
        Credit fees earned since the last touch and apply a liquidity delta.

        Fees are added to ``tokens_owed``, never replacing it, and the
        checkpoint advances to the current inside growth.

        Returns:
            The (token0, token1) fees credited by this touch.

        Raises:
            InvalidPosition: poke (zero delta) on a position without liquidity
        """
        if liquidity_delta == 0:
            if position.liquidity == 0:
                raise InvalidPosition("Cannot poke a position with zero liquidity")
            liquidity_next = position.liquidity
        else:
            liquidity_next = add_delta(position.liquidity, liquidity_delta)

        owed_0 = mul_div(
            wrapping_sub(fee_growth_inside_0_x128, position.fee_growth_inside_0_last_x128),
            position.liquidity,
            Q128,
        )
        owed_1 = mul_div(
            wrapping_sub(fee_growth_inside_1_x128, position.fee_growth_inside_1_last_x128),
            position.liquidity,
            Q128,
        )

        position.liquidity = liquidity_next
        position.fee_growth_inside_0_last_x128 = fee_growth_inside_0_x128
        position.fee_growth_inside_1_last_x128 = fee_growth_inside_1_x128
        if owed_0 or owed_1:
            position.tokens_owed_0 = checked_uint(position.tokens_owed_0 + owed_0, 128)
            position.tokens_owed_1 = checked_uint(position.tokens_owed_1 + owed_1, 128)

        return owed_0, owed_1
