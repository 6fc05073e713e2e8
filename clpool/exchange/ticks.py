"""
Tick Ledger

Per-tick liquidity bookkeeping plus the "fee growth outside" checkpoints that
let any range compute how much fee growth happened strictly inside it without
iterating over positions.

Initialized ticks are kept in a sorted list so "next initialized tick in
direction D from X" is a binary search.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from ..constants import MIN_TICK, MAX_TICK, UINT128_MAX
from ..exceptions import ArithmeticOverflow
from .fixed_point import add_delta, checked_int, wrapping_sub

logger = logging.getLogger(__name__)


def max_liquidity_per_tick(tick_spacing: int) -> int:
    """Cap on gross liquidity referencing a single tick, so total liquidity fits uint128."""
    # ticks are truncated toward zero, as int24 division does
    min_tick = -(-MIN_TICK // tick_spacing) * tick_spacing
    max_tick = (MAX_TICK // tick_spacing) * tick_spacing
    num_ticks = (max_tick - min_tick) // tick_spacing + 1
    return UINT128_MAX // num_ticks


@dataclass
class TickInfo:
    """Liquidity info at a single tick boundary."""
    tick: int
    liquidity_gross: int = 0
    liquidity_net: int = 0
    fee_growth_outside_0_x128: int = 0
    fee_growth_outside_1_x128: int = 0
    initialized: bool = False


class TickLedger:
    """Owns every initialized tick of one pool."""

    def __init__(self, tick_spacing: int):
        self.tick_spacing = tick_spacing
        self.max_liquidity_per_tick = max_liquidity_per_tick(tick_spacing)
        self._ticks: Dict[int, TickInfo] = {}
        self._index: List[int] = []

    def __len__(self) -> int:
        return len(self._ticks)

    def __contains__(self, tick: int) -> bool:
        return tick in self._ticks

    def __iter__(self) -> Iterator[TickInfo]:
        for tick in self._index:
            yield self._ticks[tick]

    def get(self, tick: int) -> Optional[TickInfo]:
        return self._ticks.get(tick)

    @property
    def initialized_ticks(self) -> List[int]:
        return list(self._index)

    # -- Mutation -----------------------------------------------------------

    def update(
        self,
        tick: int,
        tick_current: int,
        liquidity_delta: int,
        fee_growth_global_0_x128: int,
        fee_growth_global_1_x128: int,
        upper: bool,
    ) -> bool:
        """
        Apply a position's liquidity change to one of its boundary ticks.

        On first reference, growth below the current tick is by convention
        assumed to have all happened below, so the outside snapshot starts at
        the global value when ``tick <= tick_current`` and at zero otherwise.

        Returns:
            True if the tick flipped between initialized and uninitialized.
        """
        info = self._ticks.get(tick)
        if info is None:
            info = TickInfo(tick=tick)

        gross_before = info.liquidity_gross
        gross_after = add_delta(gross_before, liquidity_delta)
        if gross_after > self.max_liquidity_per_tick:
            raise ArithmeticOverflow(
                f"Liquidity at tick {tick} exceeds per-tick cap {self.max_liquidity_per_tick}"
            )

        flipped = (gross_after == 0) != (gross_before == 0)

        if gross_before == 0:
            if tick <= tick_current:
                info.fee_growth_outside_0_x128 = fee_growth_global_0_x128
                info.fee_growth_outside_1_x128 = fee_growth_global_1_x128
            info.initialized = True
            self._ticks[tick] = info
            bisect.insort(self._index, tick)

        info.liquidity_gross = gross_after
        # lower tick adds liquidity when crossed left to right, upper removes it
        net = info.liquidity_net - liquidity_delta if upper else info.liquidity_net + liquidity_delta
        info.liquidity_net = checked_int(net, 128)

        return flipped

    def clear(self, tick: int) -> None:
        """Forget a tick whose gross liquidity dropped to zero."""
        info = self._ticks.pop(tick, None)
        if info is None:
            return
        pos = bisect.bisect_left(self._index, tick)
        if pos < len(self._index) and self._index[pos] == tick:
            del self._index[pos]
        logger.debug("Cleared tick %d", tick)

    def cross(
        self,
        tick: int,
        fee_growth_global_0_x128: int,
        fee_growth_global_1_x128: int,
    ) -> int:
        """
        Transition the price across ``tick``.

        Flips the outside snapshots to the other side and returns the net
        liquidity to add when crossing left to right (negate it going left).
        """
        info = self._ticks[tick]
        info.fee_growth_outside_0_x128 = wrapping_sub(fee_growth_global_0_x128, info.fee_growth_outside_0_x128)
        info.fee_growth_outside_1_x128 = wrapping_sub(fee_growth_global_1_x128, info.fee_growth_outside_1_x128)
        logger.debug("Crossed tick %d (liquidity_net=%d)", tick, info.liquidity_net)
        return info.liquidity_net

    # -- Queries ------------------------------------------------------------

    def fee_growth_inside(
        self,
        tick_lower: int,
        tick_upper: int,
        tick_current: int,
        fee_growth_global_0_x128: int,
        fee_growth_global_1_x128: int,
    ) -> Tuple[int, int]:
        """Fee growth per unit of liquidity strictly inside [tick_lower, tick_upper)."""
        lower = self._ticks.get(tick_lower) or TickInfo(tick=tick_lower)
        upper = self._ticks.get(tick_upper) or TickInfo(tick=tick_upper)

        if tick_current >= tick_lower:
            below_0 = lower.fee_growth_outside_0_x128
            below_1 = lower.fee_growth_outside_1_x128
        else:
            below_0 = wrapping_sub(fee_growth_global_0_x128, lower.fee_growth_outside_0_x128)
            below_1 = wrapping_sub(fee_growth_global_1_x128, lower.fee_growth_outside_1_x128)

        if tick_current < tick_upper:
            above_0 = upper.fee_growth_outside_0_x128
            above_1 = upper.fee_growth_outside_1_x128
        else:
            above_0 = wrapping_sub(fee_growth_global_0_x128, upper.fee_growth_outside_0_x128)
            above_1 = wrapping_sub(fee_growth_global_1_x128, upper.fee_growth_outside_1_x128)

        return (
            wrapping_sub(wrapping_sub(fee_growth_global_0_x128, below_0), above_0),
            wrapping_sub(wrapping_sub(fee_growth_global_1_x128, below_1), above_1),
        )

    def next_initialized_tick(self, tick: int, lte: bool) -> Tuple[int, bool]:
        """
        Nearest initialized tick at or below ``tick`` (``lte``) or strictly above it.

        Returns:
            (tick, initialized). When no tick exists in that direction the
            representable boundary is returned with ``initialized=False``.
        """
        if lte:
            pos = bisect.bisect_right(self._index, tick) - 1
            if pos >= 0:
                return self._index[pos], True
            return MIN_TICK, False

        pos = bisect.bisect_right(self._index, tick)
        if pos < len(self._index):
            return self._index[pos], True
        return MAX_TICK, False
