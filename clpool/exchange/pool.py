"""
Concentrated-Liquidity Pool

Single-pool engine with:
  - Tick-walking swap (exact input and exact output) with price limits
  - Layered swap fee: protocol -> swap referrer -> liquidity providers
  - Accumulate-then-collect settlement for referrer and protocol fees
  - Mint / burn / collect of range positions with per-position fee accrual
  - Reentrancy gate on every mutating entry point

Atomicity:
  Every mutating entry point snapshots the pool and the shared token ledger
  after passing the reentrancy gate. Any exception restores both, drops the
  events the call emitted and re-raises, so a failed call leaves no trace.

Settlement order for a swap:
  1. the loop updates price, tick, liquidity and fee growth
  2. protocol and referrer shares are accrued (never transferred)
  3. output tokens are sent to the recipient
  4. the caller's callback pays the input
  5. the pool checks its input balance grew by at least the input delta
"""

from __future__ import annotations

import copy
import hashlib
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Iterator, List, Optional, Tuple

from ..address import normalize_address
from ..constants import (
    FEE_PIPS_DENOMINATOR,
    FEE_TIER_TICK_SPACINGS,
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    ZERO_ADDRESS,
)
from ..exceptions import (
    AlreadyInitialized,
    ConfigurationError,
    InsufficientPayment,
    InvalidTickRange,
    PoolNotInitialized,
    PriceLimitInvalid,
    Unauthorized,
    ZeroAmount,
)
from .events import (
    Burn,
    Collect,
    CollectProtocol,
    CollectReferrerFees,
    EventLog,
    Initialize,
    Mint,
    ProtocolFeeAccrued,
    ReferrerFeeAccrued,
    SetFeeProtocol,
    SetFeeSwapReferrer,
    Swap,
)
from .fees import (
    FeeAccountant,
    FeeConfig,
    ProtocolFeeAccount,
    ReferrerFeeStore,
    validate_protocol_fee,
    validate_referrer_fee,
)
from .fixed_point import (
    add_delta,
    checked_int,
    checked_uint,
    compute_swap_step,
    fee_growth_delta,
    get_amount0_delta,
    get_amount1_delta,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
)
from .gate import ReentrancyGate
from .positions import Position, PositionLedger
from .router_trust import RouterTrustOracle, is_trusted_router
from .ticks import TickInfo, TickLedger
from .tokens import TokenLedger

logger = logging.getLogger(__name__)

# callback(amount0, amount1, data): pay the pool what it is owed
MintCallback = Callable[[int, int, Any], None]
SwapCallback = Callable[[int, int, Any], None]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FeeTier(IntEnum):
    """Swap fee tiers in hundredths of a bip."""
    ULTRA_LOW = 100      # 0.01 %
    LOW = 500            # 0.05 %
    MEDIUM = 3000        # 0.30 %
    HIGH = 10000         # 1.00 %

    @property
    def tick_spacing(self) -> int:
        return FEE_TIER_TICK_SPACINGS[int(self)]


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class PoolState:
    """
    Mutable core state of a pool.

    ``sqrt_price_x96`` and ``tick`` always agree: ``tick`` is the greatest
    tick whose sqrt ratio is <= the price (or one below a tick just crossed
    downward). Fee growth globals only ever increase.
    """
    sqrt_price_x96: int = 0
    tick: int = 0
    liquidity: int = 0
    fee_growth_global_0_x128: int = 0
    fee_growth_global_1_x128: int = 0
    fees: FeeConfig = field(default_factory=FeeConfig)

    @property
    def initialized(self) -> bool:
        return self.sqrt_price_x96 != 0


@dataclass(frozen=True)
class SwapParams:
    """Bundled swap request. Positive ``amount_specified`` is exact input."""
    recipient: str
    zero_for_one: bool
    amount_specified: int
    sqrt_price_limit_x96: int
    referrer: Optional[str] = None
    data: Any = None


@dataclass(frozen=True)
class SwapResult:
    """Signed token deltas from the pool's view: positive = pool receives."""
    amount0: int
    amount1: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    protocol_fee: int = 0
    referrer_fee: int = 0
    referrer: Optional[str] = None


def derive_pool_address(token0: str, token1: str, fee: int) -> str:
    """Deterministic pool address from its immutable parameters."""
    raw = f"{token0}:{token1}:{fee}".encode()
    return normalize_address("0x" + hashlib.blake2b(raw, digest_size=20).hexdigest())


# ---------------------------------------------------------------------------
# Concentrated Liquidity Pool
# ---------------------------------------------------------------------------

class ConcentratedLiquidityPool:
    """
    Single concentrated-liquidity pool engine.

    The pool holds its tokens in ``ledger`` under its own ``address``. Owner
    calls configure and withdraw protocol fees; the router oracle decides
    whether a swap's caller may route the referrer share.
    """

    def __init__(
        self,
        token0: str,
        token1: str,
        fee: int,
        tick_spacing: Optional[int],
        owner: str,
        ledger: TokenLedger,
        router_oracle: Optional[RouterTrustOracle] = None,
        address: Optional[str] = None,
    ):
        self.token0 = normalize_address(token0)
        self.token1 = normalize_address(token1)
        if self.token0 == self.token1:
            raise ConfigurationError("Pool tokens must differ")
        if not 0 <= int(fee) < FEE_PIPS_DENOMINATOR:
            raise ConfigurationError(f"Fee {fee} must be in [0, {FEE_PIPS_DENOMINATOR})")
        if tick_spacing is None:
            tick_spacing = FEE_TIER_TICK_SPACINGS.get(int(fee))
            if tick_spacing is None:
                raise ConfigurationError(f"No default tick spacing for fee {fee}")
        if not 0 < tick_spacing < 16384:
            raise ConfigurationError(f"Tick spacing {tick_spacing} must be in (0, 16384)")

        self.fee = int(fee)
        self.tick_spacing = tick_spacing
        self.owner = normalize_address(owner)
        self.ledger = ledger
        self.router_oracle = router_oracle
        self.address = (
            normalize_address(address) if address is not None
            else derive_pool_address(self.token0, self.token1, self.fee)
        )

        self._state = PoolState()
        self._ticks = TickLedger(tick_spacing)
        self._positions = PositionLedger()
        self._protocol_fees = ProtocolFeeAccount()
        self._referrer_fees = ReferrerFeeStore()
        self._gate = ReentrancyGate()
        self.events = EventLog()

    # -- Atomic execution ---------------------------------------------------

    def _require_initialized(self) -> None:
        if not self._state.initialized:
            raise PoolNotInitialized(f"Pool {self.address} is not initialized")

    def _snapshot(self) -> Tuple[Any, ...]:
        return copy.deepcopy(
            (self._state, self._ticks, self._positions, self._protocol_fees, self._referrer_fees)
        )

    def _restore(self, snapshot: Tuple[Any, ...]) -> None:
        (
            self._state,
            self._ticks,
            self._positions,
            self._protocol_fees,
            self._referrer_fees,
        ) = snapshot

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        # a reentrant call fails here, before it can touch the outer call's snapshot
        self._gate.acquire()
        try:
            mark = self.events.mark()
            pool_snapshot = self._snapshot()
            ledger_snapshot = self.ledger.snapshot()
            try:
                yield
            except Exception:
                self._restore(pool_snapshot)
                self.ledger.restore(ledger_snapshot)
                self.events.truncate(mark)
                raise
        finally:
            self._gate.release()

    def _only_owner(self, sender: str) -> None:
        if normalize_address(sender) != self.owner:
            raise Unauthorized(f"{sender} is not the pool owner")

    # -- Balances -----------------------------------------------------------

    def balance0(self) -> int:
        return self.ledger.balance_of(self.token0, self.address)

    def balance1(self) -> int:
        return self.ledger.balance_of(self.token1, self.address)

    def _pay(self, token: str, recipient: str, amount: int) -> None:
        if amount > 0:
            self.ledger.transfer(token, self.address, recipient, amount)

    # -- Initialization -----------------------------------------------------

    def initialize(self, sqrt_price_x96: int) -> int:
        """
        Set the starting price. Allowed once.

        Returns:
            The tick matching ``sqrt_price_x96``.
        """
        if self._state.initialized:
            raise AlreadyInitialized(f"Pool {self.address} is already initialized")
        if not MIN_SQRT_RATIO <= sqrt_price_x96 < MAX_SQRT_RATIO:
            raise PriceLimitInvalid(f"Initial sqrtPriceX96 {sqrt_price_x96} out of bounds")

        with self._atomic():
            tick = get_tick_at_sqrt_ratio(sqrt_price_x96)
            self._state.sqrt_price_x96 = sqrt_price_x96
            self._state.tick = tick
            self.events.emit(Initialize(sqrt_price_x96=sqrt_price_x96, tick=tick))

        logger.info("Pool %s initialized at tick %d", self.address, tick)
        return tick

    # -- Positions ----------------------------------------------------------

    def _check_ticks(self, tick_lower: int, tick_upper: int) -> None:
        if tick_lower >= tick_upper:
            raise InvalidTickRange(f"tick_lower {tick_lower} must be < tick_upper {tick_upper}")
        if tick_lower < MIN_TICK:
            raise InvalidTickRange(f"tick_lower {tick_lower} below {MIN_TICK}")
        if tick_upper > MAX_TICK:
            raise InvalidTickRange(f"tick_upper {tick_upper} above {MAX_TICK}")
        if tick_lower % self.tick_spacing or tick_upper % self.tick_spacing:
            raise InvalidTickRange(
                f"Ticks must be multiples of tick_spacing ({self.tick_spacing})"
            )

    def _update_position(
        self, owner: str, tick_lower: int, tick_upper: int, liquidity_delta: int
    ) -> Position:
        state = self._state
        position = self._positions.get_or_create(owner, tick_lower, tick_upper)

        flipped_lower = flipped_upper = False
        if liquidity_delta != 0:
            flipped_lower = self._ticks.update(
                tick_lower, state.tick, liquidity_delta,
                state.fee_growth_global_0_x128, state.fee_growth_global_1_x128, upper=False,
            )
            flipped_upper = self._ticks.update(
                tick_upper, state.tick, liquidity_delta,
                state.fee_growth_global_0_x128, state.fee_growth_global_1_x128, upper=True,
            )

        inside_0, inside_1 = self._ticks.fee_growth_inside(
            tick_lower, tick_upper, state.tick,
            state.fee_growth_global_0_x128, state.fee_growth_global_1_x128,
        )
        PositionLedger.update(position, liquidity_delta, inside_0, inside_1)

        # ticks only flip to uninitialized when liquidity is removed
        if liquidity_delta < 0:
            if flipped_lower:
                self._ticks.clear(tick_lower)
            if flipped_upper:
                self._ticks.clear(tick_upper)
        return position

    def _modify_position(
        self, owner: str, tick_lower: int, tick_upper: int, liquidity_delta: int
    ) -> Tuple[Position, int, int]:
        self._check_ticks(tick_lower, tick_upper)
        state = self._state
        position = self._update_position(owner, tick_lower, tick_upper, liquidity_delta)

        amount0 = amount1 = 0
        if liquidity_delta != 0:
            sqrt_lower = get_sqrt_ratio_at_tick(tick_lower)
            sqrt_upper = get_sqrt_ratio_at_tick(tick_upper)
            if state.tick < tick_lower:
                # range is above the price: position is all token0
                amount0 = get_amount0_delta(sqrt_lower, sqrt_upper, liquidity_delta)
            elif state.tick < tick_upper:
                amount0 = get_amount0_delta(state.sqrt_price_x96, sqrt_upper, liquidity_delta)
                amount1 = get_amount1_delta(sqrt_lower, state.sqrt_price_x96, liquidity_delta)
                state.liquidity = add_delta(state.liquidity, liquidity_delta)
            else:
                amount1 = get_amount1_delta(sqrt_lower, sqrt_upper, liquidity_delta)
        return position, amount0, amount1

    def mint(
        self,
        sender: str,
        recipient: str,
        tick_lower: int,
        tick_upper: int,
        amount: int,
        callback: MintCallback,
        data: Any = None,
    ) -> Tuple[int, int]:
        """
        Add ``amount`` liquidity to ``recipient``'s position.

        ``callback(amount0, amount1, data)`` must transfer the owed tokens to
        the pool before returning.

        Returns:
            (amount0, amount1) paid in, rounded up.
        """
        self._require_initialized()
        if amount <= 0:
            raise ZeroAmount("Liquidity amount must be positive")
        checked_uint(amount, 128)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        with self._atomic():
            _, amount0, amount1 = self._modify_position(recipient, tick_lower, tick_upper, amount)

            balance0_before = self.balance0() if amount0 > 0 else 0
            balance1_before = self.balance1() if amount1 > 0 else 0
            callback(amount0, amount1, data)
            if amount0 > 0 and balance0_before + amount0 > self.balance0():
                raise InsufficientPayment(f"Mint callback paid less than {amount0} token0")
            if amount1 > 0 and balance1_before + amount1 > self.balance1():
                raise InsufficientPayment(f"Mint callback paid less than {amount1} token1")

            self.events.emit(Mint(
                sender=sender, owner=recipient, tick_lower=tick_lower, tick_upper=tick_upper,
                amount=amount, amount0=amount0, amount1=amount1,
            ))

        logger.debug(
            "Mint %d liquidity [%d, %d) for %s: %d/%d",
            amount, tick_lower, tick_upper, recipient, amount0, amount1,
        )
        return amount0, amount1

    def burn(
        self,
        sender: str,
        tick_lower: int,
        tick_upper: int,
        amount: int,
        recipient: Optional[str] = None,
    ) -> Tuple[int, int]:
        """
        Remove ``amount`` liquidity from the sender's position.

        The principal (rounded down) goes straight to ``recipient``; fees
        earned since the last touch are credited to ``tokens_owed``.
        ``amount=0`` only settles fees.

        Returns:
            (amount0, amount1) principal paid out.
        """
        self._require_initialized()
        checked_uint(amount, 128)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient) if recipient is not None else sender

        with self._atomic():
            _, amount0, amount1 = self._modify_position(sender, tick_lower, tick_upper, -amount)
            amount0, amount1 = -amount0, -amount1

            self._pay(self.token0, recipient, amount0)
            self._pay(self.token1, recipient, amount1)

            self.events.emit(Burn(
                owner=sender, tick_lower=tick_lower, tick_upper=tick_upper,
                amount=amount, amount0=amount0, amount1=amount1,
            ))

        logger.debug(
            "Burn %d liquidity [%d, %d) for %s: %d/%d",
            amount, tick_lower, tick_upper, sender, amount0, amount1,
        )
        return amount0, amount1

    def collect(
        self,
        sender: str,
        recipient: str,
        tick_lower: int,
        tick_upper: int,
        amount0_requested: int,
        amount1_requested: int,
    ) -> Tuple[int, int]:
        """Withdraw up to the requested amounts of the sender's owed tokens."""
        self._require_initialized()
        checked_uint(amount0_requested, 128)
        checked_uint(amount1_requested, 128)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        with self._atomic():
            position = self._positions.get(sender, tick_lower, tick_upper)
            amount0 = amount1 = 0
            if position is not None:
                amount0 = min(amount0_requested, position.tokens_owed_0)
                amount1 = min(amount1_requested, position.tokens_owed_1)
                position.tokens_owed_0 -= amount0
                position.tokens_owed_1 -= amount1

            self._pay(self.token0, recipient, amount0)
            self._pay(self.token1, recipient, amount1)

            self.events.emit(Collect(
                owner=sender, recipient=recipient, tick_lower=tick_lower,
                tick_upper=tick_upper, amount0=amount0, amount1=amount1,
            ))

        logger.info("Collect %d/%d for %s -> %s", amount0, amount1, sender, recipient)
        return amount0, amount1

    # -- Swap ---------------------------------------------------------------

    def swap(self, sender: str, params: SwapParams, callback: SwapCallback) -> SwapResult:
        """
        Swap against the pool's liquidity curve.

        ``callback(amount0, amount1, data)`` runs after output tokens are sent
        and must pay the positive delta to the pool.

        Raises:
            ZeroAmount: ``amount_specified`` is zero
            PriceLimitInvalid: limit on the wrong side of the price or out of bounds
            InsufficientPayment: callback did not pay the input
        """
        self._require_initialized()
        if params.amount_specified == 0:
            raise ZeroAmount("Swap amount must be non-zero")
        checked_int(params.amount_specified, 256)

        sender = normalize_address(sender)
        recipient = normalize_address(params.recipient)
        referrer = None
        if params.referrer is not None:
            referrer = normalize_address(params.referrer)
            if referrer == ZERO_ADDRESS:
                referrer = None

        with self._atomic():
            result = self._execute_swap(sender, recipient, referrer, params, callback)

        logger.debug(
            "Swap %s by %s: amount0=%d amount1=%d tick=%d protocol_fee=%d referrer_fee=%d",
            "0->1" if params.zero_for_one else "1->0", sender,
            result.amount0, result.amount1, result.tick, result.protocol_fee, result.referrer_fee,
        )
        return result

    def _execute_swap(
        self,
        sender: str,
        recipient: str,
        referrer: Optional[str],
        params: SwapParams,
        callback: SwapCallback,
    ) -> SwapResult:
        """Core swap logic, called under the reentrancy gate."""
        state = self._state
        zero_for_one = params.zero_for_one
        limit = params.sqrt_price_limit_x96

        if zero_for_one:
            if not MIN_SQRT_RATIO < limit < state.sqrt_price_x96:
                raise PriceLimitInvalid(
                    f"Limit {limit} must be in ({MIN_SQRT_RATIO}, {state.sqrt_price_x96})"
                )
        elif not state.sqrt_price_x96 < limit < MAX_SQRT_RATIO:
            raise PriceLimitInvalid(
                f"Limit {limit} must be in ({state.sqrt_price_x96}, {MAX_SQRT_RATIO})"
            )

        referrer_permitted = referrer is not None and is_trusted_router(self.router_oracle, sender)
        accountant = FeeAccountant(state.fees)

        exact_input = params.amount_specified > 0
        amount_remaining = params.amount_specified
        amount_calculated = 0
        sqrt_price = state.sqrt_price_x96
        tick = state.tick
        liquidity = state.liquidity
        fee_growth_global = (
            state.fee_growth_global_0_x128 if zero_for_one else state.fee_growth_global_1_x128
        )
        protocol_fee = 0
        referrer_fee = 0

        while amount_remaining != 0 and sqrt_price != limit:
            sqrt_price_start = sqrt_price

            tick_next, initialized = self._ticks.next_initialized_tick(tick, zero_for_one)
            tick_next = max(MIN_TICK, min(MAX_TICK, tick_next))
            sqrt_price_next = get_sqrt_ratio_at_tick(tick_next)

            if zero_for_one:
                target = max(sqrt_price_next, limit)
            else:
                target = min(sqrt_price_next, limit)

            sqrt_price, amount_in, amount_out, fee_amount = compute_swap_step(
                sqrt_price, target, liquidity, amount_remaining, self.fee
            )

            if exact_input:
                amount_remaining -= amount_in + fee_amount
                amount_calculated -= amount_out
            else:
                amount_remaining += amount_out
                amount_calculated += amount_in + fee_amount

            split = accountant.split(fee_amount, zero_for_one, referrer_permitted)
            protocol_fee += split.protocol_credit
            referrer_fee += split.referrer_credit
            # without active liquidity the LP share stays in the pool balance
            if liquidity > 0:
                fee_growth_global = checked_uint(
                    fee_growth_global + fee_growth_delta(split.lp_share, liquidity)
                )

            if sqrt_price == sqrt_price_next:
                if initialized:
                    if zero_for_one:
                        liquidity_net = self._ticks.cross(
                            tick_next, fee_growth_global, state.fee_growth_global_1_x128
                        )
                        liquidity_net = -liquidity_net
                    else:
                        liquidity_net = self._ticks.cross(
                            tick_next, state.fee_growth_global_0_x128, fee_growth_global
                        )
                    liquidity = add_delta(liquidity, liquidity_net)
                tick = tick_next - 1 if zero_for_one else tick_next
            elif sqrt_price != sqrt_price_start:
                tick = get_tick_at_sqrt_ratio(sqrt_price)

        state.sqrt_price_x96 = sqrt_price
        state.tick = tick
        state.liquidity = liquidity

        if zero_for_one:
            state.fee_growth_global_0_x128 = fee_growth_global
            self._protocol_fees.accrue(protocol_fee, 0)
            if referrer_fee:
                self._referrer_fees.accrue(referrer, referrer_fee, 0)
        else:
            state.fee_growth_global_1_x128 = fee_growth_global
            self._protocol_fees.accrue(0, protocol_fee)
            if referrer_fee:
                self._referrer_fees.accrue(referrer, 0, referrer_fee)

        if zero_for_one == exact_input:
            amount0 = params.amount_specified - amount_remaining
            amount1 = amount_calculated
        else:
            amount0 = amount_calculated
            amount1 = params.amount_specified - amount_remaining
        checked_int(amount0, 256)
        checked_int(amount1, 256)

        # output first, then the callback pays the input
        if zero_for_one:
            self._pay(self.token1, recipient, -amount1)
            balance0_before = self.balance0()
            callback(amount0, amount1, params.data)
            if balance0_before + amount0 > self.balance0():
                raise InsufficientPayment(f"Swap callback paid less than {amount0} token0")
        else:
            self._pay(self.token0, recipient, -amount0)
            balance1_before = self.balance1()
            callback(amount0, amount1, params.data)
            if balance1_before + amount1 > self.balance1():
                raise InsufficientPayment(f"Swap callback paid less than {amount1} token1")

        fee0, fee1 = (protocol_fee, 0) if zero_for_one else (0, protocol_fee)
        if protocol_fee:
            self.events.emit(ProtocolFeeAccrued(amount0=fee0, amount1=fee1))
        if referrer_fee:
            ref0, ref1 = (referrer_fee, 0) if zero_for_one else (0, referrer_fee)
            self.events.emit(ReferrerFeeAccrued(referrer=referrer, amount0=ref0, amount1=ref1))
        self.events.emit(Swap(
            sender=sender, recipient=recipient, amount0=amount0, amount1=amount1,
            sqrt_price_x96=sqrt_price, liquidity=liquidity, tick=tick,
            referrer=referrer or ZERO_ADDRESS,
        ))

        return SwapResult(
            amount0=amount0,
            amount1=amount1,
            sqrt_price_x96=sqrt_price,
            tick=tick,
            liquidity=liquidity,
            protocol_fee=protocol_fee,
            referrer_fee=referrer_fee,
            referrer=referrer if referrer_fee else None,
        )

    # -- Fee configuration (owner) -----------------------------------------

    def set_fee_protocol(self, sender: str, fee_protocol0: int, fee_protocol1: int) -> None:
        """Set per-token protocol fee denominators (0 or 4..255)."""
        self._require_initialized()

        with self._atomic():
            self._only_owner(sender)
            validate_protocol_fee(fee_protocol0)
            validate_protocol_fee(fee_protocol1)
            fees = self._state.fees
            old0, old1 = fees.protocol_0, fees.protocol_1
            fees.protocol_0, fees.protocol_1 = fee_protocol0, fee_protocol1
            self.events.emit(SetFeeProtocol(
                fee_protocol0_old=old0, fee_protocol1_old=old1,
                fee_protocol0_new=fee_protocol0, fee_protocol1_new=fee_protocol1,
            ))

        logger.info(
            "Pool %s protocol fee %d/%d -> %d/%d",
            self.address, old0, old1, fee_protocol0, fee_protocol1,
        )

    def set_fee_swap_referrer(self, sender: str, fee_swap_referrer0: int, fee_swap_referrer1: int) -> None:
        """Set per-token referrer fee denominators (0 or 4..15)."""
        self._require_initialized()

        with self._atomic():
            self._only_owner(sender)
            validate_referrer_fee(fee_swap_referrer0)
            validate_referrer_fee(fee_swap_referrer1)
            fees = self._state.fees
            old0, old1 = fees.referrer_0, fees.referrer_1
            fees.referrer_0, fees.referrer_1 = fee_swap_referrer0, fee_swap_referrer1
            self.events.emit(SetFeeSwapReferrer(
                fee_swap_referrer0_old=old0, fee_swap_referrer1_old=old1,
                fee_swap_referrer0_new=fee_swap_referrer0, fee_swap_referrer1_new=fee_swap_referrer1,
            ))

        logger.info(
            "Pool %s referrer fee %d/%d -> %d/%d",
            self.address, old0, old1, fee_swap_referrer0, fee_swap_referrer1,
        )

    # -- Fee collection -----------------------------------------------------

    def collect_protocol(
        self,
        sender: str,
        recipient: str,
        amount0_requested: int,
        amount1_requested: int,
    ) -> Tuple[int, int]:
        """Owner withdrawal of accrued protocol fees."""
        self._require_initialized()
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        with self._atomic():
            self._only_owner(sender)
            amount0, amount1 = self._protocol_fees.withdraw(amount0_requested, amount1_requested)
            self._pay(self.token0, recipient, amount0)
            self._pay(self.token1, recipient, amount1)
            self.events.emit(CollectProtocol(
                sender=sender, recipient=recipient, amount0=amount0, amount1=amount1,
            ))

        logger.info("Protocol fees collected %d/%d -> %s", amount0, amount1, recipient)
        return amount0, amount1

    def collect_my_referrer_fees(self, sender: str) -> Tuple[int, int]:
        """
        Withdraw everything accrued to ``sender`` as a swap referrer.

        Idempotent: a repeat call returns (0, 0) and transfers nothing.
        """
        self._require_initialized()
        referrer = normalize_address(sender)

        with self._atomic():
            amount0, amount1 = self._referrer_fees.take_all(referrer)
            self._pay(self.token0, referrer, amount0)
            self._pay(self.token1, referrer, amount1)
            self.events.emit(CollectReferrerFees(referrer=referrer, amount0=amount0, amount1=amount1))

        logger.info("Referrer fees collected by %s: %d/%d", referrer, amount0, amount1)
        return amount0, amount1

    # -- Read interface -----------------------------------------------------

    @property
    def state(self) -> PoolState:
        return copy.deepcopy(self._state)

    @property
    def locked(self) -> bool:
        return self._gate.locked

    @property
    def sqrt_price_x96(self) -> int:
        return self._state.sqrt_price_x96

    @property
    def tick_current(self) -> int:
        return self._state.tick

    @property
    def liquidity(self) -> int:
        return self._state.liquidity

    @property
    def fee_protocol(self) -> Tuple[int, int]:
        return self._state.fees.protocol_0, self._state.fees.protocol_1

    @property
    def fee_swap_referrer(self) -> Tuple[int, int]:
        return self._state.fees.referrer_0, self._state.fees.referrer_1

    @property
    def protocol_fees(self) -> Tuple[int, int]:
        return self._protocol_fees.as_tuple()

    @property
    def max_liquidity_per_tick(self) -> int:
        return self._ticks.max_liquidity_per_tick

    def referrer_fees(self, referrer: str) -> Tuple[int, int]:
        return self._referrer_fees.balance_of(normalize_address(referrer))

    def referrers(self) -> List[Tuple[str, Tuple[int, int]]]:
        return [(referrer, account.as_tuple()) for referrer, account in self._referrer_fees]

    def position(self, owner: str, tick_lower: int, tick_upper: int) -> Optional[Position]:
        position = self._positions.get(normalize_address(owner), tick_lower, tick_upper)
        return copy.copy(position) if position is not None else None

    def positions(self) -> List[Position]:
        return [copy.copy(p) for p in self._positions]

    def tick(self, index: int) -> Optional[TickInfo]:
        info = self._ticks.get(index)
        return copy.copy(info) if info is not None else None

    def initialized_ticks(self) -> List[int]:
        return self._ticks.initialized_ticks

    def fee_growth_inside(self, tick_lower: int, tick_upper: int) -> Tuple[int, int]:
        """Current fee growth inside [tick_lower, tick_upper) per unit of liquidity."""
        self._check_ticks(tick_lower, tick_upper)
        state = self._state
        return self._ticks.fee_growth_inside(
            tick_lower, tick_upper, state.tick,
            state.fee_growth_global_0_x128, state.fee_growth_global_1_x128,
        )
