"""
Fixed-Point Math for the Concentrated-Liquidity Pool

Integer-only Q64.96 price and Q128.128 fee-growth arithmetic. Every function
here is deterministic and bit-exact with the on-chain AMM the pool mirrors:
prices are ``sqrt(1.0001 ** tick) * 2**96``, fee growth is fees per unit of
liquidity scaled by ``2**128``.

Overflow never wraps silently. A result that leaves its width raises
``ArithmeticOverflow``; a negative unsigned result raises
``ArithmeticUnderflow``. The one deliberate exception is fee-growth
inside/outside bookkeeping, which is modulo ``2**256`` (see
:func:`wrapping_sub`).
"""

from typing import Optional, Tuple

from ..constants import (
    Q96,
    Q128,
    UINT160_MAX,
    UINT256_MAX,
    MIN_TICK,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MAX_SQRT_RATIO,
    FEE_PIPS_DENOMINATOR,
)
from ..exceptions import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    InvalidTickRange,
    PriceLimitInvalid,
)


# =============================================================================
# WIDTH CHECKS
# =============================================================================

def checked_uint(value: int, bits: int = 256) -> int:
    """Return ``value`` if it fits an unsigned integer of ``bits`` width."""
    if value < 0:
        raise ArithmeticUnderflow(f"uint{bits} underflow: {value}")
    if value >> bits:
        raise ArithmeticOverflow(f"uint{bits} overflow: {value}")
    return value


def checked_int(value: int, bits: int = 256) -> int:
    """Return ``value`` if it fits a two's-complement integer of ``bits`` width."""
    bound = 1 << (bits - 1)
    if value >= bound:
        raise ArithmeticOverflow(f"int{bits} overflow: {value}")
    if value < -bound:
        raise ArithmeticUnderflow(f"int{bits} underflow: {value}")
    return value


def wrapping_sub(a: int, b: int) -> int:
    """``a - b`` modulo 2**256, for fee-growth checkpoints."""
    return (a - b) & UINT256_MAX


# =============================================================================
# FULL MATH
# =============================================================================

def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with a uint256 result."""
    if denominator == 0:
        raise ArithmeticOverflow("mul_div by zero")
    return checked_uint((a * b) // denominator)


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) with a uint256 result."""
    if denominator == 0:
        raise ArithmeticOverflow("mul_div_rounding_up by zero")
    result, remainder = divmod(a * b, denominator)
    if remainder:
        result += 1
    return checked_uint(result)


def div_rounding_up(x: int, y: int) -> int:
    if y == 0:
        raise ArithmeticOverflow("div_rounding_up by zero")
    return x // y + (1 if x % y else 0)


def add_delta(x: int, y: int) -> int:
    """Apply a signed liquidity delta ``y`` to uint128 liquidity ``x``."""
    return checked_uint(x + y, 128)


# =============================================================================
# TICK MATH
# =============================================================================

def get_sqrt_ratio_at_tick(tick: int) -> int:
    """
    Calculate ``sqrt(1.0001 ** tick) * 2**96``.

    Raises:
        InvalidTickRange: tick outside [MIN_TICK, MAX_TICK]
    """
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidTickRange(f"Tick {tick} out of range [{MIN_TICK}, {MAX_TICK}]")

    abs_tick = abs(tick)

    ratio = 0xfffcb933bd6fad37aa2d162d1a594001 if abs_tick & 0x1 else 0x100000000000000000000000000000000
    if abs_tick & 0x2:
        ratio = (ratio * 0xfff97272373d413259a46990580e213a) >> 128
    if abs_tick & 0x4:
        ratio = (ratio * 0xfff2e50f5f656932ef12357cf3c7fdcc) >> 128
    if abs_tick & 0x8:
        ratio = (ratio * 0xffe5caca7e10e4e61c3624eaa0941cd0) >> 128
    if abs_tick & 0x10:
        ratio = (ratio * 0xffcb9843d60f6159c9db58835c926644) >> 128
    if abs_tick & 0x20:
        ratio = (ratio * 0xff973b41fa98c081472e6896dfb254c0) >> 128
    if abs_tick & 0x40:
        ratio = (ratio * 0xff2ea16466c96a3843ec78b326b52861) >> 128
    if abs_tick & 0x80:
        ratio = (ratio * 0xfe5dee046a99a2a811c461f1969c3053) >> 128
    if abs_tick & 0x100:
        ratio = (ratio * 0xfcbe86c7900a88aedcffc83b479aa3a4) >> 128
    if abs_tick & 0x200:
        ratio = (ratio * 0xf987a7253ac413176f2b074cf7815e54) >> 128
    if abs_tick & 0x400:
        ratio = (ratio * 0xf3392b0822b70005940c7a398e4b70f3) >> 128
    if abs_tick & 0x800:
        ratio = (ratio * 0xe7159475a2c29b7443b29c7fa6e889d9) >> 128
    if abs_tick & 0x1000:
        ratio = (ratio * 0xd097f3bdfd2022b8845ad8f792aa5825) >> 128
    if abs_tick & 0x2000:
        ratio = (ratio * 0xa9f746462d870fdf8a65dc1f90e061e5) >> 128
    if abs_tick & 0x4000:
        ratio = (ratio * 0x70d869a156d2a1b890bb3df62baf32f7) >> 128
    if abs_tick & 0x8000:
        ratio = (ratio * 0x31be135f97d08fd981231505542fcfa6) >> 128
    if abs_tick & 0x10000:
        ratio = (ratio * 0x9aa508b5b7a84e1c677de54f3e99bc9) >> 128
    if abs_tick & 0x20000:
        ratio = (ratio * 0x5d6af8dedb81196699c329225ee604) >> 128
    if abs_tick & 0x40000:
        ratio = (ratio * 0x2216e584f5fa1ea926041bedfe98) >> 128
    if abs_tick & 0x80000:
        ratio = (ratio * 0x48a170391f7dc42444e8fa2) >> 128

    if tick > 0:
        ratio = UINT256_MAX // ratio

    # Q128.128 -> Q64.96, rounding up so the result is never below the true price
    return (ratio >> 32) + (1 if ratio & 0xFFFFFFFF else 0)


def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """
    Greatest tick whose sqrt ratio is <= ``sqrt_price_x96``.

    Raises:
        PriceLimitInvalid: price outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if sqrt_price_x96 < MIN_SQRT_RATIO or sqrt_price_x96 >= MAX_SQRT_RATIO:
        raise PriceLimitInvalid(f"sqrtPriceX96 {sqrt_price_x96} out of bounds")

    ratio = sqrt_price_x96 << 32
    msb = ratio.bit_length() - 1

    if msb >= 128:
        r = ratio >> (msb - 127)
    else:
        r = ratio << (127 - msb)

    log_2 = (msb - 128) << 64

    for i in range(14):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << (63 - i)
        r >>= f

    log_sqrt10001 = log_2 * 255738958999603826347141

    tick_low = (log_sqrt10001 - 3402992956809132418596140100660247210) >> 128
    tick_high = (log_sqrt10001 + 291339464771989622907027621153398088495) >> 128

    if tick_low == tick_high:
        return tick_low
    return tick_high if get_sqrt_ratio_at_tick(tick_high) <= sqrt_price_x96 else tick_low


# =============================================================================
# SQRT PRICE MATH
# =============================================================================

def get_amount0_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: Optional[bool] = None,
) -> int:
    """
    Token0 between two prices: ``L * (sqrt_b - sqrt_a) / (sqrt_a * sqrt_b)``.

    With ``round_up=None`` the liquidity is signed: a positive delta is
    rounded up (owed to the pool), a negative delta is rounded down and
    returned negative (owed by the pool).
    """
    if round_up is None:
        if liquidity < 0:
            return -get_amount0_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, -liquidity, False)
        return get_amount0_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, True)

    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96
    if sqrt_ratio_a_x96 <= 0:
        raise PriceLimitInvalid("sqrt ratio must be positive")

    numerator1 = liquidity << 96
    numerator2 = sqrt_ratio_b_x96 - sqrt_ratio_a_x96

    if round_up:
        return div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, sqrt_ratio_b_x96),
            sqrt_ratio_a_x96,
        )
    return mul_div(numerator1, numerator2, sqrt_ratio_b_x96) // sqrt_ratio_a_x96


def get_amount1_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: Optional[bool] = None,
) -> int:
    """Token1 between two prices: ``L * (sqrt_b - sqrt_a)``. Signed as in :func:`get_amount0_delta`."""
    if round_up is None:
        if liquidity < 0:
            return -get_amount1_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, -liquidity, False)
        return get_amount1_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, True)

    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)
    return mul_div(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)


def _next_sqrt_price_from_amount0_rounding_up(
    sqrt_price_x96: int, liquidity: int, amount: int, add: bool
) -> int:
    if amount == 0:
        return sqrt_price_x96
    numerator1 = liquidity << 96
    product = amount * sqrt_price_x96

    if add:
        denominator = numerator1 + product
        if product <= UINT256_MAX and denominator <= UINT256_MAX:
            return mul_div_rounding_up(numerator1, sqrt_price_x96, denominator)
        return div_rounding_up(numerator1, numerator1 // sqrt_price_x96 + amount)

    if product > UINT256_MAX or numerator1 <= product:
        raise ArithmeticUnderflow("Output exceeds token0 reserves of the price range")
    return checked_uint(
        mul_div_rounding_up(numerator1, sqrt_price_x96, numerator1 - product), 160
    )


def _next_sqrt_price_from_amount1_rounding_down(
    sqrt_price_x96: int, liquidity: int, amount: int, add: bool
) -> int:
    if add:
        if amount <= UINT160_MAX:
            quotient = (amount << 96) // liquidity
        else:
            quotient = mul_div(amount, Q96, liquidity)
        return checked_uint(sqrt_price_x96 + quotient, 160)

    if amount <= UINT160_MAX:
        quotient = div_rounding_up(amount << 96, liquidity)
    else:
        quotient = mul_div_rounding_up(amount, Q96, liquidity)
    if sqrt_price_x96 <= quotient:
        raise ArithmeticUnderflow("Output exceeds token1 reserves of the price range")
    return sqrt_price_x96 - quotient


def get_next_sqrt_price_from_input(
    sqrt_price_x96: int, liquidity: int, amount_in: int, zero_for_one: bool
) -> int:
    """Price after adding ``amount_in`` of the input token, rounded against the swapper."""
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise ArithmeticUnderflow("Price and liquidity must be positive")
    if zero_for_one:
        return _next_sqrt_price_from_amount0_rounding_up(sqrt_price_x96, liquidity, amount_in, True)
    return _next_sqrt_price_from_amount1_rounding_down(sqrt_price_x96, liquidity, amount_in, True)


def get_next_sqrt_price_from_output(
    sqrt_price_x96: int, liquidity: int, amount_out: int, zero_for_one: bool
) -> int:
    """Price after removing ``amount_out`` of the output token, rounded against the swapper."""
    if sqrt_price_x96 <= 0 or liquidity <= 0:
        raise ArithmeticUnderflow("Price and liquidity must be positive")
    if zero_for_one:
        return _next_sqrt_price_from_amount1_rounding_down(sqrt_price_x96, liquidity, amount_out, False)
    return _next_sqrt_price_from_amount0_rounding_up(sqrt_price_x96, liquidity, amount_out, False)


# =============================================================================
# SWAP STEP
# =============================================================================

def compute_swap_step(
    sqrt_ratio_current_x96: int,
    sqrt_ratio_target_x96: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> Tuple[int, int, int, int]:
    """
    Compute one bounded step of a swap.

    The step moves the price from current toward target, stopping early if
    ``amount_remaining`` runs out. Positive ``amount_remaining`` is exact
    input (fee included), negative is exact output.

    Returns:
        (sqrt_ratio_next_x96, amount_in, amount_out, fee_amount)
    """
    zero_for_one = sqrt_ratio_current_x96 >= sqrt_ratio_target_x96
    exact_in = amount_remaining >= 0

    if exact_in:
        amount_remaining_less_fee = mul_div(
            amount_remaining, FEE_PIPS_DENOMINATOR - fee_pips, FEE_PIPS_DENOMINATOR
        )
        if zero_for_one:
            amount_in = get_amount0_delta(sqrt_ratio_target_x96, sqrt_ratio_current_x96, liquidity, True)
        else:
            amount_in = get_amount1_delta(sqrt_ratio_current_x96, sqrt_ratio_target_x96, liquidity, True)

        if amount_remaining_less_fee >= amount_in:
            sqrt_ratio_next_x96 = sqrt_ratio_target_x96
        else:
            sqrt_ratio_next_x96 = get_next_sqrt_price_from_input(
                sqrt_ratio_current_x96, liquidity, amount_remaining_less_fee, zero_for_one
            )
    else:
        if zero_for_one:
            amount_out = get_amount1_delta(sqrt_ratio_target_x96, sqrt_ratio_current_x96, liquidity, False)
        else:
            amount_out = get_amount0_delta(sqrt_ratio_current_x96, sqrt_ratio_target_x96, liquidity, False)

        if -amount_remaining >= amount_out:
            sqrt_ratio_next_x96 = sqrt_ratio_target_x96
        else:
            sqrt_ratio_next_x96 = get_next_sqrt_price_from_output(
                sqrt_ratio_current_x96, liquidity, -amount_remaining, zero_for_one
            )

    reached_target = sqrt_ratio_target_x96 == sqrt_ratio_next_x96

    if zero_for_one:
        if not (reached_target and exact_in):
            amount_in = get_amount0_delta(sqrt_ratio_next_x96, sqrt_ratio_current_x96, liquidity, True)
        if not (reached_target and not exact_in):
            amount_out = get_amount1_delta(sqrt_ratio_next_x96, sqrt_ratio_current_x96, liquidity, False)
    else:
        if not (reached_target and exact_in):
            amount_in = get_amount1_delta(sqrt_ratio_current_x96, sqrt_ratio_next_x96, liquidity, True)
        if not (reached_target and not exact_in):
            amount_out = get_amount0_delta(sqrt_ratio_current_x96, sqrt_ratio_next_x96, liquidity, False)

    # never pay out more than was asked for
    if not exact_in and amount_out > -amount_remaining:
        amount_out = -amount_remaining

    if exact_in and not reached_target:
        # the whole remainder is consumed; whatever is not input is fee
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = mul_div_rounding_up(amount_in, fee_pips, FEE_PIPS_DENOMINATOR - fee_pips)

    return sqrt_ratio_next_x96, amount_in, amount_out, fee_amount


def fee_growth_delta(fee_amount: int, liquidity: int) -> int:
    """LP fee per unit of in-range liquidity, as Q128.128."""
    return mul_div(fee_amount, Q128, liquidity)
