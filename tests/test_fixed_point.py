"""
Test suite for clpool fixed-point math

Covers:
  - Width checks and full-precision mul/div
  - Tick <-> sqrt price conversion at the bounds and round trips
  - Token amount deltas and next-price computation (rounding directions)
  - Single swap step invariants
"""

import pytest

from clpool.constants import (
    MAX_SQRT_RATIO,
    MAX_TICK,
    MIN_SQRT_RATIO,
    MIN_TICK,
    Q96,
    Q128,
    UINT128_MAX,
    UINT256_MAX,
)
from clpool.exceptions import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    InvalidTickRange,
    PriceLimitInvalid,
)
from clpool.exchange.fixed_point import (
    add_delta,
    checked_int,
    checked_uint,
    compute_swap_step,
    div_rounding_up,
    fee_growth_delta,
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
    mul_div,
    mul_div_rounding_up,
    wrapping_sub,
)


class TestWidthChecks:

    def test_checked_uint_accepts_bounds(self):
        assert checked_uint(0, 128) == 0
        assert checked_uint(UINT128_MAX, 128) == UINT128_MAX

    def test_checked_uint_overflow(self):
        with pytest.raises(ArithmeticOverflow, match="uint128"):
            checked_uint(UINT128_MAX + 1, 128)

    def test_checked_uint_underflow(self):
        with pytest.raises(ArithmeticUnderflow, match="uint256"):
            checked_uint(-1)

    def test_checked_int(self):
        assert checked_int(-(2 ** 127), 128) == -(2 ** 127)
        with pytest.raises(ArithmeticOverflow):
            checked_int(2 ** 127, 128)
        with pytest.raises(ArithmeticUnderflow):
            checked_int(-(2 ** 127) - 1, 128)

    def test_wrapping_sub(self):
        assert wrapping_sub(5, 3) == 2
        assert wrapping_sub(3, 5) == UINT256_MAX - 1
        assert wrapping_sub(0, UINT256_MAX) == 1

    def test_add_delta(self):
        assert add_delta(1, 0) == 1
        assert add_delta(1, -1) == 0
        assert add_delta(1, 1) == 2

    def test_add_delta_underflow(self):
        with pytest.raises(ArithmeticUnderflow):
            add_delta(0, -1)

    def test_add_delta_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            add_delta(UINT128_MAX, 1)


class TestFullMath:

    def test_mul_div_exact(self):
        assert mul_div(Q128, 35 * Q128, 8 * Q128) == 4375 * Q128 // 1000

    def test_mul_div_floors(self):
        assert mul_div(1, 1, 3) == 0
        assert mul_div(7, 1, 2) == 3

    def test_mul_div_rounding_up(self):
        assert mul_div_rounding_up(1, 1, 3) == 1
        assert mul_div_rounding_up(6, 1, 2) == 3

    def test_mul_div_phantom_overflow_is_fine(self):
        # intermediate product exceeds 256 bits, result does not
        assert mul_div(UINT256_MAX, UINT256_MAX, UINT256_MAX) == UINT256_MAX
        assert mul_div_rounding_up(UINT256_MAX, UINT256_MAX, UINT256_MAX) == UINT256_MAX

    def test_mul_div_result_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            mul_div(UINT256_MAX, 2, 1)

    def test_mul_div_rounding_up_result_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            mul_div_rounding_up(UINT256_MAX, UINT256_MAX, UINT256_MAX - 1)

    def test_zero_denominator(self):
        with pytest.raises(ArithmeticOverflow, match="zero"):
            mul_div(1, 1, 0)
        with pytest.raises(ArithmeticOverflow, match="zero"):
            mul_div_rounding_up(1, 1, 0)
        with pytest.raises(ArithmeticOverflow, match="zero"):
            div_rounding_up(1, 0)

    def test_div_rounding_up(self):
        assert div_rounding_up(10, 5) == 2
        assert div_rounding_up(11, 5) == 3

    def test_fee_growth_delta(self):
        assert fee_growth_delta(675, 1000) == 675 * Q128 // 1000
        assert fee_growth_delta(0, 1000) == 0


class TestTickMath:
    """Tick <-> sqrt-price conversions."""

    def test_tick_zero_is_price_one(self):
        assert get_sqrt_ratio_at_tick(0) == Q96

    def test_bounds(self):
        assert get_sqrt_ratio_at_tick(MIN_TICK) == MIN_SQRT_RATIO
        assert get_sqrt_ratio_at_tick(MAX_TICK) == MAX_SQRT_RATIO

    def test_out_of_range_tick(self):
        with pytest.raises(InvalidTickRange):
            get_sqrt_ratio_at_tick(MIN_TICK - 1)
        with pytest.raises(InvalidTickRange):
            get_sqrt_ratio_at_tick(MAX_TICK + 1)

    def test_monotonic(self):
        ticks = [-50000, -600, -1, 0, 1, 600, 50000]
        ratios = [get_sqrt_ratio_at_tick(t) for t in ticks]
        assert ratios == sorted(ratios)
        assert len(set(ratios)) == len(ratios)

    def test_symmetry(self):
        # sqrt(p(t)) * sqrt(p(-t)) == 1, up to rounding
        for tick in (1, 60, 12345):
            product = get_sqrt_ratio_at_tick(tick) * get_sqrt_ratio_at_tick(-tick)
            assert abs(product - Q96 * Q96) < Q96 * 4

    def test_tick_at_bounds(self):
        assert get_tick_at_sqrt_ratio(MIN_SQRT_RATIO) == MIN_TICK
        assert get_tick_at_sqrt_ratio(MAX_SQRT_RATIO - 1) == MAX_TICK - 1

    def test_tick_at_price_out_of_bounds(self):
        with pytest.raises(PriceLimitInvalid):
            get_tick_at_sqrt_ratio(MIN_SQRT_RATIO - 1)
        with pytest.raises(PriceLimitInvalid):
            get_tick_at_sqrt_ratio(MAX_SQRT_RATIO)

    def test_roundtrip(self):
        for tick in [MIN_TICK, -887220, -200000, -60, -1, 0, 1, 60, 200000, 887220]:
            assert get_tick_at_sqrt_ratio(get_sqrt_ratio_at_tick(tick)) == tick

    def test_tick_is_floor(self):
        for tick in [-600, -1, 0, 1, 600]:
            ratio = get_sqrt_ratio_at_tick(tick)
            assert get_tick_at_sqrt_ratio(ratio + 1) == tick
            assert get_tick_at_sqrt_ratio(ratio - 1) == tick - 1


class TestSqrtPriceMath:

    L = 10 ** 18

    def test_amount1_delta(self):
        assert get_amount1_delta(Q96, 2 * Q96, self.L, True) == self.L
        assert get_amount1_delta(2 * Q96, Q96, self.L, False) == self.L

    def test_amount0_delta(self):
        # from price 1 to 4: L * (1 - 1/2)
        assert get_amount0_delta(Q96, 2 * Q96, self.L, True) == self.L // 2
        assert get_amount0_delta(Q96, 2 * Q96, self.L, False) == self.L // 2

    def test_rounding_directions(self):
        a = get_sqrt_ratio_at_tick(-60)
        b = get_sqrt_ratio_at_tick(60)
        up = get_amount0_delta(a, b, 12345, True)
        down = get_amount0_delta(a, b, 12345, False)
        assert up - down in (0, 1)
        up = get_amount1_delta(a, b, 12345, True)
        down = get_amount1_delta(a, b, 12345, False)
        assert up - down in (0, 1)

    def test_signed_deltas(self):
        assert get_amount0_delta(Q96, 2 * Q96, -self.L) == -(self.L // 2)
        assert get_amount1_delta(Q96, 2 * Q96, -self.L) == -self.L
        assert get_amount1_delta(Q96, 2 * Q96, self.L) == self.L

    def test_zero_price_rejected(self):
        with pytest.raises(PriceLimitInvalid):
            get_amount0_delta(0, Q96, self.L, True)

    def test_next_price_from_input_token1(self):
        amount = 10 ** 17
        assert get_next_sqrt_price_from_input(Q96, self.L, amount, False) == Q96 + (amount * Q96) // self.L

    def test_next_price_from_input_token0(self):
        # adding L of token0 at price 1 halves sqrt price
        assert get_next_sqrt_price_from_input(Q96, self.L, self.L, True) == Q96 // 2

    def test_next_price_from_zero_input(self):
        assert get_next_sqrt_price_from_input(Q96, self.L, 0, True) == Q96
        assert get_next_sqrt_price_from_input(Q96, self.L, 0, False) == Q96

    def test_next_price_from_output_token1(self):
        assert get_next_sqrt_price_from_output(Q96, self.L, self.L // 2, True) == Q96 // 2

    def test_output_exceeding_reserves(self):
        with pytest.raises(ArithmeticUnderflow):
            get_next_sqrt_price_from_output(Q96, self.L, self.L, True)
        with pytest.raises(ArithmeticUnderflow):
            get_next_sqrt_price_from_output(Q96, self.L, self.L, False)

    def test_zero_liquidity_rejected(self):
        with pytest.raises(ArithmeticUnderflow):
            get_next_sqrt_price_from_input(Q96, 0, 1, True)


class TestComputeSwapStep:

    L = 2 * 10 ** 18
    FEE = 3000

    def test_exact_in_reaching_target(self):
        target = get_sqrt_ratio_at_tick(-60)
        next_price, amount_in, amount_out, fee = compute_swap_step(Q96, target, self.L, 10 ** 18, self.FEE)
        assert next_price == target
        assert amount_in + fee <= 10 ** 18
        assert amount_in == get_amount0_delta(target, Q96, self.L, True)
        assert amount_out == get_amount1_delta(target, Q96, self.L, False)
        assert fee == mul_div_rounding_up(amount_in, self.FEE, 1_000_000 - self.FEE)

    def test_exact_in_consumes_whole_remainder(self):
        target = get_sqrt_ratio_at_tick(-6000)
        remaining = 10 ** 15
        next_price, amount_in, amount_out, fee = compute_swap_step(Q96, target, self.L, remaining, self.FEE)
        assert target < next_price < Q96
        assert amount_in + fee == remaining
        assert fee > 0
        assert amount_out > 0

    def test_exact_out_capped(self):
        target = get_sqrt_ratio_at_tick(6000)
        remaining = -(10 ** 15)
        next_price, amount_in, amount_out, fee = compute_swap_step(Q96, target, self.L, remaining, self.FEE)
        assert Q96 < next_price < target
        assert amount_out == 10 ** 15
        assert amount_in > 0
        assert fee == mul_div_rounding_up(amount_in, self.FEE, 1_000_000 - self.FEE)

    def test_zero_liquidity_jumps_to_target(self):
        target = get_sqrt_ratio_at_tick(-60)
        assert compute_swap_step(Q96, target, 0, 10 ** 18, self.FEE) == (target, 0, 0, 0)

    def test_zero_fee(self):
        target = get_sqrt_ratio_at_tick(60)
        _, amount_in, _, fee = compute_swap_step(Q96, target, self.L, 10 ** 18, 0)
        assert amount_in > 0
        assert fee == 0
