"""
Test suite for swap fee accounting

Covers:
  - Denominator validation (protocol and referrer ranges)
  - Protocol -> referrer -> LP split order and conservation
  - Folding the referrer share into protocol revenue
  - Accrued fee accounts and the per-referrer store
"""

import pytest

from clpool.constants import Q128, UINT128_MAX
from clpool.exceptions import ArithmeticOverflow, ArithmeticUnderflow, InvalidFeeConfig
from clpool.exchange.fees import (
    FeeAccount,
    FeeAccountant,
    FeeConfig,
    ProtocolFeeAccount,
    ReferrerFeeStore,
    split_fee,
    validate_protocol_fee,
    validate_referrer_fee,
)
from clpool.exchange.fixed_point import fee_growth_delta

REF_A = "0x4444444444444444444444444444444444444444"
REF_B = "0x5555555555555555555555555555555555555555"


class TestValidation:

    @pytest.mark.parametrize("value", [0, 4, 10, 15])
    def test_referrer_accepts(self, value):
        assert validate_referrer_fee(value) == value

    @pytest.mark.parametrize("value", [1, 2, 3, 16, 255, -1])
    def test_referrer_rejects(self, value):
        with pytest.raises(InvalidFeeConfig, match="Referrer"):
            validate_referrer_fee(value)

    @pytest.mark.parametrize("value", [0, 4, 10, 255])
    def test_protocol_accepts(self, value):
        assert validate_protocol_fee(value) == value

    @pytest.mark.parametrize("value", [1, 3, 256, -4])
    def test_protocol_rejects(self, value):
        with pytest.raises(InvalidFeeConfig, match="Protocol"):
            validate_protocol_fee(value)

    def test_non_integer_rejected(self):
        with pytest.raises(InvalidFeeConfig, match="integer"):
            validate_referrer_fee("4")
        with pytest.raises(InvalidFeeConfig, match="integer"):
            validate_protocol_fee(True)

    def test_fee_config_validates(self):
        with pytest.raises(InvalidFeeConfig):
            FeeConfig(referrer_0=16)
        with pytest.raises(InvalidFeeConfig):
            FeeConfig(protocol_1=2)

    def test_fee_config_for_input(self):
        cfg = FeeConfig(protocol_0=4, protocol_1=5, referrer_0=10, referrer_1=12)
        assert cfg.for_input(True) == (4, 10)
        assert cfg.for_input(False) == (5, 12)


class TestSplitFee:
    """Fee split order and conservation."""

    def test_worked_example(self):
        split = split_fee(1000, 4, 10, True)
        assert split.protocol_share == 250
        assert split.referrer_share == 75
        assert split.lp_share == 675
        assert fee_growth_delta(split.lp_share, 1000) == 675 * Q128 // 1000

    def test_referrer_share_taken_after_protocol(self):
        fee = 16000
        split = split_fee(fee, 4, 4, True)
        assert split.protocol_share == fee // 4
        assert split.referrer_share == 3 * fee // 16
        assert split.lp_share == 9 * fee // 16

    @pytest.mark.parametrize("protocol", [0, 4, 7, 255])
    @pytest.mark.parametrize("referrer", [0, 4, 9, 15])
    @pytest.mark.parametrize("fee", [0, 1, 3, 999, 123456789, UINT128_MAX])
    def test_shares_sum_to_fee(self, protocol, referrer, fee):
        split = split_fee(fee, protocol, referrer, True)
        assert split.protocol_share + split.referrer_share + split.lp_share == fee
        assert min(split.protocol_share, split.referrer_share, split.lp_share) >= 0

    def test_disabled_tiers(self):
        split = split_fee(1000, 0, 0, True)
        assert split.protocol_share == 0
        assert split.referrer_share == 0
        assert split.lp_share == 1000

    def test_referrer_only(self):
        split = split_fee(1000, 0, 10, True)
        assert split.protocol_share == 0
        assert split.referrer_share == 100
        assert split.lp_share == 900

    def test_small_fee_rounds_to_lp(self):
        split = split_fee(3, 4, 4, True)
        assert split.protocol_share == 0
        assert split.referrer_share == 0
        assert split.lp_share == 3

    def test_credits_when_permitted(self):
        split = split_fee(1000, 4, 10, True)
        assert split.protocol_credit == 250
        assert split.referrer_credit == 75

    def test_credits_fold_when_not_permitted(self):
        split = split_fee(1000, 4, 10, False)
        assert split.lp_share == 675
        assert split.protocol_credit == 325
        assert split.referrer_credit == 0


class TestFeeAccountant:

    def test_uses_input_token_denominators(self):
        accountant = FeeAccountant(FeeConfig(protocol_0=4, protocol_1=0, referrer_0=0, referrer_1=10))
        zero_for_one = accountant.split(1000, True, True)
        assert (zero_for_one.protocol_share, zero_for_one.referrer_share) == (250, 0)
        one_for_zero = accountant.split(1000, False, True)
        assert (one_for_zero.protocol_share, one_for_zero.referrer_share) == (0, 100)

    def test_tracks_config_changes(self):
        cfg = FeeConfig()
        accountant = FeeAccountant(cfg)
        assert accountant.split(1000, True, True).lp_share == 1000
        cfg.protocol_0 = 4
        assert accountant.split(1000, True, True).lp_share == 750


class TestFeeAccounts:

    def test_accrue_and_withdraw(self):
        account = ProtocolFeeAccount()
        account.accrue(100, 50)
        assert account.withdraw(30, 80) == (30, 50)
        assert account.as_tuple() == (70, 0)

    def test_drain(self):
        account = FeeAccount()
        account.accrue(7, 9)
        assert account.drain() == (7, 9)
        assert account.as_tuple() == (0, 0)
        assert account.drain() == (0, 0)

    def test_withdraw_negative_request(self):
        account = ProtocolFeeAccount()
        account.accrue(10, 10)
        with pytest.raises(ArithmeticUnderflow):
            account.withdraw(-5, 0)
        assert account.as_tuple() == (10, 10)

    def test_accrue_overflow(self):
        account = FeeAccount(token0=UINT128_MAX)
        with pytest.raises(ArithmeticOverflow):
            account.accrue(1, 0)

    def test_referrer_store_balances_are_independent(self):
        store = ReferrerFeeStore()
        store.accrue(REF_A, 10, 0)
        store.accrue(REF_B, 0, 20)
        store.accrue(REF_A, 5, 1)
        assert store.balance_of(REF_A) == (15, 1)
        assert store.balance_of(REF_B) == (0, 20)

        assert store.take_all(REF_A) == (15, 1)
        assert store.balance_of(REF_A) == (0, 0)
        assert store.balance_of(REF_B) == (0, 20)

    def test_referrer_store_take_all_is_idempotent(self):
        store = ReferrerFeeStore()
        store.accrue(REF_A, 10, 10)
        assert store.take_all(REF_A) == (10, 10)
        assert store.take_all(REF_A) == (0, 0)

    def test_unknown_referrer_reads_zero(self):
        store = ReferrerFeeStore()
        assert store.balance_of(REF_A) == (0, 0)
        assert store.take_all(REF_A) == (0, 0)
        assert len(store) == 0

    def test_iteration_sorted(self):
        store = ReferrerFeeStore()
        store.accrue(REF_B, 1, 0)
        store.accrue(REF_A, 2, 0)
        assert [referrer for referrer, _ in store] == [REF_A, REF_B]
