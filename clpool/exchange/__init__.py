"""
clpool Exchange Engine

Concentrated-liquidity pool with a layered swap fee.

Components:
  - Fixed-point math (Q64.96 prices, Q128.128 fee growth, bit-exact tick math)
  - Tick and position ledgers (fee growth inside/outside)
  - Fee accountant (protocol -> swap referrer -> LP) and accrued fee accounts
  - Pool engine (swap, mint, burn, collect, fee configuration)
  - Reentrancy gate and router trust oracle
  - Transaction surface with deterministic state root
"""

from .fixed_point import (
    mul_div,
    mul_div_rounding_up,
    div_rounding_up,
    add_delta,
    checked_uint,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
    get_amount0_delta,
    get_amount1_delta,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
    compute_swap_step,
    fee_growth_delta,
)
from .ticks import (
    TickInfo,
    TickLedger,
)
from .positions import (
    Position,
    PositionLedger,
)
from .fees import (
    FeeConfig,
    FeeSplit,
    FeeAccountant,
    FeeAccount,
    ProtocolFeeAccount,
    ReferrerFeeStore,
    split_fee,
    validate_protocol_fee,
    validate_referrer_fee,
)
from .gate import (
    GateState,
    ReentrancyGate,
)
from .router_trust import (
    RouterTrustOracle,
    RouterWhitelist,
    is_trusted_router,
)
from .events import EventLog
from .tokens import TokenLedger
from .pool import (
    ConcentratedLiquidityPool,
    FeeTier,
    PoolState,
    SwapParams,
    SwapResult,
)
from .transactions import (
    PoolOpType,
    PoolTransaction,
)
from .state_manager import (
    PoolExecResult,
    PoolStateManager,
)

__all__ = [
    # Fixed-point math
    "mul_div",
    "mul_div_rounding_up",
    "div_rounding_up",
    "add_delta",
    "checked_uint",
    "get_sqrt_ratio_at_tick",
    "get_tick_at_sqrt_ratio",
    "get_amount0_delta",
    "get_amount1_delta",
    "get_next_sqrt_price_from_input",
    "get_next_sqrt_price_from_output",
    "compute_swap_step",
    "fee_growth_delta",
    # Ledgers
    "TickInfo",
    "TickLedger",
    "Position",
    "PositionLedger",
    # Fees
    "FeeConfig",
    "FeeSplit",
    "FeeAccountant",
    "FeeAccount",
    "ProtocolFeeAccount",
    "ReferrerFeeStore",
    "split_fee",
    "validate_protocol_fee",
    "validate_referrer_fee",
    # Gate / oracle
    "GateState",
    "ReentrancyGate",
    "RouterTrustOracle",
    "RouterWhitelist",
    "is_trusted_router",
    # Pool
    "EventLog",
    "TokenLedger",
    "ConcentratedLiquidityPool",
    "FeeTier",
    "PoolState",
    "SwapParams",
    "SwapResult",
    # Transactions
    "PoolOpType",
    "PoolTransaction",
    "PoolExecResult",
    "PoolStateManager",
]
