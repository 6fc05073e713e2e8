"""
Pool Transaction Types

Envelope for every pool operation processed by :class:`PoolStateManager`.
Transactions are deterministic records: the same sequence applied to the
same starting state always produces the same results and state root.

Transaction Types:
  - CREATE_POOL:            Deploy a pool (optionally initializing its price)
  - INITIALIZE:             Set a pool's starting price
  - MINT:                   Add liquidity to a range position
  - BURN:                   Remove liquidity (amount 0 settles fees only)
  - COLLECT:                Withdraw a position's owed tokens
  - SWAP:                   Swap with an optional referrer
  - SET_FEE_PROTOCOL:       Owner: protocol fee denominators
  - SET_FEE_SWAP_REFERRER:  Owner: referrer fee denominators
  - COLLECT_PROTOCOL:       Owner: withdraw protocol fees
  - COLLECT_REFERRER_FEES:  Referrer: withdraw own accrued fees
  - ADD_ROUTER:             Whitelist owner: trust a router
  - REMOVE_ROUTER:          Whitelist owner: revoke a router
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Tuple

from eth_utils import is_hex_address


class PoolOpType(IntEnum):
    """All pool operation types. Values are part of the transaction hash."""
    CREATE_POOL = 1
    INITIALIZE = 2
    MINT = 3
    BURN = 4
    COLLECT = 5
    SWAP = 6
    SET_FEE_PROTOCOL = 7
    SET_FEE_SWAP_REFERRER = 8
    COLLECT_PROTOCOL = 9
    COLLECT_REFERRER_FEES = 10
    ADD_ROUTER = 11
    REMOVE_ROUTER = 12


REQUIRED_PARAMS: Dict[PoolOpType, Tuple[str, ...]] = {
    PoolOpType.CREATE_POOL: ("token0", "token1", "fee"),
    PoolOpType.INITIALIZE: ("pool", "sqrt_price_x96"),
    PoolOpType.MINT: ("pool", "tick_lower", "tick_upper", "amount"),
    PoolOpType.BURN: ("pool", "tick_lower", "tick_upper", "amount"),
    PoolOpType.COLLECT: ("pool", "tick_lower", "tick_upper"),
    PoolOpType.SWAP: ("pool", "zero_for_one", "amount_specified"),
    PoolOpType.SET_FEE_PROTOCOL: ("pool", "fee_protocol0", "fee_protocol1"),
    PoolOpType.SET_FEE_SWAP_REFERRER: ("pool", "fee_swap_referrer0", "fee_swap_referrer1"),
    PoolOpType.COLLECT_PROTOCOL: ("pool",),
    PoolOpType.COLLECT_REFERRER_FEES: ("pool",),
    PoolOpType.ADD_ROUTER: ("router",),
    PoolOpType.REMOVE_ROUTER: ("router",),
}


@dataclass
class PoolTransaction:
    """
    Envelope for a single pool operation.

    Fields are hash-critical: changing any of them changes the tx hash.
    """
    op_type: PoolOpType
    sender: str                         # address of the immediate caller
    nonce: int                          # per-sender monotonic nonce
    params: Dict[str, Any] = field(default_factory=dict)

    # --- Filled in after execution ---
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    def __post_init__(self):
        self.op_type = PoolOpType(self.op_type)

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        """Deterministic transaction hash."""
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        parts = [
            int(self.op_type).to_bytes(1, "big"),
            self.sender.lower().encode("utf-8"),
            self.nonce.to_bytes(8, "big"),
            params_json,
        ]
        return b"".join(parts)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "nonce": self.nonce,
            "params": self.params,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PoolTransaction:
        return cls(
            op_type=PoolOpType(data["op_type"]),
            sender=data["sender"],
            nonce=data["nonce"],
            params=data.get("params", {}),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json(cls, raw: str) -> PoolTransaction:
        return cls.from_dict(json.loads(raw))

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no state access needed).

        Raises:
            ValueError: with specific reason
        """
        if not self.sender:
            raise ValueError("Missing sender address")
        if not is_hex_address(self.sender):
            raise ValueError(f"Invalid sender address: {self.sender}")
        if self.nonce < 0:
            raise ValueError("Nonce must be non-negative")
        for key in REQUIRED_PARAMS[self.op_type]:
            if key not in self.params:
                raise ValueError(f"{self.op_type.name} missing param: {key}")
        return True

    def __repr__(self) -> str:
        return (f"PoolTransaction(op={self.op_type.name}, sender={self.sender[:10]}..., "
                f"nonce={self.nonce}, hash={self.tx_hash()[:12]}...)")
