"""
Pool State Manager

Deterministic transaction surface over a set of pools sharing one token
ledger and one router whitelist.

Responsibilities:
  - Owns the pools, the token ledger and the router whitelist
  - Processes PoolTransactions deterministically (validation, nonce replay
    protection, dispatch, result with emitted events)
  - Pays swap and mint callbacks from the sender's ledger balance
  - Computes a blake2b state root over all pool and fee-account state
  - Snapshot / revert of the whole surface
"""

from __future__ import annotations

import copy
import hashlib
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from ..address import normalize_address
from ..constants import MAX_SQRT_RATIO, MIN_SQRT_RATIO, UINT128_MAX
from ..exceptions import CLPoolException, ConfigurationError
from .events import EventLog
from .pool import ConcentratedLiquidityPool, SwapParams
from .router_trust import RouterWhitelist
from .tokens import TokenLedger
from .transactions import PoolOpType, PoolTransaction

if TYPE_CHECKING:
    from ..config.loader import PoolConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transaction execution result
# ---------------------------------------------------------------------------

class PoolExecResult:
    """Result of executing a single pool transaction."""

    __slots__ = ("success", "data", "error", "logs")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        logs: Optional[List[Dict[str, Any]]] = None,
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.logs = logs or []

    def __repr__(self) -> str:
        if self.success:
            return f"PoolExecResult(success=True, data={self.data})"
        return f"PoolExecResult(success=False, error={self.error!r})"


# ---------------------------------------------------------------------------
# Pool State Manager
# ---------------------------------------------------------------------------

class PoolStateManager:
    """
    Bridge between a host's transaction stream and the pool engines.

    Usage:

        mgr = PoolStateManager(owner)
        for tx in txs:
            result = mgr.process_transaction(tx)
        state_root = mgr.compute_state_root()
    """

    def __init__(self, owner: str, ledger: Optional[TokenLedger] = None) -> None:
        self.owner = normalize_address(owner)
        self.ledger = ledger if ledger is not None else TokenLedger()
        self.router_events = EventLog()
        self.router_whitelist = RouterWhitelist(self.owner, events=self.router_events)

        self._pools: Dict[str, ConcentratedLiquidityPool] = {}
        # (token0, token1, fee) -> pool address
        self._pair_index: Dict[Tuple[str, str, int], str] = {}
        # Per-sender nonces for replay protection
        self._nonces: Dict[str, int] = {}
        self._results: List[PoolExecResult] = []

        self._snapshot: Optional[Tuple[Any, ...]] = None

    # =====================================================================
    #  Pool creation
    # =====================================================================

    def create_pool(
        self,
        token0: str,
        token1: str,
        fee: int,
        tick_spacing: Optional[int] = None,
        sqrt_price_x96: Optional[int] = None,
        owner: Optional[str] = None,
    ) -> ConcentratedLiquidityPool:
        """Create a pool; tokens are put in canonical (sorted) order."""
        token0 = normalize_address(token0)
        token1 = normalize_address(token1)
        if token0.lower() > token1.lower():
            token0, token1 = token1, token0

        key = (token0, token1, int(fee))
        if key in self._pair_index:
            raise ConfigurationError(f"Pool already exists for {token0}/{token1} fee={fee}")

        pool = ConcentratedLiquidityPool(
            token0, token1, fee, tick_spacing,
            owner=owner if owner is not None else self.owner,
            ledger=self.ledger,
            router_oracle=self.router_whitelist,
        )
        if pool.address in self._pools:
            raise ConfigurationError(f"Pool address collision: {pool.address}")
        if sqrt_price_x96 is not None:
            pool.initialize(sqrt_price_x96)

        self._pools[pool.address] = pool
        self._pair_index[key] = pool.address
        logger.info(
            "Pool %s created: %s/%s fee=%d tick_spacing=%d",
            pool.address, token0, token1, pool.fee, pool.tick_spacing,
        )
        return pool

    def create_pool_from_config(
        self,
        cfg: PoolConfig,
        token0: str,
        token1: str,
        sqrt_price_x96: int,
    ) -> ConcentratedLiquidityPool:
        """Create and initialize a pool, then apply the configured fees and routers."""
        cfg.validate()
        pool = self.create_pool(
            token0, token1, cfg.pool.fee,
            tick_spacing=cfg.pool.resolved_tick_spacing(),
            sqrt_price_x96=sqrt_price_x96,
            owner=cfg.pool.owner or None,
        )
        fees = cfg.fees
        if fees.protocol0 or fees.protocol1:
            pool.set_fee_protocol(pool.owner, fees.protocol0, fees.protocol1)
        if fees.referrer0 or fees.referrer1:
            pool.set_fee_swap_referrer(pool.owner, fees.referrer0, fees.referrer1)

        for router in cfg.routers.trusted:
            if not self.router_whitelist.is_router_whitelisted(router):
                self.router_whitelist.add_router(self.router_whitelist.owner, router)
        return pool

    # =====================================================================
    #  Transaction processing
    # =====================================================================

    def process_transaction(self, tx: PoolTransaction) -> PoolExecResult:
        """
        Execute a single pool transaction deterministically.

        Pool and token errors become a failed result; anything else is a bug
        and propagates.
        """
        # 1. Basic structural validation
        try:
            tx.validate_basic()
        except ValueError as e:
            return self._record(tx, PoolExecResult(success=False, error=str(e)))

        sender = normalize_address(tx.sender)

        # 2. Nonce check (replay protection)
        expected_nonce = self._nonces.get(sender, 0)
        if tx.nonce != expected_nonce:
            return self._record(tx, PoolExecResult(
                success=False,
                error=f"Invalid nonce: expected {expected_nonce}, got {tx.nonce}",
            ))

        # 3. Execute the operation
        try:
            result = self._execute_op(tx, sender)
        except (CLPoolException, ValueError) as e:
            logger.error("Pool op %s from %s failed: %s: %s", tx.op_type.name, sender, type(e).__name__, e)
            result = PoolExecResult(success=False, error=f"{type(e).__name__}: {e}")

        # 4. Update nonce on success
        if result.success:
            self._nonces[sender] = tx.nonce + 1

        return self._record(tx, result)

    def _record(self, tx: PoolTransaction, result: PoolExecResult) -> PoolExecResult:
        tx.success = result.success
        tx.result = result.data
        tx.error = result.error
        self._results.append(result)
        return result

    def _execute_op(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        """Dispatch to the appropriate handler."""
        handlers: Dict[PoolOpType, Callable[[PoolTransaction, str], PoolExecResult]] = {
            PoolOpType.CREATE_POOL: self._op_create_pool,
            PoolOpType.INITIALIZE: self._op_initialize,
            PoolOpType.MINT: self._op_mint,
            PoolOpType.BURN: self._op_burn,
            PoolOpType.COLLECT: self._op_collect,
            PoolOpType.SWAP: self._op_swap,
            PoolOpType.SET_FEE_PROTOCOL: self._op_set_fee_protocol,
            PoolOpType.SET_FEE_SWAP_REFERRER: self._op_set_fee_swap_referrer,
            PoolOpType.COLLECT_PROTOCOL: self._op_collect_protocol,
            PoolOpType.COLLECT_REFERRER_FEES: self._op_collect_referrer_fees,
            PoolOpType.ADD_ROUTER: self._op_add_router,
            PoolOpType.REMOVE_ROUTER: self._op_remove_router,
        }
        handler = handlers.get(tx.op_type)
        if handler is None:
            return PoolExecResult(success=False, error=f"Unknown op type: {tx.op_type}")
        return handler(tx, sender)

    def _pool_for(self, tx: PoolTransaction) -> ConcentratedLiquidityPool:
        address = normalize_address(tx.params["pool"])
        pool = self._pools.get(address)
        if pool is None:
            raise ConfigurationError(f"Pool not found: {address}")
        return pool

    def _payer(self, pool: ConcentratedLiquidityPool, payer: str):
        """Callback that pays the pool from ``payer``'s ledger balance."""
        def pay(amount0: int, amount1: int, data: Any) -> None:
            if amount0 > 0:
                self.ledger.transfer(pool.token0, payer, pool.address, amount0)
            if amount1 > 0:
                self.ledger.transfer(pool.token1, payer, pool.address, amount1)
        return pay

    @staticmethod
    def _logs_since(events: EventLog, mark: int) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in events.since(mark)]

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_create_pool(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self.create_pool(
            p["token0"], p["token1"], int(p["fee"]),
            tick_spacing=int(p["tick_spacing"]) if p.get("tick_spacing") else None,
            sqrt_price_x96=int(p["sqrt_price_x96"]) if p.get("sqrt_price_x96") else None,
        )
        return PoolExecResult(
            success=True,
            data={"pool": pool.address, "token0": pool.token0, "token1": pool.token1},
            logs=self._logs_since(pool.events, 0),
        )

    def _op_initialize(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        tick = pool.initialize(int(tx.params["sqrt_price_x96"]))
        return PoolExecResult(success=True, data={"tick": tick}, logs=self._logs_since(pool.events, mark))

    def _op_mint(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        amount0, amount1 = pool.mint(
            sender,
            p.get("recipient", sender),
            int(p["tick_lower"]),
            int(p["tick_upper"]),
            int(p["amount"]),
            self._payer(pool, sender),
        )
        return PoolExecResult(
            success=True,
            data={"amount0": amount0, "amount1": amount1},
            logs=self._logs_since(pool.events, mark),
        )

    def _op_burn(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        amount0, amount1 = pool.burn(
            sender, int(p["tick_lower"]), int(p["tick_upper"]), int(p["amount"]),
            recipient=p.get("recipient"),
        )
        return PoolExecResult(
            success=True,
            data={"amount0": amount0, "amount1": amount1},
            logs=self._logs_since(pool.events, mark),
        )

    def _op_collect(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        amount0, amount1 = pool.collect(
            sender,
            p.get("recipient", sender),
            int(p["tick_lower"]),
            int(p["tick_upper"]),
            int(p.get("amount0_requested", UINT128_MAX)),
            int(p.get("amount1_requested", UINT128_MAX)),
        )
        return PoolExecResult(
            success=True,
            data={"amount0": amount0, "amount1": amount1},
            logs=self._logs_since(pool.events, mark),
        )

    def _op_swap(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        zero_for_one = bool(p["zero_for_one"])
        default_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1
        params = SwapParams(
            recipient=p.get("recipient", sender),
            zero_for_one=zero_for_one,
            amount_specified=int(p["amount_specified"]),
            sqrt_price_limit_x96=int(p.get("sqrt_price_limit_x96", default_limit)),
            referrer=p.get("referrer"),
        )
        mark = pool.events.mark()
        result = pool.swap(sender, params, self._payer(pool, sender))
        return PoolExecResult(
            success=True,
            data={
                "amount0": result.amount0,
                "amount1": result.amount1,
                "sqrt_price_x96": result.sqrt_price_x96,
                "tick": result.tick,
                "protocol_fee": result.protocol_fee,
                "referrer_fee": result.referrer_fee,
            },
            logs=self._logs_since(pool.events, mark),
        )

    def _op_set_fee_protocol(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        pool.set_fee_protocol(sender, int(p["fee_protocol0"]), int(p["fee_protocol1"]))
        return PoolExecResult(success=True, logs=self._logs_since(pool.events, mark))

    def _op_set_fee_swap_referrer(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        pool.set_fee_swap_referrer(sender, int(p["fee_swap_referrer0"]), int(p["fee_swap_referrer1"]))
        return PoolExecResult(success=True, logs=self._logs_since(pool.events, mark))

    def _op_collect_protocol(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        p = tx.params
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        amount0, amount1 = pool.collect_protocol(
            sender,
            p.get("recipient", sender),
            int(p.get("amount0_requested", UINT128_MAX)),
            int(p.get("amount1_requested", UINT128_MAX)),
        )
        return PoolExecResult(
            success=True,
            data={"amount0": amount0, "amount1": amount1},
            logs=self._logs_since(pool.events, mark),
        )

    def _op_collect_referrer_fees(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        pool = self._pool_for(tx)
        mark = pool.events.mark()
        amount0, amount1 = pool.collect_my_referrer_fees(sender)
        return PoolExecResult(
            success=True,
            data={"amount0": amount0, "amount1": amount1},
            logs=self._logs_since(pool.events, mark),
        )

    def _op_add_router(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        mark = self.router_events.mark()
        self.router_whitelist.add_router(sender, tx.params["router"])
        return PoolExecResult(success=True, logs=self._logs_since(self.router_events, mark))

    def _op_remove_router(self, tx: PoolTransaction, sender: str) -> PoolExecResult:
        mark = self.router_events.mark()
        self.router_whitelist.remove_router(sender, tx.params["router"])
        return PoolExecResult(success=True, logs=self._logs_since(self.router_events, mark))

    # =====================================================================
    #  State root computation
    # =====================================================================

    def compute_state_root(self) -> str:
        """
        Deterministic hash of every pool, fee account, router and nonce.

        Returns:
            64-char hex string (blake2b-256)
        """
        hasher = hashlib.blake2b(digest_size=32)

        # 1. Pool state hashes (sorted by pool address)
        for address in sorted(self._pools):
            pool = self._pools[address]
            s = pool.state
            p0, p1 = pool.protocol_fees
            pool_hash = hashlib.blake2b(
                (f"{address}:{s.sqrt_price_x96}:{s.tick}:{s.liquidity}:"
                 f"{s.fee_growth_global_0_x128}:{s.fee_growth_global_1_x128}:"
                 f"{s.fees.protocol_0}:{s.fees.protocol_1}:{s.fees.referrer_0}:{s.fees.referrer_1}:"
                 f"{p0}:{p1}").encode(),
                digest_size=16,
            ).digest()
            hasher.update(pool_hash)

            # 2. Referrer accounts, sorted by referrer
            for referrer, (r0, r1) in pool.referrers():
                hasher.update(f"{address}:{referrer}:{r0}:{r1}".encode())

        # 3. Trusted routers
        for router in self.router_whitelist.routers:
            hasher.update(f"router:{router}".encode())

        # 4. Nonce state
        for addr in sorted(self._nonces):
            hasher.update(f"{addr}:{self._nonces[addr]}".encode())

        return hasher.hexdigest()

    # =====================================================================
    #  Snapshot / restore (for revert)
    # =====================================================================

    def take_snapshot(self) -> None:
        """Capture pools, ledger, whitelist and nonces for a later revert."""
        # one deepcopy so pools keep sharing the copied ledger and whitelist
        self._snapshot = copy.deepcopy(
            (self._pools, self._pair_index, self.ledger, self.router_whitelist,
             self.router_events, self._nonces)
        )

    def revert(self) -> bool:
        """Restore the last snapshot. Returns False if there was none."""
        if self._snapshot is None:
            return False
        (
            self._pools,
            self._pair_index,
            self.ledger,
            self.router_whitelist,
            self.router_events,
            self._nonces,
        ) = self._snapshot
        self._snapshot = None
        logger.warning("Pool state reverted to snapshot")
        return True

    # =====================================================================
    #  Query interface (read-only)
    # =====================================================================

    def get_pool(self, address: str) -> Optional[ConcentratedLiquidityPool]:
        return self._pools.get(normalize_address(address))

    def get_pool_for(self, token0: str, token1: str, fee: int) -> Optional[ConcentratedLiquidityPool]:
        token0 = normalize_address(token0)
        token1 = normalize_address(token1)
        if token0.lower() > token1.lower():
            token0, token1 = token1, token0
        address = self._pair_index.get((token0, token1, int(fee)))
        return self._pools.get(address) if address else None

    def get_nonce(self, address: str) -> int:
        return self._nonces.get(normalize_address(address), 0)

    @property
    def pool_count(self) -> int:
        return len(self._pools)

    @property
    def results(self) -> List[PoolExecResult]:
        return list(self._results)
