"""
Pool events.

One frozen dataclass per event. ``to_dict`` renders the camel-cased log
record hosts index on.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict, Iterator, List, Type, TypeVar


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class PoolEvent:
    event: ClassVar[str] = "PoolEvent"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"event": self.event}
        for f in fields(self):
            data[_camel(f.name)] = getattr(self, f.name)
        return data


@dataclass(frozen=True)
class Initialize(PoolEvent):
    event: ClassVar[str] = "Initialize"
    sqrt_price_x96: int
    tick: int


@dataclass(frozen=True)
class Mint(PoolEvent):
    event: ClassVar[str] = "Mint"
    sender: str
    owner: str
    tick_lower: int
    tick_upper: int
    amount: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class Burn(PoolEvent):
    event: ClassVar[str] = "Burn"
    owner: str
    tick_lower: int
    tick_upper: int
    amount: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class Collect(PoolEvent):
    event: ClassVar[str] = "Collect"
    owner: str
    recipient: str
    tick_lower: int
    tick_upper: int
    amount0: int
    amount1: int


@dataclass(frozen=True)
class Swap(PoolEvent):
    event: ClassVar[str] = "Swap"
    sender: str
    recipient: str
    amount0: int
    amount1: int
    sqrt_price_x96: int
    liquidity: int
    tick: int
    referrer: str


@dataclass(frozen=True)
class ProtocolFeeAccrued(PoolEvent):
    event: ClassVar[str] = "ProtocolFeeAccrued"
    amount0: int
    amount1: int


@dataclass(frozen=True)
class ReferrerFeeAccrued(PoolEvent):
    event: ClassVar[str] = "ReferrerFeeAccrued"
    referrer: str
    amount0: int
    amount1: int


@dataclass(frozen=True)
class SetFeeProtocol(PoolEvent):
    event: ClassVar[str] = "SetFeeProtocol"
    fee_protocol0_old: int
    fee_protocol1_old: int
    fee_protocol0_new: int
    fee_protocol1_new: int


@dataclass(frozen=True)
class SetFeeSwapReferrer(PoolEvent):
    event: ClassVar[str] = "SetFeeSwapReferrer"
    fee_swap_referrer0_old: int
    fee_swap_referrer1_old: int
    fee_swap_referrer0_new: int
    fee_swap_referrer1_new: int


@dataclass(frozen=True)
class CollectProtocol(PoolEvent):
    event: ClassVar[str] = "CollectProtocol"
    sender: str
    recipient: str
    amount0: int
    amount1: int


@dataclass(frozen=True)
class CollectReferrerFees(PoolEvent):
    event: ClassVar[str] = "CollectReferrerFees"
    referrer: str
    amount0: int
    amount1: int


@dataclass(frozen=True)
class RouterWhitelisted(PoolEvent):
    event: ClassVar[str] = "RouterWhitelisted"
    router: str


@dataclass(frozen=True)
class RouterRemovedFromWhitelist(PoolEvent):
    event: ClassVar[str] = "RouterRemovedFromWhitelist"
    router: str


@dataclass(frozen=True)
class OwnershipTransferred(PoolEvent):
    event: ClassVar[str] = "OwnershipTransferred"
    previous_owner: str
    new_owner: str


E = TypeVar("E", bound=PoolEvent)


class EventLog:
    """Append-only event list that can be rolled back to a mark."""

    def __init__(self) -> None:
        self._events: List[PoolEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[PoolEvent]:
        return iter(self._events)

    def __getitem__(self, index):
        return self._events[index]

    def emit(self, event: PoolEvent) -> None:
        self._events.append(event)

    def mark(self) -> int:
        return len(self._events)

    def since(self, mark: int) -> List[PoolEvent]:
        return self._events[mark:]

    def truncate(self, mark: int) -> None:
        del self._events[mark:]

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self._events if isinstance(e, event_type)]
