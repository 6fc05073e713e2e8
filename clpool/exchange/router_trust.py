"""
Router trust: who may route swap-referrer fees.

The pool asks a :class:`RouterTrustOracle` whether its immediate caller is a
trusted router. The answer is fail-closed: an oracle that raises or answers
anything other than ``True`` means "not trusted", and the referrer share is
folded into protocol revenue.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Set

from ..address import normalize_address
from ..constants import ZERO_ADDRESS
from ..exceptions import OracleCallFailed, Unauthorized
from .events import EventLog, OwnershipTransferred, RouterRemovedFromWhitelist, RouterWhitelisted

logger = logging.getLogger(__name__)


class RouterTrustOracle(Protocol):
    def is_router_whitelisted(self, router: str) -> bool:
        ...


def _query_oracle(oracle: RouterTrustOracle, caller: str) -> bool:
    try:
        answer = oracle.is_router_whitelisted(caller)
    except Exception as e:
        raise OracleCallFailed(f"Router oracle raised {type(e).__name__}: {e}") from e
    if not isinstance(answer, bool):
        raise OracleCallFailed(f"Router oracle returned non-boolean {answer!r}")
    return answer


def is_trusted_router(oracle: Optional[RouterTrustOracle], caller: str) -> bool:
    """True only if ``oracle`` positively vouches for ``caller``."""
    if oracle is None:
        return False
    try:
        return _query_oracle(oracle, caller) is True
    except OracleCallFailed as e:
        logger.warning("OracleCallFailed for %s, treating as untrusted: %s", caller, e)
        return False


class RouterWhitelist:
    """
    Owner-managed registry of trusted routers.

    Satisfies :class:`RouterTrustOracle`.
    """

    def __init__(self, owner: str, events: Optional[EventLog] = None):
        self._owner = normalize_address(owner)
        self._routers: Set[str] = set()
        self.events = events if events is not None else EventLog()

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def routers(self) -> List[str]:
        return sorted(self._routers)

    def _only_owner(self, sender: str) -> None:
        if normalize_address(sender) != self._owner:
            raise Unauthorized(f"{sender} is not the whitelist owner")

    def add_router(self, sender: str, router: str) -> None:
        self._only_owner(sender)
        router = normalize_address(router)
        if router == ZERO_ADDRESS:
            raise ValueError("Cannot whitelist the zero address")
        if router in self._routers:
            raise ValueError(f"Router {router} already whitelisted")
        self._routers.add(router)
        self.events.emit(RouterWhitelisted(router=router))
        logger.info("Router %s whitelisted", router)

    def remove_router(self, sender: str, router: str) -> None:
        self._only_owner(sender)
        router = normalize_address(router)
        if router not in self._routers:
            raise ValueError(f"Router {router} is not whitelisted")
        self._routers.discard(router)
        self.events.emit(RouterRemovedFromWhitelist(router=router))
        logger.info("Router %s removed from whitelist", router)

    def is_router_whitelisted(self, router: str) -> bool:
        router = normalize_address(router)
        if router == ZERO_ADDRESS:
            return False
        return router in self._routers

    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self._only_owner(sender)
        new_owner = normalize_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise ValueError("New owner is the zero address")
        previous = self._owner
        self._owner = new_owner
        self.events.emit(OwnershipTransferred(previous_owner=previous, new_owner=new_owner))
        logger.info("Whitelist ownership transferred %s -> %s", previous, new_owner)
