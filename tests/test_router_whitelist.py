"""
Test suite for the router whitelist and trust oracle

Covers:
  - Owner-only add / remove / ownership transfer
  - Zero-address and duplicate handling
  - Fail-closed trust queries
"""

import logging
from unittest.mock import MagicMock

import pytest

from clpool.constants import ZERO_ADDRESS
from clpool.exceptions import InvalidAddressError, Unauthorized
from clpool.exchange.events import (
    EventLog,
    OwnershipTransferred,
    RouterRemovedFromWhitelist,
    RouterWhitelisted,
)
from clpool.exchange.router_trust import RouterWhitelist, is_trusted_router

OWNER = "0x9999999999999999999999999999999999999999"
ROUTER = "0x3333333333333333333333333333333333333333"
OTHER = "0x6666666666666666666666666666666666666666"
MIXED_CASE = "0xabcdef0123456789abcdef0123456789abcdef01"


class TestRouterWhitelist:

    def test_add_and_query(self):
        whitelist = RouterWhitelist(OWNER)
        assert not whitelist.is_router_whitelisted(ROUTER)
        whitelist.add_router(OWNER, ROUTER)
        assert whitelist.is_router_whitelisted(ROUTER)
        assert whitelist.routers == [ROUTER]
        assert whitelist.events.of_type(RouterWhitelisted)[0].router == ROUTER

    def test_address_case_insensitive(self):
        whitelist = RouterWhitelist(OWNER)
        whitelist.add_router(OWNER, MIXED_CASE)
        assert whitelist.is_router_whitelisted(MIXED_CASE.upper().replace("0X", "0x"))

    def test_remove(self):
        whitelist = RouterWhitelist(OWNER)
        whitelist.add_router(OWNER, ROUTER)
        whitelist.remove_router(OWNER, ROUTER)
        assert not whitelist.is_router_whitelisted(ROUTER)
        assert whitelist.events.of_type(RouterRemovedFromWhitelist)[0].router == ROUTER

    def test_remove_unknown(self):
        whitelist = RouterWhitelist(OWNER)
        with pytest.raises(ValueError, match="is not whitelisted"):
            whitelist.remove_router(OWNER, ROUTER)

    def test_duplicate_add(self):
        whitelist = RouterWhitelist(OWNER)
        whitelist.add_router(OWNER, ROUTER)
        with pytest.raises(ValueError, match="already whitelisted"):
            whitelist.add_router(OWNER, ROUTER)
        assert len(whitelist.events) == 1

    def test_zero_address(self):
        whitelist = RouterWhitelist(OWNER)
        with pytest.raises(ValueError, match="zero address"):
            whitelist.add_router(OWNER, ZERO_ADDRESS)
        assert not whitelist.is_router_whitelisted(ZERO_ADDRESS)

    def test_invalid_address(self):
        whitelist = RouterWhitelist(OWNER)
        with pytest.raises(InvalidAddressError):
            whitelist.add_router(OWNER, "0x1234")

    def test_non_owner(self):
        whitelist = RouterWhitelist(OWNER)
        with pytest.raises(Unauthorized, match="not the whitelist owner"):
            whitelist.add_router(ROUTER, ROUTER)
        whitelist.add_router(OWNER, ROUTER)
        with pytest.raises(Unauthorized):
            whitelist.remove_router(ROUTER, ROUTER)
        assert whitelist.is_router_whitelisted(ROUTER)

    def test_transfer_ownership(self):
        whitelist = RouterWhitelist(OWNER)
        whitelist.transfer_ownership(OWNER, OTHER)
        assert whitelist.owner == OTHER
        event = whitelist.events.of_type(OwnershipTransferred)[0]
        assert (event.previous_owner, event.new_owner) == (OWNER, OTHER)

        with pytest.raises(Unauthorized):
            whitelist.add_router(OWNER, ROUTER)
        whitelist.add_router(OTHER, ROUTER)

    def test_transfer_to_zero(self):
        whitelist = RouterWhitelist(OWNER)
        with pytest.raises(ValueError, match="zero address"):
            whitelist.transfer_ownership(OWNER, ZERO_ADDRESS)
        assert whitelist.owner == OWNER

    def test_shared_event_log(self):
        log = EventLog()
        whitelist = RouterWhitelist(OWNER, events=log)
        whitelist.add_router(OWNER, ROUTER)
        assert len(log) == 1
        assert log[0].to_dict() == {"event": "RouterWhitelisted", "router": ROUTER}


class TestIsTrustedRouter:
    """Only an explicit True from the oracle counts."""

    def test_whitelist_oracle(self):
        whitelist = RouterWhitelist(OWNER)
        whitelist.add_router(OWNER, ROUTER)
        assert is_trusted_router(whitelist, ROUTER) is True
        assert is_trusted_router(whitelist, OTHER) is False

    def test_no_oracle(self):
        assert is_trusted_router(None, ROUTER) is False

    def test_raising_oracle(self, caplog):
        oracle = MagicMock()
        oracle.is_router_whitelisted.side_effect = ConnectionError("unreachable")
        with caplog.at_level(logging.WARNING, logger="clpool.exchange.router_trust"):
            assert is_trusted_router(oracle, ROUTER) is False
        assert "treating as untrusted" in caplog.text

    @pytest.mark.parametrize("answer", [1, "true", None, MagicMock()])
    def test_non_boolean_answer(self, answer):
        oracle = MagicMock()
        oracle.is_router_whitelisted.return_value = answer
        assert is_trusted_router(oracle, ROUTER) is False

    def test_false_answer(self):
        oracle = MagicMock()
        oracle.is_router_whitelisted.return_value = False
        assert is_trusted_router(oracle, ROUTER) is False
