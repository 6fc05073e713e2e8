"""
clpool address helpers

Every identity the pool stores (owners, recipients, referrers, routers,
tokens) is an EIP-55 checksummed hex address, so two spellings of the same
account always land on the same ledger entry.
"""

from eth_utils import is_hex_address, to_checksum_address

from .constants import ZERO_ADDRESS
from .exceptions import InvalidAddressError


def normalize_address(address: str) -> str:
    """
    Convert ``address`` to its checksum form.

    Raises:
        InvalidAddressError: not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_hex_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS
