"""
clpool Exceptions

Custom exception classes for the concentrated-liquidity pool engine.

Every failure raised by a pool entry point is a :class:`PoolError`; the
entry point restores all state it touched before the exception leaves it.
"""


class CLPoolException(Exception):
    """Base exception for clpool."""
    pass


class PoolError(CLPoolException):
    """A pool operation was rejected."""
    pass


class ZeroAmount(PoolError):
    """Swap or liquidity amount is zero."""
    pass


class PriceLimitInvalid(PoolError):
    """Price limit is on the wrong side of the current price or out of bounds."""
    pass


class InvalidFeeConfig(PoolError):
    """Fee denominator outside its validated range."""
    pass


class Reentrant(PoolError):
    """A guarded entry point was called while the pool is locked."""
    pass


class Unauthorized(PoolError):
    """Caller is not allowed to perform the operation."""
    pass


class ArithmeticOverflow(PoolError):
    """Fixed-point result exceeds its representable range."""
    pass


class ArithmeticUnderflow(PoolError):
    """Fixed-point result would go below zero."""
    pass


class OracleCallFailed(PoolError):
    """Router trust oracle raised or returned garbage. Always handled fail-closed."""
    pass


class InvalidTickRange(PoolError):
    """Tick bounds are inverted, out of range or off the tick spacing."""
    pass


class InvalidPosition(PoolError):
    """Position cannot be touched (e.g. poke with zero liquidity)."""
    pass


class InsufficientPayment(PoolError):
    """Callback did not deliver the tokens the pool is owed."""
    pass


class PoolNotInitialized(PoolError):
    """Pool price has not been set yet."""
    pass


class AlreadyInitialized(PoolError):
    """Pool price can only be set once."""
    pass


class TokenError(CLPoolException):
    """Token ledger error."""
    pass


class InsufficientBalance(TokenError):
    """Sender balance is too low for a transfer."""
    pass


class InvalidAddressError(CLPoolException):
    """Invalid address format."""
    pass


class ConfigurationError(CLPoolException):
    """Configuration error."""
    pass
