"""
clpool - concentrated-liquidity pool with layered protocol / referrer / LP fees

Core imports are lazily loaded so that ``import clpool`` stays cheap.
For direct module access, import from submodules:

    from clpool.exchange import ConcentratedLiquidityPool, SwapParams
    from clpool.config import load_config
    from clpool.exceptions import PoolError
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'ConcentratedLiquidityPool':
        from .exchange import ConcentratedLiquidityPool
        return ConcentratedLiquidityPool
    elif name == 'PoolStateManager':
        from .exchange import PoolStateManager
        return PoolStateManager
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'PoolError':
        from .exceptions import PoolError
        return PoolError
    raise AttributeError(f"module 'clpool' has no attribute {name!r}")

__all__ = ['ConcentratedLiquidityPool', 'PoolStateManager', 'load_config', 'PoolError']
