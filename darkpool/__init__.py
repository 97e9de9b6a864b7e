"""
Darkpool Engine Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole engine. For direct module access, import from submodules:

    from darkpool.engine import ConfidentialPoolEngine, PoolKey
    from darkpool.config import load_config
    from darkpool.exceptions import ExcessiveImbalance
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'ConfidentialPoolEngine':
        from .engine import ConfidentialPoolEngine
        return ConfidentialPoolEngine
    elif name == 'PoolHost':
        from .engine import PoolHost
        return PoolHost
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'DarkpoolException':
        from .exceptions import DarkpoolException
        return DarkpoolException
    raise AttributeError(f"module 'darkpool' has no attribute {name!r}")

__all__ = ['ConfidentialPoolEngine', 'PoolHost', 'load_config', 'DarkpoolException']
