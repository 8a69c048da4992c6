"""Runtime package for the Tarkov data overlay toolkit."""

from . import overlay, reconcile, tarkov

__all__ = [
    "__version__",
    "overlay",
    "reconcile",
    "tarkov",
]

__version__ = "1.0.0"
