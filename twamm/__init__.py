"""TWAMM engine - time-weighted average market maker in Python."""

from twamm.engine import TwammEngine, get_default_engine

__version__ = "0.1.0"
__all__ = ["TwammEngine", "get_default_engine", "__version__"]
