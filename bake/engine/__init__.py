"""State-convergence engine and the refresh functions built on it."""

from .cancel import CancelSignal
from .waiter import StateChangeConf

__all__ = ["CancelSignal", "StateChangeConf"]
