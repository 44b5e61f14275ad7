"""
Simulated instrument connectors.
"""

from .hplc_poller import HplcPoller
from .scheduler import SimulatedScheduler

__all__ = [
    "HplcPoller",
    "SimulatedScheduler",
]
