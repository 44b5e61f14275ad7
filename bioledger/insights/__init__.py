"""
Recipe-driven insights over alerts and ledger state.
"""

from .engine import InsightEngine
from .recipes import InsightContext, load_recipes

__all__ = [
    "InsightEngine",
    "InsightContext",
    "load_recipes",
]
