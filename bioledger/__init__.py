"""
bioledger - append-only bioprocess data ledger with quality rules,
completeness scoring and recipe-driven insights.
"""

from bioledger.service import BioLedger

__version__ = "0.1.0"

__all__ = [
    "BioLedger",
]
