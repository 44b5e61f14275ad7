"""
The append-only data ledger.
"""

from .hashing import fingerprint
from .store import IngestResult, Ledger

__all__ = [
    "Ledger",
    "IngestResult",
    "fingerprint",
]
