"""
Source families feeding the ledger: generated timeseries, parsed process
events and synthetic auxiliary instruments.
"""

from .auxiliary import AuxiliarySchedule, build_auxiliary_records, load_auxiliary_schedules
from .events import get_initial_events, load_events, parse_events
from .pipeline import IngestionPipeline, RefreshResult
from .timeseries import TimeseriesPoint, generate_timeseries, seeded_prng

__all__ = [
    "IngestionPipeline",
    "RefreshResult",
    "AuxiliarySchedule",
    "build_auxiliary_records",
    "load_auxiliary_schedules",
    "parse_events",
    "load_events",
    "get_initial_events",
    "TimeseriesPoint",
    "generate_timeseries",
    "seeded_prng",
]
