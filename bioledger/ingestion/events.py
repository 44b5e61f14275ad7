"""
Process event log parser.

Each line of the log is one event:

    run_id, timestamp, event_type, subtype, amount, amount_unit, actor, entry_mode, notes

Notes may themselves contain commas. A blank or non-numeric amount is
kept as None so ingestion can flag the record instead of dropping it.
"""

import csv
import io
from datetime import datetime
from functools import lru_cache
from pathlib import Path

from bioledger.config import DEFAULT_EVENTS_PATH
from bioledger.core.models import ProcessEvent
from bioledger.observability.logger import get_logger

logger = get_logger(__name__)

MIN_FIELDS = 8


def _parse_amount(raw: str) -> float | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Non-numeric event amount {raw!r} treated as missing")
        return None


def _parse_timestamp(raw: str) -> datetime:
    return datetime.fromisoformat(raw.strip().replace(" ", "T"))


def parse_events(text: str) -> list[ProcessEvent]:
    """
    Parse an event log into time-sorted events.

    Event ids are assigned in file order (EVT-0001, EVT-0002, ...) before
    sorting, so an event keeps its id regardless of where it lands in time.
    Lines with too few fields or an unreadable timestamp are skipped with
    a warning.

    Args:
        text: Delimited event log

    Returns:
        Events sorted ascending by timestamp (stable for ties)
    """
    events: list[ProcessEvent] = []
    reader = csv.reader(io.StringIO(text.strip()))

    for line_no, fields in enumerate(reader, start=1):
        if not fields or all(not f.strip() for f in fields):
            continue
        if len(fields) < MIN_FIELDS:
            logger.warning(
                f"Skipping event line {line_no}: expected at least {MIN_FIELDS} fields, got {len(fields)}"
            )
            continue

        try:
            timestamp = _parse_timestamp(fields[1])
        except ValueError:
            logger.warning(f"Skipping event line {line_no}: bad timestamp {fields[1]!r}")
            continue

        events.append(
            ProcessEvent(
                id=f"EVT-{line_no:04d}",
                run_id=fields[0].strip(),
                timestamp=timestamp,
                event_type=fields[2].strip(),
                subtype=fields[3].strip(),
                amount=_parse_amount(fields[4]),
                amount_unit=fields[5].strip(),
                actor=fields[6].strip(),
                entry_mode=fields[7].strip(),
                notes=",".join(fields[8:]).strip(),
            )
        )

    events.sort(key=lambda e: e.timestamp)
    return events


def load_events(path: str | Path = DEFAULT_EVENTS_PATH) -> list[ProcessEvent]:
    """
    Read and parse an event log file.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    event_path = Path(path)
    if not event_path.exists():
        raise FileNotFoundError(f"Event log not found: {path}")
    return parse_events(event_path.read_text(encoding="utf-8"))


@lru_cache(maxsize=8)
def _cached_events(path: str) -> tuple[ProcessEvent, ...]:
    return tuple(load_events(path))


def get_initial_events(path: str | Path = DEFAULT_EVENTS_PATH) -> list[ProcessEvent]:
    """Parsed events for a log file, parsed once per path. Returns a fresh list."""
    return list(_cached_events(str(path)))
