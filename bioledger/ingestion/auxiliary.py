"""
Synthetic auxiliary instrument output.

Each schedule emits records at a fixed cadence relative to a run's start
(gas snapshots, daily metabolite and cell-count panels, periodic HPLC
injection files). Ingestion lag is the schedule's base lag plus a jitter
seeded by the record's raw_ref, so every refresh reproduces the same
timestamps; a lag beyond `late_after_seconds` flags late_ingestion.
"""

import zlib
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Literal

from pydantic import BaseModel, Field

from bioledger.catalog import Catalog
from bioledger.config import DEFAULT_AUXILIARY_PATH, load_yaml_section
from bioledger.core.models import DataRecord, QualityFlag, RunDefinition
from bioledger.ledger.hashing import fingerprint

from .timeseries import seeded_prng


class AuxiliarySchedule(BaseModel):
    """
    Emission cadence and lag model of one auxiliary instrument.

    Attributes:
        interface_id: Interface the records are attributed to
        kind: Record builder to use (see AUXILIARY_BUILDERS)
        data_type: Ledger data type of the emitted records
        every_hours: Cadence
        offset_hours: Offset added to each slot (e.g. 9 for a 09:00 sample)
        first_after_hours: Delay of the first slot after run start
        scope: "per_run" or "first_run" (one shared window)
        lag_seconds: Base measured-to-ingested lag
        jitter_seconds: Upper bound of the seeded extra lag
        late_after_seconds: Lag above which late_ingestion is flagged
    """

    interface_id: str
    kind: str
    data_type: Literal["timeseries", "event", "file"]
    every_hours: float = Field(..., gt=0)
    offset_hours: float = 0.0
    first_after_hours: float = 0.0
    scope: Literal["per_run", "first_run"] = "per_run"
    lag_seconds: float = Field(0.0, ge=0)
    jitter_seconds: float = Field(0.0, ge=0)
    late_after_seconds: float | None = None


def load_auxiliary_schedules(path: str | Path = DEFAULT_AUXILIARY_PATH) -> list[AuxiliarySchedule]:
    """
    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the 'schedules' section is missing or names an unknown kind
    """
    schedules = [AuxiliarySchedule(**s) for s in load_yaml_section(path, "schedules")]
    for schedule in schedules:
        if schedule.kind not in AUXILIARY_BUILDERS:
            raise ValueError(f"Unknown auxiliary schedule kind: {schedule.kind}")
    return schedules


class Slot(BaseModel):
    """One scheduled emission."""

    index: int
    measured_at: datetime
    run: RunDefinition | None = None


def _gas_snapshot(slot: Slot, schedule: AuxiliarySchedule) -> dict:
    stamp = slot.measured_at.strftime("%Y%m%dT%H%M")
    return {
        "record_id": f"DR-TS-GAS-{stamp}",
        "summary": "Gas composition snapshot - O₂/N₂/CO₂/Air",
        "raw_ref": f"raw://{schedule.interface_id}/snapshot-{stamp}",
        "labels": {},
        "linked_run_id": None,
    }


def _metabolite_panel(slot: Slot, schedule: AuxiliarySchedule) -> dict:
    run = slot.run
    return {
        "record_id": f"DR-TS-METAB-{run.run_id}-d{slot.index}",
        "summary": f"Daily metabolite panel - GLU/LAC/NH₃/GLN (Day {slot.index})",
        "raw_ref": f"raw://{schedule.interface_id}/{run.run_id}/d{slot.index}",
        "labels": {"day": str(slot.index), "run": run.bioreactor_run},
        "linked_run_id": run.run_id,
    }


def _cell_count(slot: Slot, schedule: AuxiliarySchedule) -> dict:
    run = slot.run
    return {
        "record_id": f"DR-TS-CELL-{run.run_id}-d{slot.index}",
        "summary": f"Cell count - VCD/TCD/Viability (Day {slot.index})",
        "raw_ref": f"raw://{schedule.interface_id}/{run.run_id}/d{slot.index}",
        "labels": {"day": str(slot.index), "run": run.bioreactor_run},
        "linked_run_id": run.run_id,
    }


def _hplc_injection(slot: Slot, schedule: AuxiliarySchedule) -> dict:
    run = slot.run
    injection = slot.index + 1
    return {
        "record_id": f"DR-FILE-HPLC-{run.run_id}-s{slot.index}",
        "summary": f"HPLC injection #{injection} - titer & purity CDF",
        "raw_ref": f"file://{schedule.interface_id}/{run.run_id}/inj_{slot.index}.cdf",
        "labels": {"injection": str(injection), "format": "CDF", "run": run.bioreactor_run},
        "linked_run_id": run.run_id,
    }


AUXILIARY_BUILDERS: dict[str, Callable[[Slot, AuxiliarySchedule], dict]] = {
    "gas_snapshot": _gas_snapshot,
    "metabolite_panel": _metabolite_panel,
    "cell_count": _cell_count,
    "hplc_injection": _hplc_injection,
}


def ingestion_lag(raw_ref: str, schedule: AuxiliarySchedule) -> float:
    """Base lag plus a jitter in [0, jitter_seconds) seeded by raw_ref."""
    if schedule.jitter_seconds <= 0:
        return schedule.lag_seconds
    rand = seeded_prng(zlib.crc32(raw_ref.encode("utf-8")))
    return schedule.lag_seconds + rand() * schedule.jitter_seconds


def _slots(schedule: AuxiliarySchedule, catalog: Catalog) -> list[Slot]:
    if schedule.scope == "first_run":
        runs: list[RunDefinition | None] = catalog.runs[:1]
    else:
        runs = list(catalog.runs)

    slots: list[Slot] = []
    step = timedelta(hours=schedule.every_hours)
    for run in runs:
        t = run.start_time + timedelta(hours=schedule.first_after_hours)
        index = 0
        while t < run.end_time:
            slots.append(
                Slot(
                    index=index,
                    measured_at=t + timedelta(hours=schedule.offset_hours),
                    run=run if schedule.scope == "per_run" else None,
                )
            )
            t += step
            index += 1
    return slots


def build_auxiliary_records(schedule: AuxiliarySchedule, catalog: Catalog) -> list[DataRecord]:
    """
    Emit every record one schedule produces over the catalog's runs.

    Returns:
        Records with completeness left at 100; the pipeline rescores them
    """
    builder = AUXILIARY_BUILDERS[schedule.kind]
    records: list[DataRecord] = []

    for slot in _slots(schedule, catalog):
        fields = builder(slot, schedule)
        lag = ingestion_lag(fields["raw_ref"], schedule)

        flags: list[QualityFlag] = ["in_spec"]
        if schedule.late_after_seconds is not None and lag > schedule.late_after_seconds:
            flags.append("late_ingestion")

        records.append(
            DataRecord(
                measured_at=slot.measured_at,
                ingested_at=slot.measured_at + timedelta(seconds=lag),
                interface_id=schedule.interface_id,
                data_type=schedule.data_type,
                hash=fingerprint(fields["raw_ref"]),
                attributable_to=schedule.interface_id,
                entry_mode="auto",
                quality_flags=flags,
                **fields,
            )
        )

    return records
