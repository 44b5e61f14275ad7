"""
Ingestion pipeline orchestration.

Coordinates the flow: generate / parse → build records → flag → score → merge

Three source families are converted into DataRecords: hourly timeseries
from the generator, parsed process events, and synthetic auxiliary
instrument output. All of them merge into the ledger keyed by raw_ref,
so re-running a family (or `refresh()`) never creates duplicates.
"""

from datetime import timedelta

from pydantic import BaseModel

from bioledger.catalog import Catalog, get_default_catalog
from bioledger.config import Settings
from bioledger.core.labels import LabelEngine
from bioledger.core.models import DataRecord, ProcessEvent, QualityFlag, RunDefinition
from bioledger.core.validators import RangeValidator, RequiredFieldValidator
from bioledger.ledger import IngestResult, Ledger, fingerprint
from bioledger.observability import metrics
from bioledger.observability.logger import get_logger, log_operation

from .auxiliary import AuxiliarySchedule, build_auxiliary_records, load_auxiliary_schedules
from .events import get_initial_events
from .timeseries import generate_timeseries

logger = get_logger(__name__)

TIMESERIES_LAG = timedelta(seconds=2)
EVENT_LAG = timedelta(milliseconds=500)

PUMP_INTERFACE = "PUMP-MODULE"
DOSING_EVENT_TYPES = frozenset({"FEED", "BASE_ADDITION", "ANTIFOAM", "ADDITIVE", "INDUCER"})
UNROUTED_INTERFACE = "UNROUTED"


class RefreshResult(BaseModel):
    """
    Outcome of a full ingestion pass.

    Attributes:
        timeseries: Merge result of the timeseries family
        events: Merge result of the event family
        auxiliary: Merge result of the auxiliary family
    """

    timeseries: IngestResult
    events: IngestResult
    auxiliary: IngestResult

    @property
    def total(self) -> int:
        return self.auxiliary.total

    @property
    def newly_added(self) -> int:
        return self.timeseries.newly_added + self.events.newly_added + self.auxiliary.newly_added


class IngestionPipeline:
    """
    Builds ledger records from every source family and merges them.

    Usage:
        pipeline = IngestionPipeline(ledger)
        result = pipeline.refresh()
        assert pipeline.refresh().newly_added == 0
    """

    def __init__(
        self,
        ledger: Ledger,
        catalog: Catalog | None = None,
        settings: Settings | None = None,
        label_engine: LabelEngine | None = None,
        events: list[ProcessEvent] | None = None,
        schedules: list[AuxiliarySchedule] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            ledger: Target ledger
            catalog: Parameter/run catalog (defaults to the packaged one)
            settings: Sampling granularity and resource paths
            label_engine: Completeness scorer applied before merge
            events: Parsed events (defaults to the configured event log)
            schedules: Auxiliary schedules (defaults to the configured YAML)
        """
        self.ledger = ledger
        self.settings = settings or Settings()
        self.catalog = catalog or get_default_catalog()
        self.label_engine = label_engine or LabelEngine()
        self.events = events if events is not None else get_initial_events(self.settings.events_path)
        self.schedules = (
            schedules if schedules is not None
            else load_auxiliary_schedules(self.settings.auxiliary_path)
        )
        self._range_validators = {
            p.parameter_code: RangeValidator.for_parameter(p) for p in self.catalog.parameters
        }
        self._amount_validator = RequiredFieldValidator("amount")

    # Record builders

    def build_timeseries_records(self, runs: list[RunDefinition] | None = None) -> list[DataRecord]:
        """
        One record per run, per parameter, per sampled elapsed hour.

        Args:
            runs: Runs to build (defaults to every catalog run)

        Returns:
            Records flagged out_of_range or in_spec against the catalog limits
        """
        records: list[DataRecord] = []
        step = self.settings.sampling_hours

        for run in runs if runs is not None else self.catalog.runs:
            interface = self.catalog.interface_for_reactor(run.reactor_id)
            if interface is None:
                logger.warning(f"No interface linked to reactor {run.reactor_id}; run {run.run_id} skipped")
                continue

            for point in generate_timeseries(run)[::step]:
                for parameter in self.catalog.parameters:
                    value = point.value(parameter.parameter_code)
                    if value is None:
                        continue
                    records.append(self._timeseries_record(run, interface.id, parameter, point.elapsed_h,
                                                           point.timestamp, value))

        return records

    def _timeseries_record(self, run, interface_id, parameter, hour, measured_at, value) -> DataRecord:
        code = parameter.parameter_code
        validator = self._range_validators[code]
        in_spec = validator.is_valid(value, {code: value})
        flags: list[QualityFlag] = ["in_spec"] if in_spec else ["out_of_range"]

        raw_ref = f"raw://{interface_id}/{run.run_id}/{code}/h{hour}"
        return DataRecord(
            record_id=f"DR-TS-{interface_id}-{run.run_id}-{code}-h{hour}",
            measured_at=measured_at,
            ingested_at=measured_at + TIMESERIES_LAG,
            interface_id=interface_id,
            data_type="timeseries",
            summary=f"{parameter.display_name} = {value:.2f} {parameter.unit} @ h{hour}",
            raw_ref=raw_ref,
            hash=fingerprint(raw_ref),
            attributable_to=interface_id,
            entry_mode="auto",
            labels={
                "run": run.bioreactor_run,
                "parameter": code,
                "reactor": run.reactor_id,
                "priority": parameter.type_priority,
                "batch": run.batch_id,
                "value": f"{value:.4f}",
                "unit": parameter.unit,
            },
            quality_flags=flags,
            linked_run_id=run.run_id,
        )

    def route_event(self, event: ProcessEvent) -> str:
        """Interface an event is attributed to."""
        if event.event_type in DOSING_EVENT_TYPES:
            return PUMP_INTERFACE
        run = self.catalog.get_run(event.run_id)
        interface = self.catalog.interface_for_reactor(run.reactor_id) if run else None
        return interface.id if interface else UNROUTED_INTERFACE

    def build_event_records(self) -> list[DataRecord]:
        """
        One record per parsed process event.

        Dosing events without an amount are flagged missing_field; manually
        entered events are flagged manually_entered. Events that cannot be
        routed are kept under the UNROUTED interface and flagged for review.
        """
        return [self._event_record(event) for event in self.events]

    def _event_record(self, event: ProcessEvent) -> DataRecord:
        interface_id = self.route_event(event)
        run = self.catalog.get_run(event.run_id)

        flags: list[QualityFlag] = []
        if event.event_type in DOSING_EVENT_TYPES and not self._amount_validator.is_valid(
            event.amount, {"amount": event.amount}
        ):
            flags.append("missing_field")
        else:
            flags.append("in_spec")

        manual = event.entry_mode.strip().lower() == "manual"
        if manual:
            flags.append("manually_entered")
        if interface_id == UNROUTED_INTERFACE:
            logger.warning(f"Event {event.id} references unknown run {event.run_id}")
            flags.append("flagged_for_review")

        summary = event.event_type
        if event.subtype:
            summary += f" / {event.subtype}"
        if event.amount is not None:
            summary += f" - {event.amount:g} {event.amount_unit}".rstrip()

        labels = {"event_type": event.event_type}
        if event.subtype:
            labels["subtype"] = event.subtype
        if run is not None:
            labels["run"] = run.bioreactor_run
            labels["batch"] = run.batch_id

        raw_ref = f"raw://{interface_id}/{event.run_id}/{event.id}"
        return DataRecord(
            record_id=f"DR-EV-{interface_id}-{event.id}",
            measured_at=event.timestamp,
            ingested_at=event.timestamp + EVENT_LAG,
            interface_id=interface_id,
            data_type="event",
            summary=summary,
            raw_ref=raw_ref,
            hash=fingerprint(raw_ref),
            attributable_to=event.actor or interface_id,
            entry_mode="manual" if manual else "auto",
            labels=labels,
            quality_flags=flags,
            linked_run_id=event.run_id if run is not None else None,
        )

    def build_auxiliary_records(self) -> list[DataRecord]:
        records: list[DataRecord] = []
        for schedule in self.schedules:
            records.extend(build_auxiliary_records(schedule, self.catalog))
        return records

    # Merge

    def _merge(self, family: str, records: list[DataRecord]) -> IngestResult:
        with metrics.track_duration(metrics.ingestion_duration_seconds, family=family):
            for record in records:
                if not self.ledger.has_raw_ref(record.raw_ref):
                    self.label_engine.score(record)
            result = self.ledger.ingest(records)

        if result.newly_added:
            for record in records:
                if self.ledger.get_record(record.record_id) is not record:
                    continue
                for flag in record.quality_flags:
                    metrics.increment_counter(metrics.quality_flags_total, 1, flag=flag)

        logger.info(
            f"Ingested {family}: {result.newly_added} new, {result.duplicates} duplicate",
            extra={"family": family, "ledger_total": result.total}
        )
        return result

    def ingest_timeseries(self) -> IngestResult:
        return self._merge("timeseries", self.build_timeseries_records())

    def ingest_events(self) -> IngestResult:
        return self._merge("events", self.build_event_records())

    def ingest_auxiliary(self) -> IngestResult:
        return self._merge("auxiliary", self.build_auxiliary_records())

    def refresh(self) -> RefreshResult:
        """
        Re-run every source family and merge into the ledger.

        Idempotent: a second call adds nothing.
        """
        with log_operation("Ingestion refresh", logger=logger, ledger=self.ledger.name):
            return RefreshResult(
                timeseries=self.ingest_timeseries(),
                events=self.ingest_events(),
                auxiliary=self.ingest_auxiliary(),
            )
