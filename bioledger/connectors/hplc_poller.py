"""
Simulated HPLC polling connector.

Every poll interval the connector checks its own small ledger for a
recent artifact. If there is none it produces a report (PDF) record
immediately and schedules the matching summary (CSV) after a random
delay: usually well inside the companion timeout, sometimes past it.
A companion check after every tick raises one alert per report whose
summary is overdue; a late summary resolves that alert. Resolved alerts
are kept and never re-opened.
"""

import random
from datetime import datetime, timedelta
from typing import Literal

from bioledger.catalog import Catalog, get_default_catalog
from bioledger.config import Settings
from bioledger.core.models import CompanionAlert, DataRecord, RunDefinition
from bioledger.ledger import Ledger, fingerprint
from bioledger.observability import metrics
from bioledger.observability.logger import get_logger

from .scheduler import SimulatedScheduler

logger = get_logger(__name__)

FIRST_SEQUENCE = 1000

ON_TIME_PROBABILITY = 0.8
ON_TIME_MAX_DELAY_SEC = 60.0
LATE_MIN_DELAY_SEC = 130.0
LATE_SPREAD_SEC = 30.0

ArtifactKind = Literal["pdf", "csv"]


class HplcPoller:
    """
    Timer-driven connector with its own ledger and alert list.

    Usage:
        scheduler = SimulatedScheduler()
        poller = HplcPoller(scheduler)
        poller.start()
        scheduler.advance(600)
        poller.get_active_alerts()
        poller.stop()
    """

    def __init__(
        self,
        scheduler: SimulatedScheduler,
        catalog: Catalog | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            scheduler: Clock and timer source
            catalog: Supplies the run artifacts are attributed to
            settings: Poll interval, companion timeout and interface id
            rng: Source of summary delays (anything with a random() method)
        """
        self.scheduler = scheduler
        self.catalog = catalog or get_default_catalog()
        self.settings = settings or Settings()
        self.interface_id = self.settings.chromatography_interface
        self._rng = rng or random.Random()

        self.ledger = Ledger(name="hplc-poller", clock=scheduler.now)
        self._alerts: list[CompanionAlert] = []
        self._sequence = FIRST_SEQUENCE
        self._tick_handle: int | None = None
        self._summary_handles: dict[int, int] = {}
        self._running = False

    @property
    def poll_interval(self) -> timedelta:
        return timedelta(seconds=self.settings.poll_interval_sec)

    @property
    def companion_timeout(self) -> timedelta:
        return timedelta(seconds=self.settings.companion_timeout_sec)

    # Lifecycle

    def start(self) -> None:
        """Tick immediately, then every poll interval. Safe to call twice."""
        if self._running:
            return
        self._running = True
        logger.info(f"{self.interface_id} polling started", extra={"interface_id": self.interface_id})
        self.tick()
        self._schedule_tick()

    def stop(self) -> None:
        """Stop polling and cancel every pending tick and summary delivery."""
        if not self._running:
            return
        self._running = False

        if self._tick_handle is not None:
            self.scheduler.cancel(self._tick_handle)
            self._tick_handle = None
        for handle in self._summary_handles.values():
            self.scheduler.cancel(handle)
        cancelled = len(self._summary_handles)
        self._summary_handles.clear()

        logger.info(
            f"{self.interface_id} polling stopped, {cancelled} pending summary(ies) cancelled",
            extra={"interface_id": self.interface_id}
        )

    def is_running(self) -> bool:
        return self._running

    def _schedule_tick(self) -> None:
        self._tick_handle = self.scheduler.call_later(self.settings.poll_interval_sec, self._on_tick)

    def _on_tick(self) -> None:
        self._tick_handle = None
        if not self._running:
            return
        self.tick()
        self._schedule_tick()

    # Polling

    def companion_delay(self) -> float:
        """Seconds until a report's summary arrives."""
        if self._rng.random() < ON_TIME_PROBABILITY:
            return self._rng.random() * ON_TIME_MAX_DELAY_SEC
        return LATE_MIN_DELAY_SEC + self._rng.random() * LATE_SPREAD_SEC

    def tick(self) -> DataRecord | None:
        """
        One poll.

        Returns:
            The report produced by this tick, or None if the poller is
            stopped or a recent artifact made the poll a no-op
        """
        if not self._running:
            return None

        run = self.catalog.most_recent_run()
        if run is None:
            return None

        now = self.scheduler.now()
        cutoff = now - self.poll_interval
        report = None

        if not any(r.ingested_at > cutoff for r in self.ledger.get_all()):
            sequence = self._sequence
            self._sequence += 1

            report = self._make_record("pdf", sequence, run, now)
            self.ledger.ingest([report])
            metrics.increment_counter(metrics.connector_artifacts_total, 1,
                                      interface_id=self.interface_id, kind="report")

            delay = self.companion_delay()
            self._summary_handles[sequence] = self.scheduler.call_later(
                delay, self._deliver_summary, sequence, run, now, report.record_id
            )
            logger.debug(f"Report seq {sequence} produced, summary due in {delay:.1f}s")

        self.check_companions()
        return report

    def _deliver_summary(self, sequence: int, run: RunDefinition, measured_at: datetime, report_id: str) -> None:
        self._summary_handles.pop(sequence, None)

        summary = self._make_record("csv", sequence, run, measured_at)
        if self.ledger.ingest([summary]).newly_added == 0:
            return
        metrics.increment_counter(metrics.connector_artifacts_total, 1,
                                  interface_id=self.interface_id, kind="summary")

        for alert in self._alerts:
            if alert.report_record_id == report_id and alert.resolve(self.scheduler.now()):
                metrics.increment_counter(metrics.connector_alerts_total, 1,
                                          interface_id=self.interface_id, transition="resolved")
                logger.info(f"Alert {alert.id} resolved by late summary", extra={"sequence": sequence})

    def check_companions(self) -> list[CompanionAlert]:
        """
        Raise an alert for every overdue report that has none yet.

        Returns:
            Alerts raised by this pass
        """
        now = self.scheduler.now()
        records = self.ledger.get_all()
        summaries = {r.labels.get("poll_seq") for r in records if r.labels.get("format") == "CSV"}
        alerted = {a.report_record_id for a in self._alerts}

        raised = []
        for report in records:
            if report.labels.get("format") != "PDF":
                continue
            sequence = report.labels.get("poll_seq")
            if not sequence or sequence in summaries or report.record_id in alerted:
                continue
            if now - report.ingested_at < self.companion_timeout:
                continue

            alert = CompanionAlert(
                id=f"HPLC-ALERT-{sequence}",
                timestamp=now,
                message=f"Missing companion summary CSV for HPLC Report PDF (seq {sequence})",
                report_record_id=report.record_id,
                sequence=sequence,
            )
            self._alerts.append(alert)
            raised.append(alert)
            metrics.increment_counter(metrics.connector_alerts_total, 1,
                                      interface_id=self.interface_id, transition="raised")
            logger.warning(alert.message, extra={"interface_id": self.interface_id, "sequence": sequence})

        return raised

    def _make_record(self, kind: ArtifactKind, sequence: int, run: RunDefinition, measured_at: datetime) -> DataRecord:
        ext = kind.upper()
        label = "Report PDF" if kind == "pdf" else "Summary CSV"
        raw_ref = f"file://{self.interface_id}/poll/{run.run_id}/{kind}_{sequence}"
        return DataRecord(
            record_id=f"DR-FILE-HPLC-POLL-{ext}-{sequence}",
            measured_at=measured_at,
            ingested_at=self.scheduler.now(),
            interface_id=self.interface_id,
            data_type="file",
            summary=f"HPLC {label} - Run {run.bioreactor_run}",
            raw_ref=raw_ref,
            hash=fingerprint(raw_ref),
            attributable_to=self.interface_id,
            entry_mode="auto",
            labels={"format": ext, "run": run.bioreactor_run, "poll_seq": str(sequence)},
            quality_flags=["in_spec"],
            linked_run_id=run.run_id,
        )

    # Read surface

    def get_records(self) -> list[DataRecord]:
        return self.ledger.get_all()

    def get_alerts(self) -> list[CompanionAlert]:
        """All alerts, resolved ones included."""
        return list(self._alerts)

    def get_active_alerts(self) -> list[CompanionAlert]:
        return [a for a in self._alerts if not a.resolved]
