"""
Append-only, deduplicated in-memory record store.

Records are merged by raw_ref: offering a record whose raw_ref is already
held is a silent no-op, which models an instrument re-poll returning the
same data. Corrections never mutate the original; they append a linked
correction record and flag the original as corrected.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, Iterable

from pydantic import BaseModel, Field

from bioledger.core.models import DataRecord
from bioledger.observability import metrics
from bioledger.observability.logger import get_logger

from .hashing import fingerprint

logger = get_logger(__name__)


class IngestResult(BaseModel):
    """
    Outcome of merging one batch.

    Attributes:
        total: Records held by the ledger after the merge
        newly_added: Records from the batch that were appended
        duplicates: Records from the batch dropped by raw_ref
    """

    total: int = Field(..., ge=0)
    newly_added: int = Field(..., ge=0)
    duplicates: int = Field(0, ge=0)


class Ledger:
    """
    ALCOA record store.

    The record list is kept sorted ascending by measured_at (ties keep
    arrival order). `version` increases on every mutation so derived
    computations can cache against it.

    Usage:
        ledger = Ledger()
        result = ledger.ingest(records)
        correction = ledger.create_correction(record_id, "pH re-read 7.01", "operator_20-456")
    """

    def __init__(self, name: str = "main", clock: Callable[[], datetime] | None = None):
        """
        Args:
            name: Ledger name used in logs and metrics
            clock: Source of "now" for correction timestamps
        """
        self.name = name
        self._clock = clock or datetime.utcnow
        self._records: list[DataRecord] = []
        self._by_id: dict[str, DataRecord] = {}
        self._raw_refs: set[str] = set()
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._records)

    def has_raw_ref(self, raw_ref: str) -> bool:
        return raw_ref in self._raw_refs

    def mark_changed(self) -> None:
        """Signal an in-place mutation (labels, flags) to cached consumers."""
        self._version += 1

    def ingest(self, records: Iterable[DataRecord]) -> IngestResult:
        """
        Merge a batch using raw_ref as the idempotency key.

        Records whose raw_ref is already held, or repeated earlier in the
        same batch, are dropped without error.

        Args:
            records: Candidate records

        Returns:
            IngestResult with the ledger total and the number appended
        """
        added: list[DataRecord] = []
        duplicates = 0

        for record in records:
            if record.raw_ref in self._raw_refs:
                duplicates += 1
                metrics.increment_counter(
                    metrics.records_ingested_total, 1,
                    interface_id=record.interface_id, outcome="duplicate"
                )
                continue

            if record.record_id in self._by_id:
                logger.warning(
                    f"record_id {record.record_id} already held under a different raw_ref; "
                    "lookups by id return the first record"
                )
            else:
                self._by_id[record.record_id] = record

            self._raw_refs.add(record.raw_ref)
            added.append(record)
            metrics.increment_counter(
                metrics.records_ingested_total, 1,
                interface_id=record.interface_id, outcome="new"
            )

        if added:
            self._records.extend(added)
            self._records.sort(key=lambda r: r.measured_at)
            self._version += 1
            metrics.set_gauge(metrics.ledger_size, len(self._records), ledger=self.name)

        logger.debug(
            f"Ledger {self.name}: merged {len(added)} new record(s), "
            f"dropped {duplicates} duplicate(s), total {len(self._records)}"
        )

        return IngestResult(total=len(self._records), newly_added=len(added), duplicates=duplicates)

    def get_all(self) -> list[DataRecord]:
        """Snapshot of all records, ascending by measured_at."""
        return list(self._records)

    def get_record(self, record_id: str) -> DataRecord | None:
        return self._by_id.get(record_id)

    def create_correction(
        self,
        original_record_id: str,
        corrected_summary: str,
        actor: str,
    ) -> DataRecord | None:
        """
        Append a correction for an existing record.

        The correction carries the original's interface, measurement time,
        run link, completeness and labels (plus "correction_of"). The
        original only gains the "corrected" flag.

        Args:
            original_record_id: Record being corrected
            corrected_summary: Corrected human readable content
            actor: Identity of the person making the correction

        Returns:
            The new correction record, or None if the original is unknown
        """
        original = self.get_record(original_record_id)
        if original is None:
            logger.info(f"Correction requested for unknown record {original_record_id}")
            return None

        sequence = len(self.get_corrections_for(original.record_id)) + 1
        raw_ref = f"correction://{original.record_id}/{sequence}"
        while raw_ref in self._raw_refs:
            sequence += 1
            raw_ref = f"correction://{original.record_id}/{sequence}"

        ingested_at = max(self._clock(), original.ingested_at)

        correction = DataRecord(
            record_id=f"DR-COR-{original.record_id}-{sequence}",
            measured_at=original.measured_at,
            ingested_at=ingested_at,
            interface_id=original.interface_id,
            data_type="correction",
            summary=corrected_summary,
            raw_ref=raw_ref,
            hash=fingerprint(raw_ref),
            attributable_to=actor,
            entry_mode="manual",
            labels={**original.labels, "correction_of": original.record_id},
            completeness_score=original.completeness_score,
            quality_flags=["corrected"],
            linked_run_id=original.linked_run_id,
            corrects_record_id=original.record_id,
        )

        self.ingest([correction])
        original.add_flag("corrected")
        self._version += 1

        metrics.increment_counter(metrics.corrections_total, 1, interface_id=original.interface_id)
        logger.info(
            f"Correction {correction.record_id} appended for {original.record_id}",
            extra={"actor": actor, "interface_id": original.interface_id}
        )
        return correction

    def get_corrections_for(self, record_id: str) -> list[DataRecord]:
        return [r for r in self._records if r.corrects_record_id == record_id]

    # Read projections

    def filter_by_interface(self, interface_id: str) -> list[DataRecord]:
        return [r for r in self._records if r.interface_id == interface_id]

    def filter_by_run(self, run_id: str) -> list[DataRecord]:
        return [r for r in self._records if r.linked_run_id == run_id]

    def filter_out_of_range(self) -> list[DataRecord]:
        return [r for r in self._records if r.has_flag("out_of_range")]

    def counts_by_interface(self) -> dict[str, int]:
        return dict(Counter(r.interface_id for r in self._records))

    def counts_by_type(self) -> dict[str, int]:
        return dict(Counter(r.data_type for r in self._records))
