"""
The five data-quality alert rules.

Every rule is a pure function of a record snapshot: it never mutates
records and produces the same alerts for the same input. Alert
timestamps are taken from the affected records so regeneration is
reproducible.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any

from bioledger.catalog import Catalog
from bioledger.config import Settings
from bioledger.core.labels import LabelEngine
from bioledger.core.models import Alert, DataRecord


class RuleContext:
    """Collaborators a rule may consult while evaluating."""

    def __init__(self, catalog: Catalog, label_engine: LabelEngine, settings: Settings):
        self.catalog = catalog
        self.label_engine = label_engine
        self.settings = settings


class BaseAlertRule(ABC):
    """
    Abstract base class for alert rules.

    Subclasses implement `evaluate`; `parameters` carries the overrides
    from the rule configuration.
    """

    def __init__(self, rule_name: str, parameters: dict[str, Any] | None = None):
        self.rule_name = rule_name
        self.parameters = parameters or {}

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the alert type this rule produces."""

    @abstractmethod
    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        """
        Evaluate the rule over a snapshot.

        Args:
            records: All records, ascending by measured_at
            context: Catalog, label engine and settings

        Returns:
            Zero or more alerts
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.rule_name}, params={self.parameters})"


def _group(records, key) -> dict[Any, list[DataRecord]]:
    groups: dict[Any, list[DataRecord]] = defaultdict(list)
    for record in records:
        groups[key(record)].append(record)
    return groups


class OutOfRangeRule(BaseAlertRule):
    """
    One alert per (interface, run) holding out-of-range timeseries records.

    Parameters:
        critical_above: Group size above which severity is critical (default 10)
        max_evidence: Evidence ids kept per alert (default 50)
    """

    @property
    def rule_type(self) -> str:
        return "out_of_range"

    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        critical_above = int(self.parameters.get("critical_above", 10))
        max_evidence = int(self.parameters.get("max_evidence", 50))

        flagged = [r for r in records if r.data_type == "timeseries" and r.has_flag("out_of_range")]
        groups = _group(flagged, lambda r: (r.interface_id, r.linked_run_id))

        alerts = []
        for (interface_id, run_id), group in groups.items():
            run_label = context.catalog.run_label(run_id)
            where = f"{interface_id} ({run_label})" if run_label else interface_id
            alerts.append(
                Alert(
                    alert_id=f"ALR-OOR-{interface_id}-{run_id or 'none'}",
                    severity="critical" if len(group) > critical_above else "warning",
                    type="out_of_range",
                    message=f"{len(group)} out-of-range value(s) detected on {where}",
                    interface_id=interface_id,
                    linked_run_id=run_id,
                    created_at=group[-1].measured_at,
                    affected_record_ids=[r.record_id for r in group[:max_evidence]],
                    record_count=len(group),
                )
            )
        return alerts


class MissingMetadataRule(BaseAlertRule):
    """
    One info alert per interface with records below 100% completeness
    against a template that requires at least one field.

    Parameters:
        max_evidence: Evidence ids kept per alert (default 20)
    """

    @property
    def rule_type(self) -> str:
        return "missing_metadata"

    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        max_evidence = int(self.parameters.get("max_evidence", 20))

        incomplete = [r for r in records if context.label_engine.is_incomplete(r)]
        groups = _group(incomplete, lambda r: r.interface_id)

        alerts = []
        for interface_id, group in groups.items():
            alerts.append(
                Alert(
                    alert_id=f"ALR-META-{interface_id}",
                    severity="info",
                    type="missing_metadata",
                    message=(
                        f"{len(group)} record(s) on {interface_id} have incomplete "
                        "required metadata labels"
                    ),
                    interface_id=interface_id,
                    created_at=max(r.measured_at for r in group),
                    affected_record_ids=[r.record_id for r in group[:max_evidence]],
                    record_count=len(group),
                )
            )
        return alerts


class TimestampGapRule(BaseAlertRule):
    """
    Warn on consecutive samples of a critical parameter, within one run,
    that are further apart than the gap threshold.

    Parameters:
        threshold_hours: Overrides gap_factor x sampling_hours from settings
    """

    @property
    def rule_type(self) -> str:
        return "timestamp_gap"

    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        threshold_hours = float(
            self.parameters.get("threshold_hours", context.settings.gap_threshold_hours)
        )
        critical_codes = {p.parameter_code for p in context.catalog.critical_parameters()}

        samples = [
            r for r in records
            if r.data_type == "timeseries" and r.labels.get("parameter") in critical_codes
        ]
        samples.sort(key=lambda r: r.measured_at)
        groups = _group(samples, lambda r: (r.linked_run_id, r.labels["parameter"]))

        alerts = []
        for (run_id, code), group in groups.items():
            parameter = context.catalog.get_parameter(code)
            name = parameter.display_name if parameter else code
            run_label = context.catalog.run_label(run_id) or run_id
            suffix = f" (run {run_label})" if run_label else ""

            for i in range(1, len(group)):
                previous, current = group[i - 1], group[i]
                gap_hours = (current.measured_at - previous.measured_at).total_seconds() / 3600
                if gap_hours <= threshold_hours:
                    continue
                alerts.append(
                    Alert(
                        alert_id=f"ALR-GAP-{run_id or 'none'}-{code}-{i}",
                        severity="warning",
                        type="timestamp_gap",
                        message=f"{round(gap_hours)}h gap in {name} data{suffix}",
                        interface_id=current.interface_id,
                        linked_run_id=run_id,
                        created_at=current.measured_at,
                        affected_record_ids=[previous.record_id, current.record_id],
                        record_count=2,
                    )
                )
        return alerts


class DuplicateRecordRule(BaseAlertRule):
    """
    Warn on any raw_ref held by more than one record.

    A ledger never produces this; the rule checks snapshots assembled
    elsewhere.

    Parameters:
        max_evidence: Evidence ids kept per alert (default 20)
    """

    @property
    def rule_type(self) -> str:
        return "duplicate_record"

    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        max_evidence = int(self.parameters.get("max_evidence", 20))

        alerts = []
        for raw_ref, group in _group(records, lambda r: r.raw_ref).items():
            if len(group) <= 1:
                continue
            first = group[0]
            alerts.append(
                Alert(
                    alert_id=f"ALR-DUP-{first.record_id}",
                    severity="warning",
                    type="duplicate_record",
                    message=f"Duplicate raw_ref detected: {raw_ref} ({len(group)} records)",
                    interface_id=first.interface_id,
                    linked_run_id=first.linked_run_id,
                    created_at=max(r.ingested_at for r in group),
                    affected_record_ids=[r.record_id for r in group[:max_evidence]],
                    record_count=len(group),
                )
            )
        return alerts


def companion_key(record: DataRecord) -> str | None:
    """Pairing key of a chromatography file: poll sequence, else injection."""
    return record.labels.get("poll_seq") or record.labels.get("injection") or None


class MissingCompanionRule(BaseAlertRule):
    """
    Warn on each PDF report of the chromatography interface with no CSV
    summary sharing its sequence label.

    Parameters:
        interface_id: Overrides the chromatography interface from settings
    """

    @property
    def rule_type(self) -> str:
        return "missing_companion"

    def evaluate(self, records: list[DataRecord], context: RuleContext) -> list[Alert]:
        interface_id = self.parameters.get("interface_id", context.settings.chromatography_interface)

        files = [r for r in records if r.interface_id == interface_id and r.data_type == "file"]
        summaries = {
            companion_key(r) for r in files if r.labels.get("format", "").upper() == "CSV"
        }

        alerts = []
        for report in files:
            if report.labels.get("format", "").upper() != "PDF":
                continue
            sequence = companion_key(report)
            if sequence is None or sequence in summaries:
                continue
            alerts.append(
                Alert(
                    alert_id=f"ALR-COMP-{interface_id}-{sequence}",
                    severity="warning",
                    type="missing_companion",
                    message=f"{interface_id} PDF (seq {sequence}) has no companion CSV summary file",
                    interface_id=interface_id,
                    linked_run_id=report.linked_run_id,
                    created_at=report.ingested_at,
                    affected_record_ids=[report.record_id],
                    record_count=1,
                )
            )
        return alerts
